"""Remote persistence: gateway contract, DynamoDB gateway and state reconciliation."""

"""Character record, equipment, progression and town services."""

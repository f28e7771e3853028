"""Persistence boundary: the gateway contract and its retry policy.

Gateway implementations raise on failure. Callers inside the engine never
see those exceptions; ``call_gateway`` retries, logs and folds the outcome
into a GatewayResult.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, Protocol, TypeVar

from aws_lambda_powertools import Logger
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_fixed,
)

from shared.config import Config
from shared.exceptions import PersistenceError
from shared.models import CharacterRecord, InventorySlot

logger = Logger(child=True)

T = TypeVar("T")

# Failures folded into a GatewayResult; anything else is a bug and propagates
GATEWAY_ERRORS = (PersistenceError, ConnectionError, TimeoutError)


def is_retryable(error: BaseException) -> bool:
    """Whether another attempt at a failed gateway call might succeed."""
    if isinstance(error, PersistenceError):
        return error.retryable
    return isinstance(error, (ConnectionError, TimeoutError))


class PersistenceGateway(Protocol):
    """Remote store for characters, inventory and dungeon progress."""

    async def get_current_user_id(self) -> str | None: ...

    async def get_character(self, user_id: str) -> CharacterRecord | None: ...

    async def get_or_create_character(self, user_id: str) -> CharacterRecord | None: ...

    async def get_inventory(self, character_id: str) -> list[InventorySlot]: ...

    async def save_character(self, record: CharacterRecord) -> None: ...

    async def save_inventory(self, character_id: str, slots: list[InventorySlot]) -> None: ...

    async def save_dungeon_progress(
        self, character_id: str, dungeon_id: str | None, floor_number: int
    ) -> None: ...


@dataclass
class GatewayResult(Generic[T]):
    """Outcome of a gateway call after retries."""

    ok: bool
    value: T | None = None
    error: str | None = None

    @classmethod
    def success(cls, value: T | None = None) -> "GatewayResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> "GatewayResult[T]":
        return cls(ok=False, error=error)


@dataclass
class RetryPolicy:
    """How hard to try a gateway call before giving up."""

    max_attempts: int = 3
    delay: float = 0.5
    timeout: float = 5.0

    @classmethod
    def from_config(cls, config: Config) -> "RetryPolicy":
        return cls(
            max_attempts=config.sync_max_attempts,
            delay=config.sync_retry_delay,
            timeout=config.sync_timeout,
        )


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Gateway call failed, retrying",
        extra={"attempt": retry_state.attempt_number, "error": str(error)},
    )


async def call_gateway(
    operation: str,
    call: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
) -> GatewayResult[T]:
    """Run a gateway call with timeout and retries.

    Each attempt is bounded by ``policy.timeout``. Retryable failures are
    retried up to ``policy.max_attempts`` times with a fixed delay; a
    PersistenceError marked non-retryable fails on the first attempt.

    Args:
        operation: Name used in logs
        call: Zero-argument factory returning a fresh awaitable per attempt
        policy: Retry settings (defaults if omitted)

    Returns:
        GatewayResult with the value, or the last error if every attempt failed
    """
    policy = policy or RetryPolicy()
    try:
        async for attempt in AsyncRetrying(
            retry=retry_if_exception(is_retryable),
            stop=stop_after_attempt(policy.max_attempts),
            wait=wait_fixed(policy.delay),
            before_sleep=_log_retry,
            reraise=True,
        ):
            with attempt:
                value = await asyncio.wait_for(call(), timeout=policy.timeout)
    except GATEWAY_ERRORS as e:
        logger.error(
            "Gateway call failed",
            extra={
                "operation": operation,
                "error": str(e) or type(e).__name__,
                **getattr(e, "context", {}),
            },
        )
        return GatewayResult.failure(str(e) or type(e).__name__)

    return GatewayResult.success(value)

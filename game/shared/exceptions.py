"""Exceptions raised by the StudyQuest engine.

Game-rule refusals (not enough gold, mana or items) are not errors and are
reported through ``ActionResult``/``TurnResult`` instead. The classes here
cover misuse of the engine and failures at the persistence boundary.
"""

from typing import Any


class StudyQuestError(Exception):
    """Base exception for all engine errors.

    Keyword context passed by subclasses is kept on ``context`` so loggers
    can attach it as ``extra``.
    """

    def __init__(self, message: str = "An error occurred", **context: Any) -> None:
        self.message = message
        self.context = {k: v for k, v in context.items() if v is not None}
        super().__init__(self.message)


class NotFoundError(StudyQuestError):
    """A catalog entry or remote record does not exist."""

    def __init__(self, resource_type: str, resource_id: str) -> None:
        """Initialize not found error.

        Args:
            resource_type: Kind of thing looked up (e.g., "Enemy", "Character")
            resource_id: ID that was not found
        """
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            resource_type=resource_type,
            resource_id=resource_id,
        )


class ValidationError(StudyQuestError):
    """An argument is out of range (negative amounts, floor 0, empty IDs)."""

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message, field=field)


class GameStateError(StudyQuestError):
    """Operation not allowed in the current phase or state.

    Raised for acting outside the player's turn, starting a second battle,
    and cloud loads or resets while a battle is running.
    """

    def __init__(self, message: str, current_state: str | None = None) -> None:
        """Initialize game state error.

        Args:
            message: What was attempted and why it is not allowed
            current_state: Phase or state name at the time
        """
        self.current_state = current_state
        super().__init__(message, current_state=current_state)


class ConfigurationError(StudyQuestError):
    """Missing or unparseable environment setting."""

    def __init__(self, message: str, config_key: str | None = None) -> None:
        self.config_key = config_key
        super().__init__(message, config_key=config_key)


class PersistenceError(StudyQuestError):
    """A call to the remote store failed.

    ``retryable`` separates outages (throttling, dropped connections) from
    failures another attempt cannot fix, such as a malformed record or a
    missing user.
    """

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        retryable: bool = True,
    ) -> None:
        """Initialize persistence error.

        Args:
            message: Error message
            operation: Gateway operation that failed
            retryable: Whether trying again might succeed
        """
        self.operation = operation
        self.retryable = retryable
        super().__init__(message, operation=operation)

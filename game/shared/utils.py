"""Utility functions shared across the StudyQuest packages."""
from datetime import UTC, datetime
from uuid import uuid4


def generate_id() -> str:
    """Generate a unique ID for resources.

    Returns:
        UUID string
    """
    return str(uuid4())


def utc_now() -> str:
    """Get current UTC timestamp in ISO format.

    Returns:
        ISO formatted timestamp string
    """
    return datetime.now(UTC).isoformat()


def clamp(value: float, low: float, high: float) -> float:
    """Clamp a number into the inclusive range [low, high].

    If ``high`` is below ``low`` (a cap shrank to zero), ``low`` wins.

    Args:
        value: Value to clamp
        low: Lower bound
        high: Upper bound

    Returns:
        Clamped value
    """
    return max(low, min(value, high))

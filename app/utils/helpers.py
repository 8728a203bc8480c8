"""Helper utilities for the application."""
import math
from typing import Any, Optional
from fastapi import HTTPException


def unauthorized_error(detail: str) -> HTTPException:
    """
    Create a standardized 401 error response.

    Args:
        detail: Error detail message

    Returns:
        HTTPException with unauthorized status
    """
    return HTTPException(status_code=401, detail=detail)


def safe_duration(value: Any) -> Optional[float]:
    """
    Coerce a stored duration to a usable float.

    Missing, non-numeric, non-finite and negative values yield None so that a
    single malformed record is skipped instead of breaking a whole report.

    Args:
        value: Raw duration value from the record store

    Returns:
        Duration in seconds, or None if the value is unusable

    Example:
        >>> safe_duration("12.5")
        12.5
        >>> safe_duration("n/a") is None
        True
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        duration = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(duration) or duration < 0:
        return None
    return duration


def percentage(part: float, whole: float) -> float:
    """Return part/whole as a percentage, or 0.0 when whole is zero."""
    if not whole:
        return 0.0
    return (part / whole) * 100

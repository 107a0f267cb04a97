"""Timestamp formatting utilities."""

from datetime import datetime, timezone


def now() -> str:
    """
    Compact local timestamp for directory and file names.

    Returns:
        Timestamp like "20251114_123456"
    """
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def now_exact() -> str:
    """
    ISO 8601 UTC timestamp with microseconds.

    Returns:
        Timestamp like "2025-11-13T18:45:40.572549+00:00"
    """
    return datetime.now(timezone.utc).isoformat()


def from_epoch(seconds: float) -> str:
    """
    Format a POSIX modification time as an ISO 8601 UTC timestamp.

    Args:
        seconds: Seconds since the epoch

    Returns:
        ISO 8601 timestamp string
    """
    return datetime.fromtimestamp(seconds, tz=timezone.utc).isoformat()

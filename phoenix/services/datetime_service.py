"""Timestamps: all persisted times are integer epoch seconds (UTC)."""

from __future__ import annotations

from datetime import datetime, timezone

# Display format for timestamps shown to the user.
DISPLAY_FORMAT = "%Y-%m-%d %H:%M:%S%z"


def now_utc() -> datetime:
    """Return the current UTC datetime."""
    return datetime.now(timezone.utc)


def now_epoch() -> int:
    """Return the current time as whole epoch seconds."""
    return int(now_utc().timestamp())


def format_epoch(epoch_seconds: int) -> str:
    """Format epoch seconds for display in UTC."""
    return datetime.fromtimestamp(epoch_seconds, tz=timezone.utc).strftime(DISPLAY_FORMAT)

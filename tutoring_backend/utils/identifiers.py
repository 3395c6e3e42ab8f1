"""Id and timestamp helpers shared by every document writer."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4


def generate_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex[:16]}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(moment: datetime) -> str:
    """Serialize as ISO-8601 UTC with millisecond precision and a ``Z`` suffix."""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def now_iso() -> str:
    return to_iso(utc_now())


def parse_iso(value: Optional[str]) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are treated as UTC."""
    if value is None or value == "":
        raise ValueError("timestamp is empty")
    if not isinstance(value, str):
        raise TypeError(f"timestamp must be a string, got {type(value).__name__}")
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed

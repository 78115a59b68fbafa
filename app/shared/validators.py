"""Shared validation utilities"""

import re
from datetime import datetime, timezone
from typing import Optional

from ..config import MAX_TITLE_LENGTH
from ..models import EventStatus, SlotStatus
from .errors import InputValidationError

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


def validate_slot_title(title: Optional[str]) -> str:
    """
    Trim a slot title and drop control characters.

    The title is stored as typed; escaping is left to whatever renders it.

    Raises:
        InputValidationError: If nothing printable is left or the title is too long
    """
    cleaned = _CONTROL_CHARS.sub("", str(title or "")).strip()
    if not cleaned:
        raise InputValidationError("Title is required")

    if len(cleaned) > MAX_TITLE_LENGTH:
        raise InputValidationError(
            f"Title exceeds maximum length of {MAX_TITLE_LENGTH} characters"
        )

    return cleaned


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed to be UTC already"""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def validate_time_range(start_time: datetime, end_time: datetime) -> tuple[datetime, datetime]:
    """
    Normalize both bounds to naive UTC and require end > start.

    Raises:
        InputValidationError: If end_time is not strictly after start_time
    """
    if start_time is None or end_time is None:
        raise InputValidationError("Valid start and end times are required")

    start = to_naive_utc(start_time)
    end = to_naive_utc(end_time)
    if start >= end:
        raise InputValidationError("End time must be after start time")
    return start, end


def parse_slot_status(value) -> SlotStatus:
    """
    Convert caller input into a user-settable status.

    SWAP_PENDING is a valid EventStatus but is only ever written by the swap
    engine, so it is rejected here along with unknown values.
    """
    raw = value.value if isinstance(value, (EventStatus, SlotStatus)) else value
    if raw == EventStatus.SWAP_PENDING.value:
        raise InputValidationError("Cannot manually set status to SWAP_PENDING")

    try:
        return SlotStatus(raw)
    except ValueError as e:
        raise InputValidationError("Invalid status") from e

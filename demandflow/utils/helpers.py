"""Shared parsing helpers for scheduling input.

parse_slot_date:  strict YYYY-MM-DD → date, raises ValidationError
parse_slot_time:  strict HH:MM → time, raises ValidationError
parse_bounded_int: query-string int with range check
"""
import re
from datetime import date, datetime, time

from demandflow.core.exceptions import ValidationError

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^\d{2}:\d{2}$")


def parse_slot_date(value, field: str = "date") -> date:
    """Parse a ``YYYY-MM-DD`` string into a ``date``.

    ``date`` instances pass through unchanged.
    """
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not _DATE_RE.match(value):
        raise ValidationError(f"{field} must use the YYYY-MM-DD format", details={field: value})
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"{field} is not a valid calendar date", details={field: value})


def parse_slot_time(value, field: str = "time") -> time:
    """Parse an ``HH:MM`` string into a ``time`` (seconds dropped)."""
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    if not isinstance(value, str) or not _TIME_RE.match(value):
        raise ValidationError(f"{field} must use the HH:MM format", details={field: value})
    hours, minutes = int(value[:2]), int(value[3:])
    if hours > 23 or minutes > 59:
        raise ValidationError(f"{field} is not a valid time of day", details={field: value})
    return time(hours, minutes)


def parse_bounded_int(value, field: str, *, default: int, minimum: int, maximum: int) -> int:
    if value is None or value == "":
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer", details={field: value})
    if number < minimum or number > maximum:
        raise ValidationError(
            f"{field} must be between {minimum} and {maximum}", details={field: value},
        )
    return number

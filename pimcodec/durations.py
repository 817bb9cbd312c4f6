"""ISO 8601 duration helpers for alarm triggers (RFC 5545 3.3.6, 3.8.6.3).

``parse_alarm_trigger`` reduces a duration to its coarsest non-zero unit so a
UI can say "15 minutes before". It is not a general duration decomposer; use
``duration_to_minutes`` when the full length matters.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import timedelta

from icalendar import vDuration
from icalendar.prop.dt.duration import DURATION_REGEX

from .types import AlarmTrigger, DurationValue

logger = logging.getLogger(__name__)

_ABSOLUTE_TRIGGER_RE = re.compile(r"^\d{8}T\d{6}Z?$", re.IGNORECASE)

_UNIT_SUFFIX = {"minutes": "M", "hours": "H", "days": "D"}


def _normalize(value: str | None, require_prefix: bool = False) -> str | None:
    """Upper-cased duration text with its ``P``, or None when there is no
    number in it at all (``P``, ``PT``, blank)."""
    if not value or not value.strip():
        return None
    text = value.strip().upper()
    sign = text[0] if text[0] in "+-" else ""
    body = text[len(sign):]
    if not body.startswith("P"):
        if require_prefix:
            return None
        body = "P" + body
    if not any(char.isdigit() for char in body):
        return None
    return sign + body


def _parse(value: str | None, require_prefix: bool = False) -> tuple[timedelta, dict[str, int]] | None:
    """The duration as a timedelta plus its components as written.

    ``PT90M`` keeps 90 minutes in the components even though the timedelta
    normalises it.
    """
    text = _normalize(value, require_prefix)
    if text is None:
        return None
    try:
        delta = vDuration.from_ical(text)
    except ValueError:
        return None
    _sign, weeks, days, hours, minutes, seconds = DURATION_REGEX.match(text).groups()
    parts = {
        "days": int(weeks or 0) * 7 + int(days or 0),
        "hours": int(hours or 0),
        "minutes": int(minutes or 0),
        "seconds": int(seconds or 0),
    }
    return delta, parts


def parse_duration(value: str | None) -> DurationValue | None:
    parsed = _parse(value)
    if parsed is None:
        return None
    parts = parsed[1]
    for unit in ("days", "hours", "minutes", "seconds"):
        if parts[unit]:
            return {"value": parts[unit], "unit": unit}
    return {"value": 0, "unit": "minutes"}


def is_valid_duration(value: str | None) -> bool:
    return parse_duration(value) is not None


def duration_to_minutes(value: str | None) -> int | None:
    """Length of a duration in whole minutes, partial minutes rounded up."""
    parsed = _parse(value)
    if parsed is None:
        return None
    return math.ceil(abs(parsed[0]).total_seconds() / 60)


def format_duration(value: int, unit: str) -> str:
    if unit == "days":
        return f"P{value}D"
    return f"PT{value}{_UNIT_SUFFIX.get(unit, 'M')}"


def format_negative_duration(value: int, unit: str) -> str:
    return f"-{format_duration(value, unit)}"


def parse_alarm_trigger(value: str | None) -> AlarmTrigger | None:
    """Parse a TRIGGER value into ``{"when", "value", "unit"}``.

    ``-PT15M`` -> 15 minutes before, ``PT1H`` -> 1 hour after, an absolute
    date-time -> ``{"when": "at", "value": 0, "unit": "minutes"}``.
    Returns None for anything it cannot read.
    """
    if not value or not value.strip():
        return None
    text = value.strip()
    if _ABSOLUTE_TRIGGER_RE.match(text):
        return {"when": "at", "value": 0, "unit": "minutes"}
    parsed = _parse(text, require_prefix=True)
    if parsed is None:
        logger.debug("Unrecognised alarm trigger %r", value)
        return None
    parts = parsed[1]
    when = "before" if text.startswith("-") else "after"
    for unit in ("days", "hours", "minutes"):
        if parts[unit]:
            return {"when": when, "value": parts[unit], "unit": unit}
    # seconds only, or an all-zero offset
    return {"when": when, "value": math.ceil(parts["seconds"] / 60), "unit": "minutes"}


def format_alarm_trigger(when: str, value: int, unit: str) -> str:
    """Inverse of :func:`parse_alarm_trigger` for relative triggers.

    ``"at"`` triggers have no relative form and format to an empty string.
    """
    if when == "at":
        return ""
    duration = format_duration(value, unit)
    return f"-{duration}" if when == "before" else duration


__all__ = [
    "parse_duration",
    "is_valid_duration",
    "duration_to_minutes",
    "format_duration",
    "format_negative_duration",
    "parse_alarm_trigger",
    "format_alarm_trigger",
]

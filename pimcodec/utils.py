from __future__ import annotations

import re
from datetime import date, datetime, timezone
from uuid import uuid4

from dateutil import parser as dateparser

CRLF = "\r\n"

_UNESCAPE_RE = re.compile(r"\\([nN,;\\])")
_UNFOLD_RE = re.compile(r"\r?\n[ \t]")
_ICS_DATETIME_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})T(\d{2})(\d{2})(\d{2})Z$")
_ICS_DATE_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})$")


def escape_text(s: object) -> str:
    """Escape a TEXT value for vCard (RFC 6350 3.4) and iCalendar (RFC 5545 3.3.11).

    Backslash is escaped first so the other escapes are not doubled.
    """
    if s is None:
        return ""
    value = str(s)
    return (
        value.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\n", "\\n")
    )


def escape_ics_text(s: object) -> str:
    """Like :func:`escape_text` but drops stray CR characters."""
    return escape_text(s).replace("\r", "")


def _unescape_match(match: re.Match) -> str:
    char = match.group(1)
    if char in "nN":
        return "\n"
    return char


def unescape_text(s: object) -> str:
    """Reverse :func:`escape_text`. Both ``\\n`` and ``\\N`` become a newline."""
    if not s:
        return ""
    return _UNESCAPE_RE.sub(_unescape_match, str(s))


def fold_line(line: str, max_length: int = 75) -> str:
    """Fold a content line at ``max_length`` octets (RFC 5545 3.1).

    Continuation segments start with a single space, which counts toward
    their length. Multi-byte characters are kept whole.
    """
    if len(line.encode("utf-8")) <= max_length:
        return line
    segments: list[str] = []
    current: list[str] = []
    size = 0
    limit = max_length
    for char in line:
        width = len(char.encode("utf-8"))
        if current and size + width > limit:
            segments.append("".join(current))
            current = []
            size = 0
            limit = max_length - 1
        current.append(char)
        size += width
    segments.append("".join(current))
    return (CRLF + " ").join(segments)


def unfold_lines(text: str) -> str:
    return _UNFOLD_RE.sub("", text or "")


def to_utc(value: date | datetime) -> datetime:
    """Normalise a date or datetime to an aware UTC datetime.

    Naive datetimes are taken as UTC, a bare date as UTC midnight.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)


def format_vcard_date(d: date) -> str:
    return f"{d.year:04d}{d.month:02d}{d.day:02d}"


def parse_vcard_date(value: str | None) -> date | None:
    """Parse ``YYYYMMDD`` or ``YYYY-MM-DD``.

    The year-less ``--MMDD`` form is not recognised and yields None.
    """
    if not value:
        return None
    normalized = value.strip().replace("-", "")
    if len(normalized) != 8 or not normalized.isdigit():
        return None
    try:
        return date(int(normalized[:4]), int(normalized[4:6]), int(normalized[6:]))
    except ValueError:
        return None


def format_vcard_timestamp(dt: datetime) -> str:
    return to_utc(dt).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_vcard_timestamp(value: str | None) -> datetime | None:
    """Parse a REV value in ISO 8601 basic or extended form."""
    if not value or not value.strip():
        return None
    try:
        parsed = dateparser.isoparse(value.strip())
    except (ValueError, OverflowError):
        return None
    return to_utc(parsed)


def format_date_to_ics(value: date | datetime) -> str:
    return to_utc(value).strftime("%Y%m%dT%H%M%SZ")


def format_date_only_to_ics(d: date) -> str:
    return f"{d.year:04d}{d.month:02d}{d.day:02d}"


def parse_date_from_ics(value: str | None) -> datetime | None:
    """Parse ``YYYYMMDDTHHMMSSZ`` or ``YYYYMMDD`` into an aware UTC datetime.

    Local times without ``Z``, extended ISO forms and partial values are
    rejected with None.
    """
    if not value:
        return None
    text = value.strip()
    match = _ICS_DATETIME_RE.match(text) or _ICS_DATE_RE.match(text)
    if match is None:
        return None
    try:
        return datetime(*(int(part) for part in match.groups()), tzinfo=timezone.utc)
    except ValueError:
        return None


def is_valid_ics_date(value: str | None) -> bool:
    return parse_date_from_ics(value) is not None


def generate_uid() -> str:
    return f"urn:uuid:{uuid4()}"


__all__ = [
    "CRLF",
    "escape_text",
    "escape_ics_text",
    "unescape_text",
    "fold_line",
    "unfold_lines",
    "to_utc",
    "format_vcard_date",
    "parse_vcard_date",
    "format_vcard_timestamp",
    "parse_vcard_timestamp",
    "format_date_to_ics",
    "format_date_only_to_ics",
    "parse_date_from_ics",
    "is_valid_ics_date",
    "generate_uid",
]

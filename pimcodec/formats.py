"""Route documents to the matching codec by file name or content."""

from __future__ import annotations

import logging
from typing import Any, Literal

from .errors import UnsupportedFormatError
from .events import generate_ics_file, parse_ics_file
from .todos import generate_todo_file, parse_todo_file
from .vcards import generate_vcard_file, parse_vcard_file

logger = logging.getLogger(__name__)

Kind = Literal["vcard", "events", "tasks"]

VCARD_EXTENSIONS = (".vcf", ".vcard")
ICAL_EXTENSIONS = (".ics", ".ical", ".ifb")

EXTENSIONS = {"vcard": "vcf", "events": "ics", "tasks": "ics"}
MEDIA_TYPES = {
    "vcard": "text/vcard; charset=utf-8",
    "events": "text/calendar; charset=utf-8",
    "tasks": "text/calendar; charset=utf-8",
}
RECORD_KEYS = {"vcard": "contacts", "events": "events", "tasks": "tasks"}


def detect_format(filename: str | None, text: str) -> Kind:
    """Pick a codec for a document.

    Content wins over the file name; the extension only breaks the tie for
    empty or unrecognisable calendar text.
    """
    upper = (text or "").upper()
    name = (filename or "").lower()
    if "BEGIN:VCARD" in upper:
        return "vcard"
    if "BEGIN:VCALENDAR" in upper:
        if "BEGIN:VTODO" in upper and "BEGIN:VEVENT" not in upper:
            return "tasks"
        return "events"
    if name.endswith(VCARD_EXTENSIONS):
        return "vcard"
    if name.endswith(ICAL_EXTENSIONS):
        return "events"
    raise UnsupportedFormatError(
        "Content is neither vCard nor iCalendar", {"filename": filename}
    )


def parse_document(text: str | bytes, kind: Kind) -> dict[str, Any]:
    """Parse ``text`` and return ``{"kind", "records", "errors"}``."""
    if kind == "vcard":
        result = parse_vcard_file(text)
    elif kind == "events":
        result = parse_ics_file(text)
    elif kind == "tasks":
        result = parse_todo_file(text)
    else:
        raise UnsupportedFormatError(f"Unknown format {kind!r}", {"kind": kind})
    return {"kind": kind, "records": result[RECORD_KEYS[kind]], "errors": result["errors"]}


def generate_document(records: list, kind: Kind, **options: Any) -> str:
    """Render records with the generator for ``kind``.

    ``prod_id`` applies to every kind; ``calendar_name`` to calendars only.
    """
    prod_id = options.get("prod_id")
    if kind == "vcard":
        return generate_vcard_file(records, prod_id=prod_id)
    if kind == "events":
        return generate_ics_file(records, options.get("calendar_name"), prod_id)
    if kind == "tasks":
        return generate_todo_file(records, options.get("calendar_name"), prod_id)
    raise UnsupportedFormatError(f"Unknown format {kind!r}", {"kind": kind})


def output_filename(filename: str | None, kind: Kind) -> str:
    """``<base>-normalized.<ext>`` for a converted upload."""
    base = (filename or RECORD_KEYS[kind]).rsplit("/", 1)[-1].rsplit("\\", 1)[-1]
    lowered = base.lower()
    for ext in VCARD_EXTENSIONS + ICAL_EXTENSIONS:
        if lowered.endswith(ext):
            base = base[: -len(ext)]
            break
    return f"{base or RECORD_KEYS[kind]}-normalized.{EXTENSIONS[kind]}"


__all__ = [
    "Kind",
    "EXTENSIONS",
    "MEDIA_TYPES",
    "detect_format",
    "parse_document",
    "generate_document",
    "output_filename",
]

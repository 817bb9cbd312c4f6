"""VEVENT parsing and generation (RFC 5545)."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone

from icalendar import Component, vBroken

from . import ical
from .config import get_settings
from .types import Event, EventParseResult
from .utils import CRLF, format_date_to_ics, generate_uid, to_utc

logger = logging.getLogger(__name__)

UNTITLED_EVENT = "Untitled Event"


def _start_and_end(component: Component) -> tuple[datetime | None, datetime | None, bool]:
    start_prop = ical.first(component, "DTSTART")
    if start_prop is None or isinstance(start_prop, vBroken):
        return None, None, False
    start = start_prop.dt
    all_day = isinstance(start, date) and not isinstance(start, datetime)

    end = None
    end_prop = ical.first(component, "DTEND")
    if end_prop is not None and not isinstance(end_prop, vBroken):
        end = end_prop.dt
    else:
        duration_prop = ical.first(component, "DURATION")
        if duration_prop is not None and not isinstance(duration_prop, vBroken):
            if isinstance(duration_prop.dt, timedelta):
                end = start + duration_prop.dt
    if end is None:
        return to_utc(start), None, all_day
    return to_utc(start), to_utc(end), all_day


def _parse_event(component: Component, errors: list[str]) -> Event | None:
    title = ical.text(component, "SUMMARY") or UNTITLED_EVENT
    errors.extend(ical.property_errors(component, "event", title))

    start, end, all_day = _start_and_end(component)
    if start is None or end is None:
        errors.append(f'Event "{title}" is missing start or end date')
        return None

    event = ical.common_fields(component, "event", title, errors)
    event.update(
        {
            "title": title,
            "start_date": start,
            "end_date": end,
            "all_day": all_day,
            "transp": ical.upper(component, "TRANSP"),
        }
    )
    return ical.prune(event)


def parse_ics_file(text: str | bytes) -> EventParseResult:
    """Parse an iCalendar file into event records.

    Never raises. Events without a usable start and end are skipped and
    reported in ``errors``.
    """
    events: list[Event] = []
    errors: list[str] = []
    try:
        components = ical.load_components(text, "VEVENT")
        for component in components:
            try:
                event = _parse_event(component, errors)
            except Exception as exc:
                errors.append(f"Failed to parse event: {exc}")
                continue
            if event is not None:
                events.append(event)
        if not components:
            errors.append("No events found in the ICS file.")
    except Exception as exc:
        logger.warning("ICS parsing aborted: %s", exc)
        errors.append(f"Failed to parse ICS file: {exc}")

    logger.debug("Parsed %d event(s) with %d error(s)", len(events), len(errors))
    return {"events": events, "errors": errors}


# ----- generation -----


def generate_single_event(event: Event) -> str:
    """One VEVENT block, CRLF separated, without a trailing line break."""
    all_day = bool(event.get("all_day"))
    title = event.get("title") or UNTITLED_EVENT
    out = ical.ComponentWriter("VEVENT")
    out.raw("UID", event.get("uid") or generate_uid())
    out.raw("DTSTAMP", format_date_to_ics(datetime.now(timezone.utc)))
    out.date("DTSTART", event.get("start_date"), all_day)
    out.date("DTEND", event.get("end_date"), all_day)
    out.text("SUMMARY", title)
    out.text("DESCRIPTION", event.get("description"))
    out.text("LOCATION", event.get("location"))
    out.upper("STATUS", event.get("status"))
    out.bounded("PRIORITY", event.get("priority"), 0, 9)
    out.raw("URL", event.get("url"))
    out.upper("CLASS", event.get("classification"))
    out.upper("TRANSP", event.get("transp"))
    out.bounded("SEQUENCE", event.get("sequence"), 0, 2**31 - 1)
    out.text_list("CATEGORIES", event.get("categories"))
    out.text_list("RESOURCES", event.get("resources"))
    out.raw("RRULE", event.get("rrule"))
    out.date_list("RDATE", event.get("rdate"))
    out.date_list("EXDATE", event.get("exdate"))
    out.raw("RECURRENCE-ID", event.get("recurrence_id"))
    out.related_to(event.get("related_to"), event.get("relation_type"))
    out.geo(event.get("geo_latitude"), event.get("geo_longitude"))
    out.organizer(event.get("organizer_email"), event.get("organizer_name"))
    out.attendees(event.get("attendees"))
    out.attachments(event.get("attachments"))
    out.alarms(event.get("alarms"), title)
    out.raw("COLOR", event.get("color"))
    out.date("CREATED", event.get("created"))
    out.date("LAST-MODIFIED", event.get("last_modified"))
    return CRLF.join(out.close())


def generate_ics_file(
    events: list[Event],
    calendar_name: str | None = None,
    prod_id: str | None = None,
) -> str:
    """Render events as a VCALENDAR document with CRLF line endings."""
    codec = get_settings().codec
    header = ical.calendar_header(prod_id or codec.events_prod_id, calendar_name or codec.calendar_name)
    blocks = [CRLF.join(header), *(generate_single_event(event) for event in events), "END:VCALENDAR"]
    return CRLF.join(blocks) + CRLF


__all__ = [
    "UNTITLED_EVENT",
    "parse_ics_file",
    "generate_single_event",
    "generate_ics_file",
]

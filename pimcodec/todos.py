"""VTODO parsing and generation (RFC 5545 section 3.6.2).

Tasks never fail for a missing SUMMARY: they are kept as ``Untitled Task``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from icalendar import Component

from . import ical
from .config import get_settings
from .types import Task, TaskParseResult
from .utils import CRLF, format_date_to_ics, generate_uid

logger = logging.getLogger(__name__)

UNTITLED_TASK = "Untitled Task"


def _parse_task(component: Component, errors: list[str]) -> Task:
    summary = ical.text(component, "SUMMARY") or UNTITLED_TASK
    errors.extend(ical.property_errors(component, "task", summary))

    task = ical.common_fields(component, "task", summary, errors)
    task.update(
        {
            "summary": summary,
            "dtstart": ical.timestamp(component, "DTSTART"),
            "due": ical.timestamp(component, "DUE"),
            "completed": ical.timestamp(component, "COMPLETED"),
            "percent_complete": ical.integer(component, "PERCENT-COMPLETE"),
            "comment": ical.text(component, "COMMENT"),
            "contact": ical.text(component, "CONTACT"),
            "duration": ical.raw(component, "DURATION"),
            "request_status": ical.request_statuses(component),
        }
    )
    return ical.prune(task)


def parse_todo_file(text: str | bytes) -> TaskParseResult:
    """Parse an iCalendar file into task records. Never raises."""
    tasks: list[Task] = []
    errors: list[str] = []
    try:
        components = ical.load_components(text, "VTODO")
        for component in components:
            try:
                tasks.append(_parse_task(component, errors))
            except Exception as exc:
                errors.append(f"Failed to parse task: {exc}")
        if not components:
            errors.append("No tasks found in the ICS file.")
    except Exception as exc:
        logger.warning("ICS parsing aborted: %s", exc)
        errors.append(f"Failed to parse ICS file: {exc}")

    logger.debug("Parsed %d task(s) with %d error(s)", len(tasks), len(errors))
    return {"tasks": tasks, "errors": errors}


# ----- generation -----


def generate_single_todo(task: Task) -> str:
    summary = task.get("summary") or task.get("title") or UNTITLED_TASK
    out = ical.ComponentWriter("VTODO")
    out.raw("UID", task.get("uid") or generate_uid())
    out.raw("DTSTAMP", format_date_to_ics(datetime.now(timezone.utc)))
    out.text("SUMMARY", summary)
    out.date("DTSTART", task.get("dtstart"))
    out.date("DUE", task.get("due"))
    out.date("COMPLETED", task.get("completed"))
    out.date("CREATED", task.get("created"))
    out.date("LAST-MODIFIED", task.get("last_modified"))
    out.upper("STATUS", task.get("status"))
    out.bounded("PERCENT-COMPLETE", task.get("percent_complete"), 0, 100)
    out.bounded("PRIORITY", task.get("priority"), 0, 9)
    out.text("DESCRIPTION", task.get("description"))
    out.text("LOCATION", task.get("location"))
    out.text("COMMENT", task.get("comment"))
    out.text("CONTACT", task.get("contact"))
    out.raw("URL", task.get("url"))
    out.upper("CLASS", task.get("classification"))
    out.geo(task.get("geo_latitude"), task.get("geo_longitude"))
    out.organizer(task.get("organizer_email"), task.get("organizer_name"))
    out.raw("RRULE", task.get("rrule"))
    out.date_list("RDATE", task.get("rdate"))
    out.date_list("EXDATE", task.get("exdate"))
    out.raw("DURATION", task.get("duration"))
    out.raw("RECURRENCE-ID", task.get("recurrence_id"))
    out.related_to(task.get("related_to"), task.get("relation_type"))
    out.bounded("SEQUENCE", task.get("sequence"), 0, 2**31 - 1)
    out.text_list("CATEGORIES", task.get("categories"))
    out.text_list("RESOURCES", task.get("resources"))
    out.attachments(task.get("attachments"))
    out.attendees(task.get("attendees"))
    out.alarms(task.get("alarms"), summary)
    out.request_statuses(task.get("request_status"))
    out.raw("COLOR", task.get("color"))
    return CRLF.join(out.close())


def generate_todo_file(
    tasks: list[Task],
    calendar_name: str | None = None,
    prod_id: str | None = None,
) -> str:
    codec = get_settings().codec
    header = ical.calendar_header(
        prod_id or codec.tasks_prod_id, calendar_name or codec.tasks_calendar_name
    )
    blocks = [CRLF.join(header), *(generate_single_todo(task) for task in tasks), "END:VCALENDAR"]
    return CRLF.join(blocks) + CRLF


__all__ = [
    "UNTITLED_TASK",
    "parse_todo_file",
    "generate_single_todo",
    "generate_todo_file",
]

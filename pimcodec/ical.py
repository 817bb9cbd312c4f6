"""Shared iCalendar plumbing for the VEVENT and VTODO codecs.

Reading goes through :mod:`icalendar`'s structural parser; writing builds
content lines by hand so parameter order, escaping and folding stay exactly
as the codecs emit them.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, timedelta
from typing import Any, Iterable

from icalendar import Alarm as AlarmComponent
from icalendar import Calendar, Component, ComponentFactory, Todo, TypesFactory, vBinary, vBroken, vGeo
from icalendar.caselessdict import CaselessDict
from icalendar.parser import split_on_unescaped_semicolon

from .config import get_settings
from .durations import format_alarm_trigger
from .types import Alarm, Attachment, Attendee, RequestStatus
from .utils import (
    escape_ics_text,
    fold_line,
    format_date_only_to_ics,
    format_date_to_ics,
    to_utc,
)

logger = logging.getLogger(__name__)

_ABSOLUTE_RE = re.compile(r"^\d{8}T\d{6}Z?$", re.IGNORECASE)
_MAILTO_RE = re.compile(r"^mailto:", re.IGNORECASE)


# ----- reading -----


class TolerantTodo(Todo):
    """VTODO that keeps malformed values as broken properties, like VEVENT."""

    ignore_exceptions = True


class TolerantAlarm(AlarmComponent):
    ignore_exceptions = True


class CodecTypes(TypesFactory):
    """Value types with REQUEST-STATUS kept verbatim.

    As TEXT its escaped ``\\;`` would be indistinguishable from the field
    separators once unescaped.
    """

    types_map = CaselessDict({**TypesFactory.types_map, "request-status": "unknown"})


class CodecCalendar(Calendar):
    """VCALENDAR whose records report bad values per property.

    A malformed value in any VEVENT, VTODO or VALARM lands in that
    component's ``errors`` instead of aborting the whole file.
    """

    types_factory = CodecTypes()
    _components_factory = ComponentFactory()


CodecCalendar._components_factory.add_component_class(TolerantTodo)
CodecCalendar._components_factory.add_component_class(TolerantAlarm)


def load_components(text: str | bytes, name: str) -> list[Component]:
    """Parse calendar text and return every ``name`` component in it.

    Raises ValueError when the text holds no VCALENDAR or its structure
    cannot be parsed.
    """
    data = text.encode("utf-8") if isinstance(text, str) else text
    if b"BEGIN:VCALENDAR" not in data.upper():
        raise ValueError("no VCALENDAR component found")
    # bytes input keeps icalendar from treating the text as a file path
    calendars = CodecCalendar.from_ical(data, multiple=True)
    found: list[Component] = []
    for calendar in calendars:
        found.extend(calendar.walk(name))
    return found


def values(component: Component, name: str) -> list[Any]:
    prop = component.get(name)
    if prop is None:
        return []
    if isinstance(prop, list):
        return prop
    return [prop]


def first(component: Component, name: str) -> Any:
    found = values(component, name)
    return found[0] if found else None


def raw_value(prop: Any) -> str:
    if isinstance(prop, vBroken):
        return str(prop)
    ical = prop.to_ical()
    return ical.decode("utf-8") if isinstance(ical, bytes) else str(ical)


def raw(component: Component, name: str) -> str | None:
    """Serialized value of a typed property; broken values read as None."""
    prop = first(component, name)
    if prop is None or isinstance(prop, vBroken):
        return None
    return raw_value(prop)


def text(component: Component, name: str) -> str | None:
    prop = first(component, name)
    if prop is None:
        return None
    return str(prop) or None


def upper(component: Component, name: str) -> str | None:
    value = text(component, name)
    return value.upper() if value else None


def integer(component: Component, name: str) -> int | None:
    prop = first(component, name)
    if prop is None or isinstance(prop, vBroken):
        return None
    return int(prop)


def timestamp(component: Component, name: str) -> datetime | None:
    """Date or date-time property as UTC; broken values are already in
    ``component.errors`` and read as None."""
    prop = first(component, name)
    if prop is None or isinstance(prop, vBroken):
        return None
    value = prop.dt
    if isinstance(value, (date, datetime)):
        return to_utc(value)
    return None


def date_list(component: Component, name: str) -> list[datetime]:
    dates: list[datetime] = []
    for prop in values(component, name):
        if isinstance(prop, vBroken):
            continue
        for item in getattr(prop, "dts", []):
            # periods are skipped
            if isinstance(item.dt, (date, datetime)):
                dates.append(to_utc(item.dt))
    return dates


def categories(component: Component) -> list[str]:
    found: list[str] = []
    for prop in values(component, "CATEGORIES"):
        if isinstance(prop, vBroken):
            continue
        items = getattr(prop, "cats", None)
        if items is None:
            items = str(prop).split(",")
        found.extend(str(item).strip() for item in items)
    return [c for c in found if c]


def comma_list(component: Component, name: str) -> list[str]:
    found: list[str] = []
    for prop in values(component, name):
        found.extend(part.strip() for part in str(prop).split(","))
    return [item for item in found if item]


def geo(component: Component) -> tuple[float, float] | None:
    prop = first(component, "GEO")
    if prop is None:
        return None
    if isinstance(prop, vGeo):
        return prop.latitude, prop.longitude
    parts = str(prop).split(";")
    if len(parts) != 2:
        return None
    try:
        return float(parts[0]), float(parts[1])
    except ValueError:
        return None


def _address(prop: Any) -> str:
    return _MAILTO_RE.sub("", str(prop)).strip()


def organizer(component: Component) -> tuple[str | None, str | None]:
    """Return ``(name, email)`` of the ORGANIZER, CN taken as the name."""
    prop = first(component, "ORGANIZER")
    if prop is None:
        return None, None
    params = getattr(prop, "params", {})
    return params.get("CN") or None, _address(prop) or None


def related_to(component: Component) -> tuple[str | None, str | None]:
    prop = first(component, "RELATED-TO")
    if prop is None:
        return None, None
    reltype = getattr(prop, "params", {}).get("RELTYPE")
    return str(prop) or None, str(reltype).upper() if reltype else None


def parse_attendee(prop: Any) -> Attendee | None:
    email = _address(prop)
    if not email:
        return None
    params = getattr(prop, "params", {})
    rsvp = params.get("RSVP")
    attendee: Attendee = {
        "email": email,
        "name": params.get("CN") or None,
        "role": params.get("ROLE") or None,
        "status": params.get("PARTSTAT") or None,
        "rsvp": rsvp is True or str(rsvp).upper() == "TRUE",
    }
    return attendee


def attendees(component: Component, kind: str, label: str, errors: list[str]) -> list[Attendee]:
    found: list[Attendee] = []
    for prop in values(component, "ATTENDEE"):
        try:
            attendee = parse_attendee(prop)
        except Exception as exc:
            errors.append(f'Failed to parse attendee in {kind} "{label}": {exc}')
            continue
        if attendee is not None:
            found.append(attendee)
    return found


def trigger_value(prop: Any) -> str:
    """TRIGGER as text: the duration (``-PT15M``) or ``YYYYMMDDTHHMMSSZ``."""
    value = prop.dt
    if isinstance(value, timedelta):
        return raw_value(prop)
    if isinstance(value, (date, datetime)):
        return format_date_to_ics(value)
    return ""


def parse_alarm(alarm: Component) -> Alarm | None:
    """Read a VALARM. Alarms without TRIGGER or ACTION are skipped (None)."""
    trigger_prop = alarm.get("TRIGGER")
    action = text(alarm, "ACTION")
    if trigger_prop is None or isinstance(trigger_prop, vBroken) or not action:
        return None
    trigger = trigger_value(trigger_prop)
    if not trigger:
        return None
    attach = first(alarm, "ATTACH")
    parsed: Alarm = {
        "trigger": trigger,
        "action": action,
        "summary": text(alarm, "SUMMARY"),
        "description": text(alarm, "DESCRIPTION"),
        "duration": raw(alarm, "DURATION"),
        "repeat": integer(alarm, "REPEAT"),
        "attach_uri": str(attach) if attach is not None and not isinstance(attach, (vBinary, vBroken)) else None,
    }
    return parsed


def alarms(component: Component, kind: str, label: str, errors: list[str]) -> list[Alarm]:
    found: list[Alarm] = []
    for sub in component.subcomponents:
        if sub.name != "VALARM":
            continue
        errors.extend(property_errors(sub, f"alarm of {kind}", label))
        try:
            alarm = parse_alarm(sub)
        except Exception as exc:
            errors.append(f'Failed to parse alarm in {kind} "{label}": {exc}')
            continue
        if alarm is not None:
            found.append(alarm)
    return found


def attachments(component: Component) -> list[Attachment]:
    found: list[Attachment] = []
    for prop in values(component, "ATTACH"):
        if isinstance(prop, vBroken):
            continue
        params = getattr(prop, "params", {})
        attachment: Attachment = {}
        if isinstance(prop, vBinary) or str(params.get("ENCODING", "")).upper() == "BASE64":
            attachment["value"] = raw_value(prop)
        else:
            attachment["uri"] = str(prop)
        if not (attachment.get("value") or attachment.get("uri")):
            continue
        if params.get("FMTTYPE"):
            attachment["fmttype"] = str(params["FMTTYPE"])
        if params.get("X-FILENAME"):
            attachment["filename"] = str(params["X-FILENAME"])
        found.append(attachment)
    return found


def request_statuses(component: Component) -> list[RequestStatus]:
    found: list[RequestStatus] = []
    for prop in values(component, "REQUEST-STATUS"):
        # kept verbatim by CodecTypes, so escaped separators survive to here
        parts = split_on_unescaped_semicolon(str(prop))
        if len(parts) >= 2 and parts[0] and parts[1]:
            found.append(
                {
                    "code": parts[0],
                    "description": parts[1],
                    "ext_data": ";".join(parts[2:]) or None,
                }
            )
    return found


def property_errors(component: Component, kind: str, label: str) -> list[str]:
    """Properties icalendar kept as broken values, as error strings."""
    return [
        f'Invalid {name or "content line"} in {kind} "{label}": {message}'
        for name, message in getattr(component, "errors", [])
    ]


def common_fields(component: Component, kind: str, label: str, errors: list[str]) -> dict:
    """Fields VEVENT and VTODO read the same way."""
    organizer_name, organizer_email = organizer(component)
    relation, relation_type = related_to(component)
    location = geo(component)
    return {
        "uid": text(component, "UID"),
        "dtstamp": timestamp(component, "DTSTAMP"),
        "created": timestamp(component, "CREATED"),
        "last_modified": timestamp(component, "LAST-MODIFIED"),
        "status": upper(component, "STATUS"),
        "priority": integer(component, "PRIORITY"),
        "description": text(component, "DESCRIPTION"),
        "location": text(component, "LOCATION"),
        "url": text(component, "URL"),
        "classification": upper(component, "CLASS"),
        "sequence": integer(component, "SEQUENCE"),
        "geo_latitude": location[0] if location else None,
        "geo_longitude": location[1] if location else None,
        "organizer_name": organizer_name,
        "organizer_email": organizer_email,
        "rrule": raw(component, "RRULE"),
        "rdate": date_list(component, "RDATE"),
        "exdate": date_list(component, "EXDATE"),
        "recurrence_id": raw(component, "RECURRENCE-ID"),
        "related_to": relation,
        "relation_type": relation_type,
        "categories": categories(component),
        "resources": comma_list(component, "RESOURCES"),
        "attendees": attendees(component, kind, label, errors),
        "alarms": alarms(component, kind, label, errors),
        "attachments": attachments(component),
        "color": text(component, "COLOR"),
    }


def prune(record: dict) -> dict:
    """Drop None values and empty lists."""
    return {key: value for key, value in record.items() if value is not None and value != []}


# ----- writing -----


def clamp(value: int, low: int, high: int) -> int:
    return min(high, max(low, int(value)))


def calendar_header(prod_id: str, calendar_name: str) -> list[str]:
    return [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        fold_line(f"PRODID:{prod_id}", get_settings().codec.fold_width),
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        fold_line(f"X-WR-CALNAME:{escape_ics_text(calendar_name)}", get_settings().codec.fold_width),
    ]


class ComponentWriter:
    """Collects folded content lines for one component."""

    def __init__(self, name: str):
        self.name = name
        self.width = get_settings().codec.fold_width
        self.lines: list[str] = [f"BEGIN:{name}"]

    def raw(self, name: str, value: Any, params: Iterable[str] = ()) -> None:
        if value is None or value == "":
            return
        head = ";".join([name, *params])
        self.lines.append(fold_line(f"{head}:{value}", self.width))

    def text(self, name: str, value: str | None) -> None:
        if value:
            self.raw(name, escape_ics_text(value))

    def upper(self, name: str, value: str | None) -> None:
        if value:
            self.raw(name, str(value).upper())

    def date(self, name: str, value: date | datetime | str | None, all_day: bool = False) -> None:
        if value is None or value == "":
            return
        if isinstance(value, str):
            self.raw(name, value)
        elif all_day or not isinstance(value, datetime):
            self.raw(name, format_date_only_to_ics(value), ["VALUE=DATE"])
        else:
            self.raw(name, format_date_to_ics(value))

    def date_list(self, name: str, dates: list | None) -> None:
        if dates:
            self.raw(name, ",".join(format_date_to_ics(d) for d in dates))

    def bounded(self, name: str, value: int | None, low: int, high: int) -> None:
        if value is not None:
            self.raw(name, clamp(value, low, high))

    def text_list(self, name: str, items: list[str] | None) -> None:
        if items:
            self.raw(name, ",".join(escape_ics_text(item) for item in items))

    def geo(self, latitude: float | None, longitude: float | None) -> None:
        if latitude is not None and longitude is not None:
            self.raw("GEO", f"{latitude};{longitude}")

    def organizer(self, email: str | None, name: str | None) -> None:
        if email:
            params = [f"CN={escape_ics_text(name)}"] if name else []
            self.raw("ORGANIZER", f"mailto:{email}", params)

    def related_to(self, value: str | None, relation_type: str | None) -> None:
        if value:
            self.raw("RELATED-TO", value, [f"RELTYPE={relation_type}"] if relation_type else [])

    def attendees(self, entries: list[Attendee] | None) -> None:
        for attendee in entries or []:
            params = []
            if attendee.get("name"):
                params.append(f"CN={escape_ics_text(attendee['name'])}")
            if attendee.get("role"):
                params.append(f"ROLE={attendee['role'].upper()}")
            if attendee.get("status"):
                params.append(f"PARTSTAT={attendee['status'].upper()}")
            if attendee.get("rsvp"):
                params.append("RSVP=TRUE")
            self.raw("ATTENDEE", f"mailto:{attendee['email']}", params)

    def attachments(self, entries: list[Attachment] | None) -> None:
        for attachment in entries or []:
            params = []
            if attachment.get("fmttype"):
                params.append(f"FMTTYPE={attachment['fmttype']}")
            if attachment.get("filename"):
                params.append(f"X-FILENAME={escape_ics_text(attachment['filename'])}")
            if attachment.get("value"):
                self.raw("ATTACH", attachment["value"], [*params, "ENCODING=BASE64", "VALUE=BINARY"])
            elif attachment.get("uri"):
                self.raw("ATTACH", attachment["uri"], params)

    def request_statuses(self, entries: list[RequestStatus] | None) -> None:
        for status in entries or []:
            value = f"{status['code']};{escape_ics_text(status['description'])}"
            if status.get("ext_data"):
                value += f";{escape_ics_text(status['ext_data'])}"
            self.raw("REQUEST-STATUS", value)

    def alarms(self, entries: list[Alarm] | None, summary_fallback: str) -> None:
        for alarm in entries or []:
            trigger = alarm_trigger(alarm.get("trigger"))
            if trigger is None:
                logger.warning("Skipping alarm without a usable trigger: %r", alarm.get("trigger"))
                continue
            trigger_params, trigger_text = trigger
            self.lines.append("BEGIN:VALARM")
            self.raw("TRIGGER", trigger_text, trigger_params)
            self.raw("ACTION", (alarm.get("action") or "DISPLAY").upper())
            self.text("SUMMARY", alarm.get("summary"))
            self.text("DESCRIPTION", alarm.get("description") or alarm.get("summary") or summary_fallback)
            self.raw("DURATION", alarm.get("duration"))
            if alarm.get("repeat") is not None:
                self.raw("REPEAT", alarm["repeat"])
            self.raw("ATTACH", alarm.get("attach_uri"))
            self.lines.append("END:VALARM")

    def close(self) -> list[str]:
        self.lines.append(f"END:{self.name}")
        return self.lines


def alarm_trigger(trigger: Any) -> tuple[list[str], str] | None:
    """Return ``(params, value)`` for a TRIGGER line.

    Accepts a duration or absolute string, a datetime, or a
    ``{"when", "value", "unit"}`` mapping.
    """
    if isinstance(trigger, datetime):
        return ["VALUE=DATE-TIME"], format_date_to_ics(trigger)
    if isinstance(trigger, dict):
        trigger = format_alarm_trigger(trigger["when"], trigger["value"], trigger["unit"])
    if not trigger:
        return None
    trigger = str(trigger).strip()
    if _ABSOLUTE_RE.match(trigger):
        return ["VALUE=DATE-TIME"], trigger.upper()
    return [], trigger


__all__ = [
    "CodecCalendar",
    "load_components",
    "values",
    "first",
    "raw_value",
    "raw",
    "text",
    "upper",
    "integer",
    "timestamp",
    "date_list",
    "categories",
    "comma_list",
    "geo",
    "organizer",
    "related_to",
    "parse_attendee",
    "attendees",
    "trigger_value",
    "parse_alarm",
    "alarms",
    "attachments",
    "request_statuses",
    "property_errors",
    "common_fields",
    "prune",
    "clamp",
    "calendar_header",
    "ComponentWriter",
    "alarm_trigger",
]

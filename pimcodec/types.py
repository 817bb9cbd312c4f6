from __future__ import annotations

from datetime import date, datetime
from typing import Literal, NotRequired, TypedDict

# ----- shared -----


class DurationValue(TypedDict):
    value: int
    unit: Literal["minutes", "hours", "days", "seconds"]


class AlarmTrigger(TypedDict):
    when: Literal["before", "after", "at"]
    value: int
    unit: Literal["minutes", "hours", "days"]


# ----- vCard -----


class EmailEntry(TypedDict):
    email: str
    type: NotRequired[str | None]
    is_primary: NotRequired[bool]


class PhoneEntry(TypedDict):
    number: str
    type: NotRequired[str | None]
    is_primary: NotRequired[bool]


class AddressEntry(TypedDict, total=False):
    type: str | None
    po_box: str | None
    extended_address: str | None
    street_address: str | None
    locality: str | None
    region: str | None
    postal_code: str | None
    country: str | None
    is_primary: bool


class ImHandle(TypedDict):
    service: str
    handle: str


class RelationEntry(TypedDict):
    related_name: str
    relation_type: str


class LanguageEntry(TypedDict):
    tag: str
    is_primary: NotRequired[bool]


class KeyEntry(TypedDict, total=False):
    uri: str
    value: str
    type: str


class CalendarUriEntry(TypedDict):
    uri: str
    type: NotRequired[str | None]
    is_primary: NotRequired[bool]


class Contact(TypedDict, total=False):
    formatted_name: str
    family_name: str
    given_name: str
    additional_name: str
    name_prefix: str
    name_suffix: str
    nickname: str
    photo_url: str
    birthday: date | None
    anniversary: date | None
    gender: Literal["M", "F", "O", "N", "U"] | None
    organization: str
    title: str
    role: str
    logo_url: str
    members: list[str]
    geo_latitude: float
    geo_longitude: float
    timezone: str
    languages: list[LanguageEntry]
    note: str
    url: str
    kind: Literal["individual", "group", "org", "location"] | None
    sound_url: str
    source_url: str
    keys: list[KeyEntry]
    fb_urls: list[CalendarUriEntry]
    cal_adr_uris: list[CalendarUriEntry]
    cal_uris: list[CalendarUriEntry]
    uid: str
    revision: datetime | None
    prod_id: str
    client_pid_map: str
    xml: str
    emails: list[EmailEntry]
    phones: list[PhoneEntry]
    addresses: list[AddressEntry]
    im_handles: list[ImHandle]
    categories: list[str]
    relations: list[RelationEntry]


class ContactParseResult(TypedDict):
    contacts: list[Contact]
    errors: list[str]


# ----- iCalendar -----


class Attendee(TypedDict):
    email: str
    name: NotRequired[str | None]
    role: NotRequired[str | None]
    status: NotRequired[str | None]
    rsvp: NotRequired[bool]


class Alarm(TypedDict):
    trigger: str | AlarmTrigger
    action: NotRequired[str]
    summary: NotRequired[str | None]
    description: NotRequired[str | None]
    duration: NotRequired[str | None]
    repeat: NotRequired[int | None]
    attach_uri: NotRequired[str | None]


class Attachment(TypedDict, total=False):
    uri: str
    value: str
    fmttype: str
    filename: str


class RequestStatus(TypedDict):
    code: str
    description: str
    ext_data: NotRequired[str | None]


class _Component(TypedDict, total=False):
    uid: str
    dtstamp: datetime
    created: datetime
    last_modified: datetime
    status: str
    priority: int
    description: str
    location: str
    url: str
    classification: str
    sequence: int
    geo_latitude: float
    geo_longitude: float
    organizer_name: str | None
    organizer_email: str | None
    rrule: str
    rdate: list[datetime]
    exdate: list[datetime]
    recurrence_id: str
    related_to: str
    relation_type: str
    categories: list[str]
    resources: list[str]
    attendees: list[Attendee]
    alarms: list[Alarm]
    attachments: list[Attachment]
    color: str


class Event(_Component, total=False):
    title: str
    start_date: datetime
    end_date: datetime
    all_day: bool
    transp: str


class Task(_Component, total=False):
    summary: str
    title: str
    dtstart: datetime
    due: datetime
    completed: datetime
    percent_complete: int
    comment: str
    contact: str
    duration: str
    request_status: list[RequestStatus]


class EventParseResult(TypedDict):
    events: list[Event]
    errors: list[str]


class TaskParseResult(TypedDict):
    tasks: list[Task]
    errors: list[str]


__all__ = [
    "DurationValue",
    "AlarmTrigger",
    "EmailEntry",
    "PhoneEntry",
    "AddressEntry",
    "ImHandle",
    "RelationEntry",
    "LanguageEntry",
    "KeyEntry",
    "CalendarUriEntry",
    "Contact",
    "ContactParseResult",
    "Attendee",
    "Alarm",
    "Attachment",
    "RequestStatus",
    "Event",
    "Task",
    "EventParseResult",
    "TaskParseResult",
]

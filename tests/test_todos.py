import re
from datetime import datetime, timezone

from pimcodec.todos import generate_single_todo, generate_todo_file, parse_todo_file

UTC = timezone.utc

TASKS = (
    "BEGIN:VCALENDAR\r\n"
    "VERSION:2.0\r\n"
    "PRODID:-//Test//EN\r\n"
    "BEGIN:VTODO\r\n"
    "UID:todo-1@example.com\r\n"
    "DTSTAMP:20240110T120000Z\r\n"
    "SUMMARY:Write report\r\n"
    "DTSTART:20240112T090000Z\r\n"
    "DUE:20240120T170000Z\r\n"
    "STATUS:in-process\r\n"
    "PERCENT-COMPLETE:40\r\n"
    "PRIORITY:2\r\n"
    "DESCRIPTION:Quarterly numbers\r\n"
    "COMMENT:Ask finance first\r\n"
    "CONTACT:Jim Dolittle\\, ABC Industries\r\n"
    "CLASS:confidential\r\n"
    "CATEGORIES:Work,Reports\r\n"
    "RESOURCES:Laptop,Spreadsheet\r\n"
    "RELATED-TO;RELTYPE=parent:project-7@example.com\r\n"
    "REQUEST-STATUS:2.0;Success\r\n"
    "REQUEST-STATUS:3.1;Invalid property value;DTSTART:96-Apr-01\r\n"
    "ATTACH;FMTTYPE=application/pdf;X-FILENAME=brief.pdf:https://example.com/brief.pdf\r\n"
    "ATTACH;ENCODING=BASE64;VALUE=BINARY;FMTTYPE=text/plain:SGVsbG8=\r\n"
    "ORGANIZER;CN=Manager:mailto:manager@example.com\r\n"
    "ATTENDEE;PARTSTAT=NEEDS-ACTION:mailto:me@example.com\r\n"
    "DURATION:PT2H\r\n"
    "SEQUENCE:3\r\n"
    "COLOR:red\r\n"
    "BEGIN:VALARM\r\n"
    "TRIGGER:-PT30M\r\n"
    "ACTION:DISPLAY\r\n"
    "DESCRIPTION:First\r\n"
    "END:VALARM\r\n"
    "BEGIN:VALARM\r\n"
    "TRIGGER:-P1D\r\n"
    "ACTION:EMAIL\r\n"
    "SUMMARY:Due tomorrow\r\n"
    "DESCRIPTION:Second\r\n"
    "REPEAT:2\r\n"
    "DURATION:PT15M\r\n"
    "END:VALARM\r\n"
    "BEGIN:VALARM\r\n"
    "DESCRIPTION:No trigger or action\r\n"
    "END:VALARM\r\n"
    "END:VTODO\r\n"
    "BEGIN:VTODO\r\n"
    "UID:todo-2\r\n"
    "COMPLETED:20240105T080000Z\r\n"
    "END:VTODO\r\n"
    "END:VCALENDAR\r\n"
)


def test_parse_tasks():
    result = parse_todo_file(TASKS)
    assert result["errors"] == []
    assert len(result["tasks"]) == 2
    t = result["tasks"][0]
    assert t["uid"] == "todo-1@example.com"
    assert t["summary"] == "Write report"
    assert t["dtstart"] == datetime(2024, 1, 12, 9, 0, tzinfo=UTC)
    assert t["due"] == datetime(2024, 1, 20, 17, 0, tzinfo=UTC)
    assert t["status"] == "IN-PROCESS"
    assert t["percent_complete"] == 40
    assert t["priority"] == 2
    assert t["comment"] == "Ask finance first"
    assert t["contact"] == "Jim Dolittle, ABC Industries"
    assert t["classification"] == "CONFIDENTIAL"
    assert t["categories"] == ["Work", "Reports"]
    assert t["resources"] == ["Laptop", "Spreadsheet"]
    assert t["related_to"] == "project-7@example.com"
    assert t["relation_type"] == "PARENT"
    assert t["duration"] == "PT2H"
    assert t["sequence"] == 3
    assert t["color"] == "red"
    assert t["organizer_email"] == "manager@example.com"
    assert t["attendees"][0]["status"] == "NEEDS-ACTION"


def test_parse_request_status_and_attachments():
    t = parse_todo_file(TASKS)["tasks"][0]
    assert t["request_status"] == [
        {"code": "2.0", "description": "Success", "ext_data": None},
        {"code": "3.1", "description": "Invalid property value", "ext_data": "DTSTART:96-Apr-01"},
    ]
    assert t["attachments"][0] == {
        "uri": "https://example.com/brief.pdf",
        "fmttype": "application/pdf",
        "filename": "brief.pdf",
    }
    assert t["attachments"][1] == {"value": "SGVsbG8=", "fmttype": "text/plain"}


def test_parse_alarms_skip_incomplete():
    alarms = parse_todo_file(TASKS)["tasks"][0]["alarms"]
    assert len(alarms) == 2
    first, second = alarms
    assert first["trigger"] == "-PT30M"
    assert first["description"] == "First"
    assert second["trigger"] == "-P1D"
    assert second["action"] == "EMAIL"
    assert second["summary"] == "Due tomorrow"
    assert second["repeat"] == 2
    assert second["duration"] == "PT15M"


def test_missing_summary_is_untitled_without_error():
    result = parse_todo_file(TASKS)
    t = result["tasks"][1]
    assert t["summary"] == "Untitled Task"
    assert t["completed"] == datetime(2024, 1, 5, 8, 0, tzinfo=UTC)
    assert result["errors"] == []


def test_file_level_errors():
    assert parse_todo_file("")["errors"] == ["Failed to parse ICS file: no VCALENDAR component found"]
    only_events = (
        "BEGIN:VCALENDAR\r\nBEGIN:VEVENT\r\nDTSTART:20240115T100000Z\r\nEND:VEVENT\r\nEND:VCALENDAR\r\n"
    )
    assert parse_todo_file(only_events) == {"tasks": [], "errors": ["No tasks found in the ICS file."]}


def test_garbage_never_raises():
    for text in ["\x00", "BEGIN:VCALENDAR\r\nEND:VTODO\r\n", "END:VCALENDAR", b"\xfe\xff"]:
        result = parse_todo_file(text)
        assert result["tasks"] == []
        assert result["errors"]


def test_generate_title_only_task():
    out = generate_todo_file([{"title": "Buy milk"}])
    assert "BEGIN:VCALENDAR" in out
    assert out.count("BEGIN:VTODO") == 1
    assert out.count("END:VTODO") == 1
    assert re.search(r"^SUMMARY:Buy milk\r?$", out, re.M)
    assert re.search(r"^UID:urn:uuid:[0-9a-f-]{36}\r?$", out, re.M)
    assert re.search(r"^DTSTAMP:\d{8}T\d{6}Z\r?$", out, re.M)
    assert re.search(r"^X-WR-CALNAME:pimcodec Tasks\r?$", out, re.M)
    assert "END:VCALENDAR" in out


def test_generate_clamps_numbers():
    out = generate_single_todo({"summary": "Clamp", "percent_complete": 150, "priority": -3, "sequence": -1})
    assert re.search(r"^PERCENT-COMPLETE:100\r?$", out, re.M)
    assert re.search(r"^PRIORITY:0\r?$", out, re.M)
    assert re.search(r"^SEQUENCE:0\r?$", out, re.M)


TASK = {
    "uid": "todo-out",
    "summary": "Ship release",
    "due": datetime(2024, 2, 1, 17, 0, tzinfo=UTC),
    "status": "needs-action",
    "comment": "After QA, not before",
    "related_to": "epic-1",
    "relation_type": "PARENT",
    "resources": ["CI", "Staging"],
    "request_status": [{"code": "2.0", "description": "Success"}],
    "attachments": [
        {"uri": "https://example.com/notes.txt", "fmttype": "text/plain", "filename": "notes.txt"},
        {"value": "SGVsbG8=", "fmttype": "text/plain"},
    ],
    "alarms": [
        {"trigger": "-PT1H", "repeat": 1, "duration": "PT5M"},
        {"trigger": datetime(2024, 2, 1, 9, 0, tzinfo=UTC), "action": "audio"},
        {"trigger": {"when": "at", "value": 0, "unit": "minutes"}},
    ],
}


def test_generate_task_lines():
    out = generate_single_todo(TASK)
    assert re.search(r"^DUE:20240201T170000Z\r?$", out, re.M)
    assert re.search(r"^STATUS:NEEDS-ACTION\r?$", out, re.M)
    assert re.search(r"^COMMENT:After QA\\, not before\r?$", out, re.M)
    assert re.search(r"^RELATED-TO;RELTYPE=PARENT:epic-1\r?$", out, re.M)
    assert re.search(r"^RESOURCES:CI,Staging\r?$", out, re.M)
    assert re.search(r"^REQUEST-STATUS:2.0;Success\r?$", out, re.M)
    assert re.search(
        r"^ATTACH;FMTTYPE=text/plain;X-FILENAME=notes.txt:https://example.com/notes.txt\r?$", out, re.M
    )
    assert re.search(r"^ATTACH;FMTTYPE=text/plain;ENCODING=BASE64;VALUE=BINARY:SGVsbG8=\r?$", out, re.M)


def test_generate_task_alarms():
    out = generate_single_todo(TASK)
    # the "at" alarm has no datetime to write and is dropped
    assert out.count("BEGIN:VALARM") == 2
    assert re.search(r"^TRIGGER:-PT1H\r?$", out, re.M)
    assert re.search(r"^ACTION:DISPLAY\r?$", out, re.M)
    assert re.search(r"^DESCRIPTION:Ship release\r?$", out, re.M)
    assert re.search(r"^REPEAT:1\r?$", out, re.M)
    assert re.search(r"^DURATION:PT5M\r?$", out, re.M)
    assert re.search(r"^TRIGGER;VALUE=DATE-TIME:20240201T090000Z\r?$", out, re.M)
    assert re.search(r"^ACTION:AUDIO\r?$", out, re.M)


def test_generated_tasks_parse_back():
    parsed = parse_todo_file(generate_todo_file([TASK], calendar_name="Release"))
    assert parsed["errors"] == []
    t = parsed["tasks"][0]
    assert t["uid"] == "todo-out"
    assert t["comment"] == "After QA, not before"
    assert t["relation_type"] == "PARENT"
    assert t["request_status"] == [{"code": "2.0", "description": "Success", "ext_data": None}]
    assert [a["trigger"] for a in t["alarms"]] == ["-PT1H", "20240201T090000Z"]
    assert t["attachments"][1]["value"] == "SGVsbG8="


GOOD_AND_BAD = (
    "BEGIN:VCALENDAR\r\nVERSION:2.0\r\n"
    "BEGIN:VTODO\r\nUID:good\r\nSUMMARY:Good\r\nPRIORITY:1\r\nEND:VTODO\r\n"
    "BEGIN:VTODO\r\nUID:bad\r\nSUMMARY:Bad\r\nPRIORITY:high\r\nDUE:notadate\r\n"
    "DESCRIPTION:Still readable\r\n"
    "BEGIN:VALARM\r\nTRIGGER:garbage\r\nACTION:DISPLAY\r\nEND:VALARM\r\n"
    "BEGIN:VALARM\r\nTRIGGER:-PT5M\r\nACTION:DISPLAY\r\nEND:VALARM\r\n"
    "END:VTODO\r\n"
    "END:VCALENDAR\r\n"
)


def test_bad_values_stay_with_their_task():
    result = parse_todo_file(GOOD_AND_BAD)
    good, bad = result["tasks"]
    assert good["summary"] == "Good"
    assert good["priority"] == 1
    assert bad["uid"] == "bad"
    assert bad["description"] == "Still readable"
    assert "priority" not in bad
    assert "due" not in bad
    assert [a["trigger"] for a in bad["alarms"]] == ["-PT5M"]
    assert len(result["errors"]) == 3
    assert result["errors"][0].startswith('Invalid PRIORITY in task "Bad": ')
    assert result["errors"][1].startswith('Invalid DUE in task "Bad": ')
    assert result["errors"][2].startswith('Invalid TRIGGER in alarm of task "Bad": ')


def test_request_status_keeps_escaped_semicolons():
    text = (
        "BEGIN:VCALENDAR\r\nVERSION:2.0\r\nBEGIN:VTODO\r\nUID:rs\r\nSUMMARY:Sync\r\n"
        "REQUEST-STATUS:2.8;Success\\; repeating event ignored;RRULE\r\n"
        "END:VTODO\r\nEND:VCALENDAR\r\n"
    )
    status = parse_todo_file(text)["tasks"][0]["request_status"]
    assert status == [{"code": "2.8", "description": "Success; repeating event ignored", "ext_data": "RRULE"}]
    out = generate_single_todo({"summary": "Sync", "request_status": status})
    assert re.search(r"^REQUEST-STATUS:2\.8;Success\\; repeating event ignored;RRULE\r?$", out, re.M)

import sys
from pathlib import Path
from pprint import pprint

from pimcodec.config import get_settings
from pimcodec.formats import detect_format, generate_document, parse_document

SAMPLE = (
    "BEGIN:VCALENDAR\r\n"
    "VERSION:2.0\r\n"
    "PRODID:-//peek//EN\r\n"
    "BEGIN:VTODO\r\n"
    "UID:peek-1\r\n"
    "SUMMARY:Buy milk\r\n"
    "DUE:20240120T170000Z\r\n"
    "PERCENT-COMPLETE:40\r\n"
    "BEGIN:VALARM\r\n"
    "TRIGGER:-PT15M\r\n"
    "ACTION:DISPLAY\r\n"
    "DESCRIPTION:Milk\r\n"
    "END:VALARM\r\n"
    "END:VTODO\r\n"
    "END:VCALENDAR\r\n"
)


def main(argv: list[str]) -> None:
    get_settings().setup_logging()
    if argv:
        path = Path(argv[0])
        name, text = path.name, path.read_bytes().decode(errors="ignore")
    else:
        name, text = "sample.ics", SAMPLE
    kind = detect_format(name, text)
    result = parse_document(text, kind)
    print(f"Parsed {name} as {kind}:")
    pprint(result)
    print("Output:\n" + generate_document(result["records"], kind))


if __name__ == "__main__":
    main(sys.argv[1:])

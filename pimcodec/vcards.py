from __future__ import annotations

import base64
import logging
import re
from datetime import datetime, timezone
from typing import Callable, Iterable

import vobject
from icalendar.parser import split_on_unescaped_comma
from vobject.base import ContentLine

from .config import get_settings
from .types import (
    AddressEntry,
    CalendarUriEntry,
    Contact,
    ContactParseResult,
    EmailEntry,
    ImHandle,
    KeyEntry,
    LanguageEntry,
    PhoneEntry,
    RelationEntry,
)
from .utils import (
    CRLF,
    escape_text,
    fold_line,
    format_vcard_date,
    format_vcard_timestamp,
    generate_uid,
    parse_vcard_date,
    parse_vcard_timestamp,
)

logger = logging.getLogger(__name__)

# Bare parameters that vCard 2.1 and some 3.0 producers use instead of TYPE=
KNOWN_TYPE_FLAGS = {
    "home",
    "work",
    "cell",
    "voice",
    "fax",
    "pager",
    "text",
    "textphone",
    "video",
    "main",
    "iphone",
    "msg",
    "dom",
    "intl",
    "postal",
    "parcel",
}

_DISCARDED_TYPES = {"pref", "internet"}

GENDERS = ("M", "F", "O", "N", "U")
KINDS = ("individual", "group", "org", "location")

_LIST_FIELDS = (
    "emails",
    "phones",
    "addresses",
    "im_handles",
    "categories",
    "relations",
    "languages",
    "keys",
    "fb_urls",
    "cal_adr_uris",
    "cal_uris",
    "members",
)


# ----- parameter helpers -----


def split_types(val: object) -> list[str]:
    if not val:
        return []
    if isinstance(val, (list, tuple)):
        out: list[str] = []
        for item in val:
            out.extend(split_types(item))
        return out
    return [p.strip().lower() for p in str(val).split(",") if p.strip()]


def _param(prop: ContentLine, name: str) -> str:
    """First value of a parameter as a string, '' when absent."""
    values = prop.params.get(name) or []
    return str(values[0]) if values else ""


def extract_type(params: dict, singletonparams: Iterable[str] = ()) -> str | None:
    """Lower-cased TYPE value, falling back to bare type flags (``TEL;HOME:``)."""
    types = split_types(params.get("TYPE"))
    if not types:
        types = [flag.lower() for flag in singletonparams if flag.lower() in KNOWN_TYPE_FLAGS]
    types = [t for t in types if t not in _DISCARDED_TYPES]
    return ",".join(types) or None


def is_primary(params: dict, singletonparams: Iterable[str] = ()) -> bool:
    pref = split_types(params.get("PREF"))
    if pref and pref[0] in ("1", "true"):
        return True
    if "pref" in split_types(params.get("TYPE")):
        return True
    return any(flag.upper() == "PREF" for flag in singletonparams)


def _types(prop: ContentLine) -> str | None:
    return extract_type(prop.params, prop.singletonparams)


def _primary(prop: ContentLine) -> bool:
    return is_primary(prop.params, prop.singletonparams)


def _text(value: object) -> str:
    # vobject yields a list when a text value holds unescaped commas
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ",".join(_text(v) for v in value)
    return str(value)


def _is_uri(prop: ContentLine) -> bool:
    if not isinstance(prop.value, str):
        return False
    return prop.value.startswith("http") or _param(prop, "VALUE").upper() == "URI"


# ----- property handlers -----

Handler = Callable[[Contact, ContentLine], None]

_TEXT_FIELDS = {
    "FN": "formatted_name",
    "NICKNAME": "nickname",
    "TITLE": "title",
    "ROLE": "role",
    "NOTE": "note",
}

_RAW_FIELDS = {
    "TZ": "timezone",
    "URL": "url",
    "UID": "uid",
    "PRODID": "prod_id",
    "CLIENTPIDMAP": "client_pid_map",
    "XML": "xml",
    "SOURCE": "source_url",
}

_MEDIA_FIELDS = {"PHOTO": "photo_url", "LOGO": "logo_url", "SOUND": "sound_url"}

# vobject.vcard.Name attribute -> contact field
_N_FIELDS = {
    "family": "family_name",
    "given": "given_name",
    "additional": "additional_name",
    "prefix": "name_prefix",
    "suffix": "name_suffix",
}

# vobject.vcard.Address attribute -> address field
_ADR_FIELDS = {
    "box": "po_box",
    "extended": "extended_address",
    "street": "street_address",
    "city": "locality",
    "region": "region",
    "code": "postal_code",
    "country": "country",
}

_CALENDAR_URI_FIELDS = {"FBURL": "fb_urls", "CALADRURI": "cal_adr_uris", "CALURI": "cal_uris"}


def _handle_text(contact: Contact, prop: ContentLine) -> None:
    contact[_TEXT_FIELDS[prop.name]] = _text(prop.value)


def _handle_raw(contact: Contact, prop: ContentLine) -> None:
    contact[_RAW_FIELDS[prop.name]] = _text(prop.value)


def _handle_n(contact: Contact, prop: ContentLine) -> None:
    name = prop.value
    for attr, field_name in _N_FIELDS.items():
        part = _text(getattr(name, attr, "")).strip()
        if part:
            contact[field_name] = part


def _handle_media(contact: Contact, prop: ContentLine) -> None:
    if _is_uri(prop):
        contact[_MEDIA_FIELDS[prop.name]] = prop.value


def _handle_date(contact: Contact, prop: ContentLine) -> None:
    value = _text(prop.value)
    if prop.name == "REV":
        revision = parse_vcard_timestamp(value)
        if revision is not None:
            contact["revision"] = revision
        return
    parsed = parse_vcard_date(value)
    if parsed is not None:
        contact["birthday" if prop.name == "BDAY" else "anniversary"] = parsed


def _handle_email(contact: Contact, prop: ContentLine) -> None:
    entry: EmailEntry = {
        "email": _text(prop.value).strip().lower(),
        "type": _types(prop),
        "is_primary": _primary(prop),
    }
    contact["emails"].append(entry)


def _handle_tel(contact: Contact, prop: ContentLine) -> None:
    entry: PhoneEntry = {
        "number": _text(prop.value).strip(),
        "type": _types(prop),
        "is_primary": _primary(prop),
    }
    contact["phones"].append(entry)


def _handle_adr(contact: Contact, prop: ContentLine) -> None:
    address: AddressEntry = {"type": _types(prop)}
    for attr, field_name in _ADR_FIELDS.items():
        address[field_name] = _text(getattr(prop.value, attr, "")).strip() or None
    address["is_primary"] = _primary(prop)
    contact["addresses"].append(address)


def _handle_org(contact: Contact, prop: ContentLine) -> None:
    value = prop.value
    if isinstance(value, (list, tuple)):
        value = value[0] if value else ""
    contact["organization"] = _text(value)


def _handle_geo(contact: Contact, prop: ContentLine) -> None:
    coords = _text(prop.value).strip()
    if coords.lower().startswith("geo:"):
        coords = coords[4:]
    parts = coords.split(",")
    if len(parts) != 2:
        parts = coords.split(";")
    if len(parts) != 2:
        return
    try:
        latitude, longitude = float(parts[0]), float(parts[1])
    except ValueError:
        return
    contact["geo_latitude"] = latitude
    contact["geo_longitude"] = longitude


def _handle_gender(contact: Contact, prop: ContentLine) -> None:
    code = _text(prop.value).split(";")[0].strip().upper()
    if code in GENDERS:
        contact["gender"] = code


def _handle_kind(contact: Contact, prop: ContentLine) -> None:
    kind = _text(prop.value).strip().lower()
    if kind in KINDS:
        contact["kind"] = kind


def _handle_categories(contact: Contact, prop: ContentLine) -> None:
    value = prop.value
    if isinstance(value, str):
        value = split_on_unescaped_comma(value)
    categories = [_text(c).strip() for c in value]
    contact["categories"] = [c for c in categories if c]


def _handle_impp(contact: Contact, prop: ContentLine) -> None:
    service, sep, handle = _text(prop.value).partition(":")
    if sep and handle:
        entry: ImHandle = {"service": service.lower(), "handle": handle}
        contact["im_handles"].append(entry)


def _handle_related(contact: Contact, prop: ContentLine) -> None:
    value = _text(prop.value)
    if value:
        entry: RelationEntry = {
            "related_name": value,
            "relation_type": _types(prop) or "contact",
        }
        contact["relations"].append(entry)


def _handle_key(contact: Contact, prop: ContentLine) -> None:
    key: KeyEntry = {}
    if _is_uri(prop):
        key["uri"] = prop.value
    elif isinstance(prop.value, bytes):
        # ENCODING=b payloads arrive decoded
        key["value"] = base64.b64encode(prop.value).decode("ascii")
    else:
        key["value"] = _text(prop.value)
    media_type = _param(prop, "MEDIATYPE").lower()
    if "pgp" in media_type:
        key["type"] = "pgp"
    elif "x509" in media_type or "pkix" in media_type:
        key["type"] = "x509"
    if _param(prop, "TYPE"):
        key["type"] = _param(prop, "TYPE").lower()
    contact["keys"].append(key)


def _handle_member(contact: Contact, prop: ContentLine) -> None:
    value = _text(prop.value)
    if value:
        contact["members"].append(value)


def _handle_lang(contact: Contact, prop: ContentLine) -> None:
    entry: LanguageEntry = {"tag": _text(prop.value).strip(), "is_primary": _primary(prop)}
    contact["languages"].append(entry)


def _handle_calendar_uri(contact: Contact, prop: ContentLine) -> None:
    entry: CalendarUriEntry = {
        "uri": _text(prop.value),
        "type": _types(prop),
        "is_primary": _primary(prop),
    }
    contact[_CALENDAR_URI_FIELDS[prop.name]].append(entry)


def _handle_social_profile(contact: Contact, prop: ContentLine) -> None:
    value = _text(prop.value)
    if value:
        service = _param(prop, "TYPE").lower() or prop.name[2:].lower()
        contact["im_handles"].append({"service": service, "handle": value})


PROPERTY_HANDLERS: dict[str, Handler] = {
    **{name: _handle_text for name in _TEXT_FIELDS},
    **{name: _handle_raw for name in _RAW_FIELDS},
    **{name: _handle_media for name in _MEDIA_FIELDS},
    **{name: _handle_calendar_uri for name in _CALENDAR_URI_FIELDS},
    "N": _handle_n,
    "BDAY": _handle_date,
    "ANNIVERSARY": _handle_date,
    "REV": _handle_date,
    "EMAIL": _handle_email,
    "TEL": _handle_tel,
    "ADR": _handle_adr,
    "ORG": _handle_org,
    "GEO": _handle_geo,
    "GENDER": _handle_gender,
    "KIND": _handle_kind,
    "CATEGORIES": _handle_categories,
    "IMPP": _handle_impp,
    "RELATED": _handle_related,
    "KEY": _handle_key,
    "MEMBER": _handle_member,
    "LANG": _handle_lang,
    "X-SOCIALPROFILE": _handle_social_profile,
    "X-TWITTER": _handle_social_profile,
    "X-FACEBOOK": _handle_social_profile,
}


def _parse_card(children: list[ContentLine], errors: list[str]) -> Contact | None:
    contact: Contact = {name: [] for name in _LIST_FIELDS}
    label = next((_text(c.value) for c in children if c.name == "FN"), "")
    where = f' in contact "{label}"' if label else ""
    for prop in children:
        handler = PROPERTY_HANDLERS.get(prop.name)
        if handler is None:
            # unknown properties are ignored
            continue
        try:
            handler(contact, prop.transformToNative())
        except Exception as exc:
            errors.append(f"Failed to parse property {prop.name}{where}: {exc}")

    if not contact.get("formatted_name"):
        errors.append("vCard missing required FN property")
        return None

    for name in _LIST_FIELDS:
        if not contact[name]:
            del contact[name]
    return contact


def parse_vcard_file(text: str | bytes) -> ContactParseResult:
    """Parse vCard 3.0/4.0 text into contact records.

    Never raises: problems are reported in ``errors`` and the card at fault
    is skipped. A stream vobject cannot read past (an unclosed card, a
    corrupt payload) keeps the contacts found before it.
    """
    contacts: list[Contact] = []
    errors: list[str] = []
    try:
        if isinstance(text, bytes):
            text = text.decode("utf-8", errors="replace")
        # transform=False so a bad value only costs its own property
        for card in vobject.readComponents(text, transform=False, ignoreUnreadable=True):
            if (card.name or "").upper() != "VCARD":
                continue
            children = [c for c in card.getChildren() if isinstance(c, ContentLine)]
            if not children:
                continue
            contact = _parse_card(children, errors)
            if contact is not None:
                contacts.append(contact)
    except Exception as exc:
        logger.warning("vCard parsing aborted: %s", exc)
        errors.append(f"Failed to parse vCard file: {exc}")

    if not contacts and not errors:
        errors.append("No valid vCard entries found in the file.")
    logger.debug("Parsed %d contact(s) with %d error(s)", len(contacts), len(errors))
    return {"contacts": contacts, "errors": errors}


# ----- generation -----


def _line(name: str, value: str, params: dict[str, str] | None = None) -> str:
    head = name
    for key, val in (params or {}).items():
        if val == "true":
            head += f";{key}"
        elif val:
            head += f";{key}={val}"
    return fold_line(f"{head}:{value}", get_settings().codec.fold_width)


def _typed_params(entry: dict, params: dict[str, str] | None = None) -> dict[str, str]:
    params = dict(params or {})
    if entry.get("type"):
        params["TYPE"] = str(entry["type"]).upper()
    if entry.get("is_primary"):
        params["PREF"] = "1"
    return params


def normalize_tel_uri(raw: str) -> str:
    number = str(raw or "")
    if number.startswith("tel:"):
        return number
    return "tel:" + re.sub(r"\s", "", number)


def _header_lines(contact: Contact, prod_id: str) -> list[str]:
    return [
        "BEGIN:VCARD",
        "VERSION:4.0",
        _line("PRODID", prod_id),
        _line("UID", contact.get("uid") or generate_uid()),
        _line("FN", escape_text(contact.get("formatted_name"))),
    ]


def _name_lines(contact: Contact) -> list[str]:
    lines = []
    if any(contact.get(f) for f in _N_FIELDS.values()):
        lines.append(_line("N", ";".join(escape_text(contact.get(f)) for f in _N_FIELDS.values())))
    if contact.get("nickname"):
        lines.append(_line("NICKNAME", escape_text(contact["nickname"])))
    return lines


def _personal_lines(contact: Contact) -> list[str]:
    lines = []
    if contact.get("photo_url"):
        lines.append(_line("PHOTO", contact["photo_url"], {"VALUE": "URI"}))
    if contact.get("birthday"):
        lines.append(_line("BDAY", format_vcard_date(contact["birthday"])))
    if contact.get("anniversary"):
        lines.append(_line("ANNIVERSARY", format_vcard_date(contact["anniversary"])))
    if contact.get("gender"):
        lines.append(_line("GENDER", contact["gender"]))
    if contact.get("kind"):
        lines.append(_line("KIND", contact["kind"]))
    return lines


def _org_lines(contact: Contact) -> list[str]:
    lines = []
    if contact.get("organization"):
        lines.append(_line("ORG", escape_text(contact["organization"])))
    if contact.get("title"):
        lines.append(_line("TITLE", escape_text(contact["title"])))
    if contact.get("role"):
        lines.append(_line("ROLE", escape_text(contact["role"])))
    if contact.get("logo_url"):
        lines.append(_line("LOGO", contact["logo_url"], {"VALUE": "URI"}))
    for member in contact.get("members") or []:
        lines.append(_line("MEMBER", escape_text(member)))
    return lines


def _contact_method_lines(contact: Contact) -> list[str]:
    lines = []
    for email in contact.get("emails") or []:
        lines.append(_line("EMAIL", email["email"], _typed_params(email)))
    for phone in contact.get("phones") or []:
        params = _typed_params(phone, {"VALUE": "uri"})
        lines.append(_line("TEL", normalize_tel_uri(phone["number"]), params))
    for address in contact.get("addresses") or []:
        value = ";".join(escape_text(address.get(f)) for f in _ADR_FIELDS.values())
        lines.append(_line("ADR", value, _typed_params(address)))
    for im in contact.get("im_handles") or []:
        handle = im["handle"]
        lines.append(_line("IMPP", handle if ":" in handle else f"{im['service']}:{handle}"))
    return lines


def _location_lines(contact: Contact) -> list[str]:
    lines = []
    latitude, longitude = contact.get("geo_latitude"), contact.get("geo_longitude")
    if latitude is not None and longitude is not None:
        lines.append(_line("GEO", f"geo:{latitude},{longitude}"))
    if contact.get("timezone"):
        lines.append(_line("TZ", contact["timezone"]))
    if contact.get("url"):
        lines.append(_line("URL", contact["url"]))
    return lines


def _key_line(key: KeyEntry) -> str | None:
    params: dict[str, str] = {}
    if key.get("uri"):
        params["VALUE"] = "URI"
        value = key["uri"]
    elif key.get("value"):
        value = key["value"]
    else:
        return None
    if key.get("type"):
        params["MEDIATYPE"] = f"application/{key['type']}-keys"
    return _line("KEY", value, params)


def _metadata_lines(contact: Contact) -> list[str]:
    lines = []
    if contact.get("note"):
        lines.append(_line("NOTE", escape_text(contact["note"])))
    if contact.get("categories"):
        lines.append(_line("CATEGORIES", ",".join(escape_text(c) for c in contact["categories"])))
    for relation in contact.get("relations") or []:
        lines.append(
            _line(
                "RELATED",
                escape_text(relation["related_name"]),
                {"TYPE": relation.get("relation_type") or "contact"},
            )
        )
    for language in contact.get("languages") or []:
        lines.append(_line("LANG", language["tag"], {"PREF": "1"} if language.get("is_primary") else None))
    for key in contact.get("keys") or []:
        key_line = _key_line(key)
        if key_line:
            lines.append(key_line)
    if contact.get("sound_url"):
        lines.append(_line("SOUND", contact["sound_url"], {"VALUE": "URI"}))
    if contact.get("source_url"):
        lines.append(_line("SOURCE", contact["source_url"]))
    return lines


def _calendar_lines(contact: Contact) -> list[str]:
    lines = []
    for prop_name, field_name in _CALENDAR_URI_FIELDS.items():
        for cal_uri in contact.get(field_name) or []:
            lines.append(_line(prop_name, cal_uri["uri"], _typed_params(cal_uri)))
    return lines


def generate_single_vcard(contact: Contact, prod_id: str | None = None) -> str:
    """Serialize one contact as a vCard 4.0 block (no trailing CRLF)."""
    lines = [
        *_header_lines(contact, prod_id or get_settings().codec.contacts_prod_id),
        *_name_lines(contact),
        *_personal_lines(contact),
        *_org_lines(contact),
        *_contact_method_lines(contact),
        *_location_lines(contact),
        *_metadata_lines(contact),
        *_calendar_lines(contact),
        _line("REV", format_vcard_timestamp(datetime.now(timezone.utc))),
        "END:VCARD",
    ]
    return CRLF.join(lines)


def generate_vcard_file(contacts: list[Contact], prod_id: str | None = None) -> str:
    if not contacts:
        return ""
    return CRLF.join(generate_single_vcard(c, prod_id) for c in contacts)


__all__ = [
    "PROPERTY_HANDLERS",
    "extract_type",
    "is_primary",
    "normalize_tel_uri",
    "parse_vcard_file",
    "generate_single_vcard",
    "generate_vcard_file",
]

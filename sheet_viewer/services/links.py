"""
Link resolver.

Turns whatever the user pasted (a Sheets URL, a Drive sharing link or a bare
document ID) into a SheetReference the transports can use.
"""

import re
from urllib.parse import SplitResult, parse_qs, urlsplit

from sheet_viewer.config import SHEETS_BASE_URL
from sheet_viewer.errors import InvalidLinkError, UnsupportedLinkError
from sheet_viewer.schemas import SheetReference

_BARE_ID = re.compile(r"^[A-Za-z0-9_-]{30,}$")
_ID_CHARS = re.compile(r"^[A-Za-z0-9_-]+$")
_HOST_CHARS = re.compile(r"^[A-Za-z0-9.-]+$")

# Patterns tried against the raw text when it cannot be read as a URL.
RAW_ID_PATTERNS = [
    re.compile(r"/spreadsheets/d/([A-Za-z0-9_-]{20,})"),
    re.compile(r"[?&]id=([A-Za-z0-9_-]{20,})"),
    re.compile(r"[?&]key=([A-Za-z0-9_-]{20,})"),
    re.compile(r"/file/d/([A-Za-z0-9_-]{20,})"),
]

_SHEETS_PATH = re.compile(r"/spreadsheets/d/([A-Za-z0-9_-]+)")
_DRIVE_FILE_PATH = re.compile(r"/file/d/([A-Za-z0-9_-]+)")

GOOGLE_HOSTS = ("docs.google.com", "drive.google.com")


def _edit_url(sheet_id: str) -> str:
    return f"{SHEETS_BASE_URL}/{sheet_id}/edit"


def _parse_url(text: str) -> SplitResult | None:
    """Parse an absolute URL, returning None when it is not a usable one."""
    try:
        parts = urlsplit(text)
        parts.port  # raises ValueError on a malformed port
    except ValueError:
        return None
    if not parts.hostname or not _HOST_CHARS.match(parts.hostname):
        return None
    return parts


def _first_param(params: dict[str, list[str]], name: str) -> str:
    values = params.get(name) or [""]
    return values[0].strip()


def is_google_host(hostname: str) -> bool:
    host = hostname.lower()
    return any(host == known or host.endswith("." + known) for known in GOOGLE_HOSTS)


def extract_sheet_id_from_raw(raw: str) -> str:
    """Find a document ID anywhere in raw text using the known link patterns."""
    for pattern in RAW_ID_PATTERNS:
        match = pattern.search(raw)
        if match:
            return match.group(1)
    return ""


def extract_sheet_id(parts: SplitResult) -> str:
    """Find a document ID in the path or query of a parsed URL."""
    for pattern in (_SHEETS_PATH, _DRIVE_FILE_PATH):
        match = pattern.search(parts.path)
        if match:
            return match.group(1)

    query = parse_qs(parts.query)
    for name in ("id", "key"):
        value = _first_param(query, name)
        if value and _ID_CHARS.match(value):
            return value

    return ""


def _tab_selector(parts: SplitResult) -> tuple[str, str]:
    """Return (gid, sheet name); query parameters win over fragment ones."""
    query = parse_qs(parts.query)
    fragment = parse_qs(parts.fragment)

    gid = _first_param(query, "gid") or _first_param(fragment, "gid")
    sheet_name = _first_param(query, "sheet") or _first_param(fragment, "sheet")
    return gid, sheet_name


def resolve(raw_value: str | None) -> SheetReference:
    """
    Resolve free-form user input into a SheetReference.

    Raises InvalidLinkError for empty or unparseable input and
    UnsupportedLinkError for URLs that are not Google Sheets links.
    """
    trimmed = (raw_value or "").strip()
    if not trimmed:
        raise InvalidLinkError("Please paste a Google Sheets link.")

    if _BARE_ID.match(trimmed):
        return SheetReference(sheet_id=trimmed, display_url=_edit_url(trimmed))

    if re.match(r"^https?://", trimmed, re.IGNORECASE):
        with_scheme = trimmed
    else:
        with_scheme = f"https://{trimmed}"

    parts = _parse_url(with_scheme)
    if parts is None:
        raw_id = extract_sheet_id_from_raw(trimmed)
        if not raw_id:
            raise InvalidLinkError("Invalid URL. Paste a valid Google Sheets link.")
        return SheetReference(sheet_id=raw_id, display_url=with_scheme)

    sheet_id = extract_sheet_id(parts) or extract_sheet_id_from_raw(trimmed)
    if not sheet_id:
        if not is_google_host(parts.hostname or ""):
            raise UnsupportedLinkError("Only Google Sheets links are supported.")
        raise UnsupportedLinkError("Unable to read this Google Sheets link.")

    gid, sheet_name = _tab_selector(parts)
    return SheetReference(
        sheet_id=sheet_id,
        gid=gid,
        sheet_name=sheet_name,
        display_url=with_scheme,
    )

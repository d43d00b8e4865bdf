"""
Human-friendly hints for XSD validation errors.

Schema validators report errors against the generated XML text, not
against the element tree. The helpers here translate recurring messages
into short hints and guess the tree path of an error from its line
number. Both are best effort.
"""

import re
from dataclasses import dataclass
from typing import Any

PATH_SEPARATOR = " > "

ELEMENT_TAGS = (
    "assetAdministrationShell",
    "submodel",
    "conceptDescription",
    "property",
    "multiLanguageProperty",
    "submodelElementCollection",
    "submodelElementList",
    "file",
    "referenceElement",
    "range",
    "blob",
    "operation",
    "entity",
    "basicEventElement",
    "relationshipElement",
    "annotatedRelationshipElement",
    "capability",
)

_TAG_RE = re.compile(
    r"<(/?)(?:[\w.-]+:)?(" + "|".join(ELEMENT_TAGS) + r")(?=[\s/>])[^>]*?(/?)>"
)
_ID_SHORT_RE = re.compile(r"<(?:[\w.-]+:)?idShort>\s*([^<]*?)\s*</(?:[\w.-]+:)?idShort>")
_LINE_PATTERNS = (
    re.compile(r":(\d+):"),
    re.compile(r"\bline (\d+)", re.IGNORECASE),
)


@dataclass
class FriendlyError:
    message: str
    hint: str | None = None
    id_short: str | None = None


# (pattern, message, hint) checked in order
_KNOWN_ERRORS: tuple[tuple[re.Pattern, str, str], ...] = (
    (
        re.compile(r"value.*minLength", re.IGNORECASE),
        "A required value is empty",
        "Enter at least 1 character; required fields cannot be empty.",
    ),
    (
        re.compile(r"displayName.*Missing child element", re.IGNORECASE),
        "Display name is missing a language entry",
        'Add a name (e.g., language "en") to displayName.',
    ),
    (
        re.compile(r"preferredName.*Missing child element", re.IGNORECASE),
        "Preferred name is missing",
        'Add Preferred Name (e.g., English "en") for the IEC 61360 data spec.',
    ),
    (
        re.compile(r"keys.*Missing child element", re.IGNORECASE),
        "A Reference lacks required key entries",
        'Add at least one "key" with proper type and value.',
    ),
    (
        re.compile(r"specificAssetIds.*Missing child element", re.IGNORECASE),
        "AssetInformation > specificAssetIds is empty",
        "Add one or more specificAssetId entries in Asset Information.",
    ),
    (
        re.compile(r"conceptDescriptions.*Missing child element", re.IGNORECASE),
        "Concept Descriptions list is empty",
        "Add at least one conceptDescription entry for referenced semantics.",
    ),
    (
        re.compile(r"(Missing child element.*contentType|Expected is.*contentType)", re.IGNORECASE),
        "A File element has no content type",
        "Set a MIME type such as application/pdf on the File element.",
    ),
    (
        re.compile(r"(This element is not expected|Expected is)", re.IGNORECASE),
        "Elements are not in the order the schema requires",
        "Check the element named in the message; AAS XML expects a fixed child order.",
    ),
)

_ID_SHORT_ERROR_RE = re.compile(r"idShort.*value '([^']+)'", re.IGNORECASE)


def normalize_message(raw: str) -> str:
    return re.sub(r"\s+", " ", raw).strip()


def friendly_error(raw: str) -> FriendlyError:
    """
    Translate a raw validator message into a short message and hint.

    Unknown messages are returned whitespace-normalized without a hint.
    """
    message = normalize_message(raw)

    match = _ID_SHORT_ERROR_RE.search(message)
    if match:
        bad = match.group(1)
        return FriendlyError(
            message=f"idShort \"{bad}\" doesn't follow naming rules",
            hint='Use letters, digits, "_" or "-", start with a letter, and end with a letter or digit.',
            id_short=bad,
        )

    for pattern, friendly, hint in _KNOWN_ERRORS:
        if pattern.search(message):
            return FriendlyError(message=friendly, hint=hint)

    return FriendlyError(message=message)


def extract_line(error: Any) -> int | None:
    """Line number from an error string or an error object."""
    if isinstance(error, dict):
        for key in ("line", "lineNumber"):
            if isinstance(error.get(key), int):
                return error[key]
        location = error.get("location") or error.get("loc")
        if isinstance(location, dict):
            return extract_line(location)
        text = error.get("message") or error.get("rawMessage") or ""
        if isinstance(location, str):
            text = f"{location} {text}"
        return extract_line(text)

    if isinstance(error, str):
        for pattern in _LINE_PATTERNS:
            match = pattern.search(error)
            if match:
                return int(match.group(1))
    return None


def guess_path_from_line(xml_text: str, line: int | None) -> str | None:
    """
    Guess the tree path enclosing a line of generated XML.

    Scans the text backwards from the end of ``line`` and collects the
    idShort of every element that is still open at that point.

    Returns:
        Path such as ``"Nameplate > Address > Street"``, or None
    """
    if not line or line < 1:
        return None

    lines = xml_text.splitlines(keepends=True)
    if line > len(lines):
        return None
    offset = sum(len(text) for text in lines[:line])

    path: list[str] = []
    depth = 0
    for match in reversed(list(_TAG_RE.finditer(xml_text, 0, offset))):
        closing, _tag, self_closing = match.groups()
        if self_closing:
            continue
        if closing:
            depth += 1
        elif depth:
            depth -= 1
        else:
            id_short = _ID_SHORT_RE.search(xml_text, match.end())
            if id_short:
                path.insert(0, id_short.group(1))

    return PATH_SEPARATOR.join(path) or None


def find_path_for_id_short(xml_text: str, id_short: str) -> str | None:
    """Tree path of the first element in the text with the given idShort."""
    for match in _ID_SHORT_RE.finditer(xml_text):
        if match.group(1) == id_short:
            line = xml_text.count("\n", 0, match.start()) + 1
            return guess_path_from_line(xml_text, line)
    return None

"""
XSD value type normalization.

Maps between IEC 61360 data types and XML Schema value types, and checks
literal values against a chosen XSD type.
"""

import re

# Value types allowed for AAS Property/Range elements (DataTypeDefXsd)
XSD_VALUE_TYPES: tuple[str, ...] = (
    "xs:anyURI",
    "xs:base64Binary",
    "xs:boolean",
    "xs:byte",
    "xs:date",
    "xs:dateTime",
    "xs:decimal",
    "xs:double",
    "xs:duration",
    "xs:float",
    "xs:gDay",
    "xs:gMonth",
    "xs:gMonthDay",
    "xs:gYear",
    "xs:gYearMonth",
    "xs:hexBinary",
    "xs:int",
    "xs:integer",
    "xs:long",
    "xs:negativeInteger",
    "xs:nonNegativeInteger",
    "xs:nonPositiveInteger",
    "xs:positiveInteger",
    "xs:short",
    "xs:string",
    "xs:time",
    "xs:unsignedByte",
    "xs:unsignedInt",
    "xs:unsignedLong",
    "xs:unsignedShort",
)

# Lower-cased local name -> canonical tag
_XSD_CANON_MAP: dict[str, str] = {t[3:].lower(): t for t in XSD_VALUE_TYPES}

IEC_DATA_TYPES: tuple[str, ...] = (
    "DATE",
    "STRING",
    "STRING_TRANSLATABLE",
    "INTEGER_MEASURE",
    "INTEGER_COUNT",
    "INTEGER_CURRENCY",
    "REAL_MEASURE",
    "REAL_COUNT",
    "REAL_CURRENCY",
    "BOOLEAN",
    "IRI",
    "IRDI",
    "RATIONAL",
    "RATIONAL_MEASURE",
    "TIME",
    "TIMESTAMP",
    "FILE",
    "HTML",
    "BLOB",
)

IEC_TO_XSD: dict[str, str] = {
    "DATE": "xs:date",
    "STRING": "xs:string",
    "STRING_TRANSLATABLE": "xs:string",
    "INTEGER_MEASURE": "xs:integer",
    "INTEGER_COUNT": "xs:integer",
    "INTEGER_CURRENCY": "xs:integer",
    "REAL_MEASURE": "xs:decimal",
    "REAL_COUNT": "xs:decimal",
    "REAL_CURRENCY": "xs:decimal",
    "BOOLEAN": "xs:boolean",
    "IRI": "xs:anyURI",
    "IRDI": "xs:string",
    "RATIONAL": "xs:string",
    "RATIONAL_MEASURE": "xs:string",
    "TIME": "xs:time",
    "TIMESTAMP": "xs:dateTime",
    "FILE": "xs:string",
    "HTML": "xs:string",
    "BLOB": "xs:base64Binary",
}

DEFAULT_VALUE_TYPE = "xs:string"

_SIGNED_INTEGER_TYPES = frozenset(
    {
        "xs:integer",
        "xs:int",
        "xs:long",
        "xs:short",
        "xs:byte",
        "xs:negativeInteger",
        "xs:nonPositiveInteger",
    }
)
_UNSIGNED_INTEGER_TYPES = frozenset(
    {
        "xs:unsignedLong",
        "xs:unsignedInt",
        "xs:unsignedShort",
        "xs:unsignedByte",
        "xs:nonNegativeInteger",
        "xs:positiveInteger",
    }
)
_DECIMAL_TYPES = frozenset({"xs:float", "xs:double", "xs:decimal"})

_SIGNED_INTEGER_RE = re.compile(r"^-?\d+$")
_UNSIGNED_INTEGER_RE = re.compile(r"^\d+$")
_DECIMAL_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")


def normalize_value_type(raw: str | None) -> str | None:
    """
    Normalize an XSD type name to its canonical ``xs:`` tag.

    Args:
        raw: Type name with or without ``xs:``/``xsd:`` prefix, any case

    Returns:
        Canonical tag (e.g. "xs:string") or None if unrecognized
    """
    if raw is None:
        return None

    type_str = str(raw).strip()
    if not type_str:
        return None

    lowered = type_str.lower()
    if lowered.startswith("xsd:"):
        type_str = type_str[4:]
    elif lowered.startswith("xs:"):
        type_str = type_str[3:]

    return _XSD_CANON_MAP.get(type_str.lower())


def derive_value_type_from_iec(iec: str | None) -> str | None:
    """Map an IEC 61360 data type to an XSD value type."""
    if not iec:
        return None
    return IEC_TO_XSD.get(str(iec).strip().upper())


def resolve_value_type(value_type: str | None, data_type: str | None) -> str | None:
    """Explicit value type if recognized, otherwise the IEC-derived one."""
    return normalize_value_type(value_type) or derive_value_type_from_iec(data_type)


def is_valid_value_for_xsd_type(xsd_type: str | None, literal: str | None) -> bool:
    """
    Check a literal against an XSD value type.

    Empty literals always pass; required-ness is checked elsewhere. Only
    boolean and numeric types are inspected, everything else passes.
    """
    value = (literal or "").strip()
    if not value:
        return True

    if xsd_type == "xs:boolean":
        return value.lower() in ("true", "false", "1", "0")
    if xsd_type in _SIGNED_INTEGER_TYPES:
        return bool(_SIGNED_INTEGER_RE.match(value))
    if xsd_type in _UNSIGNED_INTEGER_TYPES:
        return bool(_UNSIGNED_INTEGER_RE.match(value))
    if xsd_type in _DECIMAL_TYPES:
        return bool(_DECIMAL_RE.match(value))
    return True

"""
Tests for XSD value type normalization.
"""

import pytest

from aas_studio.utils.xsd_mapping import (
    IEC_DATA_TYPES,
    IEC_TO_XSD,
    XSD_VALUE_TYPES,
    derive_value_type_from_iec,
    is_valid_value_for_xsd_type,
    normalize_value_type,
    resolve_value_type,
)


class TestNormalizeValueType:
    """Tests for normalize_value_type."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("xs:string", "xs:string"),
            ("string", "xs:string"),
            ("xsd:dateTime", "xs:dateTime"),
            ("XS:DATETIME", "xs:dateTime"),
            ("  xs:int ", "xs:int"),
            ("unsignedshort", "xs:unsignedShort"),
        ],
    )
    def test_known_spellings(self, raw, expected):
        """Test prefixes and case are normalized to the canonical tag."""
        assert normalize_value_type(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "   ", "xs:unknownType", "foo:string"])
    def test_unrecognized(self, raw):
        """Test unrecognized input yields None."""
        assert normalize_value_type(raw) is None

    def test_idempotent(self):
        """Test normalizing a normalized tag returns it unchanged."""
        for tag in XSD_VALUE_TYPES:
            assert normalize_value_type(normalize_value_type(tag)) == tag


class TestIecMapping:
    """Tests for IEC 61360 data type derivation."""

    def test_every_iec_type_maps(self):
        """Test every IEC data type maps to a known XSD tag."""
        for iec in IEC_DATA_TYPES:
            assert IEC_TO_XSD[iec] in XSD_VALUE_TYPES

    def test_derive_examples(self):
        """Test a few characteristic mappings."""
        assert derive_value_type_from_iec("REAL_MEASURE") == "xs:decimal"
        assert derive_value_type_from_iec("integer_count") == "xs:integer"
        assert derive_value_type_from_iec("TIMESTAMP") == "xs:dateTime"
        assert derive_value_type_from_iec("IRI") == "xs:anyURI"
        assert derive_value_type_from_iec("UNKNOWN") is None
        assert derive_value_type_from_iec(None) is None

    def test_resolve_prefers_explicit_type(self):
        """Test an explicit value type wins over the IEC data type."""
        assert resolve_value_type("xs:int", "REAL_MEASURE") == "xs:int"

    def test_resolve_falls_back_to_iec(self):
        """Test the IEC data type is used when the value type is unusable."""
        assert resolve_value_type("bogus", "REAL_MEASURE") == "xs:decimal"
        assert resolve_value_type(None, None) is None


class TestValueCheck:
    """Tests for is_valid_value_for_xsd_type."""

    @pytest.mark.parametrize("literal", ["true", "FALSE", "1", "0"])
    def test_boolean_accepts(self, literal):
        assert is_valid_value_for_xsd_type("xs:boolean", literal)

    @pytest.mark.parametrize("literal", ["yes", "2", "truth"])
    def test_boolean_rejects(self, literal):
        assert not is_valid_value_for_xsd_type("xs:boolean", literal)

    def test_integers(self):
        """Test signed and unsigned integer literals."""
        assert is_valid_value_for_xsd_type("xs:int", "-42")
        assert not is_valid_value_for_xsd_type("xs:int", "4.2")
        assert is_valid_value_for_xsd_type("xs:unsignedInt", "42")
        assert not is_valid_value_for_xsd_type("xs:unsignedInt", "-42")

    @pytest.mark.parametrize("literal", ["5.5", "-0.25", ".5", "1e3", "+2.0E-4", "7"])
    def test_decimal_accepts(self, literal):
        assert is_valid_value_for_xsd_type("xs:decimal", literal)

    @pytest.mark.parametrize("literal", ["abc", "1,5", "1.2.3", "e5"])
    def test_decimal_rejects(self, literal):
        assert not is_valid_value_for_xsd_type("xs:double", literal)

    def test_empty_always_passes(self):
        """Test empty literals are left to the required check."""
        assert is_valid_value_for_xsd_type("xs:int", "")
        assert is_valid_value_for_xsd_type("xs:boolean", None)

    def test_other_types_pass(self):
        """Test types without a literal check accept anything."""
        assert is_valid_value_for_xsd_type("xs:string", "anything")
        assert is_valid_value_for_xsd_type("xs:date", "not a date")
        assert is_valid_value_for_xsd_type(None, "x")

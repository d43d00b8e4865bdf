"""
Tests for the structural validator.
"""

import pytest

from aas_studio.schemas.elements import (
    FileData,
    FileElement,
    MultiLanguageProperty,
    Property,
    SubmodelElementCollection,
)
from aas_studio.schemas.environment import Shell, Submodel
from aas_studio.services.validator import StructuralValidator, check_raw_document, is_valid_id_short


@pytest.fixture
def validator():
    return StructuralValidator()


@pytest.fixture
def shell():
    return Shell(idShort="Motor1", id="https://ex/aas/1")


def submodel_with(*elements):
    return Submodel(idShort="Nameplate", submodelElements=list(elements))


class TestIdShort:
    """Tests for the idShort pattern."""

    @pytest.mark.parametrize("value", ["Abc_1", "A", "a-b", "Motor1"])
    def test_valid(self, value):
        assert is_valid_id_short(value)

    @pytest.mark.parametrize("value", ["1abc", "abc_", "-abc", "", None, "with space", "ab-"])
    def test_invalid(self, value):
        assert not is_valid_id_short(value)


class TestStructuralValidator:
    """Tests for StructuralValidator."""

    def test_motor_scenario(self, validator, motor_shell, nameplate):
        """Test the example shell validates without issues."""
        report = validator.validate(motor_shell, [nameplate])
        assert report.valid
        assert report.issues == []

    def test_required_property_gating(self, validator, shell):
        """Test an empty required property yields exactly one issue with its path."""
        prop = Property(idShort="SerialNumber", cardinality="One", valueType="xs:string")
        report = validator.validate(shell, [submodel_with(prop)])

        assert not report.valid
        assert len(report.issues) == 1
        assert report.issues[0].path == ["Nameplate", "SerialNumber"]
        assert report.issues[0].code == "missing_required"
        assert report.issues[0].location == "Nameplate > SerialNumber"

        fixed = prop.model_copy(update={"value": "SN-42"})
        assert validator.validate(shell, [submodel_with(fixed)]).valid

    def test_optional_empty_property(self, validator, shell):
        prop = Property(idShort="Comment", valueType="xs:string")
        assert validator.validate(shell, [submodel_with(prop)]).valid

    def test_invalid_literal(self, validator, shell):
        prop = Property(idShort="Count", valueType="xs:integer", value="1.2")
        report = validator.validate(shell, [submodel_with(prop)])
        assert [issue.code for issue in report.issues] == ["invalid_value"]

    def test_value_type_from_iec(self, validator, shell):
        """Test the IEC data type is used when the value type is missing."""
        prop = Property(idShort="Voltage", dataType="REAL_MEASURE", value="abc")
        report = validator.validate(shell, [submodel_with(prop)])
        assert [issue.code for issue in report.issues] == ["invalid_value"]

    def test_required_without_value_type(self, validator, shell):
        prop = Property(idShort="Serial", cardinality="One", value="SN-1")
        report = validator.validate(shell, [submodel_with(prop)])
        assert [issue.code for issue in report.issues] == ["missing_value_type"]

    def test_required_kinds(self, validator, shell):
        """Test required-ness for every value-carrying kind."""
        elements = [
            MultiLanguageProperty(idShort="Name", cardinality="One", value={"en": " "}),
            FileElement(idShort="Manual", cardinality="One"),
            SubmodelElementCollection(idShort="Address", cardinality="OneToMany"),
        ]
        report = validator.validate(shell, [submodel_with(*elements)])
        assert [issue.path[-1] for issue in report.issues] == ["Name", "Manual", "Address"]

    def test_file_with_pending_data(self, validator, shell):
        manual = FileElement(
            idShort="Manual",
            cardinality="One",
            fileData=FileData(content=b"%PDF", mimeType="application/pdf", fileName="manual.pdf"),
        )
        assert validator.validate(shell, [submodel_with(manual)]).valid

    def test_nested_paths(self, validator, shell):
        collection = SubmodelElementCollection(
            idShort="Address",
            value=[Property(idShort="1Street", valueType="xs:string")],
        )
        report = validator.validate(shell, [submodel_with(collection)])
        assert report.issues[0].path == ["Nameplate", "Address", "1Street"]
        assert report.issues[0].code == "invalid_id_short"

    def test_duplicate_siblings(self, validator, shell):
        elements = [Property(idShort="A", valueType="xs:string"), Property(idShort="A", valueType="xs:string")]
        report = validator.validate(shell, [submodel_with(*elements)])
        assert [issue.code for issue in report.issues] == ["duplicate_id_short"]

    def test_collects_all_issues(self, validator):
        """Test validation does not stop at the first problem."""
        bad_shell = Shell(idShort="1Shell", id=" ")
        submodels = [
            submodel_with(Property(idShort="x_", valueType="xs:int", value="no")),
            submodel_with(),
        ]
        report = validator.validate(bad_shell, submodels)
        assert [issue.code for issue in report.issues] == [
            "invalid_id_short",
            "missing_id",
            "invalid_id_short",
            "invalid_value",
            "duplicate_id_short",
        ]


class TestCheckRawDocument:
    """Tests for check_raw_document."""

    def test_valid_document(self):
        report = check_raw_document(
            {
                "assetAdministrationShells": [{"idShort": "Motor1", "id": "urn:aas:1"}],
                "submodels": [
                    {
                        "idShort": "Nameplate",
                        "submodelElements": [{"idShort": "Serial", "modelType": "Property"}],
                    }
                ],
            }
        )
        assert report.valid

    def test_root_not_object(self):
        report = check_raw_document([])
        assert report.issues[0].code == "invalid_root"

    def test_missing_structure(self):
        report = check_raw_document({"foo": 1})
        assert [issue.code for issue in report.issues] == ["missing_structure"]

    def test_invalid_id_short_anywhere(self):
        report = check_raw_document(
            {
                "submodels": [
                    {"idShort": "S", "submodelElements": [{"idShort": "bad id", "modelType": "Property"}]}
                ]
            }
        )
        assert report.issues[0].code == "invalid_id_short"
        assert report.issues[0].path == ["submodels[0]", "submodelElements[0]", "idShort"]

    def test_element_checks(self):
        report = check_raw_document(
            {
                "submodels": [
                    {
                        "idShort": "S",
                        "submodelElements": [
                            {"idShort": "A", "modelType": "Gizmo"},
                            {"modelType": "Property"},
                            "oops",
                        ],
                    }
                ]
            }
        )
        assert [issue.code for issue in report.issues] == [
            "invalid_model_type",
            "missing_id_short",
            "invalid_structure",
        ]

    def test_children_checked_when_value_is_empty(self):
        report = check_raw_document(
            {
                "submodels": [
                    {
                        "idShort": "S",
                        "submodelElements": [
                            {
                                "idShort": "Address",
                                "modelType": "SubmodelElementCollection",
                                "value": [],
                                "children": [{"idShort": "City", "modelType": "Gizmo"}],
                            }
                        ],
                    }
                ]
            }
        )
        assert [issue.code for issue in report.issues] == ["invalid_model_type"]

    def test_submodels_not_array(self):
        report = check_raw_document({"submodels": {"idShort": "S"}})
        assert "invalid_structure" in [issue.code for issue in report.issues]

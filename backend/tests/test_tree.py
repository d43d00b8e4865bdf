"""
Tests for copy-on-write element tree editing.
"""

import pytest
from pydantic import ValidationError

from aas_studio.schemas.elements import (
    MultiLanguageProperty,
    Property,
    SubmodelElementCollection,
    has_children,
    is_deletable,
    is_required,
    parse_cardinality,
)
from aas_studio.services import tree
from aas_studio.services.errors import ElementNotFound


@pytest.fixture
def elements():
    return [
        MultiLanguageProperty(idShort="ManufacturerName", cardinality="One", value={"en": "ACME"}),
        SubmodelElementCollection(
            idShort="Address",
            value=[
                Property(idShort="Street", valueType="xs:string", value="Main St"),
                Property(idShort="Zip", valueType="xs:string", value="12345"),
                Property(idShort="City", valueType="xs:string", cardinality="One"),
            ],
        ),
        Property(idShort="SerialNumber", valueType="xs:string", value="SN-1"),
    ]


class TestLookup:
    """Tests for walk_elements and find_element."""

    def test_walk_is_depth_first(self, elements):
        """Test the walk yields paths in document order."""
        paths = [path for path, _ in tree.walk_elements(elements)]
        assert paths == [
            ["ManufacturerName"],
            ["Address"],
            ["Address", "Street"],
            ["Address", "Zip"],
            ["Address", "City"],
            ["SerialNumber"],
        ]

    def test_find_nested(self, elements):
        assert tree.find_element(elements, ["Address", "Zip"]).value == "12345"

    def test_find_missing(self, elements):
        assert tree.find_element(elements, ["Address", "Nope"]) is None
        assert tree.find_element(elements, ["SerialNumber", "Child"]) is None
        assert tree.find_element(elements, []) is None


class TestUpdate:
    """Tests for update_element."""

    def test_update_value(self, elements):
        """Test a changed value leaves the input tree untouched."""
        updated = tree.update_element(elements, ["Address", "Zip"], {"value": "54321"})

        assert tree.find_element(updated, ["Address", "Zip"]).value == "54321"
        assert tree.find_element(elements, ["Address", "Zip"]).value == "12345"

    def test_untouched_nodes_are_shared(self, elements):
        """Test nodes off the edited path are reused."""
        updated = tree.update_element(elements, ["Address", "Zip"], {"value": "54321"})
        assert updated[0] is elements[0]
        assert updated[2] is elements[2]
        assert updated[1] is not elements[1]

    def test_model_type_cannot_change(self, elements):
        updated = tree.update_element(elements, ["SerialNumber"], {"modelType": "File"})
        assert isinstance(tree.find_element(updated, ["SerialNumber"]), Property)

    def test_rename_collision(self, elements):
        """Test a rename onto a sibling idShort is rejected."""
        with pytest.raises(ValueError, match="already exists"):
            tree.update_element(elements, ["Address", "Zip"], {"idShort": "Street"})

    def test_rename(self, elements):
        updated = tree.update_element(elements, ["Address", "Zip"], {"idShort": "PostalCode"})
        assert tree.find_element(updated, ["Address", "PostalCode"]) is not None

    def test_invalid_change_rejected(self, elements):
        """Test a change that breaks the model raises a validation error."""
        with pytest.raises(ValidationError):
            tree.update_element(elements, ["SerialNumber"], {"cardinality": "Sometimes"})

    def test_missing_path(self, elements):
        with pytest.raises(ElementNotFound) as exc_info:
            tree.update_element(elements, ["Address", "Country"], {"value": "DE"})
        assert exc_info.value.path == ["Address", "Country"]


class TestInsert:
    """Tests for insert_element."""

    def test_append(self, elements):
        new = Property(idShort="Country", valueType="xs:string")
        updated = tree.insert_element(elements, ["Address"], new)
        children = tree.find_element(updated, ["Address"]).value
        assert [c.idShort for c in children] == ["Street", "Zip", "City", "Country"]

    def test_insert_at_index(self, elements):
        new = Property(idShort="Country", valueType="xs:string")
        updated = tree.insert_element(elements, ["Address"], new, index=0)
        assert tree.find_element(updated, ["Address"]).value[0].idShort == "Country"

    def test_insert_at_root(self, elements):
        updated = tree.insert_element(elements, [], Property(idShort="BatchNumber"))
        assert updated[-1].idShort == "BatchNumber"
        assert len(elements) == 3

    def test_duplicate_id_short(self, elements):
        with pytest.raises(ValueError, match="already exists"):
            tree.insert_element(elements, ["Address"], Property(idShort="Zip"))

    def test_parent_not_container(self, elements):
        with pytest.raises(ValueError, match="cannot have children"):
            tree.insert_element(elements, ["SerialNumber"], Property(idShort="X"))


class TestDelete:
    """Tests for delete_element."""

    def test_delete_optional(self, elements):
        updated = tree.delete_element(elements, ["Address", "Zip"])
        assert tree.find_element(updated, ["Address", "Zip"]) is None

    def test_required_element_is_kept(self, elements):
        """Test elements with cardinality One need force."""
        with pytest.raises(ValueError, match="cannot be deleted"):
            tree.delete_element(elements, ["ManufacturerName"])

    def test_force_delete(self, elements):
        updated = tree.delete_element(elements, ["Address", "City"], force=True)
        assert [c.idShort for c in updated[1].value] == ["Street", "Zip"]

    def test_missing(self, elements):
        with pytest.raises(ElementNotFound):
            tree.delete_element(elements, ["Nope"])

    def test_only_first_duplicate_removed(self):
        """Test decoded documents with repeated idShorts lose one element per delete."""
        elements = [
            Property(idShort="Port", valueType="xs:int", value="1"),
            Property(idShort="Port", valueType="xs:int", value="2"),
        ]
        updated = tree.delete_element(elements, ["Port"])
        assert [el.value for el in updated] == ["2"]


class TestReorder:
    """Tests for reorder_children."""

    def test_move(self, elements):
        updated = tree.reorder_children(elements, ["Address"], 2, 0)
        assert [c.idShort for c in updated[1].value] == ["City", "Street", "Zip"]

    def test_move_roots(self, elements):
        updated = tree.reorder_children(elements, [], 0, 2)
        assert [e.idShort for e in updated] == ["Address", "SerialNumber", "ManufacturerName"]

    def test_out_of_range(self, elements):
        with pytest.raises(ValueError, match="out of range"):
            tree.reorder_children(elements, ["Address"], 0, 3)


class TestElementHelpers:
    """Tests for the cardinality and container helpers."""

    def test_has_children(self, elements):
        assert has_children(elements[1])
        assert not has_children(SubmodelElementCollection(idShort="Empty"))
        assert not has_children(elements[2])

    @pytest.mark.parametrize(
        "cardinality,required,deletable",
        [
            ("One", True, False),
            ("OneToMany", True, False),
            ("ZeroToOne", False, True),
            ("ZeroToMany", False, True),
        ],
    )
    def test_cardinality(self, cardinality, required, deletable):
        assert is_required(cardinality) is required
        assert is_deletable(cardinality) is deletable

    def test_parse_cardinality(self):
        assert parse_cardinality("[0..*]") == "ZeroToMany"
        assert parse_cardinality("1") == "One"
        assert parse_cardinality("OneToMany") == "OneToMany"
        assert parse_cardinality("sometimes") is None

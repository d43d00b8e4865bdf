"""
Submodel element tree models.

The element tree is the editable, in-memory form of a submodel. Every
``modelType`` is its own pydantic model and the ``SubmodelElement`` union
dispatches on that tag. Models are frozen: an edit always produces a new
node (see ``aas_studio.services.tree``), never mutates one in place.
"""

import base64
import binascii
from typing import Annotated, Any, Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

Cardinality = Literal["One", "ZeroToOne", "ZeroToMany", "OneToMany"]

CARDINALITIES: tuple[str, ...] = ("One", "ZeroToOne", "ZeroToMany", "OneToMany")
REQUIRED_CARDINALITIES: tuple[str, ...] = ("One", "OneToMany")
DELETABLE_CARDINALITIES: tuple[str, ...] = ("ZeroToOne", "ZeroToMany")
DEFAULT_CARDINALITY = "ZeroToOne"

# Kinds with full editing support
EDITABLE_MODEL_TYPES: tuple[str, ...] = (
    "Property",
    "MultiLanguageProperty",
    "SubmodelElementCollection",
    "SubmodelElementList",
    "File",
    "ReferenceElement",
)

# Kinds that are carried through decode/encode untouched
OPAQUE_MODEL_TYPES: tuple[str, ...] = (
    "Range",
    "Blob",
    "Operation",
    "Entity",
    "BasicEventElement",
    "RelationshipElement",
    "AnnotatedRelationshipElement",
    "Capability",
)

MODEL_TYPES: tuple[str, ...] = EDITABLE_MODEL_TYPES + OPAQUE_MODEL_TYPES

OpaqueModelType = Literal[
    "Range",
    "Blob",
    "Operation",
    "Entity",
    "BasicEventElement",
    "RelationshipElement",
    "AnnotatedRelationshipElement",
    "Capability",
]


def as_lang_map(value: Any, default_language: str = "en") -> dict[str, str] | None:
    """
    Coerce the different language-tagged text shapes into a mapping.

    Accepts a plain string, a ``{language: text}`` mapping, or a list of
    ``{"language": ..., "text": ...}`` entries.
    """
    if value is None:
        return None
    if isinstance(value, str):
        return {default_language: value} if value.strip() else None
    if isinstance(value, dict):
        return {str(lang): "" if text is None else str(text) for lang, text in value.items()}
    if isinstance(value, list):
        result: dict[str, str] = {}
        for entry in value:
            if not isinstance(entry, dict):
                continue
            language = entry.get("language")
            if language:
                text = entry.get("text")
                result[str(language)] = "" if text is None else str(text)
        return result
    return value


def decode_base64(value: Any) -> Any:
    """Decode base64 text as sent by JSON clients; other values pass through."""
    if isinstance(value, str):
        try:
            return base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError("content must be base64 encoded") from e
    return value


def preferred_text(lang_map: dict[str, str] | None, language: str = "en") -> str | None:
    """Pick the text in ``language``, then English, then the first non-empty one."""
    if not lang_map:
        return None
    for candidate in (language, "en", "EN"):
        if lang_map.get(candidate):
            return lang_map[candidate]
    return next((text for text in lang_map.values() if text), None)


class Key(BaseModel):
    """A single key of a reference."""

    model_config = ConfigDict(frozen=True)

    type: str = "GlobalReference"
    value: str


class Reference(BaseModel):
    """Structured reference: a type plus an ordered key list."""

    model_config = ConfigDict(frozen=True)

    type: str = "ExternalReference"
    keys: list[Key] = Field(default_factory=list)

    @property
    def first_value(self) -> str | None:
        return self.keys[0].value if self.keys else None

    @classmethod
    def external(cls, value: str) -> "Reference":
        return cls(type="ExternalReference", keys=[Key(type="GlobalReference", value=value)])


class FileData(BaseModel):
    """Inline attachment of a File element that has no package entry yet."""

    model_config = ConfigDict(frozen=True, ser_json_bytes="base64")

    content: bytes
    mimeType: str = "application/octet-stream"
    fileName: str

    @field_validator("content", mode="before")
    @classmethod
    def decode_content(cls, v):
        return decode_base64(v)


class ElementBase(BaseModel):
    """Fields shared by every submodel element kind."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    idShort: str
    cardinality: Cardinality = DEFAULT_CARDINALITY
    category: str | None = None
    description: str | None = None
    semanticId: str | None = None

    # IEC 61360 metadata
    preferredName: dict[str, str] | None = None
    shortName: dict[str, str] | None = None
    unit: str | None = None
    dataType: str | None = None

    @field_validator("preferredName", "shortName", mode="before")
    @classmethod
    def coerce_lang_strings(cls, v):
        return as_lang_map(v)

    @property
    def has_iec_metadata(self) -> bool:
        return bool(
            _non_empty(self.preferredName)
            or _non_empty(self.shortName)
            or self.unit
            or self.dataType
            or self.description
        )


class Property(ElementBase):
    modelType: Literal["Property"] = "Property"
    valueType: str | None = None
    value: str | None = None


class MultiLanguageProperty(ElementBase):
    modelType: Literal["MultiLanguageProperty"] = "MultiLanguageProperty"
    value: dict[str, str] = Field(default_factory=dict)

    @field_validator("value", mode="before")
    @classmethod
    def coerce_value(cls, v):
        return as_lang_map(v) or {}


class SubmodelElementCollection(ElementBase):
    modelType: Literal["SubmodelElementCollection"] = "SubmodelElementCollection"
    value: list["SubmodelElement"] = Field(
        default_factory=list,
        validation_alias=AliasChoices("value", "children"),
    )


class SubmodelElementList(ElementBase):
    modelType: Literal["SubmodelElementList"] = "SubmodelElementList"
    value: list["SubmodelElement"] = Field(
        default_factory=list,
        validation_alias=AliasChoices("value", "children"),
    )


class FileElement(ElementBase):
    modelType: Literal["File"] = "File"
    value: str | None = None
    contentType: str | None = None
    fileData: FileData | None = None


class ReferenceElement(ElementBase):
    modelType: Literal["ReferenceElement"] = "ReferenceElement"
    # Either a structured reference or a scalar fallback (IRI/IRDI literal)
    value: Reference | str | None = None


class OpaqueElement(ElementBase):
    """
    Element kinds without editing support.

    The decoder keeps the original XML fragment (namespace stripped)
    and/or the original JSON object so the element survives a round trip.
    """

    modelType: OpaqueModelType
    xmlFragment: str | None = None
    jsonPayload: dict[str, Any] | None = None


SubmodelElement = Annotated[
    Union[
        Property,
        MultiLanguageProperty,
        SubmodelElementCollection,
        SubmodelElementList,
        FileElement,
        ReferenceElement,
        OpaqueElement,
    ],
    Field(discriminator="modelType"),
]

SubmodelElementCollection.model_rebuild()
SubmodelElementList.model_rebuild()

ContainerElement = (SubmodelElementCollection, SubmodelElementList)

ELEMENT_CLASSES: dict[str, type[ElementBase]] = {
    "Property": Property,
    "MultiLanguageProperty": MultiLanguageProperty,
    "SubmodelElementCollection": SubmodelElementCollection,
    "SubmodelElementList": SubmodelElementList,
    "File": FileElement,
    "ReferenceElement": ReferenceElement,
    **{model_type: OpaqueElement for model_type in OPAQUE_MODEL_TYPES},
}


def _non_empty(lang_map: dict[str, str] | None) -> bool:
    return bool(lang_map) and any(text and text.strip() for text in lang_map.values())


def is_container(element: ElementBase) -> bool:
    return isinstance(element, ContainerElement)


def has_children(element: ElementBase) -> bool:
    """True if the element is a collection/list with at least one child."""
    return is_container(element) and len(element.value) > 0


def is_required(cardinality: str | None) -> bool:
    return cardinality in REQUIRED_CARDINALITIES


def is_deletable(cardinality: str | None) -> bool:
    return cardinality in DELETABLE_CARDINALITIES


def parse_cardinality(value: str | None) -> str | None:
    """
    Map the multiplicity spellings found in templates to a cardinality tag.

    Handles the tag names themselves and the bracket forms
    ``[1]``, ``[0..1]``, ``[0..*]``, ``[1..*]``.
    """
    if value is None:
        return None
    value = str(value).strip()
    if not value:
        return None
    if value in CARDINALITIES:
        return value

    mapping = {
        "[1]": "One",
        "1": "One",
        "[0..1]": "ZeroToOne",
        "0..1": "ZeroToOne",
        "[0..*]": "ZeroToMany",
        "0..*": "ZeroToMany",
        "*": "ZeroToMany",
        "[1..*]": "OneToMany",
        "1..*": "OneToMany",
    }
    return mapping.get(value)

"""
Pydantic model for ConceptDescriptions derived from the element tree.
"""

from pydantic import BaseModel, ConfigDict, field_validator

from aas_studio.schemas.elements import as_lang_map


class ConceptDescription(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    idShort: str
    preferredName: dict[str, str] | None = None
    shortName: dict[str, str] | None = None
    unit: str | None = None
    dataType: str | None = None
    description: str | None = None
    valueType: str | None = None

    @field_validator("preferredName", "shortName", mode="before")
    @classmethod
    def coerce_lang_strings(cls, v):
        return as_lang_map(v)

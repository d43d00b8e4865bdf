"""
Shell, submodel and environment models wrapping the element tree.
"""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from aas_studio.schemas.concept_description import ConceptDescription
from aas_studio.schemas.elements import SubmodelElement, decode_base64


class AasDialect(str, Enum):
    """Serialization dialect a document was decoded from."""

    V1_0 = "1.0"
    V3_0 = "3.0"
    V3_1 = "3.1"
    JSON = "json"


class Thumbnail(BaseModel):
    """Default thumbnail of a shell; content is filled from the package."""

    model_config = ConfigDict(frozen=True, ser_json_bytes="base64")

    path: str
    contentType: str = "image/png"
    content: bytes | None = None

    @field_validator("content", mode="before")
    @classmethod
    def decode_content(cls, v):
        return decode_base64(v)


class Shell(BaseModel):
    """Asset Administration Shell header."""

    model_config = ConfigDict(frozen=True)

    idShort: str
    id: str
    assetKind: Literal["Instance", "Type"] = "Instance"
    globalAssetId: str | None = None
    submodelRefs: list[str] = Field(default_factory=list)
    thumbnail: Thumbnail | None = None


class Submodel(BaseModel):
    model_config = ConfigDict(frozen=True)

    idShort: str
    id: str | None = None
    kind: Literal["Instance", "Template"] = "Instance"
    semanticId: str | None = None
    submodelElements: list[SubmodelElement] = Field(default_factory=list)

    def resolved_id(self, shell: Shell) -> str:
        """Identifier used on export; defaults below the shell id."""
        return self.id or f"{shell.id}/submodels/{self.idShort}"


class Environment(BaseModel):
    """A shell with its submodels and concept descriptions."""

    model_config = ConfigDict(frozen=True)

    shell: Shell
    submodels: list[Submodel] = Field(default_factory=list)
    conceptDescriptions: list[ConceptDescription] = Field(default_factory=list)
    dialect: AasDialect | None = None

    def submodel(self, id_short: str) -> Submodel | None:
        for submodel in self.submodels:
            if submodel.idShort == id_short:
                return submodel
        return None

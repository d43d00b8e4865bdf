"""
Models for the IDTA submodel template catalogue.
"""

from pydantic import BaseModel, Field


class TemplateInfo(BaseModel):
    """One published template directory."""

    name: str
    path: str
    idtaNumber: str | None = None
    title: str
    url: str | None = None
    sha: str | None = None


class TemplateListResponse(BaseModel):
    templates: list[TemplateInfo]
    total: int


class TemplateVersion(BaseModel):
    version: str
    path: str
    sha: str | None = None


class AddTemplateSubmodelRequest(BaseModel):
    """
    Add a submodel built from a catalogue template.

    ``name`` is the template directory name as listed by the catalogue.
    ``idShort`` overrides the template's idShort; a numeric suffix is
    appended when it is already taken in the session.
    """

    name: str = Field(min_length=1)
    idShort: str | None = None

"""
Pydantic models for API request/response bodies.
"""

from typing import Any

from pydantic import BaseModel, Field

from aas_studio.schemas.elements import SubmodelElement
from aas_studio.schemas.environment import AasDialect, Environment, Shell, Submodel
from aas_studio.schemas.validation import Issue, ValidationReport


class CreateSessionRequest(BaseModel):
    """A new shell with its submodels."""

    shell: Shell
    submodels: list[Submodel] = Field(default_factory=list)


class UpdateElementRequest(BaseModel):
    """Field changes for the element at ``path``."""

    path: list[str] = Field(min_length=2)
    changes: dict[str, Any]


class InsertElementRequest(BaseModel):
    """
    Insert an element below ``parentPath``.

    ``parentPath`` holds at least the submodel idShort.
    """

    parentPath: list[str] = Field(min_length=1)
    element: SubmodelElement
    index: int | None = None


class ReorderRequest(BaseModel):
    parentPath: list[str] = Field(min_length=1)
    fromIndex: int
    toIndex: int


class SessionResponse(BaseModel):
    """Current state of an editing session."""

    id: str
    revision: int
    stale: bool
    canExport: bool
    environment: Environment
    lastReport: ValidationReport | None = None


class UploadResponse(BaseModel):
    """Response after uploading a document into a new session."""

    success: bool
    sessionId: str | None = None
    dialect: AasDialect | None = None
    issues: list[Issue] = Field(default_factory=list)
    error: str | None = None
    filename: str | None = None


class DocumentValidationResponse(BaseModel):
    """Full validation result for an uploaded document."""

    success: bool
    filename: str | None = None
    dialect: AasDialect | None = None
    loadIssues: list[Issue] = Field(default_factory=list)
    report: ValidationReport | None = None
    error: str | None = None

"""
Pydantic models for validation results.

Structural issues come from the in-process validator and carry exact
tree paths. Schema errors come from the external XSD check and carry a
guessed path at best.
"""

from pydantic import BaseModel, Field, computed_field

PATH_SEPARATOR = " > "


class Issue(BaseModel):
    """A single structural problem in the element tree."""

    message: str
    path: list[str] = Field(default_factory=list)
    code: str | None = None

    @computed_field
    @property
    def location(self) -> str:
        return PATH_SEPARATOR.join(self.path)


class StructuralReport(BaseModel):
    valid: bool
    issues: list[Issue] = Field(default_factory=list)


class SchemaError(BaseModel):
    """A schema violation reported by the validator, with UX enrichment."""

    message: str
    raw: str
    hint: str | None = None
    path: str | None = None
    line: int | None = None


class SchemaValidationResult(BaseModel):
    valid: bool
    compatibilityMode: bool = False
    errors: list[SchemaError] = Field(default_factory=list)


class ValidationReport(BaseModel):
    """Combined verdict of the structural and the schema check."""

    valid: bool
    structural: StructuralReport
    schema_: SchemaValidationResult | None = Field(default=None, alias="schema")
    revision: int | None = None

    model_config = {
        "populate_by_name": True,
    }

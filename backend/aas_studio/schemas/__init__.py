"""
Pydantic schemas for the element tree and API request/response models.
"""

from aas_studio.schemas.elements import (
    FileElement,
    MultiLanguageProperty,
    OpaqueElement,
    Property,
    Reference,
    ReferenceElement,
    SubmodelElement,
    SubmodelElementCollection,
    SubmodelElementList,
)
from aas_studio.schemas.environment import AasDialect, Environment, Shell, Submodel
from aas_studio.schemas.validation import (
    Issue,
    SchemaError,
    SchemaValidationResult,
    StructuralReport,
    ValidationReport,
)

__all__ = [
    "Property",
    "MultiLanguageProperty",
    "SubmodelElementCollection",
    "SubmodelElementList",
    "FileElement",
    "ReferenceElement",
    "OpaqueElement",
    "Reference",
    "SubmodelElement",
    "AasDialect",
    "Shell",
    "Submodel",
    "Environment",
    "Issue",
    "StructuralReport",
    "SchemaError",
    "SchemaValidationResult",
    "ValidationReport",
]

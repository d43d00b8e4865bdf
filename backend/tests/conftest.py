"""
Shared fixtures.
"""

from typing import Any

import pytest

from aas_studio.schemas.elements import (
    FileElement,
    MultiLanguageProperty,
    Property,
    Reference,
    ReferenceElement,
    SubmodelElementCollection,
    SubmodelElementList,
)
from aas_studio.schemas.environment import Environment, Shell, Submodel
from aas_studio.services.documents import DocumentService
from aas_studio.services.exporter import ExportService
from aas_studio.services.json_codec import JsonCodecService
from aas_studio.services.packager import AasxPackager
from aas_studio.services.schema_gateway import SchemaValidationGateway
from aas_studio.services.validator import StructuralValidator
from aas_studio.services.xml_codec import XmlCodecService


class StaticValidator:
    """XSD backend answering every document with the same payload."""

    requires_schema = False

    def __init__(self, payload: dict[str, Any] | None = None):
        self.payload = payload or {"valid": True, "errors": []}
        self.documents: list[str] = []

    async def validate(self, xml_text: str, schema_text: str | None = None) -> dict[str, Any]:
        self.documents.append(xml_text)
        return self.payload

    async def close(self) -> None:
        return None


@pytest.fixture
def xml_codec():
    return XmlCodecService()


@pytest.fixture
def json_codec():
    return JsonCodecService()


@pytest.fixture
def motor_shell():
    return Shell(
        idShort="Motor1",
        id="https://ex/aas/1",
        assetKind="Instance",
        globalAssetId="https://ex/asset/1",
    )


@pytest.fixture
def nameplate():
    return Submodel(
        idShort="Nameplate",
        submodelElements=[
            Property(
                idShort="SerialNumber",
                cardinality="One",
                valueType="xs:string",
                value="SN-42",
            )
        ],
    )


@pytest.fixture
def motor_environment(motor_shell, nameplate):
    return Environment(shell=motor_shell, submodels=[nameplate])


@pytest.fixture
def rich_submodel():
    """A submodel using every editable element kind."""
    return Submodel(
        idShort="TechnicalData",
        id="https://ex/sm/technical-data",
        semanticId="https://admin-shell.io/ZVEI/TechnicalData/Submodel/1/2",
        submodelElements=[
            MultiLanguageProperty(
                idShort="ManufacturerName",
                cardinality="One",
                semanticId="0173-1#02-AAO677#002",
                value={"en": "ACME", "de": "ACME GmbH"},
                preferredName={"en": "Manufacturer name"},
                shortName={"en": "ManufacturerName"},
                dataType="STRING_TRANSLATABLE",
            ),
            Property(
                idShort="RatedVoltage",
                semanticId="0173-1#02-AAB381#003",
                valueType="xs:decimal",
                value="400",
                unit="V",
                dataType="REAL_MEASURE",
                description="Nominal supply voltage",
            ),
            SubmodelElementCollection(
                idShort="Markings",
                cardinality="ZeroToMany",
                value=[
                    FileElement(
                        idShort="MarkingFile",
                        value="/aasx/files/ce.png",
                        contentType="image/png",
                    ),
                    Property(idShort="MarkingName", valueType="xs:string", value="CE"),
                ],
            ),
            SubmodelElementList(
                idShort="Ports",
                value=[
                    Property(idShort="Port0", valueType="xs:int", value="1"),
                    Property(idShort="Port1", valueType="xs:int", value="2"),
                ],
            ),
            ReferenceElement(
                idShort="Manual",
                value=Reference(
                    type="ModelReference",
                    keys=[
                        {"type": "Submodel", "value": "https://ex/sm/docs"},
                        {"type": "File", "value": "Manual"},
                    ],
                ),
            ),
            Property(idShort="Comment", category="PARAMETER", valueType="xs:string"),
        ],
    )


@pytest.fixture
def static_validator():
    return StaticValidator()


@pytest.fixture
def export_service(xml_codec, json_codec, static_validator):
    return ExportService(
        xml_codec=xml_codec,
        json_codec=json_codec,
        validator=StructuralValidator(),
        gateway=SchemaValidationGateway(static_validator, "https://schemas.example/AAS.xsd"),
        packager=AasxPackager(),
    )


@pytest.fixture
def document_service(xml_codec, json_codec):
    return DocumentService(xml_codec, json_codec, AasxPackager())

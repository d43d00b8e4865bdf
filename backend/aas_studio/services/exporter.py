"""
Export orchestration.

Runs the validation gate (structural check, XML encoding, schema check)
and produces the requested output. Nothing is exported while either
check reports a problem.
"""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Literal

from aas_studio.schemas.elements import ElementBase, FileElement, is_container
from aas_studio.schemas.environment import Environment
from aas_studio.schemas.validation import ValidationReport
from aas_studio.services.errors import ExportBlocked
from aas_studio.services.json_codec import JsonCodecService
from aas_studio.services.packager import FILES_DIR, AasxPackager
from aas_studio.services.schema_gateway import SchemaValidationGateway
from aas_studio.services.validator import StructuralValidator
from aas_studio.services.xml_codec import XmlCodecService

logger = logging.getLogger(__name__)

ExportFormat = Literal["aasx", "xml", "json"]

MEDIA_TYPES: dict[str, str] = {
    "aasx": "application/asset-administration-shell-package+xml",
    "xml": "application/xml",
    "json": "application/json",
}


@dataclass
class ExportResult:
    content: bytes
    media_type: str
    filename: str
    report: ValidationReport


def prepare_attachments(environment: Environment) -> tuple[Environment, dict[str, bytes]]:
    """
    Give pending File attachments a package path.

    Every File element with inline ``fileData`` and no target gets
    ``/aasx/files/<fileName>`` as its value.

    Returns:
        The updated environment and the pending attachments by path
    """
    pending: dict[str, bytes] = {}

    def assign(elements: Sequence[ElementBase]) -> list[ElementBase]:
        result = []
        for element in elements:
            if isinstance(element, FileElement) and element.fileData is not None:
                path = element.value or f"/{FILES_DIR}/{element.fileData.fileName}"
                pending[path] = element.fileData.content
                if not element.value:
                    element = element.model_copy(update={"value": path})
            elif is_container(element):
                element = element.model_copy(update={"value": assign(element.value)})
            result.append(element)
        return result

    submodels = [
        submodel.model_copy(update={"submodelElements": assign(submodel.submodelElements)})
        for submodel in environment.submodels
    ]
    return environment.model_copy(update={"submodels": submodels}), pending


class ExportService:
    """
    Validates and exports environments.
    """

    def __init__(
        self,
        xml_codec: XmlCodecService,
        json_codec: JsonCodecService,
        validator: StructuralValidator,
        gateway: SchemaValidationGateway,
        packager: AasxPackager,
    ):
        self.xml_codec = xml_codec
        self.json_codec = json_codec
        self.validator = validator
        self.gateway = gateway
        self.packager = packager

    async def validate(
        self, environment: Environment, source_xml: str | None = None
    ) -> ValidationReport:
        """
        Run the structural and the schema check.

        The schema check runs on the XML the export would produce, so it is
        skipped when the structural check already failed.

        Args:
            environment: Environment to check
            source_xml: Original XML of an uploaded document; checked
                instead of the re-encoded XML so its dialect is honored
        """
        prepared, _ = prepare_attachments(environment)
        structural = self.validator.validate(prepared.shell, prepared.submodels)
        if not structural.valid:
            return ValidationReport(valid=False, structural=structural)

        xml_text = source_xml or self.xml_codec.encode(prepared.shell, prepared.submodels)
        schema = await self.gateway.validate_xml(xml_text)
        return ValidationReport(valid=schema.valid, structural=structural, schema=schema)

    async def export(
        self,
        environment: Environment,
        format: ExportFormat = "aasx",
        attachments: Mapping[str, bytes] | None = None,
        report: ValidationReport | None = None,
    ) -> ExportResult:
        """
        Export an environment after it passed validation.

        Args:
            environment: Environment to export
            format: ``aasx``, ``xml`` or ``json``
            attachments: Package files loaded with the environment
            report: A valid report for exactly this environment; the checks
                are run again when omitted

        Returns:
            Exported content with its media type and file name

        Raises:
            ExportBlocked: If validation reports any problem
        """
        if format not in MEDIA_TYPES:
            raise ValueError(f"Unsupported format: {format}")

        if report is None or not report.valid:
            report = await self.validate(environment)
        if not report.valid:
            issues = list(report.structural.issues)
            if report.schema_ is not None:
                issues += report.schema_.errors
            logger.info(f"Export of {environment.shell.idShort} blocked: {len(issues)} problems")
            raise ExportBlocked("Export blocked: the document has validation errors", issues=issues)

        prepared, pending = prepare_attachments(environment)
        shell, submodels = prepared.shell, prepared.submodels
        xml_text = self.xml_codec.encode(shell, submodels)

        if format == "xml":
            content = xml_text.encode("utf-8")
        elif format == "json":
            content = self.json_codec.dumps(shell, submodels).encode("utf-8")
        else:
            files = {**(attachments or {}), **pending}
            content = self.packager.write(
                shell,
                xml_text,
                json_text=self.json_codec.dumps(shell, submodels),
                attachments={path.lstrip("/"): data for path, data in files.items()},
            )

        logger.info(f"Exported {shell.idShort} as {format} ({len(content)} bytes)")
        return ExportResult(
            content=content,
            media_type=MEDIA_TYPES[format],
            filename=f"{shell.idShort}.{format}",
            report=report,
        )

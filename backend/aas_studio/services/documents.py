"""
Document loading.

Turns an uploaded ``.xml``, ``.json`` or ``.aasx`` file into an
``Environment`` plus its attachments. Parse failures are returned as a
failed ``LoadResult``; nothing is raised to the caller.
"""

import json
import logging
from pathlib import PurePosixPath

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from aas_studio.schemas.environment import AasDialect, Environment
from aas_studio.schemas.validation import Issue
from aas_studio.services.concepts import apply_concept_descriptions
from aas_studio.services.errors import AasDecodeError
from aas_studio.services.json_codec import JsonCodecService
from aas_studio.services.packager import AasxPackager, resolve_attachment
from aas_studio.services.validator import check_raw_document
from aas_studio.services.xml_codec import XmlCodecService

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".xml", ".json", ".aasx")


class LoadResult(BaseModel):
    """Outcome of loading one document."""

    model_config = ConfigDict(ser_json_bytes="base64")

    success: bool
    error: str | None = None
    environment: Environment | None = None
    dialect: AasDialect | None = None
    attachments: dict[str, bytes] = Field(default_factory=dict)
    source_xml: str | None = None
    issues: list[Issue] = Field(default_factory=list)

    @classmethod
    def failed(cls, error: str, issues: list[Issue] | None = None) -> "LoadResult":
        return cls(success=False, error=error, issues=issues or [])


class DocumentService:
    """
    Loads AAS documents in any supported container format.
    """

    def __init__(
        self,
        xml_codec: XmlCodecService,
        json_codec: JsonCodecService,
        packager: AasxPackager,
    ):
        self.xml_codec = xml_codec
        self.json_codec = json_codec
        self.packager = packager

    def load(self, filename: str, content: bytes) -> LoadResult:
        """
        Load a document, dispatching on the file extension.

        Args:
            filename: Original file name
            content: File content

        Returns:
            LoadResult; ``success`` is False with an ``error`` message when
            the document cannot be read
        """
        extension = PurePosixPath(filename or "").suffix.lower()
        if extension not in SUPPORTED_EXTENSIONS:
            return LoadResult.failed(
                f"Unsupported file type '{extension or filename}'. Use .xml, .json or .aasx"
            )

        try:
            if extension == ".xml":
                result = self._load_xml(content)
            elif extension == ".json":
                result = self._load_json(content)
            else:
                result = self._load_aasx(content)
        except (AasDecodeError, ValidationError) as e:
            logger.warning(f"Failed to load {filename}: {e}")
            return LoadResult.failed(str(e))
        except (TypeError, AttributeError, KeyError) as e:
            logger.warning(f"Failed to load {filename}: unexpected document structure: {e}")
            return LoadResult.failed(f"Unexpected document structure: {e}")

        if result.success and result.environment is not None:
            environment = result.environment
            submodels = apply_concept_descriptions(
                environment.submodels, environment.conceptDescriptions
            )
            result = result.model_copy(
                update={"environment": environment.model_copy(update={"submodels": submodels})}
            )
            logger.info(f"Loaded {filename} ({result.dialect.value if result.dialect else '?'})")
        return result

    def _load_xml(self, content: bytes) -> LoadResult:
        environment = self.xml_codec.decode(content)
        return LoadResult(
            success=True,
            environment=environment,
            dialect=environment.dialect,
            source_xml=content.decode("utf-8", errors="replace"),
        )

    def _load_json(self, content: bytes) -> LoadResult:
        try:
            data = json.loads(content)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise AasDecodeError(f"Invalid JSON: {e}") from e

        report = check_raw_document(data)
        if not isinstance(data, dict):
            return LoadResult.failed("Document root must be a JSON object", report.issues)

        environment = self.json_codec.decode(data)
        return LoadResult(
            success=True,
            environment=environment,
            dialect=environment.dialect,
            issues=report.issues,
        )

    def _load_aasx(self, content: bytes) -> LoadResult:
        package = self.packager.read(content)
        if package.xml_text:
            environment = self.xml_codec.decode(package.xml_text)
        elif package.json_text:
            environment = self.json_codec.decode(package.json_text)
        else:
            return LoadResult.failed("No AAS document found in package")

        shell = environment.shell
        if shell.thumbnail is not None:
            thumb_content = resolve_attachment(package.attachments, shell.thumbnail.path)
            if thumb_content is not None:
                shell = shell.model_copy(
                    update={"thumbnail": shell.thumbnail.model_copy(update={"content": thumb_content})}
                )
        elif package.thumbnail is not None:
            shell = shell.model_copy(update={"thumbnail": package.thumbnail})

        return LoadResult(
            success=True,
            environment=environment.model_copy(update={"shell": shell}),
            dialect=environment.dialect,
            attachments=package.attachments,
            source_xml=package.xml_text,
        )

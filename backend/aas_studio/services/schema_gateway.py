"""
Schema validation gateway.

Runs the external XSD check for a generated document: detect the
dialect, fetch the AAS schema, call the configured validator backend and
turn its response into a list of enriched schema errors. Any failure at
the boundary is reported as an invalid result, never as valid.
"""

import logging
from typing import Any

import httpx

from aas_studio.clients.xml_validator import ValidatorUnavailable, XsdValidator
from aas_studio.schemas.environment import AasDialect
from aas_studio.schemas.validation import SchemaError, SchemaValidationResult
from aas_studio.services.errors import AasDecodeError
from aas_studio.services.xml_codec import AAS_NS_3_0, AAS_NS_3_1, detect_dialect, parse_xml
from aas_studio.utils.error_hints import (
    extract_line,
    find_path_for_id_short,
    friendly_error,
    guess_path_from_line,
    normalize_message,
)

logger = logging.getLogger(__name__)


def interpret_validator_response(payload: dict[str, Any]) -> list[Any]:
    """
    Extract raw errors from a validator response.

    Checked in order: an ``errors`` list, ``stderr``, ``stdout``
    mentioning an error, an explicit ``valid: false``, a non-zero
    ``returnCode``. An empty list means the document is valid.
    """
    errors = payload.get("errors")
    if isinstance(errors, list) and errors:
        return [e for e in errors if isinstance(e, (str, dict))]

    stderr = payload.get("stderr")
    if isinstance(stderr, str) and stderr.strip():
        return [line for line in stderr.splitlines() if line.strip()]

    stdout = payload.get("stdout")
    if isinstance(stdout, str) and "error" in stdout.lower():
        return [line for line in stdout.splitlines() if "error" in line.lower()] or [stdout]

    if payload.get("valid") is False:
        return ["Validation failed without error details"]

    return_code = payload.get("returnCode")
    if isinstance(return_code, int) and return_code != 0:
        return [f"Validator exited with return code {return_code}"]

    return []


def error_text(error: Any) -> str:
    """Message of a raw error: a string, or an object with ``message`` or ``rawMessage``."""
    if isinstance(error, str):
        return error
    for key in ("message", "rawMessage"):
        if isinstance(error.get(key), str) and error[key].strip():
            return error[key]
    return str(error)


class SchemaValidationGateway:
    """
    Orchestrates XSD validation of AAS XML documents.
    """

    def __init__(
        self,
        validator: XsdValidator,
        schema_url: str,
        schema_timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.validator = validator
        self.schema_url = schema_url
        self.schema_timeout = schema_timeout
        self._transport = transport
        self._schema: str | None = None

    async def fetch_schema(self) -> str:
        """
        Download the AAS XSD once and keep it in memory.

        Raises:
            ValidatorUnavailable: If the schema cannot be fetched
        """
        if self._schema is not None:
            return self._schema

        logger.info(f"Fetching AAS schema from {self.schema_url}")
        try:
            async with httpx.AsyncClient(timeout=self.schema_timeout, transport=self._transport) as client:
                response = await client.get(self.schema_url)
                response.raise_for_status()
        except httpx.TimeoutException as e:
            raise ValidatorUnavailable("Schema fetch timeout") from e
        except httpx.HTTPStatusError as e:
            raise ValidatorUnavailable(
                f"Failed to fetch AAS schema: {e.response.status_code} {e.response.reason_phrase}"
            ) from e
        except httpx.HTTPError as e:
            raise ValidatorUnavailable(f"Failed to fetch AAS schema: {e}") from e

        self._schema = response.text
        return self._schema

    async def validate_xml(self, xml_text: str) -> SchemaValidationResult:
        """
        Validate an AAS XML document against the schema.

        AAS 1.0 documents are accepted in compatibility mode without
        calling the validator. AAS 3.0 documents are checked as 3.1 by
        rewriting the namespace of a copy; the original text is not
        changed.

        Args:
            xml_text: Document text

        Returns:
            Validation result with enriched, deduplicated errors
        """
        try:
            dialect = detect_dialect(parse_xml(xml_text), xml_text)
        except AasDecodeError as e:
            return SchemaValidationResult(valid=False, errors=[SchemaError(message=str(e), raw=str(e))])

        if dialect == AasDialect.V1_0:
            logger.info("AAS 1.0 document, skipping schema validation (compatibility mode)")
            return SchemaValidationResult(valid=True, compatibilityMode=True)

        checked_text = xml_text
        if dialect == AasDialect.V3_0:
            logger.info("AAS 3.0 document, validating against the 3.1 schema")
            checked_text = xml_text.replace(AAS_NS_3_0, AAS_NS_3_1)

        try:
            schema_text = await self.fetch_schema() if self.validator.requires_schema else None
            payload = await self.validator.validate(checked_text, schema_text)
        except ValidatorUnavailable as e:
            logger.warning(f"Schema validation unavailable: {e}")
            return SchemaValidationResult(valid=False, errors=[SchemaError(message=str(e), raw=str(e))])

        raw_errors = interpret_validator_response(payload)
        errors = self.enrich_errors(checked_text, raw_errors)
        logger.info(f"Schema validation finished: {len(errors)} errors")
        return SchemaValidationResult(valid=not errors, errors=errors)

    @staticmethod
    def enrich_errors(xml_text: str, raw_errors: list[Any]) -> list[SchemaError]:
        """Deduplicate raw errors and attach hints and guessed paths."""
        result: list[SchemaError] = []
        seen: set[str] = set()
        for error in raw_errors:
            raw = normalize_message(error_text(error))
            if not raw or raw in seen:
                continue
            seen.add(raw)

            line = extract_line(error)
            friendly = friendly_error(raw)
            path = None
            if friendly.id_short:
                path = find_path_for_id_short(xml_text, friendly.id_short)
            if path is None:
                path = guess_path_from_line(xml_text, line)

            result.append(
                SchemaError(message=friendly.message, raw=raw, hint=friendly.hint, path=path, line=line)
            )
        if raw_errors and not result:
            result.append(SchemaError(message="Validation failed", raw="Validation failed without error details"))
        return result

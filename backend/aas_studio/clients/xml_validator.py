"""
XSD validation backends.

``RemoteXsdValidator`` posts the document and the AAS schema to an
xmllint web service. ``BasyxXmlValidator`` runs offline and checks the
document by strictly deserializing it with the BaSyx SDK.

Both return the raw response payload; interpreting it is up to
``aas_studio.services.schema_gateway``.
"""

import asyncio
import logging
from io import BytesIO
from typing import Any, Protocol

import httpx
from basyx.aas.adapter.xml import read_aas_xml_file
from lxml import etree

logger = logging.getLogger(__name__)

AAS_NS_3_0 = b"https://admin-shell.io/aas/3/0"
AAS_NS_3_1 = b"https://admin-shell.io/aas/3/1"


class ValidatorUnavailable(Exception):
    """The validation backend could not produce a verdict."""


class XsdValidator(Protocol):
    requires_schema: bool

    async def validate(self, xml_text: str, schema_text: str | None = None) -> dict[str, Any]: ...

    async def close(self) -> None: ...


class RemoteXsdValidator:
    """
    Async client for an xmllint validation web service.

    Request body::

        {"xml": [{"fileName": "input.xml", "contents": ...}],
         "schema": [{"fileName": "AAS.xsd", "contents": ...}]}
    """

    requires_schema = True

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                headers={"User-Agent": "AAS-Package-Studio/1.0"},
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def validate(self, xml_text: str, schema_text: str | None = None) -> dict[str, Any]:
        """
        Send a document to the validation service.

        Args:
            xml_text: Document to validate
            schema_text: XSD the document is checked against

        Returns:
            Parsed JSON response of the service

        Raises:
            ValidatorUnavailable: On timeout, HTTP error or network failure
        """
        payload = {
            "xml": [{"fileName": "input.xml", "contents": xml_text}],
            "schema": [{"fileName": "AAS.xsd", "contents": schema_text or ""}],
        }
        client = await self._get_client()
        try:
            response = await client.post(self.url, json=payload)
        except httpx.TimeoutException as e:
            raise ValidatorUnavailable("Validation service timeout") from e
        except httpx.HTTPError as e:
            raise ValidatorUnavailable(f"Validation service unavailable: {e}") from e

        if response.is_error:
            raise ValidatorUnavailable(
                f"Validation service error: {response.status_code} {response.reason_phrase}"
            )

        try:
            result = response.json()
        except ValueError as e:
            raise ValidatorUnavailable("Validation service returned an invalid response") from e
        if not isinstance(result, dict):
            raise ValidatorUnavailable("Validation service returned an invalid response")
        return result


class BasyxXmlValidator:
    """
    Offline validation through strict BaSyx deserialization.

    BaSyx reads the 3.0 namespace, so a 3.1 document is mapped onto it
    before parsing. Constructs that only exist in 3.1 are therefore not
    checked.
    """

    requires_schema = False

    async def validate(self, xml_text: str, schema_text: str | None = None) -> dict[str, Any]:
        return await asyncio.to_thread(self._validate_sync, xml_text)

    async def close(self) -> None:
        return None

    def _validate_sync(self, xml_text: str) -> dict[str, Any]:
        raw = xml_text.encode("utf-8")
        if AAS_NS_3_1 in raw and AAS_NS_3_0 not in raw:
            logger.debug("Mapping AAS 3.1 namespace to 3.0 for BaSyx")
            raw = raw.replace(AAS_NS_3_1, AAS_NS_3_0)

        try:
            object_store = read_aas_xml_file(BytesIO(raw), failsafe=False)
        except (etree.LxmlError, KeyError, ValueError, TypeError, AttributeError) as e:
            logger.info(f"BaSyx rejected document: {e}")
            return {"valid": False, "errors": [str(e) or e.__class__.__name__]}

        if not len(object_store):
            return {"valid": False, "errors": ["Document contains no AAS objects"]}
        return {"valid": True, "errors": []}

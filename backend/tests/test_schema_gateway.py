"""
Tests for the schema validation gateway and the validator backends.
"""

import json

import httpx
import pytest

from aas_studio.clients.xml_validator import BasyxXmlValidator, RemoteXsdValidator, ValidatorUnavailable
from aas_studio.services.schema_gateway import SchemaValidationGateway, interpret_validator_response
from aas_studio.services.xml_codec import AAS_NS_3_0, AAS_NS_3_1

SCHEMA_URL = "https://schemas.example/AAS.xsd"
VALIDATOR_URL = "https://validator.example/validateXML"

LEGACY_XML = """<?xml version="1.0"?>
<aas:aasenv xmlns:aas="http://www.admin-shell.io/aas/1/0">
  <aas:assetAdministrationShells/>
</aas:aasenv>
"""

DOCUMENT = f"""<environment xmlns="{AAS_NS_3_1}">
  <submodels>
    <submodel>
      <idShort>Nameplate</idShort>
      <submodelElements>
        <property>
          <idShort>1abc</idShort>
          <valueType>xs:string</valueType>
        </property>
      </submodelElements>
    </submodel>
  </submodels>
</environment>
"""


class Recorder:
    """MockTransport handler serving the schema and a canned validator answer."""

    def __init__(self, validator_response=None, schema_status=200):
        self.validator_response = validator_response or {"valid": True}
        self.schema_status = schema_status
        self.schema_requests = 0
        self.validator_requests: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if str(request.url) == SCHEMA_URL:
            self.schema_requests += 1
            return httpx.Response(self.schema_status, text="<xs:schema/>")
        self.validator_requests.append(json.loads(request.content))
        if isinstance(self.validator_response, httpx.Response):
            return self.validator_response
        return httpx.Response(200, json=self.validator_response)


def make_gateway(recorder) -> SchemaValidationGateway:
    transport = httpx.MockTransport(recorder)
    validator = RemoteXsdValidator(VALIDATOR_URL, transport=transport)
    return SchemaValidationGateway(validator, SCHEMA_URL, transport=transport)


class TestInterpretResponse:
    """Tests for interpret_validator_response."""

    def test_valid(self):
        assert interpret_validator_response({"valid": True, "errors": []}) == []

    def test_errors_first(self):
        payload = {"errors": ["a", {"message": "b"}, 3], "stderr": "ignored"}
        assert interpret_validator_response(payload) == ["a", {"message": "b"}]

    def test_stderr(self):
        assert interpret_validator_response({"stderr": "line one\n\nline two\n"}) == ["line one", "line two"]

    def test_stdout_with_error(self):
        payload = {"stdout": "input.xml validates\ninput.xml:3: parser error : oops"}
        assert interpret_validator_response(payload) == ["input.xml:3: parser error : oops"]

    def test_valid_false(self):
        assert interpret_validator_response({"valid": False}) == ["Validation failed without error details"]

    def test_return_code(self):
        assert interpret_validator_response({"returnCode": 3}) == ["Validator exited with return code 3"]


class TestSchemaValidationGateway:
    """Tests for SchemaValidationGateway."""

    @pytest.mark.asyncio
    async def test_valid_document(self):
        recorder = Recorder({"valid": True, "errors": []})
        result = await make_gateway(recorder).validate_xml(DOCUMENT)

        assert result.valid
        assert not result.compatibilityMode
        request = recorder.validator_requests[0]
        assert request["xml"][0]["contents"] == DOCUMENT
        assert request["schema"][0]["contents"] == "<xs:schema/>"

    @pytest.mark.asyncio
    async def test_schema_is_cached(self):
        recorder = Recorder()
        gateway = make_gateway(recorder)
        await gateway.validate_xml(DOCUMENT)
        await gateway.validate_xml(DOCUMENT)
        assert recorder.schema_requests == 1
        assert len(recorder.validator_requests) == 2

    @pytest.mark.asyncio
    async def test_legacy_compatibility_mode(self):
        """Test AAS 1.0 documents are accepted without calling the validator."""
        recorder = Recorder()
        result = await make_gateway(recorder).validate_xml(LEGACY_XML)

        assert result.valid
        assert result.compatibilityMode
        assert recorder.schema_requests == 0
        assert recorder.validator_requests == []

    @pytest.mark.asyncio
    async def test_3_0_checked_as_3_1(self):
        recorder = Recorder()
        document = DOCUMENT.replace(AAS_NS_3_1, AAS_NS_3_0)
        result = await make_gateway(recorder).validate_xml(document)

        assert result.valid
        sent = recorder.validator_requests[0]["xml"][0]["contents"]
        assert AAS_NS_3_1 in sent
        assert AAS_NS_3_0 not in sent

    @pytest.mark.asyncio
    async def test_errors_are_enriched_and_deduplicated(self):
        message = (
            "input.xml:6: element idShort: Schemas validity error : Element "
            "'{https://admin-shell.io/aas/3/1}idShort': [facet 'pattern'] The value '1abc' "
            "is not accepted by the pattern '[a-zA-Z][a-zA-Z0-9_-]*[a-zA-Z0-9]+'."
        )
        recorder = Recorder({"valid": False, "errors": [message, message]})
        result = await make_gateway(recorder).validate_xml(DOCUMENT)

        assert not result.valid
        assert len(result.errors) == 1
        error = result.errors[0]
        assert error.message == 'idShort "1abc" doesn\'t follow naming rules'
        assert error.hint
        assert error.line == 6
        assert error.path == "Nameplate > 1abc"
        assert error.raw == message

    @pytest.mark.asyncio
    async def test_error_objects_without_message(self):
        """Test xmllint-wasm error objects keep the document invalid."""
        error = {"rawMessage": "Element 'value': [facet 'minLength'] bad", "loc": {"lineNumber": 5}}
        recorder = Recorder({"valid": False, "errors": [error]})
        result = await make_gateway(recorder).validate_xml(DOCUMENT)

        assert not result.valid
        assert result.errors[0].raw == "Element 'value': [facet 'minLength'] bad"
        assert result.errors[0].line == 5

    @pytest.mark.asyncio
    async def test_blank_errors_stay_invalid(self):
        recorder = Recorder({"valid": False, "errors": ["", "   "]})
        result = await make_gateway(recorder).validate_xml(DOCUMENT)

        assert not result.valid
        assert result.errors[0].message == "Validation failed"

    @pytest.mark.asyncio
    async def test_validator_timeout(self):
        def handler(request):
            if str(request.url) == SCHEMA_URL:
                return httpx.Response(200, text="<xs:schema/>")
            raise httpx.ReadTimeout("timed out", request=request)

        transport = httpx.MockTransport(handler)
        gateway = SchemaValidationGateway(
            RemoteXsdValidator(VALIDATOR_URL, transport=transport), SCHEMA_URL, transport=transport
        )
        result = await gateway.validate_xml(DOCUMENT)

        assert not result.valid
        assert result.errors[0].message == "Validation service timeout"

    @pytest.mark.asyncio
    async def test_validator_http_error(self):
        recorder = Recorder(httpx.Response(503))
        result = await make_gateway(recorder).validate_xml(DOCUMENT)

        assert not result.valid
        assert result.errors[0].message.startswith("Validation service error: 503")

    @pytest.mark.asyncio
    async def test_schema_fetch_failure(self):
        recorder = Recorder(schema_status=404)
        result = await make_gateway(recorder).validate_xml(DOCUMENT)

        assert not result.valid
        assert result.errors[0].message.startswith("Failed to fetch AAS schema: 404")
        assert recorder.validator_requests == []

    @pytest.mark.asyncio
    async def test_malformed_xml(self):
        recorder = Recorder()
        result = await make_gateway(recorder).validate_xml("<environment>")

        assert not result.valid
        assert result.errors[0].message.startswith("Invalid XML")
        assert recorder.validator_requests == []


class TestRemoteXsdValidator:
    """Tests for RemoteXsdValidator."""

    @pytest.mark.asyncio
    async def test_invalid_json_response(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html/>"))
        validator = RemoteXsdValidator(VALIDATOR_URL, transport=transport)

        with pytest.raises(ValidatorUnavailable, match="invalid response"):
            await validator.validate("<environment/>", "<xs:schema/>")
        await validator.close()

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        validator = RemoteXsdValidator(VALIDATOR_URL, transport=httpx.MockTransport(handler))
        with pytest.raises(ValidatorUnavailable, match="unavailable"):
            await validator.validate("<environment/>")


class TestBasyxXmlValidator:
    """Tests for the offline BaSyx backend."""

    @pytest.mark.asyncio
    async def test_malformed_document(self):
        result = await BasyxXmlValidator().validate("<environment><unclosed></environment>")

        assert result["valid"] is False
        assert result["errors"]

    @pytest.mark.asyncio
    async def test_empty_environment(self):
        result = await BasyxXmlValidator().validate(f'<environment xmlns="{AAS_NS_3_1}"/>')

        assert result == {"valid": False, "errors": ["Document contains no AAS objects"]}

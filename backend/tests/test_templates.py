"""
Tests for the IDTA template catalogue and its GitHub client.
"""

import json

import httpx
import pytest

from aas_studio.clients.github_client import GitHubClient
from aas_studio.schemas.elements import MultiLanguageProperty, Property
from aas_studio.schemas.environment import Submodel
from aas_studio.services.errors import TemplateNotFound
from aas_studio.services.templates import (
    TemplateCatalogService,
    instantiate_template,
    parse_template_name,
)

REPO = "admin-shell-io/submodel-templates"
CONTENTS = f"/repos/{REPO}/contents"
NAMEPLATE = "IDTA 02006-3-0_Submodel_Digital Nameplate"
CONTACT = "IDTA 02002-1-0_Submodel_ContactInformation"
RAW_URL = "https://raw.githubusercontent.com/admin-shell-io/submodel-templates/main/nameplate.json"

TEMPLATE_DOCUMENT = {
    "assetAdministrationShells": [],
    "submodels": [
        {
            "idShort": "Nameplate",
            "id": "https://admin-shell.io/idta/SubmodelTemplate/DigitalNameplate/3/0",
            "kind": "Template",
            "modelType": "Submodel",
            "semanticId": {
                "type": "ExternalReference",
                "keys": [{"type": "GlobalReference", "value": "https://admin-shell.io/idta/nameplate/3/0/Nameplate"}],
            },
            "submodelElements": [
                {
                    "idShort": "ManufacturerName",
                    "modelType": "MultiLanguageProperty",
                    "qualifiers": [
                        {
                            "type": "SMT/Cardinality",
                            "valueType": "xs:string",
                            "value": "One",
                            "kind": "TemplateQualifier",
                        }
                    ],
                },
                {"idShort": "SerialNumber", "modelType": "Property", "valueType": "xs:string"},
            ],
        }
    ],
}


def directory(name: str, path: str) -> dict:
    return {"type": "dir", "name": name, "path": path, "sha": f"sha-{name}", "html_url": f"https://github.com/{path}"}


def file_item(name: str, path: str, download_url: str | None = None) -> dict:
    return {"type": "file", "name": name, "path": path, "download_url": download_url or f"https://raw.example/{name}"}


class FakeGitHub:
    """MockTransport handler serving a small template repository."""

    def __init__(self, template_body: bytes | None = None):
        self.template_body = template_body or json.dumps(TEMPLATE_DOCUMENT).encode("utf-8")
        self.requests: list[str] = []
        self.routes = {
            f"{CONTENTS}/published": [
                directory(NAMEPLATE, f"published/{NAMEPLATE}"),
                directory(CONTACT, f"published/{CONTACT}"),
                file_item("README.md", "published/README.md"),
            ],
            f"{CONTENTS}/published/{NAMEPLATE}": [
                directory("2", f"published/{NAMEPLATE}/2"),
                directory("3", f"published/{NAMEPLATE}/3"),
            ],
            f"{CONTENTS}/published/{NAMEPLATE}/3": [directory("0", f"published/{NAMEPLATE}/3/0")],
            f"{CONTENTS}/published/{NAMEPLATE}/3/0": [
                file_item("IDTA 02006-3-0_Template_Digital Nameplate.aasx", f"published/{NAMEPLATE}/3/0/x.aasx"),
                file_item("IDTA 02006-3-0_Template_Digital Nameplate.json", f"published/{NAMEPLATE}/3/0/x.json", RAW_URL),
                file_item("IDTA 02006-3-0_Template_Digital Nameplate.pdf", f"published/{NAMEPLATE}/3/0/x.pdf"),
            ],
            f"{CONTENTS}/published/{CONTACT}": [file_item("README.md", f"published/{CONTACT}/README.md")],
        }

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request.url.path)
        if str(request.url) == RAW_URL:
            return httpx.Response(200, content=self.template_body)
        if request.url.path in self.routes:
            return httpx.Response(200, json=self.routes[request.url.path])
        return httpx.Response(404, json={"message": "Not Found"})


@pytest.fixture
def github():
    return FakeGitHub()


def make_catalog(handler, document_service, cache_dir, ttl_hours: int = 24) -> TemplateCatalogService:
    client = GitHubClient(token="secret", transport=httpx.MockTransport(handler))
    return TemplateCatalogService(
        client=client,
        documents=document_service,
        repo=REPO,
        cache_dir=cache_dir,
        cache_ttl_hours=ttl_hours,
    )


class TestParseTemplateName:
    """Tests for parse_template_name."""

    def test_idta_name(self):
        assert parse_template_name(NAMEPLATE) == {"idta_number": "02006", "title": "Digital Nameplate"}

    def test_plain_name(self):
        assert parse_template_name("Misc") == {"idta_number": None, "title": "Misc"}


class TestGitHubClient:
    """Tests for GitHubClient."""

    def test_headers(self):
        client = GitHubClient(token="secret")
        assert client.headers["Authorization"] == "Bearer secret"
        assert client.headers["X-GitHub-Api-Version"] == "2022-11-28"
        assert "Authorization" not in GitHubClient().headers

    @pytest.mark.asyncio
    async def test_get_contents_wraps_single_file(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["Accept"] == "application/vnd.github+json"
            return httpx.Response(200, json=file_item("a.json", "published/a.json"))

        async with GitHubClient(transport=httpx.MockTransport(handler)) as client:
            items = await client.get_contents(REPO, "published/a.json")

        assert [item["name"] for item in items] == ["a.json"]

    @pytest.mark.asyncio
    async def test_rate_limited(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403, headers={"x-ratelimit-remaining": "0", "x-ratelimit-reset": "1"})

        client = GitHubClient(transport=httpx.MockTransport(handler))
        with pytest.raises(httpx.HTTPStatusError):
            await client.get("/rate_limit")
        await client.close()


class TestTemplateCatalog:
    """Tests for TemplateCatalogService."""

    @pytest.mark.asyncio
    async def test_list_templates(self, github, document_service, tmp_path):
        catalog = make_catalog(github, document_service, tmp_path)
        templates = await catalog.list_templates()

        assert [t.idtaNumber for t in templates] == ["02002", "02006"]
        nameplate = templates[1]
        assert nameplate.title == "Digital Nameplate"
        assert nameplate.path == f"published/{NAMEPLATE}"
        assert nameplate.url == f"https://github.com/published/{NAMEPLATE}"

    @pytest.mark.asyncio
    async def test_index_is_cached(self, github, document_service, tmp_path):
        catalog = make_catalog(github, document_service, tmp_path)
        await catalog.list_templates()
        filtered = await catalog.list_templates("nameplate")

        assert [t.name for t in filtered] == [NAMEPLATE]
        assert github.requests.count(f"{CONTENTS}/published") == 1

    @pytest.mark.asyncio
    async def test_versions_newest_first(self, github, document_service, tmp_path):
        catalog = make_catalog(github, document_service, tmp_path)
        versions = await catalog.list_versions(catalog.template_path(NAMEPLATE))
        assert [v.version for v in versions] == ["3", "2"]

    @pytest.mark.asyncio
    async def test_fetch_prefers_json_in_newest_version(self, github, document_service, tmp_path):
        catalog = make_catalog(github, document_service, tmp_path)
        filename, content = await catalog.fetch_template_file(catalog.template_path(NAMEPLATE))

        assert filename.endswith("Digital Nameplate.json")
        assert json.loads(content)["submodels"][0]["idShort"] == "Nameplate"
        assert f"{CONTENTS}/published/{NAMEPLATE}/2" not in github.requests

    @pytest.mark.asyncio
    async def test_file_cache(self, github, document_service, tmp_path):
        catalog = make_catalog(github, document_service, tmp_path)
        path = catalog.template_path(NAMEPLATE)
        await catalog.fetch_template_file(path)
        before = len(github.requests)

        filename, _ = await catalog.fetch_template_file(path)

        assert len(github.requests) == before
        assert filename.endswith(".json")
        assert catalog.invalidate_template(path)
        assert not catalog.invalidate_template(path)

    @pytest.mark.asyncio
    async def test_expired_cache_refetches(self, github, document_service, tmp_path):
        catalog = make_catalog(github, document_service, tmp_path, ttl_hours=0)
        path = catalog.template_path(NAMEPLATE)
        await catalog.fetch_template_file(path)
        await catalog.fetch_template_file(path)
        assert github.requests.count("/admin-shell-io/submodel-templates/main/nameplate.json") == 2

    @pytest.mark.asyncio
    async def test_clear_cache(self, github, document_service, tmp_path):
        catalog = make_catalog(github, document_service, tmp_path)
        await catalog.list_templates()
        await catalog.fetch_template_file(catalog.template_path(NAMEPLATE))

        assert catalog.clear_cache() == 1
        await catalog.list_templates()
        assert github.requests.count(f"{CONTENTS}/published") == 2

    @pytest.mark.asyncio
    async def test_load_template(self, github, document_service, tmp_path):
        catalog = make_catalog(github, document_service, tmp_path)
        template = await catalog.load_template(catalog.template_path(NAMEPLATE))

        assert template.idShort == "Nameplate"
        assert template.kind == "Template"
        assert template.semanticId == "https://admin-shell.io/idta/nameplate/3/0/Nameplate"
        manufacturer, serial = template.submodelElements
        assert isinstance(manufacturer, MultiLanguageProperty)
        assert manufacturer.cardinality == "One"
        assert isinstance(serial, Property)

    @pytest.mark.asyncio
    async def test_load_bare_submodel_json(self, document_service, tmp_path):
        github = FakeGitHub(json.dumps(TEMPLATE_DOCUMENT["submodels"][0]).encode("utf-8"))
        catalog = make_catalog(github, document_service, tmp_path)

        template = await catalog.load_template(catalog.template_path(NAMEPLATE))
        assert [el.idShort for el in template.submodelElements] == ["ManufacturerName", "SerialNumber"]

    @pytest.mark.asyncio
    async def test_undecodable_template(self, document_service, tmp_path):
        catalog = make_catalog(FakeGitHub(b"{not json"), document_service, tmp_path)
        with pytest.raises(TemplateNotFound, match="could not be loaded"):
            await catalog.load_template(catalog.template_path(NAMEPLATE))

    @pytest.mark.asyncio
    async def test_directory_without_template_file(self, github, document_service, tmp_path):
        catalog = make_catalog(github, document_service, tmp_path)
        with pytest.raises(TemplateNotFound, match="No JSON or AASX template"):
            await catalog.fetch_template_file(catalog.template_path(CONTACT))

    @pytest.mark.asyncio
    async def test_unknown_template(self, github, document_service, tmp_path):
        catalog = make_catalog(github, document_service, tmp_path)
        with pytest.raises(TemplateNotFound, match="Template not found"):
            await catalog.load_template(catalog.template_path("IDTA 99999_Missing"))

    @pytest.mark.parametrize("name", ["../secrets", "a/../../b", ""])
    def test_rejects_paths_outside_root(self, github, document_service, tmp_path, name):
        catalog = make_catalog(github, document_service, tmp_path)
        with pytest.raises(TemplateNotFound, match="Not a template path"):
            catalog.template_path(name)


class TestInstantiateTemplate:
    """Tests for instantiate_template."""

    def test_instance_copy(self):
        template = Submodel(idShort="Nameplate", id="urn:template", kind="Template")
        submodel = instantiate_template(template, ["TechnicalData"])

        assert submodel.idShort == "Nameplate"
        assert submodel.id is None
        assert submodel.kind == "Instance"

    def test_unique_id_short(self):
        template = Submodel(idShort="Nameplate", kind="Template")
        submodel = instantiate_template(template, ["Nameplate", "Nameplate2"])
        assert submodel.idShort == "Nameplate3"

    def test_id_short_override(self):
        template = Submodel(idShort="Nameplate", kind="Template")
        assert instantiate_template(template, [], "Plate").idShort == "Plate"

"""
Submodel template catalogue.

Discovers IDTA submodel templates in the admin-shell-io/submodel-templates
repository, caches the downloaded template files on disk and decodes them
into a ``Submodel`` with the document codecs.
"""

import hashlib
import json
import logging
from collections.abc import Iterable
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import httpx

from aas_studio.clients.github_client import GitHubClient
from aas_studio.schemas.environment import Submodel
from aas_studio.schemas.templates import TemplateInfo, TemplateVersion
from aas_studio.services.documents import DocumentService
from aas_studio.services.errors import TemplateNotFound

logger = logging.getLogger(__name__)

# Preferred first
TEMPLATE_EXTENSIONS = (".json", ".aasx")


def parse_template_name(name: str) -> dict[str, str | None]:
    """
    Parse a template directory name into IDTA number and title.

    Examples:
        "IDTA 02006-2-0_Submodel_Digital Nameplate" ->
            {"idta_number": "02006", "title": "Digital Nameplate"}
    """
    parts = name.split("_", 2)
    result: dict[str, str | None] = {"idta_number": None, "title": name}

    if parts[0].startswith("IDTA"):
        idta_part = parts[0].replace("IDTA", "", 1).strip().split("-")[0]
        result["idta_number"] = idta_part.strip() or None

    if len(parts) >= 3:
        result["title"] = parts[2].strip()
    elif len(parts) == 2:
        result["title"] = parts[1].strip()

    return result


def instantiate_template(
    template: Submodel, taken: Iterable[str], id_short: str | None = None
) -> Submodel:
    """
    Turn a template submodel into an instance submodel for a shell.

    The id is cleared so the export derives it from the shell id, and the
    idShort gets a numeric suffix when it is already taken.
    """
    taken = set(taken)
    base = id_short or template.idShort or "Submodel"
    candidate = base
    counter = 2
    while candidate in taken:
        candidate = f"{base}{counter}"
        counter += 1
    return template.model_copy(update={"idShort": candidate, "id": None, "kind": "Instance"})


class TemplateCatalogService:
    """
    Service for fetching IDTA submodel templates from GitHub.

    Features:
    - Lists the published template directories, cached in memory
    - Finds the newest template file in the version subdirectories
    - Caches downloaded template files on disk with a TTL
    """

    def __init__(
        self,
        client: GitHubClient,
        documents: DocumentService,
        repo: str = "admin-shell-io/submodel-templates",
        root: str = "published",
        cache_dir: Path = Path("./cache/templates"),
        cache_ttl_hours: int = 24,
    ):
        self.client = client
        self.documents = documents
        self.repo = repo
        self.root = root.strip("/")
        self.cache_dir = cache_dir
        self.cache_ttl_hours = cache_ttl_hours

        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self._index_cache: tuple[list[TemplateInfo], datetime] | None = None

    def _is_cache_valid(self, cache_time: datetime) -> bool:
        """Check if cached data is still within TTL."""
        return datetime.now() - cache_time < timedelta(hours=self.cache_ttl_hours)

    def _cache_stem(self, template_path: str) -> str:
        return hashlib.sha256(template_path.encode("utf-8")).hexdigest()

    def _check_path(self, template_path: str) -> str:
        """Normalize a catalogue path; only directories below the root are accepted."""
        parts = template_path.strip("/").split("/")
        if len(parts) < 2 or parts[0] != self.root or any(p in ("", ".", "..") for p in parts):
            raise TemplateNotFound(f"Not a template path: {template_path}")
        return "/".join(parts)

    def template_path(self, name: str) -> str:
        """Catalogue path of a template directory name."""
        return self._check_path(f"{self.root}/{name}")

    async def list_templates(self, query: str | None = None) -> list[TemplateInfo]:
        """
        List the published templates.

        Args:
            query: Case-insensitive filter on directory name and title

        Returns:
            Templates sorted by IDTA number, then title
        """
        if self._index_cache is not None and self._is_cache_valid(self._index_cache[1]):
            logger.debug("Returning cached template index")
            templates = self._index_cache[0]
        else:
            logger.info(f"Fetching template index from {self.repo}")
            items = await self.client.get_contents(self.repo, self.root)
            templates = []
            for item in items:
                if item.get("type") != "dir":
                    continue
                info = parse_template_name(item["name"])
                templates.append(
                    TemplateInfo(
                        name=item["name"],
                        path=item.get("path") or f"{self.root}/{item['name']}",
                        idtaNumber=info["idta_number"],
                        title=info["title"] or item["name"],
                        url=item.get("html_url"),
                        sha=item.get("sha"),
                    )
                )
            templates.sort(key=lambda t: (t.idtaNumber or "99999", t.title))
            self._index_cache = (templates, datetime.now())

        if query:
            needle = query.lower()
            templates = [t for t in templates if needle in t.name.lower() or needle in t.title.lower()]
        return templates

    async def list_versions(self, template_path: str) -> list[TemplateVersion]:
        """Get the version directories of a template, newest first."""
        template_path = self._check_path(template_path)
        items = await self._get_contents(template_path)
        versions = [
            TemplateVersion(version=item["name"], path=item["path"], sha=item.get("sha"))
            for item in items
            if item.get("type") == "dir"
        ]
        versions.sort(key=lambda v: v.version, reverse=True)
        return versions

    async def _get_contents(self, path: str) -> list[dict[str, Any]]:
        try:
            return await self.client.get_contents(self.repo, path)
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise TemplateNotFound(f"Template not found: {path}") from e
            raise

    async def _find_template_file(
        self, items: list[dict[str, Any]], depth: int = 0, max_depth: int = 3
    ) -> dict[str, Any] | None:
        """
        Recursively find the newest template file in a directory listing.

        JSON files win over AASX files in the same directory; version
        subdirectories are searched newest first.
        """
        if depth > max_depth:
            return None

        subdirs = sorted(
            (item for item in items if item.get("type") == "dir"),
            key=lambda item: item["name"],
            reverse=True,
        )
        for extension in TEMPLATE_EXTENSIONS:
            files = [
                item
                for item in items
                if item.get("type") == "file" and item["name"].lower().endswith(extension)
            ]
            if files:
                files.sort(key=lambda item: item["name"], reverse=True)
                return files[0]

        for subdir in subdirs:
            result = await self._find_template_file(
                await self._get_contents(subdir["path"]), depth + 1, max_depth
            )
            if result:
                return result
        return None

    async def fetch_template_file(self, template_path: str) -> tuple[str, bytes]:
        """
        Fetch the template file for a catalogue path.

        Args:
            template_path: Template directory, e.g. "published/IDTA 02006-2-0_..."

        Returns:
            File name and contents

        Raises:
            TemplateNotFound: If the directory holds no JSON or AASX template
        """
        template_path = self._check_path(template_path)
        stem = self._cache_stem(template_path)
        for extension in TEMPLATE_EXTENSIONS:
            cache_file = self.cache_dir / f"{stem}{extension}"
            if cache_file.exists():
                mtime = datetime.fromtimestamp(cache_file.stat().st_mtime)
                if self._is_cache_valid(mtime):
                    logger.debug(f"Returning cached template for {template_path}")
                    return cache_file.name, cache_file.read_bytes()

        logger.info(f"Fetching template {template_path} from {self.repo}")
        item = await self._find_template_file(await self._get_contents(template_path))
        if item is None or not item.get("download_url"):
            raise TemplateNotFound(f"No JSON or AASX template found in {template_path}")

        content = await self.client.get_raw_file(item["download_url"])
        extension = next(ext for ext in TEMPLATE_EXTENSIONS if item["name"].lower().endswith(ext))
        cache_file = self.cache_dir / f"{stem}{extension}"
        cache_file.write_bytes(content)
        logger.info(f"Cached {item['name']} to {cache_file}")
        return item["name"], content

    @staticmethod
    def _wrap_bare_submodel(content: bytes) -> bytes:
        """Template JSON may be a single submodel instead of an environment."""
        try:
            data = json.loads(content)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return content
        if isinstance(data, dict) and "submodelElements" in data and "submodels" not in data:
            return json.dumps({"submodels": [data]}).encode("utf-8")
        return content

    async def load_template(self, template_path: str) -> Submodel:
        """
        Fetch and decode a template.

        Returns:
            The first submodel of kind ``Template``, or the first submodel

        Raises:
            TemplateNotFound: If the file cannot be decoded or has no submodel
        """
        filename, content = await self.fetch_template_file(template_path)
        if filename.lower().endswith(".json"):
            content = self._wrap_bare_submodel(content)

        result = self.documents.load(filename, content)
        if not result.success or result.environment is None:
            raise TemplateNotFound(f"Template {template_path} could not be loaded: {result.error}")

        submodels = result.environment.submodels
        if not submodels:
            raise TemplateNotFound(f"Template {template_path} contains no submodel")
        template = next((sm for sm in submodels if sm.kind == "Template"), submodels[0])
        logger.info(
            f"Loaded template {template.idShort} with {len(template.submodelElements)} elements"
        )
        return template

    def clear_cache(self) -> int:
        """
        Clear all cached templates.

        Returns:
            Number of files removed
        """
        count = 0
        for extension in TEMPLATE_EXTENSIONS:
            for cache_file in self.cache_dir.glob(f"*{extension}"):
                cache_file.unlink()
                count += 1

        self._index_cache = None
        logger.info(f"Cleared {count} cached templates")
        return count

    def invalidate_template(self, template_path: str) -> bool:
        """
        Invalidate the cached file of one template.

        Returns:
            True if a cache file was removed
        """
        stem = self._cache_stem(self._check_path(template_path))
        removed = False
        for extension in TEMPLATE_EXTENSIONS:
            cache_file = self.cache_dir / f"{stem}{extension}"
            if cache_file.exists():
                cache_file.unlink()
                removed = True
        if removed:
            logger.info(f"Invalidated cache for {template_path}")
        return removed

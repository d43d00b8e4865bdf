"""
FastAPI dependency injection setup.

Provides factory functions for service instances used across routes.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, HTTPException, status

from aas_studio.clients.github_client import GitHubClient
from aas_studio.clients.xml_validator import BasyxXmlValidator, RemoteXsdValidator, XsdValidator
from aas_studio.config import get_settings
from aas_studio.services.documents import DocumentService
from aas_studio.services.exporter import ExportService
from aas_studio.services.json_codec import JsonCodecService
from aas_studio.services.packager import AasxPackager
from aas_studio.services.schema_gateway import SchemaValidationGateway
from aas_studio.services.sessions import EditSession, SessionStore
from aas_studio.services.templates import TemplateCatalogService
from aas_studio.services.validator import StructuralValidator
from aas_studio.services.xml_codec import XmlCodecService


@lru_cache
def get_xml_codec() -> XmlCodecService:
    """Get cached XML codec instance."""
    return XmlCodecService(default_language=get_settings().default_language)


@lru_cache
def get_json_codec() -> JsonCodecService:
    """Get cached JSON codec instance."""
    return JsonCodecService(default_language=get_settings().default_language)


@lru_cache
def get_packager() -> AasxPackager:
    return AasxPackager()


@lru_cache
def get_structural_validator() -> StructuralValidator:
    return StructuralValidator()


@lru_cache
def get_xsd_validator() -> XsdValidator:
    """Get the configured validation backend."""
    settings = get_settings()
    if settings.validator_backend == "basyx":
        return BasyxXmlValidator()
    return RemoteXsdValidator(
        url=settings.validator_url,
        timeout=settings.validator_timeout_seconds,
    )


@lru_cache
def get_schema_gateway() -> SchemaValidationGateway:
    """Get cached schema gateway; keeps the fetched XSD in memory."""
    settings = get_settings()
    return SchemaValidationGateway(
        validator=get_xsd_validator(),
        schema_url=settings.aas_xsd_url,
        schema_timeout=settings.schema_fetch_timeout_seconds,
    )


@lru_cache
def get_document_service() -> DocumentService:
    return DocumentService(get_xml_codec(), get_json_codec(), get_packager())


@lru_cache
def get_export_service() -> ExportService:
    return ExportService(
        xml_codec=get_xml_codec(),
        json_codec=get_json_codec(),
        validator=get_structural_validator(),
        gateway=get_schema_gateway(),
        packager=get_packager(),
    )


@lru_cache
def get_github_client() -> GitHubClient:
    settings = get_settings()
    return GitHubClient(token=settings.github_token, api_version=settings.github_api_version)


@lru_cache
def get_template_catalog() -> TemplateCatalogService:
    """Get cached template catalogue; keeps the index in memory."""
    settings = get_settings()
    return TemplateCatalogService(
        client=get_github_client(),
        documents=get_document_service(),
        repo=settings.github_repo,
        root=settings.template_root,
        cache_dir=settings.cache_dir,
        cache_ttl_hours=settings.cache_ttl_hours,
    )


@lru_cache
def get_session_store() -> SessionStore:
    return SessionStore()


def get_session(
    session_id: str,
    store: Annotated[SessionStore, Depends(get_session_store)],
) -> EditSession:
    """Resolve the session from the path or answer 404."""
    session = store.get(session_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session not found: {session_id}",
        )
    return session


CurrentSession = Annotated[EditSession, Depends(get_session)]

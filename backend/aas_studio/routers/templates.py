"""
Template listing and discovery endpoints.

Provides API endpoints for browsing the IDTA submodel template catalogue.
Adding a template to a session lives with the session endpoints.
"""

import logging
from typing import Annotated

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query

from aas_studio.dependencies import get_template_catalog
from aas_studio.schemas.templates import TemplateInfo, TemplateListResponse, TemplateVersion
from aas_studio.services.errors import TemplateNotFound
from aas_studio.services.templates import TemplateCatalogService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/templates", tags=["templates"])


@router.get("", response_model=TemplateListResponse)
async def list_templates(
    catalog: Annotated[TemplateCatalogService, Depends(get_template_catalog)],
    search: Annotated[str | None, Query(description="Search filter")] = None,
    idta_number: Annotated[str | None, Query(description="Filter by IDTA number")] = None,
) -> TemplateListResponse:
    """
    List all available IDTA submodel templates.

    Templates are fetched from the admin-shell-io/submodel-templates
    GitHub repository and cached.
    """
    try:
        templates = await catalog.list_templates(search)
    except httpx.HTTPError as e:
        logger.exception("Failed to list templates")
        raise HTTPException(status_code=502, detail=f"Template catalogue unavailable: {e}")

    if idta_number:
        templates = [t for t in templates if t.idtaNumber == idta_number]
    return TemplateListResponse(templates=templates, total=len(templates))


@router.get("/{template_name}", response_model=TemplateInfo)
async def get_template_info(
    template_name: str,
    catalog: Annotated[TemplateCatalogService, Depends(get_template_catalog)],
) -> TemplateInfo:
    try:
        templates = await catalog.list_templates()
    except httpx.HTTPError as e:
        logger.exception(f"Failed to get template info for {template_name}")
        raise HTTPException(status_code=502, detail=f"Template catalogue unavailable: {e}")

    template = next((t for t in templates if t.name == template_name), None)
    if template is None:
        raise HTTPException(status_code=404, detail="Template not found")
    return template


@router.get("/{template_name}/versions", response_model=list[TemplateVersion])
async def get_template_versions(
    template_name: str,
    catalog: Annotated[TemplateCatalogService, Depends(get_template_catalog)],
) -> list[TemplateVersion]:
    """Get available versions for a template, newest first."""
    try:
        return await catalog.list_versions(catalog.template_path(template_name))
    except TemplateNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except httpx.HTTPError as e:
        logger.exception(f"Failed to get versions for {template_name}")
        raise HTTPException(status_code=502, detail=f"Template catalogue unavailable: {e}")


@router.post("/refresh")
async def refresh_template_cache(
    catalog: Annotated[TemplateCatalogService, Depends(get_template_catalog)],
) -> dict[str, int]:
    """
    Clear the template cache.

    Returns the number of cached files that were cleared.
    """
    return {"cleared": catalog.clear_cache()}


@router.delete("/{template_name}/cache")
async def invalidate_template_cache(
    template_name: str,
    catalog: Annotated[TemplateCatalogService, Depends(get_template_catalog)],
) -> dict[str, bool]:
    try:
        return {"invalidated": catalog.invalidate_template(catalog.template_path(template_name))}
    except TemplateNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

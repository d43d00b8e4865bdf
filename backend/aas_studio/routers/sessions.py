"""
Session endpoints for editing, validating and exporting an environment.

A session is created from a shell with its submodels or from an uploaded
.xml, .json or .aasx document. Edits are addressed by idShort path, the
first segment being the submodel idShort.
"""

import logging
from typing import Annotated

import httpx
from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from fastapi.responses import Response

from aas_studio.config import get_settings
from aas_studio.dependencies import (
    CurrentSession,
    get_document_service,
    get_export_service,
    get_session_store,
    get_template_catalog,
)
from aas_studio.schemas.elements import SubmodelElement
from aas_studio.schemas.environment import Environment
from aas_studio.schemas.requests import (
    CreateSessionRequest,
    InsertElementRequest,
    ReorderRequest,
    SessionResponse,
    UpdateElementRequest,
    UploadResponse,
)
from aas_studio.schemas.templates import AddTemplateSubmodelRequest
from aas_studio.schemas.validation import ValidationReport
from aas_studio.services.documents import DocumentService
from aas_studio.services.errors import ElementNotFound, ExportBlocked, TemplateNotFound
from aas_studio.services.exporter import ExportFormat, ExportService
from aas_studio.services.sessions import EditSession, SessionStore
from aas_studio.services.templates import TemplateCatalogService, instantiate_template

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


def session_response(session: EditSession) -> SessionResponse:
    return SessionResponse(
        id=session.id,
        revision=session.revision,
        stale=session.is_stale,
        canExport=session.can_export(),
        environment=session.environment,
        lastReport=session.last_report,
    )


def _blocked_detail(e: ExportBlocked) -> dict:
    return {
        "message": str(e),
        "issues": [issue.model_dump(mode="json", by_alias=True) for issue in e.issues],
    }


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    request: CreateSessionRequest,
    store: Annotated[SessionStore, Depends(get_session_store)],
) -> SessionResponse:
    """Start editing a new shell with its submodels."""
    environment = Environment(shell=request.shell, submodels=request.submodels)
    return session_response(store.create(environment))


@router.post("/upload", response_model=UploadResponse)
async def upload_document(
    file: Annotated[UploadFile, File(...)],
    documents: Annotated[DocumentService, Depends(get_document_service)],
    store: Annotated[SessionStore, Depends(get_session_store)],
) -> UploadResponse:
    """
    Upload an AAS document and open it in a new session.

    Accepts AAS XML (1.0, 3.0, 3.1), AAS JSON and AASX packages.
    """
    settings = get_settings()

    try:
        contents = await file.read()
        max_size = settings.max_upload_size_mb * 1024 * 1024

        if len(contents) > max_size:
            return UploadResponse(
                success=False,
                error=f"File too large. Maximum size is {settings.max_upload_size_mb}MB",
                filename=file.filename,
            )

        result = documents.load(file.filename or "", contents)
        if not result.success:
            return UploadResponse(
                success=False,
                error=result.error,
                issues=result.issues,
                filename=file.filename,
            )

        session = store.create(result.environment, result.attachments)
        return UploadResponse(
            success=True,
            sessionId=session.id,
            dialect=result.dialect,
            issues=result.issues,
            filename=file.filename,
        )
    except Exception:
        logger.exception("Failed to load uploaded document")
        return UploadResponse(
            success=False,
            error="Failed to load document",
            filename=file.filename,
        )


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session_state(session: CurrentSession) -> SessionResponse:
    return session_response(session)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    session_id: str,
    store: Annotated[SessionStore, Depends(get_session_store)],
) -> Response:
    if not store.delete(session_id):
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{session_id}/submodels", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def add_template_submodel(
    request: AddTemplateSubmodelRequest,
    session: CurrentSession,
    catalog: Annotated[TemplateCatalogService, Depends(get_template_catalog)],
) -> SessionResponse:
    """
    Add a submodel built from an IDTA template.

    The template is fetched from the catalogue and added as an instance
    submodel; its id is derived from the shell id on export.
    """
    try:
        template = await catalog.load_template(catalog.template_path(request.name))
    except TemplateNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except httpx.HTTPError as e:
        logger.exception(f"Failed to fetch template {request.name}")
        raise HTTPException(status_code=502, detail=f"Template catalogue unavailable: {e}")

    taken = [submodel.idShort for submodel in session.environment.submodels]
    submodel = instantiate_template(template, taken, request.idShort)
    session.add_submodel(submodel)
    return session_response(session)


@router.get("/{session_id}/elements", response_model=SubmodelElement)
async def get_element(
    session: CurrentSession,
    path: Annotated[list[str], Query(description="idShort path, submodel first")],
):
    try:
        return session.find(path)
    except ElementNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.patch("/{session_id}/elements", response_model=SessionResponse)
async def update_element(request: UpdateElementRequest, session: CurrentSession) -> SessionResponse:
    """
    Apply field changes to one element.

    The element is re-validated as a whole; renames must stay unique
    among siblings.
    """
    try:
        session.update_element(request.path, request.changes)
        return session_response(session)
    except ElementNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/{session_id}/elements", response_model=SessionResponse)
async def insert_element(request: InsertElementRequest, session: CurrentSession) -> SessionResponse:
    try:
        session.insert_element(request.parentPath, request.element, request.index)
        return session_response(session)
    except ElementNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{session_id}/elements", response_model=SessionResponse)
async def delete_element(
    session: CurrentSession,
    path: Annotated[list[str], Query(description="idShort path, submodel first")],
    force: Annotated[bool, Query(description="Also delete required elements")] = False,
) -> SessionResponse:
    """
    Delete an element.

    Only ZeroToOne/ZeroToMany elements can be deleted unless ``force`` is set.
    """
    try:
        session.delete_element(path, force=force)
        return session_response(session)
    except ElementNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/{session_id}/elements/reorder", response_model=SessionResponse)
async def reorder_children(request: ReorderRequest, session: CurrentSession) -> SessionResponse:
    try:
        session.reorder_children(request.parentPath, request.fromIndex, request.toIndex)
        return session_response(session)
    except ElementNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/{session_id}/validate", response_model=ValidationReport)
async def validate_session(
    session: CurrentSession,
    exporter: Annotated[ExportService, Depends(get_export_service)],
) -> ValidationReport:
    """
    Run the structural and the schema check on the current content.

    The verdict is stored on the session and unlocks export until the
    next edit.
    """
    environment = session.environment
    try:
        report = await exporter.validate(environment)
    except Exception as e:
        logger.exception(f"Validation failed for session {session.id}")
        raise HTTPException(status_code=500, detail=str(e))
    return session.record_validation(report, environment)


@router.get("/{session_id}/export")
async def export_session(
    session: CurrentSession,
    exporter: Annotated[ExportService, Depends(get_export_service)],
    format: Annotated[ExportFormat, Query(description="Export format")] = "aasx",
) -> Response:
    """
    Export the session content.

    Formats:
    - aasx: AASX package (default)
    - xml: AAS XML environment
    - json: AAS JSON environment

    Requires a passing validation for the current revision.
    """
    if session.last_report is None or session.is_stale:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Validation is missing or outdated; validate before exporting",
        )
    if not session.last_report.valid:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Export blocked: the document has validation errors",
        )

    try:
        result = await exporter.export(
            session.environment,
            format=format,
            attachments=session.attachments,
            report=session.last_report,
        )
        return Response(
            content=result.content,
            media_type=result.media_type,
            headers={"Content-Disposition": f'attachment; filename="{result.filename}"'},
        )
    except ExportBlocked as e:
        raise HTTPException(status_code=422, detail=_blocked_detail(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception(f"Failed to export session {session.id}")
        raise HTTPException(status_code=500, detail=str(e))

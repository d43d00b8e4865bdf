"""
Stateless document endpoints.

Validates an uploaded document without opening a session.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, UploadFile

from aas_studio.config import get_settings
from aas_studio.dependencies import get_document_service, get_export_service
from aas_studio.schemas.requests import DocumentValidationResponse
from aas_studio.services.documents import DocumentService
from aas_studio.services.exporter import ExportService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/documents", tags=["documents"])


@router.post("/validate", response_model=DocumentValidationResponse)
async def validate_document(
    file: Annotated[UploadFile, File(...)],
    documents: Annotated[DocumentService, Depends(get_document_service)],
    exporter: Annotated[ExportService, Depends(get_export_service)],
) -> DocumentValidationResponse:
    """
    Load a document and run the full validation on it.

    XML input (also inside a package) is schema-checked as uploaded, so
    legacy documents get the compatibility verdict. JSON input is checked
    through the XML it would be exported as.
    """
    settings = get_settings()

    try:
        contents = await file.read()
        max_size = settings.max_upload_size_mb * 1024 * 1024

        if len(contents) > max_size:
            return DocumentValidationResponse(
                success=False,
                error=f"File too large. Maximum size is {settings.max_upload_size_mb}MB",
                filename=file.filename,
            )

        result = documents.load(file.filename or "", contents)
        if not result.success:
            return DocumentValidationResponse(
                success=False,
                error=result.error,
                loadIssues=result.issues,
                filename=file.filename,
            )

        report = await exporter.validate(result.environment, source_xml=result.source_xml)
        return DocumentValidationResponse(
            success=True,
            filename=file.filename,
            dialect=result.dialect,
            loadIssues=result.issues,
            report=report,
        )
    except Exception:
        logger.exception(f"Failed to validate {file.filename}")
        return DocumentValidationResponse(
            success=False,
            error="Failed to validate document",
            filename=file.filename,
        )

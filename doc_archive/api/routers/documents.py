"""
Documents API router for the document archive.

Routes defined at root level:
- POST /upload - Add a document (multipart ``file`` plus form fields)
- GET /documents - Find documents, paginated
- GET, HEAD /document/{document_id} - Get a document file, range aware
- DELETE /document/{document_id} - Delete a document

These routes are mounted with the '/archive' prefix in the main app.
"""

import logging
from datetime import date
from typing import Optional, cast

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    HTTPException,
    Query,
    Request,
    Response,
    UploadFile,
)
from fastapi_pagination import Page, paginate
from pydantic import ValidationError

from doc_archive.api.dependencies import get_archive_config, get_archive_service
from doc_archive.api.responses import DocumentDeletedResponse
from doc_archive.config import ArchiveConfig
from doc_archive.delivery import header_safe
from doc_archive.delivery.file_server import DEFAULT_CONTENT_TYPE
from doc_archive.domain import DocumentMetadata, DocumentNotFoundError
from doc_archive.use_cases import ArchiveService

logger = logging.getLogger(__name__)

router = APIRouter()


async def _read_upload(file: UploadFile, config: ArchiveConfig) -> bytes:
    """Read an upload, refusing anything above the configured limit."""
    if file.size is not None and file.size > config.max_upload_bytes:
        raise HTTPException(status_code=413, detail="Upload too large")
    buffer = bytearray()
    while True:
        chunk = await file.read(config.chunk_size)
        if not chunk:
            break
        buffer.extend(chunk)
        if len(buffer) > config.max_upload_bytes:
            raise HTTPException(status_code=413, detail="Upload too large")
    return bytes(buffer)


@router.post("/upload", response_model=DocumentMetadata)
async def upload_document(
    file: UploadFile = File(...),
    person: str = Form(...),
    document_date: date = Form(..., alias="date"),
    content_type: Optional[str] = Form(None),
    service: ArchiveService = Depends(get_archive_service),
    config: ArchiveConfig = Depends(get_archive_config),
) -> DocumentMetadata:
    """
    Add a document to the archive.

    Args:
        file: A file posted in a multipart request
        person: The name of the person the document belongs to
        document_date: The date of the document (form field ``date``)
        content_type: Content type to store, defaults to the upload's type

    Returns:
        The metadata of the added document
    """
    logger.info(
        "Document upload requested",
        extra={"file_name": file.filename, "person_name": person},
    )
    if not file.filename:
        raise HTTPException(status_code=422, detail="File name is required")

    content = await _read_upload(file, config)
    try:
        return await service.save(
            content=content,
            file_name=file.filename,
            document_date=document_date,
            person_name=person,
            content_type=content_type
            or file.content_type
            or DEFAULT_CONTENT_TYPE,
        )
    except ValidationError as e:
        logger.info(
            "Rejected document upload",
            extra={"file_name": file.filename, "error": str(e)},
        )
        raise HTTPException(
            status_code=422, detail="Invalid document file name"
        ) from e
    except Exception as e:
        logger.error(
            "Failed to upload document",
            exc_info=True,
            extra={
                "error_type": type(e).__name__,
                "error_message": str(e),
                "file_name": file.filename,
            },
        )
        raise HTTPException(
            status_code=500,
            detail="Failed to store document due to an internal error.",
        ) from e


@router.get("/documents", response_model=Page[DocumentMetadata])
async def find_documents(
    person: Optional[str] = Query(None),
    document_date: Optional[date] = Query(None, alias="date"),
    content_type: Optional[str] = Query(None),
    service: ArchiveService = Depends(get_archive_service),
) -> Page[DocumentMetadata]:
    """
    Find documents in the archive.

    Returns a paginated list of document metadata which does not include
    the file data. Use the document endpoint to get the file. Returns an
    empty page if no document was found.
    """
    try:
        documents = await service.find_documents(
            person_name=person,
            document_date=document_date,
            content_type=content_type,
        )
    except Exception as e:
        logger.error(
            "Failed to find documents",
            exc_info=True,
            extra={"error_type": type(e).__name__, "error_message": str(e)},
        )
        raise HTTPException(
            status_code=500,
            detail="Failed to find documents due to an internal error.",
        ) from e

    logger.info(
        "Documents found",
        extra={"count": len(documents), "person_name": person},
    )
    return cast(Page[DocumentMetadata], paginate(documents))


@router.api_route("/document/{document_id}", methods=["GET", "HEAD"])
async def get_document(
    document_id: str,
    request: Request,
    full: bool = Query(False),
    service: ArchiveService = Depends(get_archive_service),
) -> Response:
    """
    Return the document file with the given id.

    By default the file is streamed and Range, If-Range and the
    conditional request headers are honored. With ``full=true`` the whole
    file is read into memory and returned in one response.
    """
    try:
        if full:
            document = await service.get_document(document_id)
            return Response(
                content=document.read_bytes(),
                media_type=header_safe(
                    document.content_type or DEFAULT_CONTENT_TYPE,
                    DEFAULT_CONTENT_TYPE,
                ),
            )
        return await service.get_document_streamed(
            document_id, request.headers, request.method
        )
    except DocumentNotFoundError as e:
        logger.info(
            "Document not found", extra={"document_id": document_id}
        )
        raise HTTPException(
            status_code=404, detail="Document not found"
        ) from e
    except Exception as e:
        logger.error(
            "Failed to get document",
            exc_info=True,
            extra={
                "document_id": document_id,
                "error_type": type(e).__name__,
                "error_message": str(e),
            },
        )
        raise HTTPException(
            status_code=500,
            detail="Failed to retrieve document due to an internal error.",
        ) from e


@router.delete(
    "/document/{document_id}",
    response_model=DocumentDeletedResponse,
    status_code=202,
)
async def delete_document(
    document_id: str,
    service: ArchiveService = Depends(get_archive_service),
) -> DocumentDeletedResponse:
    """Delete the document with the given id."""
    try:
        deleted = await service.delete_document(document_id)
    except DocumentNotFoundError as e:
        raise HTTPException(
            status_code=404, detail="Document not found"
        ) from e
    except Exception as e:
        logger.error(
            "Failed to delete document",
            exc_info=True,
            extra={
                "document_id": document_id,
                "error_type": type(e).__name__,
                "error_message": str(e),
            },
        )
        raise HTTPException(
            status_code=500,
            detail="Failed to delete document due to an internal error.",
        ) from e
    return DocumentDeletedResponse(document_id=deleted)

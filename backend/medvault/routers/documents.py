"""
Document management endpoints.
"""

import os
from datetime import datetime
from typing import BinaryIO, Iterator, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from fastapi.responses import StreamingResponse

from medvault.access import Actor
from medvault.auth import get_current_actor
from medvault.models.document import DocumentResponse, DocumentUpdate
from medvault.models.statistics import OwnerSummary
from medvault.routers.errors import to_http_exception
from medvault.services.document_service import DocumentService
from medvault.utils.validators import sanitize_filename, validate_upload_file


router = APIRouter(prefix="/documents", tags=["documents"])

DOWNLOAD_CHUNK_SIZE = 64 * 1024


def get_document_service(request: Request) -> DocumentService:
    return request.app.state.document_service


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def _masked_id(request: Request, document_id: str) -> Optional[str]:
    if request.app.state.settings.MASK_FORBIDDEN_AS_NOT_FOUND:
        return document_id
    return None


def _iter_file(stream: BinaryIO) -> Iterator[bytes]:
    with stream:
        while True:
            chunk = stream.read(DOWNLOAD_CHUNK_SIZE)
            if not chunk:
                break
            yield chunk


@router.get("/", response_model=List[DocumentResponse])
def list_documents(
    category_id: Optional[int] = None,
    actor: Actor = Depends(get_current_actor),
    service: DocumentService = Depends(get_document_service)
):
    """
    Get all documents for the current patient, newest first.

    Args:
        category_id: Optional category filter
        actor: Current authenticated actor
        service: Document service

    Returns:
        List of document objects
    """
    try:
        documents = service.list_own(actor, category_id)
        return [DocumentResponse.from_document(document) for document in documents]
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "retrieve documents")


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=DocumentResponse)
def upload_document(
    request: Request,
    file: UploadFile = File(...),
    title: str = Form(...),
    description: Optional[str] = Form(None),
    category_id: Optional[int] = Form(None),
    clinician_name: Optional[str] = Form(None),
    facility_name: Optional[str] = Form(None),
    document_date: Optional[datetime] = Form(None),
    actor: Actor = Depends(get_current_actor),
    service: DocumentService = Depends(get_document_service)
):
    """
    Upload a document into the current patient's namespace.

    Any owner given by the client is ignored; documents always belong to the
    uploader.

    Returns:
        Created document metadata

    Raises:
        HTTPException: If validation, authorization or storage fails
    """
    try:
        # Validate the uploaded file
        validate_upload_file(file, request.app.state.settings.MAX_FILE_SIZE)

        document = service.upload(
            actor,
            file.file,
            original_name=file.filename,
            title=title,
            description=description,
            category_id=category_id,
            clinician_name=clinician_name,
            facility_name=facility_name,
            document_date=document_date,
            content_type=file.content_type,
            ip_address=_client_ip(request)
        )
        return DocumentResponse.from_document(document)

    except HTTPException:
        # Re-raise validation errors
        raise
    except Exception as e:
        raise to_http_exception(e, "upload file")


@router.get("/summary", response_model=OwnerSummary)
def get_summary(
    actor: Actor = Depends(get_current_actor),
    service: DocumentService = Depends(get_document_service)
):
    """Counters and category breakdown of the current patient's documents."""
    try:
        return service.owner_summary(actor)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "compute document summary")


@router.get("/{document_id}", response_model=DocumentResponse)
def get_document(
    document_id: str,
    request: Request,
    actor: Actor = Depends(get_current_actor),
    service: DocumentService = Depends(get_document_service)
):
    """
    Get a specific document by ID.

    Args:
        document_id: Document identifier
        request: FastAPI request object
        actor: Current authenticated actor
        service: Document service

    Returns:
        Document object

    Raises:
        HTTPException: If document not found or unauthorized
    """
    try:
        document = service.get(actor, document_id, ip_address=_client_ip(request))
        return DocumentResponse.from_document(document)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "retrieve document", _masked_id(request, document_id))


@router.get("/{document_id}/download")
def download_document(
    document_id: str,
    request: Request,
    actor: Actor = Depends(get_current_actor),
    service: DocumentService = Depends(get_document_service)
):
    """
    Stream a document's stored file.

    Returns:
        File contents as an attachment named after the document title
    """
    try:
        document, stream = service.download(actor, document_id, ip_address=_client_ip(request))
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "download document", _masked_id(request, document_id))

    _, extension = os.path.splitext(document.stored_file)
    filename = sanitize_filename(document.title)
    if extension and not filename.lower().endswith(extension.lower()):
        filename += extension

    return StreamingResponse(
        _iter_file(stream),
        media_type=document.content_type or "application/octet-stream",
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "Content-Length": str(document.file_size),
        }
    )


@router.put("/{document_id}", response_model=DocumentResponse)
def update_document(
    document_id: str,
    body: DocumentUpdate,
    request: Request,
    actor: Actor = Depends(get_current_actor),
    service: DocumentService = Depends(get_document_service)
):
    """
    Update a document's metadata. Only fields present in the body change.

    Returns:
        Updated document
    """
    try:
        document = service.update(
            actor,
            document_id,
            body.model_dump(exclude_unset=True),
            ip_address=_client_ip(request)
        )
        return DocumentResponse.from_document(document)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "update document", _masked_id(request, document_id))


@router.delete("/{document_id}")
def delete_document(
    document_id: str,
    request: Request,
    actor: Actor = Depends(get_current_actor),
    service: DocumentService = Depends(get_document_service)
):
    """
    Delete a document and its stored file.

    Returns:
        Deletion confirmation
    """
    try:
        service.delete(actor, document_id, ip_address=_client_ip(request))
        return {
            "status": "success",
            "message": f"Document {document_id} deleted successfully",
            "document_id": document_id
        }
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "delete document", _masked_id(request, document_id))

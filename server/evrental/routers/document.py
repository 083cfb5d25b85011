"""Identity document router."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import CurrentUser, RenterOnly, RequiredAuth, StaffOnly
from ..core.responses import success_response
from ..models.document import DocumentStatus, DocumentType
from ..schemas.common import Pagination
from ..schemas.registry import DocumentOut, SubmitDocumentRequest, VerifyDocumentRequest
from ..services.document_service import DocumentService

router = APIRouter(prefix="/api/documents", tags=["documents"])

DB_DEPENDENCY = Depends(get_db)


@router.post("", status_code=201)
async def submit_document(
    request: SubmitDocumentRequest,
    user: CurrentUser = RenterOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Submit a document; a pending or rejected one of the same type is replaced."""
    document = await DocumentService(db).submit(user.id, request)
    return success_response({"document": DocumentOut.model_validate(document)}, "Document submitted", status_code=201)


@router.get("/me")
async def my_documents(user: CurrentUser = RequiredAuth, db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
    documents = await DocumentService(db).list_for_user(user.id)
    return success_response({"documents": [DocumentOut.model_validate(document) for document in documents]})


@router.get("")
async def list_documents(
    status: Optional[DocumentStatus] = None,
    document_type: Optional[DocumentType] = Query(None, alias="documentType"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    _: CurrentUser = StaffOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    documents, total = await DocumentService(db).list_documents(status, document_type, page, limit)
    return success_response({
        "documents": [DocumentOut.model_validate(document) for document in documents],
        "pagination": Pagination.build(page, limit, total),
    })


@router.get("/{document_id}")
async def get_document(
    document_id: UUID,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    document = await DocumentService(db).get_document(user, document_id)
    return success_response({"document": DocumentOut.model_validate(document)})


@router.patch("/{document_id}/verify")
async def verify_document(
    document_id: UUID,
    request: VerifyDocumentRequest,
    user: CurrentUser = StaffOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    document = await DocumentService(db).verify(user.id, document_id, request)
    return success_response({"document": DocumentOut.model_validate(document)}, "Document verified")


@router.delete("/{document_id}")
async def delete_document(
    document_id: UUID,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    await DocumentService(db).delete(user.id, document_id)
    return success_response(message="Document deleted")

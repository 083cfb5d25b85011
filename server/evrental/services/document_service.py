"""Identity document service: submission and verification."""

import logging
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import atomic
from ..core.dependencies import CurrentUser
from ..core.exceptions import AuthorizationError, ConflictError, NotFoundError
from ..core.timeutils import utcnow
from ..models.document import DocumentStatus, DocumentType, UserDocument
from ..models.notification import NotificationType
from ..schemas.registry import SubmitDocumentRequest, VerifyDocumentRequest
from .notification_service import NotificationService

logger = logging.getLogger(__name__)


class DocumentService:
    """Service for renter document operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.notifications = NotificationService(db)

    async def get_document_by_id_or_raise(self, document_id: UUID) -> UserDocument:
        document = await self.db.get(UserDocument, document_id)
        if not document:
            raise NotFoundError(resource_type="document", resource_id=document_id)
        return document

    async def get_document(self, actor: CurrentUser, document_id: UUID) -> UserDocument:
        """Get a document visible to the actor."""
        document = await self.get_document_by_id_or_raise(document_id)
        if not actor.is_staff and document.user_id != actor.id:
            raise AuthorizationError("You can only view your own documents")
        return document

    async def submit(self, user_id: UUID, request: SubmitDocumentRequest) -> UserDocument:
        """
        Submit a document for verification.

        A PENDING or REJECTED document of the same type is replaced by the
        new submission.

        Raises:
            ConflictError: If an APPROVED document of this type already exists
        """
        async with atomic(self.db):
            existing = await self.db.scalar(
                select(UserDocument).where(
                    UserDocument.user_id == user_id,
                    UserDocument.document_type == request.document_type,
                )
            )
            if existing and existing.status == DocumentStatus.APPROVED:
                raise ConflictError(
                    detail=f"An approved {request.document_type.value} is already on file",
                    code="DOCUMENT_ALREADY_APPROVED",
                    conflicting_resource={"documentId": str(existing.id)}
                )

            if existing:
                document = existing
                for field, value in request.model_dump().items():
                    setattr(document, field, value)
                document.rejection_reason = None
                document.verified_by = None
                document.verified_at = None
            else:
                document = UserDocument(user_id=user_id, **request.model_dump())
                self.db.add(document)
            document.status = DocumentStatus.PENDING

        logger.info(
            "Document submitted",
            extra={
                "document_id": str(document.id),
                "user_id": str(user_id),
                "document_type": request.document_type.value,
                "replaced": existing is not None,
            }
        )
        return document

    async def list_for_user(self, user_id: UUID) -> Sequence[UserDocument]:
        result = await self.db.execute(
            select(UserDocument).where(UserDocument.user_id == user_id).order_by(UserDocument.created_at.desc())
        )
        return result.scalars().all()

    async def list_documents(
        self,
        status: Optional[DocumentStatus] = None,
        document_type: Optional[DocumentType] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[Sequence[UserDocument], int]:
        """All documents for review, oldest first so the queue is worked in order."""
        conditions = []
        if status:
            conditions.append(UserDocument.status == status)
        if document_type:
            conditions.append(UserDocument.document_type == document_type)

        total = await self.db.scalar(select(func.count()).select_from(UserDocument).where(*conditions))
        result = await self.db.execute(
            select(UserDocument)
            .where(*conditions)
            .order_by(UserDocument.created_at)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return result.scalars().all(), total or 0

    async def verify(self, verifier_id: UUID, document_id: UUID, request: VerifyDocumentRequest) -> UserDocument:
        """Approve or reject a document and notify its owner."""
        async with atomic(self.db):
            document = await self.get_document_by_id_or_raise(document_id)
            document.status = request.status
            document.rejection_reason = request.rejection_reason if request.status == DocumentStatus.REJECTED else None
            document.verified_by = verifier_id
            document.verified_at = utcnow()

            approved = request.status == DocumentStatus.APPROVED
            kind = DocumentType(document.document_type).value
            self.notifications.notify(
                user_id=document.user_id,
                type=NotificationType.DOCUMENT_VERIFIED,
                title="Document approved" if approved else "Document rejected",
                message=(
                    f"Your {kind} has been approved."
                    if approved else f"Your {kind} was rejected: {request.rejection_reason}"
                ),
                data={"documentId": str(document.id), "status": request.status.value},
            )

        logger.info(
            "Document verified",
            extra={"document_id": str(document_id), "verifier_id": str(verifier_id), "status": request.status.value}
        )
        return document

    async def delete(self, user_id: UUID, document_id: UUID) -> None:
        """
        Delete one of the user's documents.

        Raises:
            NotFoundError: If the document does not exist or belongs to someone else
            ConflictError: If the document is APPROVED
        """
        async with atomic(self.db):
            document = await self.get_document_by_id_or_raise(document_id)
            if document.user_id != user_id:
                raise NotFoundError(resource_type="document", resource_id=document_id)
            if document.status == DocumentStatus.APPROVED:
                raise ConflictError(
                    detail="Approved documents cannot be deleted",
                    code="DOCUMENT_ALREADY_APPROVED",
                    conflicting_resource={"documentId": str(document_id)}
                )
            await self.db.delete(document)

        logger.info("Document deleted", extra={"document_id": str(document_id), "user_id": str(user_id)})

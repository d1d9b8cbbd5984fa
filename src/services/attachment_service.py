"""
Attachment Service
Receipt metadata attached to claims
"""

from datetime import datetime
from typing import Any, Dict, List
from sqlalchemy.orm import Session

from src.config.permissions import Permission
from src.models.attachment import Attachment
from src.models.audit_log import AuditAction
from src.models.claim import Claim, EDITABLE_CLAIM_STATUSES
from src.models.user import User
from src.services.audit_service import audit_service
from src.utils.exceptions import NotFoundError, ForbiddenError, BadRequestError
from src.utils.file_handler import validate_file, generate_stored_filename, build_storage_url
from src.utils.logger import setup_logger

logger = setup_logger()


class AttachmentService:
    """Service for claim attachments"""

    def _claim(self, db: Session, claim_id: int) -> Claim:
        claim = db.query(Claim).filter(
            Claim.id == claim_id,
            Claim.deleted_at.is_(None)
        ).first()
        if not claim:
            raise NotFoundError("Claim not found")
        return claim

    def _get(self, db: Session, attachment_id: int) -> Attachment:
        attachment = db.query(Attachment).filter(
            Attachment.id == attachment_id,
            Attachment.deleted_at.is_(None)
        ).first()
        if not attachment:
            raise NotFoundError("Attachment not found")
        return attachment

    def _has_access(self, claim: Claim, user: User) -> bool:
        travel_request = claim.travel_request
        return (
            claim.submitter_id == user.id
            or travel_request.requester_id == user.id
            or travel_request.is_participant(user.id)
        )

    def _check_read(self, claim: Claim, user: User):
        if self._has_access(claim, user):
            return
        if user.has_permission(Permission.VIEW_ALL_CLAIMS):
            return
        if any(a.approver_id == user.id for a in claim.approvals):
            return
        raise ForbiddenError("You do not have access to this claim's attachments")

    async def get_by_claim(self, db: Session, current_user: User, claim_id: int) -> List[Attachment]:
        claim = self._claim(db, claim_id)
        self._check_read(claim, current_user)
        return db.query(Attachment).filter(
            Attachment.claim_id == claim.id,
            Attachment.deleted_at.is_(None)
        ).order_by(Attachment.created_at.asc()).all()

    async def get_by_id(self, db: Session, current_user: User, attachment_id: int) -> Attachment:
        attachment = self._get(db, attachment_id)
        self._check_read(attachment.claim, current_user)
        return attachment

    async def get_download_url(self, db: Session, current_user: User, attachment_id: int) -> Dict[str, Any]:
        attachment = await self.get_by_id(db, current_user, attachment_id)
        return {
            "id": attachment.id,
            "url": attachment.storage_url,
            "filename": attachment.original_name,
            "mime_type": attachment.mime_type,
            "file_size": attachment.file_size
        }

    async def create(self, db: Session, current_user: User, data: Dict[str, Any]) -> Attachment:
        """
        Register an uploaded receipt against a claim

        Raises:
            BadRequestError: Claim not editable, or file rejected by size/type rules
            ForbiddenError: Caller is not the submitter, requester or a participant
        """
        claim = self._claim(db, data["claim_id"])
        if not self._has_access(claim, current_user):
            raise ForbiddenError("You cannot add attachments to this claim")
        if claim.status not in EDITABLE_CLAIM_STATUSES:
            raise BadRequestError("Attachments can only be added to claims in DRAFT or REVISION status")

        is_valid, error = validate_file(data["mime_type"], data["file_size"])
        if not is_valid:
            logger.warning(f"Attachment rejected for claim {claim.claim_number}: {error}")
            raise BadRequestError(error)

        filename = data.get("filename") or generate_stored_filename(data["original_name"], claim.id)
        attachment = Attachment(
            claim_id=claim.id,
            filename=filename,
            original_name=data["original_name"],
            mime_type=data["mime_type"].lower(),
            file_size=data["file_size"],
            storage_url=data.get("storage_url") or build_storage_url(filename),
            storage_provider=data.get("storage_provider") or "local"
        )
        db.add(attachment)
        db.flush()
        audit_service.record(
            db, current_user.id, AuditAction.CREATE, "Attachment", attachment.id,
            metadata={"claim_id": claim.id, "original_name": attachment.original_name}
        )
        db.commit()
        db.refresh(attachment)
        logger.info(f"Attachment {attachment.original_name} added to claim {claim.claim_number}")
        return attachment

    async def update(self, db: Session, current_user: User, attachment_id: int, data: Dict[str, Any]) -> Attachment:
        """Update OCR results for an attachment"""
        attachment = self._get(db, attachment_id)
        if (
            attachment.claim.submitter_id != current_user.id
            and not current_user.has_permission(Permission.EDIT_ANY_ATTACHMENT)
        ):
            raise ForbiddenError("Only the submitter can update this attachment")

        for field in ("ocr_extracted_data", "ocr_confidence"):
            if field in data:
                setattr(attachment, field, data[field])
        audit_service.record(
            db, current_user.id, AuditAction.UPDATE, "Attachment", attachment.id,
            metadata={"fields": sorted(data.keys())}
        )
        db.commit()
        db.refresh(attachment)
        return attachment

    async def delete(self, db: Session, current_user: User, attachment_id: int) -> Attachment:
        attachment = self._get(db, attachment_id)
        claim = attachment.claim
        if not self._has_access(claim, current_user):
            raise ForbiddenError("You cannot delete this attachment")
        if claim.status not in EDITABLE_CLAIM_STATUSES:
            raise BadRequestError("Attachments can only be removed from claims in DRAFT or REVISION status")

        attachment.deleted_at = datetime.utcnow()
        audit_service.record(
            db, current_user.id, AuditAction.DELETE, "Attachment", attachment.id,
            metadata={"claim_id": claim.id}
        )
        db.commit()
        logger.info(f"Attachment {attachment.id} removed from claim {claim.claim_number}")
        return attachment


# Create singleton instance
attachment_service = AttachmentService()

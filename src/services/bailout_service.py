"""
Bailout Service
Cash advance flow: DRAFT -> SUBMITTED -> APPROVED_CHIEF -> APPROVED_DIRECTOR -> DISBURSED
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session

from src.config.permissions import Permission, roles_for
from src.models.audit_log import AuditAction
from src.models.bailout import Bailout, BailoutStatus
from src.models.notification import NotificationPriority
from src.models.travel_request import TravelRequest
from src.models.user import User
from src.services.audit_service import audit_service
from src.services.notification_service import notification_service
from src.utils.exceptions import NotFoundError, ForbiddenError, BadRequestError
from src.utils.helpers import generate_document_number, model_snapshot, paginate
from src.utils.logger import setup_logger

logger = setup_logger()

MIN_DESCRIPTION_LENGTH = 10
MIN_REJECTION_LENGTH = 5


class BailoutService:
    """Service for bailouts"""

    def _get(self, db: Session, bailout_id: int) -> Bailout:
        bailout = db.query(Bailout).filter(
            Bailout.id == bailout_id,
            Bailout.deleted_at.is_(None)
        ).first()
        if not bailout:
            raise NotFoundError("Bailout not found")
        return bailout

    def _require(self, current_user: User, permission: Permission, message: str):
        if not current_user.has_permission(permission):
            raise ForbiddenError(message)

    def _check_fields(self, data: Dict[str, Any]):
        description = data.get("description")
        if description is not None and len(description.strip()) < MIN_DESCRIPTION_LENGTH:
            raise BadRequestError(f"Description must be at least {MIN_DESCRIPTION_LENGTH} characters")
        amount = data.get("amount")
        if amount is not None and amount <= 0:
            raise BadRequestError("Amount must be greater than zero")

    def _notify_roles(self, db: Session, permission: Permission, bailout: Bailout, title: str, exclude: int):
        approvers = db.query(User).filter(
            User.role.in_(roles_for(permission)),
            User.deleted_at.is_(None),
            User.id != exclude
        ).all()
        for approver in approvers:
            notification_service.notify(
                db,
                user_id=approver.id,
                title=title,
                message=f"Bailout {bailout.bailout_number} for {bailout.amount:,.2f} needs your approval",
                entity_type="Bailout",
                entity_id=bailout.id,
                priority=NotificationPriority.HIGH
            )

    def build(self, db: Session, travel_request: TravelRequest, current_user: User, data: Dict[str, Any]) -> Bailout:
        """
        Add a DRAFT bailout to the caller's transaction

        Args:
            db: Database session
            travel_request: Parent trip
            current_user: Requester
            data: Bailout fields

        Returns:
            Bailout: The pending bailout
        """
        data.pop("travel_request_id", None)
        self._check_fields(data)
        bailout = Bailout(
            bailout_number=generate_document_number(db, Bailout.bailout_number, "BLT"),
            travel_request_id=travel_request.id,
            requester_id=current_user.id,
            status=BailoutStatus.DRAFT,
            **data
        )
        db.add(bailout)
        db.flush()
        audit_service.record(
            db, current_user.id, AuditAction.CREATE, "Bailout", bailout.id,
            changes={"after": model_snapshot(bailout)}
        )
        return bailout

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(self, db: Session, current_user: User, data: Dict[str, Any]) -> Bailout:
        travel_request = db.query(TravelRequest).filter(
            TravelRequest.id == data["travel_request_id"],
            TravelRequest.deleted_at.is_(None)
        ).first()
        if not travel_request:
            raise NotFoundError("Travel request not found")
        if travel_request.requester_id != current_user.id:
            raise ForbiddenError("Only the travel requester can request a bailout")

        bailout = self.build(db, travel_request, current_user, data)
        db.commit()
        db.refresh(bailout)
        logger.info(f"Bailout {bailout.bailout_number} created by {current_user.email}")
        return bailout

    async def update(self, db: Session, current_user: User, bailout_id: int, data: Dict[str, Any]) -> Bailout:
        bailout = self._get(db, bailout_id)
        if bailout.requester_id != current_user.id:
            raise ForbiddenError("Only the requester can update this bailout")
        if bailout.status != BailoutStatus.DRAFT:
            raise BadRequestError("Only draft bailouts can be updated")
        self._check_fields(data)

        before = model_snapshot(bailout)
        for field, value in data.items():
            setattr(bailout, field, value)
        audit_service.record(
            db, current_user.id, AuditAction.UPDATE, "Bailout", bailout.id,
            changes={"before": before, "after": model_snapshot(bailout)}
        )
        db.commit()
        db.refresh(bailout)
        return bailout

    async def submit(self, db: Session, current_user: User, bailout_id: int) -> Bailout:
        bailout = self._get(db, bailout_id)
        if bailout.requester_id != current_user.id:
            raise ForbiddenError("Only the requester can submit this bailout")
        if bailout.status != BailoutStatus.DRAFT:
            raise BadRequestError("Only draft bailouts can be submitted")

        bailout.status = BailoutStatus.SUBMITTED
        bailout.submitted_at = datetime.utcnow()
        audit_service.record(db, current_user.id, AuditAction.SUBMIT, "Bailout", bailout.id)
        self._notify_roles(db, Permission.APPROVE_BAILOUT_CHIEF, bailout, "Bailout awaiting chief approval", current_user.id)
        db.commit()
        notification_service.deliver_pending(db)
        db.refresh(bailout)
        logger.info(f"Bailout {bailout.bailout_number} submitted")
        return bailout

    async def approve_by_chief(self, db: Session, current_user: User, bailout_id: int, notes: Optional[str] = None) -> Bailout:
        self._require(current_user, Permission.APPROVE_BAILOUT_CHIEF, "Only sales chiefs and above can approve bailouts")
        bailout = self._get(db, bailout_id)
        if bailout.status != BailoutStatus.SUBMITTED:
            raise BadRequestError("Only submitted bailouts can be approved by the chief")

        bailout.status = BailoutStatus.APPROVED_CHIEF
        bailout.approved_by_chief_id = current_user.id
        bailout.chief_approved_at = datetime.utcnow()
        bailout.chief_notes = notes

        audit_service.record(
            db, current_user.id, AuditAction.APPROVE, "Bailout", bailout.id,
            metadata={"stage": "chief", "notes": notes}
        )
        self._notify_roles(db, Permission.APPROVE_BAILOUT_DIRECTOR, bailout, "Bailout awaiting director approval", current_user.id)
        db.commit()
        notification_service.deliver_pending(db)
        db.refresh(bailout)
        logger.info(f"Bailout {bailout.bailout_number} approved by chief {current_user.email}")
        return bailout

    async def approve_by_director(self, db: Session, current_user: User, bailout_id: int, notes: Optional[str] = None) -> Bailout:
        self._require(current_user, Permission.APPROVE_BAILOUT_DIRECTOR, "Only directors can give final bailout approval")
        bailout = self._get(db, bailout_id)
        if bailout.status != BailoutStatus.APPROVED_CHIEF:
            raise BadRequestError("Bailout must be approved by the chief first")

        bailout.status = BailoutStatus.APPROVED_DIRECTOR
        bailout.approved_by_director_id = current_user.id
        bailout.director_approved_at = datetime.utcnow()
        bailout.director_notes = notes

        audit_service.record(
            db, current_user.id, AuditAction.APPROVE, "Bailout", bailout.id,
            metadata={"stage": "director", "notes": notes}
        )
        notification_service.notify(
            db,
            user_id=bailout.requester_id,
            title="Bailout approved",
            message=f"Bailout {bailout.bailout_number} is approved and awaiting disbursement",
            entity_type="Bailout",
            entity_id=bailout.id
        )
        db.commit()
        notification_service.deliver_pending(db)
        db.refresh(bailout)
        return bailout

    async def reject(self, db: Session, current_user: User, bailout_id: int, rejection_reason: str) -> Bailout:
        self._require(current_user, Permission.REJECT_BAILOUT, "Only sales chiefs and above can reject bailouts")
        if not rejection_reason or len(rejection_reason.strip()) < MIN_REJECTION_LENGTH:
            raise BadRequestError(f"Rejection reason must be at least {MIN_REJECTION_LENGTH} characters")

        bailout = self._get(db, bailout_id)
        if bailout.status not in (BailoutStatus.SUBMITTED, BailoutStatus.APPROVED_CHIEF):
            raise BadRequestError("Bailout cannot be rejected in its current status")

        bailout.status = BailoutStatus.REJECTED
        bailout.rejected_at = datetime.utcnow()
        bailout.rejection_reason = rejection_reason

        audit_service.record(
            db, current_user.id, AuditAction.REJECT, "Bailout", bailout.id,
            metadata={"rejection_reason": rejection_reason}
        )
        notification_service.notify(
            db,
            user_id=bailout.requester_id,
            title="Bailout rejected",
            message=f"Bailout {bailout.bailout_number} was rejected: {rejection_reason}",
            entity_type="Bailout",
            entity_id=bailout.id,
            priority=NotificationPriority.HIGH
        )
        db.commit()
        notification_service.deliver_pending(db)
        db.refresh(bailout)
        logger.info(f"Bailout {bailout.bailout_number} rejected by {current_user.email}")
        return bailout

    async def disburse(self, db: Session, current_user: User, bailout_id: int, disbursement_ref: Optional[str] = None) -> Bailout:
        self._require(current_user, Permission.DISBURSE_BAILOUT, "Only finance can disburse bailouts")
        bailout = self._get(db, bailout_id)
        if bailout.status != BailoutStatus.APPROVED_DIRECTOR:
            raise BadRequestError("Only director-approved bailouts can be disbursed")

        bailout.status = BailoutStatus.DISBURSED
        bailout.disbursed_at = datetime.utcnow()
        bailout.disbursement_ref = disbursement_ref

        audit_service.record(
            db, current_user.id, AuditAction.CLOSE, "Bailout", bailout.id,
            metadata={"disbursement_ref": disbursement_ref}
        )
        notification_service.notify(
            db,
            user_id=bailout.requester_id,
            title="Bailout disbursed",
            message=f"Bailout {bailout.bailout_number} has been disbursed",
            entity_type="Bailout",
            entity_id=bailout.id
        )
        db.commit()
        notification_service.deliver_pending(db)
        db.refresh(bailout)
        logger.info(f"Bailout {bailout.bailout_number} disbursed by {current_user.email}")
        return bailout

    async def delete(self, db: Session, current_user: User, bailout_id: int) -> Bailout:
        bailout = self._get(db, bailout_id)
        if bailout.requester_id != current_user.id:
            raise ForbiddenError("Only the requester can delete this bailout")
        if bailout.status != BailoutStatus.DRAFT:
            raise BadRequestError("Only draft bailouts can be deleted")
        bailout.deleted_at = datetime.utcnow()
        audit_service.record(db, current_user.id, AuditAction.DELETE, "Bailout", bailout.id)
        db.commit()
        return bailout

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_pending_approvals(self, db: Session, current_user: User) -> List[Bailout]:
        """Bailouts waiting on a stage the caller can act on"""
        statuses = []
        if current_user.has_permission(Permission.APPROVE_BAILOUT_CHIEF):
            statuses.append(BailoutStatus.SUBMITTED)
        if current_user.has_permission(Permission.APPROVE_BAILOUT_DIRECTOR):
            statuses.append(BailoutStatus.APPROVED_CHIEF)
        if current_user.has_permission(Permission.DISBURSE_BAILOUT):
            statuses.append(BailoutStatus.APPROVED_DIRECTOR)
        if not statuses:
            return []
        return db.query(Bailout).filter(
            Bailout.status.in_(statuses),
            Bailout.deleted_at.is_(None)
        ).order_by(Bailout.submitted_at.asc()).all()

    async def get_all(
        self,
        db: Session,
        current_user: User,
        status: Optional[BailoutStatus] = None,
        travel_request_id: Optional[int] = None,
        limit: int = 50,
        cursor: Optional[int] = None
    ):
        query = db.query(Bailout).filter(Bailout.deleted_at.is_(None))
        if not current_user.has_permission(Permission.VIEW_ALL_BAILOUTS):
            query = query.filter(or_(
                Bailout.requester_id == current_user.id,
                Bailout.travel_request.has(TravelRequest.requester_id == current_user.id)
            ))
        if status:
            query = query.filter(Bailout.status == status)
        if travel_request_id is not None:
            query = query.filter(Bailout.travel_request_id == travel_request_id)
        items, next_cursor = paginate(query, Bailout.id, limit, cursor)
        return {"items": items, "next_cursor": next_cursor}

    async def get_by_id(self, db: Session, current_user: User, bailout_id: int) -> Bailout:
        bailout = self._get(db, bailout_id)
        if bailout.requester_id != current_user.id and not current_user.has_permission(Permission.VIEW_ALL_BAILOUTS):
            raise ForbiddenError("You do not have access to this bailout")
        return bailout


# Create singleton instance
bailout_service = BailoutService()

"""
Claim Service
Entertainment and non-entertainment expense claims
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session

from src.config.permissions import Permission
from src.config.settings import settings
from src.models.approval import ApprovalLevel, ApprovalStatus
from src.models.audit_log import AuditAction
from src.models.chart_of_account import ChartOfAccount
from src.models.claim import Claim, ClaimStatus, ClaimType, EDITABLE_CLAIM_STATUSES
from src.models.notification import NotificationPriority
from src.models.travel_request import TravelRequest, TravelStatus
from src.models.user import User, UserRole
from src.services.approval_service import approval_service
from src.services.audit_service import audit_service
from src.services.notification_service import notification_service
from src.utils.exceptions import NotFoundError, ForbiddenError, BadRequestError
from src.utils.helpers import generate_document_number, model_snapshot, paginate
from src.utils.logger import setup_logger

logger = setup_logger()

MIN_DESCRIPTION_LENGTH = 10

ENTERTAINMENT_FIELDS = (
    "entertainment_type", "entertainment_date", "entertainment_location", "entertainment_address",
    "guest_name", "guest_company", "guest_position", "is_government_official",
)
NON_ENTERTAINMENT_FIELDS = (
    "expense_category", "expense_date", "expense_destination", "customer_name",
)


class ClaimService:
    """Service for claims"""

    def _get(self, db: Session, claim_id: int) -> Claim:
        claim = db.query(Claim).filter(
            Claim.id == claim_id,
            Claim.deleted_at.is_(None)
        ).first()
        if not claim:
            raise NotFoundError("Claim not found")
        return claim

    def _check_fields(self, db: Session, data: Dict[str, Any]):
        amount = data.get("amount")
        if amount is not None and amount <= 0:
            raise BadRequestError("Amount must be greater than zero")
        description = data.get("description")
        if description is not None and len(description.strip()) < MIN_DESCRIPTION_LENGTH:
            raise BadRequestError(f"Description must be at least {MIN_DESCRIPTION_LENGTH} characters")
        coa_id = data.get("coa_id")
        if coa_id is not None and not db.query(ChartOfAccount).filter(
            ChartOfAccount.id == coa_id,
            ChartOfAccount.is_active.is_(True)
        ).first():
            raise NotFoundError("Chart of account not found or inactive")

    def _require_owner_editable(self, claim: Claim, current_user: User, verb: str):
        if claim.submitter_id != current_user.id:
            raise ForbiddenError(f"Only the submitter can {verb} this claim")
        if claim.status not in EDITABLE_CLAIM_STATUSES:
            raise BadRequestError(f"Can only {verb} claims in DRAFT or REVISION status")

    async def _create(self, db: Session, current_user: User, claim_type: ClaimType, data: Dict[str, Any]) -> Claim:
        travel_request = db.query(TravelRequest).filter(
            TravelRequest.id == data["travel_request_id"],
            TravelRequest.deleted_at.is_(None)
        ).first()
        if not travel_request:
            raise NotFoundError("Travel request not found")
        if travel_request.status not in (TravelStatus.APPROVED, TravelStatus.LOCKED):
            raise BadRequestError("Claims can only be created for approved travel requests")
        if travel_request.requester_id != current_user.id and not travel_request.is_participant(current_user.id):
            raise ForbiddenError("Only the requester or participants can claim against this trip")

        self._check_fields(db, data)

        claim = Claim(
            claim_number=generate_document_number(db, Claim.claim_number, "CLM"),
            submitter_id=current_user.id,
            claim_type=claim_type,
            status=ClaimStatus.DRAFT,
            **data
        )
        db.add(claim)
        db.flush()
        audit_service.record(
            db, current_user.id, AuditAction.CREATE, "Claim", claim.id,
            changes={"after": model_snapshot(claim)}
        )
        db.commit()
        db.refresh(claim)
        logger.info(f"Claim {claim.claim_number} ({claim_type.value}) created by {current_user.email}")
        return claim

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create_entertainment(self, db: Session, current_user: User, data: Dict[str, Any]) -> Claim:
        return await self._create(db, current_user, ClaimType.ENTERTAINMENT, data)

    async def create_non_entertainment(self, db: Session, current_user: User, data: Dict[str, Any]) -> Claim:
        return await self._create(db, current_user, ClaimType.NON_ENTERTAINMENT, data)

    async def update(self, db: Session, current_user: User, claim_id: int, data: Dict[str, Any]) -> Claim:
        claim = self._get(db, claim_id)
        self._require_owner_editable(claim, current_user, "update")

        foreign = NON_ENTERTAINMENT_FIELDS if claim.claim_type == ClaimType.ENTERTAINMENT else ENTERTAINMENT_FIELDS
        if any(field in data for field in foreign):
            raise BadRequestError(f"Field not applicable to {claim.claim_type.value} claims")
        self._check_fields(db, data)

        before = model_snapshot(claim)
        for field, value in data.items():
            setattr(claim, field, value)
        audit_service.record(
            db, current_user.id, AuditAction.UPDATE, "Claim", claim.id,
            changes={"before": before, "after": model_snapshot(claim)}
        )
        db.commit()
        db.refresh(claim)
        return claim

    async def submit(self, db: Session, current_user: User, claim_id: int) -> Claim:
        """
        Submit a claim into its approval chain

        L1 is the submitter's supervisor; claims above the threshold also
        need an L2 sign-off from finance.

        Raises:
            BadRequestError: If the claim has no attachment or the status does not allow submission
        """
        claim = self._get(db, claim_id)
        if claim.submitter_id != current_user.id:
            raise ForbiddenError("Only the submitter can submit this claim")
        if claim.status not in EDITABLE_CLAIM_STATUSES:
            raise BadRequestError("Can only submit claims in DRAFT or REVISION status")
        if not claim.active_attachments:
            raise BadRequestError("At least one attachment is required before submitting")

        assignments = []
        if current_user.supervisor_id is not None:
            assignments.append((ApprovalLevel.L1_SUPERVISOR, current_user.supervisor_id))
        if claim.amount > settings.CLAIM_L2_THRESHOLD:
            finance = db.query(User).filter(
                User.role == UserRole.FINANCE,
                User.deleted_at.is_(None),
                User.id != current_user.id
            ).order_by(User.created_at.asc(), User.id.asc()).first()
            if finance:
                assignments.append((ApprovalLevel.L2_MANAGER, finance.id))

        chain = approval_service.build_chain(db, claim, assignments)

        claim.status = ClaimStatus.SUBMITTED
        claim.submitted_at = datetime.utcnow()

        audit_service.record(
            db, current_user.id, AuditAction.SUBMIT, "Claim", claim.id,
            metadata={"approval_levels": [a.level.value for a in chain], "amount": claim.amount}
        )
        first = next((a for a in chain if a.status == ApprovalStatus.PENDING), None)
        if first is not None:
            notification_service.notify(
                db,
                user_id=first.approver_id,
                title="Claim awaiting approval",
                message=f"Claim {claim.claim_number} for {claim.amount:,.2f} from {current_user.name} needs your approval",
                entity_type="Claim",
                entity_id=claim.id,
                priority=NotificationPriority.HIGH
            )
        db.commit()
        notification_service.deliver_pending(db)
        db.refresh(claim)
        logger.info(f"Claim {claim.claim_number} submitted with {len(chain)} approval level(s)")
        return claim

    async def mark_as_paid(
        self,
        db: Session,
        current_user: User,
        claim_id: int,
        payment_reference: Optional[str] = None
    ) -> Claim:
        claim = self._get(db, claim_id)
        if claim.status != ClaimStatus.APPROVED:
            raise BadRequestError("Only approved claims can be marked as paid")

        now = datetime.utcnow()
        claim.status = ClaimStatus.PAID
        claim.is_paid = True
        claim.paid_at = now
        claim.paid_by_id = current_user.id
        claim.payment_reference = payment_reference
        db.flush()

        travel_request = claim.travel_request
        travel_request.total_reimbursed = db.query(func.coalesce(func.sum(Claim.amount), 0)).filter(
            Claim.travel_request_id == travel_request.id,
            Claim.status == ClaimStatus.PAID,
            Claim.deleted_at.is_(None)
        ).scalar()

        audit_service.record(
            db, current_user.id, AuditAction.UPDATE, "Claim", claim.id,
            metadata={"action": "paid", "payment_reference": payment_reference, "amount": claim.amount}
        )
        notification_service.notify(
            db,
            user_id=claim.submitter_id,
            title="Claim paid",
            message=f"Claim {claim.claim_number} for {claim.amount:,.2f} has been paid",
            entity_type="Claim",
            entity_id=claim.id
        )
        db.commit()
        notification_service.deliver_pending(db)
        db.refresh(claim)
        logger.info(f"Claim {claim.claim_number} paid by {current_user.email}")
        return claim

    async def delete(self, db: Session, current_user: User, claim_id: int) -> Claim:
        claim = self._get(db, claim_id)
        self._require_owner_editable(claim, current_user, "delete")
        claim.deleted_at = datetime.utcnow()
        audit_service.record(db, current_user.id, AuditAction.DELETE, "Claim", claim.id)
        db.commit()
        logger.info(f"Claim {claim.claim_number} deleted by {current_user.email}")
        return claim

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _visible(self, db: Session, current_user: User):
        query = db.query(Claim).filter(Claim.deleted_at.is_(None))
        if not current_user.has_permission(Permission.VIEW_ALL_CLAIMS):
            query = query.filter(Claim.submitter_id == current_user.id)
        return query

    async def get_all(
        self,
        db: Session,
        current_user: User,
        status: Optional[ClaimStatus] = None,
        claim_type: Optional[ClaimType] = None,
        travel_request_id: Optional[int] = None,
        limit: int = 50,
        cursor: Optional[int] = None
    ):
        query = self._visible(db, current_user)
        if status:
            query = query.filter(Claim.status == status)
        if claim_type:
            query = query.filter(Claim.claim_type == claim_type)
        if travel_request_id is not None:
            query = query.filter(Claim.travel_request_id == travel_request_id)
        items, next_cursor = paginate(query, Claim.id, limit, cursor)
        return {"items": items, "next_cursor": next_cursor}

    async def get_by_id(self, db: Session, current_user: User, claim_id: int) -> Claim:
        claim = self._get(db, claim_id)
        if (
            claim.submitter_id != current_user.id
            and not current_user.has_permission(Permission.VIEW_ALL_CLAIMS)
            and not any(a.approver_id == current_user.id for a in claim.approvals)
        ):
            raise ForbiddenError("You do not have access to this claim")
        return claim

    async def get_by_travel_request(self, db: Session, current_user: User, travel_request_id: int) -> List[Claim]:
        travel_request = db.query(TravelRequest).filter(TravelRequest.id == travel_request_id).first()
        if not travel_request:
            raise NotFoundError("Travel request not found")
        query = db.query(Claim).filter(
            Claim.travel_request_id == travel_request_id,
            Claim.deleted_at.is_(None)
        )
        if (
            travel_request.requester_id != current_user.id
            and not current_user.has_permission(Permission.VIEW_ALL_CLAIMS)
        ):
            query = query.filter(Claim.submitter_id == current_user.id)
        return query.order_by(Claim.created_at.asc()).all()

    async def get_statistics(self, db: Session, current_user: User) -> Dict[str, Any]:
        query = self._visible(db, current_user)
        by_status = query.with_entities(
            Claim.status, func.count(Claim.id), func.coalesce(func.sum(Claim.amount), 0)
        ).group_by(Claim.status).all()
        by_type = query.with_entities(
            Claim.claim_type, func.count(Claim.id), func.coalesce(func.sum(Claim.amount), 0)
        ).group_by(Claim.claim_type).all()

        return {
            "total": query.count(),
            "by_status": {s.value: {"count": c, "amount": a} for s, c, a in by_status},
            "by_type": {t.value: {"count": c, "amount": a} for t, c, a in by_type},
            "total_amount": sum(a for _, _, a in by_status),
            "paid_amount": sum(a for s, _, a in by_status if s == ClaimStatus.PAID)
        }


# Create singleton instance
claim_service = ClaimService()

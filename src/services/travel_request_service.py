"""
Travel Request Service
Trip lifecycle: draft, submission into the approval chain, lock and close
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from src.config.permissions import Permission
from src.models.approval import Approval, ApprovalLevel, ApprovalStatus
from src.models.audit_log import AuditAction
from src.models.claim import Claim, SETTLED_CLAIM_STATUSES
from src.models.notification import NotificationPriority
from src.models.project import Project
from src.models.travel_request import (
    TravelRequest, TravelParticipant, TravelStatus, TravelType,
    EDITABLE_TRAVEL_STATUSES, REVIEWABLE_TRAVEL_STATUSES
)
from src.models.user import User, UserRole
from src.services.approval_service import approval_service
from src.services.audit_service import audit_service
from src.services.bailout_service import bailout_service
from src.services.notification_service import notification_service
from src.utils.exceptions import NotFoundError, ForbiddenError, BadRequestError
from src.utils.helpers import generate_document_number, model_snapshot, paginate
from src.utils.logger import setup_logger

logger = setup_logger()

MIN_PURPOSE_LENGTH = 10


class TravelRequestService:
    """Service for travel requests"""

    def _get(self, db: Session, request_id: int) -> TravelRequest:
        request = db.query(TravelRequest).filter(
            TravelRequest.id == request_id,
            TravelRequest.deleted_at.is_(None)
        ).first()
        if not request:
            raise NotFoundError("Travel request not found")
        return request

    def _visible(self, db: Session, current_user: User):
        query = db.query(TravelRequest).filter(TravelRequest.deleted_at.is_(None))
        if current_user.has_permission(Permission.VIEW_ALL_TRAVEL_REQUESTS):
            return query
        return query.filter(or_(
            TravelRequest.requester_id == current_user.id,
            TravelRequest.participants.any(TravelParticipant.user_id == current_user.id)
        ))

    def _can_view(self, request: TravelRequest, current_user: User) -> bool:
        return (
            request.requester_id == current_user.id
            or request.is_participant(current_user.id)
            or current_user.has_permission(Permission.VIEW_ALL_TRAVEL_REQUESTS)
            or any(a.approver_id == current_user.id for a in request.approvals)
        )

    def _validate(
        self,
        db: Session,
        purpose: str,
        travel_type: TravelType,
        start_date: datetime,
        end_date: datetime,
        project_id: Optional[int]
    ):
        if len((purpose or "").strip()) < MIN_PURPOSE_LENGTH:
            raise BadRequestError(f"Purpose must be at least {MIN_PURPOSE_LENGTH} characters")
        if start_date >= end_date:
            raise BadRequestError("Start date must be before end date")
        if travel_type == TravelType.SALES and project_id is None:
            raise BadRequestError("Sales trips require a project")
        if project_id is not None and not db.query(Project).filter(
            Project.id == project_id,
            Project.deleted_at.is_(None)
        ).first():
            raise NotFoundError("Project not found")

    def _set_participants(self, db: Session, request: TravelRequest, participant_ids: List[int]):
        participant_ids = [uid for uid in dict.fromkeys(participant_ids) if uid != request.requester_id]
        found = {
            row.id for row in db.query(User.id).filter(
                User.id.in_(participant_ids), User.deleted_at.is_(None)
            ).all()
        } if participant_ids else set()
        missing = [uid for uid in participant_ids if uid not in found]
        if missing:
            raise NotFoundError(f"Participants not found: {missing}")
        # Keep existing rows so the (request, user) unique key is not re-inserted
        existing = {p.user_id: p for p in request.participants}
        request.participants = [existing.get(uid) or TravelParticipant(user_id=uid) for uid in participant_ids]

    def _require_owner_editable(self, request: TravelRequest, current_user: User, verb: str):
        if request.requester_id != current_user.id:
            raise ForbiddenError(f"Only the requester can {verb} this travel request")
        if request.status not in EDITABLE_TRAVEL_STATUSES:
            raise BadRequestError(f"Can only {verb} requests in DRAFT or REVISION status")

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(self, db: Session, current_user: User, data: Dict[str, Any]) -> TravelRequest:
        """
        Create a DRAFT travel request

        Args:
            db: Database session
            current_user: Requester
            data: Trip fields plus optional participant_ids and bailouts

        Returns:
            TravelRequest: The new request
        """
        participant_ids = data.pop("participant_ids", None) or []
        bailouts = data.pop("bailouts", None) or []
        self._validate(db, data["purpose"], data["travel_type"], data["start_date"], data["end_date"], data.get("project_id"))

        request = TravelRequest(
            request_number=generate_document_number(db, TravelRequest.request_number, "TR"),
            requester_id=current_user.id,
            status=TravelStatus.DRAFT,
            **data
        )
        db.add(request)
        db.flush()

        self._set_participants(db, request, participant_ids)
        for bailout_data in bailouts:
            bailout_service.build(db, request, current_user, dict(bailout_data))

        audit_service.record(
            db, current_user.id, AuditAction.CREATE, "TravelRequest", request.id,
            changes={"after": model_snapshot(request)}
        )
        db.commit()
        db.refresh(request)
        logger.info(f"Travel request {request.request_number} created by {current_user.email}")
        return request

    async def update(self, db: Session, current_user: User, request_id: int, data: Dict[str, Any]) -> TravelRequest:
        request = self._get(db, request_id)
        self._require_owner_editable(request, current_user, "update")

        before = model_snapshot(request)
        participant_ids = data.pop("participant_ids", None)

        self._validate(
            db,
            data.get("purpose", request.purpose),
            data.get("travel_type", request.travel_type),
            data.get("start_date", request.start_date),
            data.get("end_date", request.end_date),
            data.get("project_id", request.project_id)
        )

        for field, value in data.items():
            setattr(request, field, value)
        if participant_ids is not None:
            self._set_participants(db, request, participant_ids)

        audit_service.record(
            db, current_user.id, AuditAction.UPDATE, "TravelRequest", request.id,
            changes={"before": before, "after": model_snapshot(request)}
        )
        db.commit()
        db.refresh(request)
        return request

    def _approver_chain(self, db: Session, requester: User) -> List[tuple]:
        chain = []
        used = {requester.id}

        def add(level: ApprovalLevel, approver_id: Optional[int]):
            if approver_id is not None and approver_id not in used:
                chain.append((level, approver_id))
                used.add(approver_id)

        department = requester.department
        add(ApprovalLevel.L1_SUPERVISOR, requester.supervisor_id)
        add(ApprovalLevel.L2_MANAGER, department.manager_id if department else None)

        director_id = department.director_id if department else None
        if director_id is None or director_id in used:
            fallback = db.query(User).filter(
                User.role.in_([UserRole.DIRECTOR, UserRole.ADMIN]),
                User.id.notin_(used),
                User.deleted_at.is_(None)
            ).order_by(User.created_at.asc(), User.id.asc()).first()
            director_id = fallback.id if fallback else None
        add(ApprovalLevel.L3_DIRECTOR, director_id)
        return chain

    async def submit(self, db: Session, current_user: User, request_id: int) -> TravelRequest:
        """
        Submit a draft or revised request into its approval chain

        Raises:
            ForbiddenError: If the caller is not the requester
            BadRequestError: If the status does not allow submission
        """
        request = self._get(db, request_id)
        if request.requester_id != current_user.id:
            raise ForbiddenError("Only the requester can submit this request")
        if request.status not in EDITABLE_TRAVEL_STATUSES:
            raise BadRequestError("Can only submit requests in DRAFT or REVISION status")

        chain = approval_service.build_chain(db, request, self._approver_chain(db, request.requester))

        request.status = TravelStatus.SUBMITTED
        request.submitted_at = datetime.utcnow()

        audit_service.record(
            db, current_user.id, AuditAction.SUBMIT, "TravelRequest", request.id,
            metadata={"approval_levels": [a.level.value for a in chain]}
        )

        first = next((a for a in chain if a.status == ApprovalStatus.PENDING), None)
        if first is not None:
            notification_service.notify(
                db,
                user_id=first.approver_id,
                title="Travel request awaiting approval",
                message=f"{request.request_number} to {request.destination} from {current_user.name} needs your approval",
                entity_type="TravelRequest",
                entity_id=request.id,
                priority=NotificationPriority.HIGH
            )

        db.commit()
        notification_service.deliver_pending(db)
        db.refresh(request)
        logger.info(f"Travel request {request.request_number} submitted with {len(chain)} approval level(s)")
        return request

    async def lock(self, db: Session, current_user: User, request_id: int) -> TravelRequest:
        request = self._get(db, request_id)
        if request.status != TravelStatus.APPROVED:
            raise BadRequestError("Only approved travel requests can be locked")
        request.status = TravelStatus.LOCKED
        request.locked_at = datetime.utcnow()
        audit_service.record(db, current_user.id, AuditAction.LOCK, "TravelRequest", request.id)
        db.commit()
        db.refresh(request)
        logger.info(f"Travel request {request.request_number} locked by {current_user.email}")
        return request

    async def close(self, db: Session, current_user: User, request_id: int) -> TravelRequest:
        request = self._get(db, request_id)
        if request.status != TravelStatus.LOCKED:
            raise BadRequestError("Only locked travel requests can be closed")

        open_claims = db.query(Claim).filter(
            Claim.travel_request_id == request.id,
            Claim.deleted_at.is_(None),
            Claim.status.notin_(SETTLED_CLAIM_STATUSES)
        ).count()
        if open_claims:
            raise BadRequestError(f"Cannot close: {open_claims} claim(s) are not yet paid or rejected")

        request.status = TravelStatus.CLOSED
        request.closed_at = datetime.utcnow()
        audit_service.record(db, current_user.id, AuditAction.CLOSE, "TravelRequest", request.id)
        db.commit()
        db.refresh(request)
        logger.info(f"Travel request {request.request_number} closed by {current_user.email}")
        return request

    async def delete(self, db: Session, current_user: User, request_id: int) -> TravelRequest:
        request = self._get(db, request_id)
        self._require_owner_editable(request, current_user, "delete")
        request.deleted_at = datetime.utcnow()
        audit_service.record(db, current_user.id, AuditAction.DELETE, "TravelRequest", request.id)
        db.commit()
        logger.info(f"Travel request {request.request_number} deleted by {current_user.email}")
        return request

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_all(
        self,
        db: Session,
        current_user: User,
        status: Optional[TravelStatus] = None,
        travel_type: Optional[TravelType] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: int = 50,
        cursor: Optional[int] = None
    ):
        query = self._visible(db, current_user)
        if status:
            query = query.filter(TravelRequest.status == status)
        if travel_type:
            query = query.filter(TravelRequest.travel_type == travel_type)
        if start_date:
            query = query.filter(TravelRequest.start_date >= start_date)
        if end_date:
            query = query.filter(TravelRequest.end_date <= end_date)
        items, next_cursor = paginate(query, TravelRequest.id, limit, cursor)
        return {"items": items, "next_cursor": next_cursor}

    async def get_by_id(self, db: Session, current_user: User, request_id: int) -> TravelRequest:
        request = self._get(db, request_id)
        if not self._can_view(request, current_user):
            raise ForbiddenError("You do not have access to this travel request")
        return request

    async def get_pending_approvals(self, db: Session, current_user: User) -> List[TravelRequest]:
        return db.query(TravelRequest).join(
            Approval, Approval.travel_request_id == TravelRequest.id
        ).filter(
            Approval.approver_id == current_user.id,
            Approval.status == ApprovalStatus.PENDING,
            TravelRequest.status.in_(REVIEWABLE_TRAVEL_STATUSES),
            TravelRequest.deleted_at.is_(None)
        ).order_by(TravelRequest.submitted_at.asc()).all()

    async def get_statistics(self, db: Session, department_id: Optional[int] = None) -> Dict[str, Any]:
        query = db.query(TravelRequest).filter(TravelRequest.deleted_at.is_(None))
        if department_id is not None:
            query = query.join(User, User.id == TravelRequest.requester_id).filter(User.department_id == department_id)

        by_status = query.with_entities(TravelRequest.status, func.count(TravelRequest.id)).group_by(TravelRequest.status).all()
        by_type = query.with_entities(TravelRequest.travel_type, func.count(TravelRequest.id)).group_by(TravelRequest.travel_type).all()
        return {
            "total": query.count(),
            "by_status": {s.value: c for s, c in by_status},
            "by_type": {t.value: c for t, c in by_type}
        }

    async def get_approved(self, db: Session, current_user: User) -> List[TravelRequest]:
        """Approved or locked requests the caller can attach claims to"""
        return db.query(TravelRequest).filter(
            TravelRequest.deleted_at.is_(None),
            TravelRequest.status.in_([TravelStatus.APPROVED, TravelStatus.LOCKED]),
            or_(
                TravelRequest.requester_id == current_user.id,
                TravelRequest.participants.any(TravelParticipant.user_id == current_user.id)
            )
        ).order_by(TravelRequest.start_date.desc()).all()


# Create singleton instance
travel_request_service = TravelRequestService()

"""
Approval Service
Multi-level approval chains for travel requests and claims
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union
from sqlalchemy.orm import Session

from src.config.permissions import Permission
from src.models.approval import Approval, ApprovalLevel, ApprovalStatus, ApprovalTarget
from src.models.audit_log import AuditAction
from src.models.claim import Claim, ClaimStatus
from src.models.travel_request import TravelRequest, TravelStatus, REVIEWABLE_TRAVEL_STATUSES
from src.models.user import User
from src.services.audit_service import audit_service
from src.services.notification_service import notification_service
from src.models.notification import NotificationPriority
from src.utils.exceptions import NotFoundError, ForbiddenError, BadRequestError
from src.utils.helpers import generate_document_number, normalize_phone, paginate
from src.utils.logger import setup_logger

logger = setup_logger()

MIN_REASON_LENGTH = 10

Parent = Union[TravelRequest, Claim]


class ApprovalService:
    """Service implementing the approval state machine"""

    # ------------------------------------------------------------------
    # Chain construction
    # ------------------------------------------------------------------

    def build_chain(
        self,
        db: Session,
        parent: Parent,
        assignments: Sequence[Tuple[ApprovalLevel, int]]
    ) -> List[Approval]:
        """
        Create or reconcile the PENDING approval rows for a parent entity

        On resubmission after a revision the existing rows are matched
        against the freshly computed assignments: rows whose level and
        approver are unchanged are kept, a level whose approver changed is
        reassigned in place, levels that no longer apply are removed and
        new levels get new rows.

        Args:
            db: Database session
            parent: Travel request or claim being submitted
            assignments: (level, approver_id) pairs

        Returns:
            List[Approval]: The chain, lowest level first

        Raises:
            BadRequestError: If no approver could be assigned
        """
        if not assignments:
            raise BadRequestError("No approver could be assigned for this submission")

        wanted = dict(assignments)
        rows = []
        for row in self._siblings(db, self._target_of(parent)):
            approver_id = wanted.pop(row.level, None)
            if approver_id is None:
                logger.info(f"Dropping {row.level.value} approval {row.approval_number}")
                db.delete(row)
                continue
            if row.approver_id != approver_id:
                logger.info(
                    f"Reassigning {row.level.value} approval {row.approval_number} "
                    f"from user {row.approver_id} to user {approver_id}"
                )
                row.approver_id = approver_id
                row.comments = None
            row.status = ApprovalStatus.PENDING
            row.approved_at = None
            row.rejected_at = None
            rows.append(row)
        db.flush()

        for level, approver_id in assignments:
            if level not in wanted:
                continue
            approval = Approval(
                approval_number=generate_document_number(db, Approval.approval_number, "APR"),
                level=level,
                approver_id=approver_id,
                status=ApprovalStatus.PENDING
            )
            if isinstance(parent, TravelRequest):
                approval.travel_request_id = parent.id
            else:
                approval.claim_id = parent.id
            db.add(approval)
            # Flush so the next number sees this one
            db.flush()
            rows.append(approval)

        return sorted(rows, key=lambda a: a.level.rank)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _target_of(self, parent: Parent) -> ApprovalTarget:
        if isinstance(parent, TravelRequest):
            return ApprovalTarget("TravelRequest", parent.id)
        return ApprovalTarget("Claim", parent.id)

    def _siblings(self, db: Session, target: ApprovalTarget) -> List[Approval]:
        query = db.query(Approval)
        if target.entity_type == "TravelRequest":
            query = query.filter(Approval.travel_request_id == target.entity_id)
        else:
            query = query.filter(Approval.claim_id == target.entity_id)
        return query.order_by(Approval.level).all()

    def _parent(self, db: Session, approval: Approval) -> Parent:
        if approval.travel_request_id is not None:
            parent = db.query(TravelRequest).filter(TravelRequest.id == approval.travel_request_id).first()
        else:
            parent = db.query(Claim).filter(Claim.id == approval.claim_id).first()
        if parent is None:
            raise NotFoundError(f"{approval.entity_type} not found")
        return parent

    def _owner_id(self, parent: Parent) -> int:
        if isinstance(parent, TravelRequest):
            return parent.requester_id
        return parent.submitter_id

    def _number(self, parent: Parent) -> str:
        if isinstance(parent, TravelRequest):
            return parent.request_number
        return parent.claim_number

    def _find(
        self,
        db: Session,
        approval_id: Optional[int] = None,
        approval_number: Optional[str] = None,
        lock: bool = False
    ) -> Approval:
        if approval_id is None and not approval_number:
            raise BadRequestError("Either approval_id or approval_number is required")

        query = db.query(Approval)
        if approval_id is not None:
            query = query.filter(Approval.id == approval_id)
        else:
            query = query.filter(Approval.approval_number == approval_number)
        if lock:
            query = query.with_for_update()

        approval = query.first()
        if not approval:
            raise NotFoundError("Approval not found")
        return approval

    def _check_caller_phone(self, approval: Approval, caller_phone: Optional[str]):
        if caller_phone is None:
            return
        approver_phone = normalize_phone(approval.approver.phone_number)
        if not approver_phone or approver_phone != normalize_phone(caller_phone):
            logger.warning(f"Phone verification failed for approval {approval.approval_number}")
            raise ForbiddenError("Phone number does not match the assigned approver")

    def _load_for_action(
        self,
        db: Session,
        current_user: User,
        approval_id: Optional[int],
        approval_number: Optional[str],
        caller_phone: Optional[str],
        admin_override: bool
    ) -> Tuple[Approval, Parent]:
        approval = self._find(db, approval_id, approval_number, lock=True)
        self._check_caller_phone(approval, caller_phone)

        if admin_override:
            if not current_user.has_permission(Permission.ADMIN_OVERRIDE_APPROVAL):
                raise ForbiddenError("Only admins, directors and managers can override approvals")
        elif approval.approver_id != current_user.id:
            raise ForbiddenError("You are not the assigned approver for this approval")

        if approval.status != ApprovalStatus.PENDING:
            raise BadRequestError("This approval has already been processed")

        parent = self._parent(db, approval)
        if isinstance(parent, TravelRequest):
            reviewable = parent.status in REVIEWABLE_TRAVEL_STATUSES
        else:
            reviewable = parent.status == ClaimStatus.SUBMITTED
        if not reviewable or parent.deleted_at is not None:
            raise BadRequestError(
                f"{approval.entity_type} is not awaiting approval (status {parent.status.value})"
            )
        return approval, parent

    def _metadata(self, approval: Approval, admin_override: bool, **extra) -> Dict[str, Any]:
        metadata = {
            "approval_id": approval.id,
            "approval_number": approval.approval_number,
            "level": approval.level.value,
        }
        metadata.update(extra)
        if admin_override:
            metadata["admin_override"] = True
        return metadata

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def approve(
        self,
        db: Session,
        current_user: User,
        approval_id: Optional[int] = None,
        approval_number: Optional[str] = None,
        comments: Optional[str] = None,
        caller_phone: Optional[str] = None,
        admin_override: bool = False
    ) -> Approval:
        """
        Approve one level of a chain

        Args:
            db: Database session
            current_user: Acting approver
            approval_id: Approval id (or use approval_number)
            approval_number: Approval number
            comments: Optional comments
            caller_phone: Phone of an external caller, checked against the approver
            admin_override: Act on behalf of the assigned approver

        Returns:
            Approval: The approved row

        Raises:
            BadRequestError: If the row is not pending or a lower level is not approved
        """
        approval, parent = self._load_for_action(
            db, current_user, approval_id, approval_number, caller_phone, admin_override
        )
        siblings = self._siblings(db, approval.target)

        lower_levels = [s for s in siblings if s.level.rank < approval.level.rank]
        if any(s.status != ApprovalStatus.APPROVED for s in lower_levels):
            raise BadRequestError("Previous level approvals must be completed first")

        now = datetime.utcnow()
        approval.status = ApprovalStatus.APPROVED
        approval.approved_at = now
        approval.comments = comments

        remaining = [s for s in siblings if s.id != approval.id and s.status == ApprovalStatus.PENDING]

        if isinstance(parent, TravelRequest):
            if remaining:
                parent.status = TravelStatus(f"APPROVED_L{approval.level.rank}")
            else:
                parent.status = TravelStatus.APPROVED
        elif not remaining:
            parent.status = ClaimStatus.APPROVED

        audit_service.record(
            db,
            user_id=current_user.id,
            action=AuditAction.APPROVE,
            entity_type=approval.entity_type,
            entity_id=parent.id,
            metadata=self._metadata(approval, admin_override, comments=comments)
        )

        number = self._number(parent)
        notification_service.notify(
            db,
            user_id=self._owner_id(parent),
            title=f"{approval.entity_type} approved at {approval.level.value}",
            message=f"{number} was approved by {current_user.name}. Status: {parent.status.value}",
            entity_type=approval.entity_type,
            entity_id=parent.id
        )
        if remaining:
            next_row = min(remaining, key=lambda s: s.level.rank)
            notification_service.notify(
                db,
                user_id=next_row.approver_id,
                title="Approval required",
                message=f"{number} is waiting for your {next_row.level.value} approval",
                entity_type=approval.entity_type,
                entity_id=parent.id,
                priority=NotificationPriority.HIGH
            )

        db.commit()
        notification_service.deliver_pending(db)
        db.refresh(approval)

        logger.info(
            f"Approval {approval.approval_number} approved by {current_user.email}. "
            f"{number} status: {parent.status.value}"
        )
        return approval

    async def reject(
        self,
        db: Session,
        current_user: User,
        rejection_reason: str,
        approval_id: Optional[int] = None,
        approval_number: Optional[str] = None,
        caller_phone: Optional[str] = None,
        admin_override: bool = False
    ) -> Approval:
        """
        Reject one level; the parent becomes REJECTED (terminal)

        Args:
            db: Database session
            current_user: Acting approver
            rejection_reason: At least 10 characters

        Returns:
            Approval: The rejected row
        """
        if not rejection_reason or len(rejection_reason.strip()) < MIN_REASON_LENGTH:
            raise BadRequestError(f"Rejection reason must be at least {MIN_REASON_LENGTH} characters")

        approval, parent = self._load_for_action(
            db, current_user, approval_id, approval_number, caller_phone, admin_override
        )

        approval.status = ApprovalStatus.REJECTED
        approval.rejection_reason = rejection_reason
        approval.rejected_at = datetime.utcnow()

        parent.status = TravelStatus.REJECTED if isinstance(parent, TravelRequest) else ClaimStatus.REJECTED

        audit_service.record(
            db,
            user_id=current_user.id,
            action=AuditAction.REJECT,
            entity_type=approval.entity_type,
            entity_id=parent.id,
            metadata=self._metadata(approval, admin_override, rejection_reason=rejection_reason)
        )

        notification_service.notify(
            db,
            user_id=self._owner_id(parent),
            title=f"{approval.entity_type} rejected",
            message=f"{self._number(parent)} was rejected by {current_user.name}: {rejection_reason}",
            entity_type=approval.entity_type,
            entity_id=parent.id,
            priority=NotificationPriority.HIGH
        )

        db.commit()
        notification_service.deliver_pending(db)
        db.refresh(approval)

        logger.info(f"Approval {approval.approval_number} rejected by {current_user.email}")
        return approval

    async def request_revision(
        self,
        db: Session,
        current_user: User,
        comments: str,
        approval_id: Optional[int] = None,
        approval_number: Optional[str] = None,
        caller_phone: Optional[str] = None,
        admin_override: bool = False
    ) -> Approval:
        """
        Send the parent back for revision and reset the whole chain to PENDING

        Args:
            db: Database session
            current_user: Acting approver
            comments: At least 10 characters

        Returns:
            Approval: The row the revision was requested on
        """
        if not comments or len(comments.strip()) < MIN_REASON_LENGTH:
            raise BadRequestError(f"Revision comments must be at least {MIN_REASON_LENGTH} characters")

        approval, parent = self._load_for_action(
            db, current_user, approval_id, approval_number, caller_phone, admin_override
        )

        approval.status = ApprovalStatus.REVISION_REQUESTED
        approval.comments = comments

        for row in self._siblings(db, approval.target):
            row.status = ApprovalStatus.PENDING
            row.approved_at = None
            row.rejected_at = None

        parent.status = TravelStatus.REVISION if isinstance(parent, TravelRequest) else ClaimStatus.REVISION

        audit_service.record(
            db,
            user_id=current_user.id,
            action=AuditAction.UPDATE,
            entity_type=approval.entity_type,
            entity_id=parent.id,
            metadata=self._metadata(approval, admin_override, action="revision_requested", comments=comments)
        )

        notification_service.notify(
            db,
            user_id=self._owner_id(parent),
            title=f"Revision requested for {approval.entity_type}",
            message=f"{self._number(parent)} needs revision: {comments}",
            entity_type=approval.entity_type,
            entity_id=parent.id,
            priority=NotificationPriority.HIGH
        )

        db.commit()
        notification_service.deliver_pending(db)
        db.refresh(approval)

        logger.info(f"Revision requested on {approval.approval_number} by {current_user.email}")
        return approval

    async def admin_act(
        self,
        db: Session,
        current_user: User,
        approval_id: int,
        action: str,
        comments: Optional[str] = None,
        rejection_reason: Optional[str] = None
    ) -> Approval:
        """Act on any pending approval on behalf of its approver"""
        if action == "approve":
            return await self.approve(db, current_user, approval_id=approval_id, comments=comments, admin_override=True)
        if action == "reject":
            return await self.reject(
                db, current_user, rejection_reason or "", approval_id=approval_id, admin_override=True
            )
        if action == "revision":
            return await self.request_revision(
                db, current_user, comments or "", approval_id=approval_id, admin_override=True
            )
        raise BadRequestError(f"Unknown approval action: {action}")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _entity_filter(self, query, entity_type: Optional[str]):
        if entity_type == "TravelRequest":
            return query.filter(Approval.travel_request_id.isnot(None))
        if entity_type == "Claim":
            return query.filter(Approval.claim_id.isnot(None))
        return query

    async def get_my_approvals(
        self,
        db: Session,
        current_user: User,
        status: Optional[ApprovalStatus] = None,
        entity_type: Optional[str] = None,
        limit: int = 50,
        cursor: Optional[int] = None
    ):
        query = db.query(Approval).filter(Approval.approver_id == current_user.id)
        if status:
            query = query.filter(Approval.status == status)
        query = self._entity_filter(query, entity_type)
        items, next_cursor = paginate(query, Approval.id, limit, cursor)
        return {"items": items, "next_cursor": next_cursor}

    def pending_count(self, db: Session, user_id: int) -> int:
        return db.query(Approval).filter(
            Approval.approver_id == user_id,
            Approval.status == ApprovalStatus.PENDING
        ).count()

    async def get_by_id(self, db: Session, current_user: User, approval_id: int) -> Approval:
        approval = self._find(db, approval_id=approval_id)
        parent = self._parent(db, approval)
        if (
            approval.approver_id != current_user.id
            and self._owner_id(parent) != current_user.id
            and not current_user.has_permission(Permission.VIEW_ANY_APPROVAL)
        ):
            raise ForbiddenError("You do not have access to this approval")
        return approval

    async def get_by_approval_number(self, db: Session, approval_number: str, caller_phone: str) -> Approval:
        approval = self._find(db, approval_number=approval_number)
        self._check_caller_phone(approval, caller_phone)
        return approval

    async def get_all_admin(
        self,
        db: Session,
        status: Optional[ApprovalStatus] = None,
        entity_type: Optional[str] = None,
        approver_id: Optional[int] = None,
        limit: int = 50,
        cursor: Optional[int] = None
    ):
        query = db.query(Approval)
        if status:
            query = query.filter(Approval.status == status)
        if approver_id is not None:
            query = query.filter(Approval.approver_id == approver_id)
        query = self._entity_filter(query, entity_type)
        items, next_cursor = paginate(query, Approval.id, limit, cursor)
        return {"items": items, "next_cursor": next_cursor}


# Create singleton instance
approval_service = ApprovalService()

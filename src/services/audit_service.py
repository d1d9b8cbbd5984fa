"""
Audit Service
Writes and queries the append-only audit trail
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import func, or_, String, cast
from sqlalchemy.orm import Session

from src.config.permissions import Permission
from src.middleware.logging_middleware import get_request_info
from src.models.approval import Approval
from src.models.audit_log import AuditLog, AuditAction
from src.models.claim import Claim
from src.models.travel_request import TravelRequest
from src.models.user import User
from src.utils.exceptions import NotFoundError, ForbiddenError
from src.utils.helpers import paginate
from src.utils.logger import setup_logger, log_audit

logger = setup_logger()


class AuditService:
    """Service for the audit trail"""

    def record(
        self,
        db: Session,
        user_id: int,
        action: AuditAction,
        entity_type: str,
        entity_id: Optional[int] = None,
        changes: Optional[Dict[str, Any]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        chart_of_account_id: Optional[int] = None
    ) -> AuditLog:
        """
        Add an audit row to the caller's transaction

        The row is committed together with the change it describes.

        Args:
            db: Database session
            user_id: Acting user
            action: Audited action
            entity_type: Model name of the changed entity
            entity_id: Id of the changed entity
            changes: Before/after values
            metadata: Extra context (approval number, level, ...)
            chart_of_account_id: Related ledger account, if any

        Returns:
            AuditLog: The pending audit row
        """
        info = get_request_info()
        entry = AuditLog(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            changes=changes,
            extra_metadata=metadata,
            ip_address=info.get("ip_address"),
            user_agent=info.get("user_agent"),
            chart_of_account_id=chart_of_account_id
        )
        db.add(entry)
        log_audit(user_id, action.value, entity_type, entity_id)
        return entry

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _filtered(
        self,
        db: Session,
        user_id: Optional[int] = None,
        action: Optional[AuditAction] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[int] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None
    ):
        query = db.query(AuditLog)
        if user_id is not None:
            query = query.filter(AuditLog.user_id == user_id)
        if action is not None:
            query = query.filter(AuditLog.action == action)
        if entity_type:
            query = query.filter(AuditLog.entity_type == entity_type)
        if entity_id is not None:
            query = query.filter(AuditLog.entity_id == entity_id)
        if start_date:
            query = query.filter(AuditLog.created_at >= start_date)
        if end_date:
            query = query.filter(AuditLog.created_at <= end_date)
        return query

    async def get_all(self, db: Session, limit: int = 50, cursor: Optional[int] = None, **filters):
        """List audit rows with filters, newest first"""
        items, next_cursor = paginate(self._filtered(db, **filters), AuditLog.id, limit, cursor)
        return {"items": items, "next_cursor": next_cursor}

    async def get_by_id(self, db: Session, current_user: User, log_id: int) -> AuditLog:
        entry = db.query(AuditLog).filter(AuditLog.id == log_id).first()
        if not entry:
            raise NotFoundError("Audit log not found")
        if entry.user_id != current_user.id and not current_user.has_permission(Permission.VIEW_ENTITY_AUDIT):
            raise ForbiddenError("You do not have access to this audit log")
        return entry

    async def get_by_entity(self, db: Session, entity_type: str, entity_id: int) -> List[AuditLog]:
        return self._filtered(db, entity_type=entity_type, entity_id=entity_id).order_by(
            AuditLog.created_at.asc(), AuditLog.id.asc()
        ).all()

    async def get_my_actions(self, db: Session, current_user: User, limit: int = 50, cursor: Optional[int] = None):
        return await self.get_all(db, limit=limit, cursor=cursor, user_id=current_user.id)

    async def get_travel_request_trail(self, db: Session, current_user: User, travel_request_id: int) -> Dict[str, Any]:
        """
        Full history of a travel request including its claims

        Args:
            db: Database session
            current_user: Caller (owner, participant or elevated role)
            travel_request_id: Travel request id

        Returns:
            dict: travel request, approvals and ordered audit rows
        """
        request = db.query(TravelRequest).filter(TravelRequest.id == travel_request_id).first()
        if not request:
            raise NotFoundError("Travel request not found")

        if (
            request.requester_id != current_user.id
            and not request.is_participant(current_user.id)
            and not current_user.has_permission(Permission.VIEW_ENTITY_AUDIT)
        ):
            raise ForbiddenError("You do not have access to this travel request trail")

        claim_ids = [c.id for c in request.claims]
        conditions = [(AuditLog.entity_type == "TravelRequest") & (AuditLog.entity_id == request.id)]
        if claim_ids:
            conditions.append((AuditLog.entity_type == "Claim") & (AuditLog.entity_id.in_(claim_ids)))
        bailout_ids = [b.id for b in request.bailouts]
        if bailout_ids:
            conditions.append((AuditLog.entity_type == "Bailout") & (AuditLog.entity_id.in_(bailout_ids)))

        logs = db.query(AuditLog).filter(or_(*conditions)).order_by(
            AuditLog.created_at.asc(), AuditLog.id.asc()
        ).all()

        return {
            "travel_request": request,
            "approvals": request.approvals,
            "logs": logs
        }

    async def get_claim_trail(self, db: Session, current_user: User, claim_id: int) -> Dict[str, Any]:
        claim = db.query(Claim).filter(Claim.id == claim_id).first()
        if not claim:
            raise NotFoundError("Claim not found")

        if claim.submitter_id != current_user.id and not current_user.has_permission(Permission.VIEW_ENTITY_AUDIT):
            raise ForbiddenError("You do not have access to this claim trail")

        logs = await self.get_by_entity(db, "Claim", claim.id)
        return {
            "claim": claim,
            "approvals": db.query(Approval).filter(Approval.claim_id == claim.id).order_by(Approval.level).all(),
            "logs": logs
        }

    async def get_recent_activity(self, db: Session, limit: int = 20) -> List[AuditLog]:
        return db.query(AuditLog).order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit).all()

    async def get_statistics(
        self,
        db: Session,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """Counts by action, by entity type, and the ten most active users"""
        base = self._filtered(db, start_date=start_date, end_date=end_date)

        by_action = base.with_entities(AuditLog.action, func.count(AuditLog.id)).group_by(AuditLog.action).all()
        by_entity = base.with_entities(AuditLog.entity_type, func.count(AuditLog.id)).group_by(AuditLog.entity_type).all()
        top_users = (
            base.with_entities(AuditLog.user_id, func.count(AuditLog.id).label("count"))
            .group_by(AuditLog.user_id)
            .order_by(func.count(AuditLog.id).desc())
            .limit(10)
            .all()
        )
        names = {
            u.id: u.name
            for u in db.query(User).filter(User.id.in_([row[0] for row in top_users])).all()
        } if top_users else {}

        return {
            "total": base.count(),
            "by_action": [{"action": a.value, "count": c} for a, c in by_action],
            "by_entity_type": [{"entity_type": e, "count": c} for e, c in by_entity],
            "top_users": [
                {"user_id": uid, "name": names.get(uid), "count": c} for uid, c in top_users
            ]
        }

    async def search(self, db: Session, term: str, limit: int = 50) -> List[AuditLog]:
        pattern = f"%{term}%"
        return db.query(AuditLog).filter(
            or_(
                AuditLog.entity_type.ilike(pattern),
                cast(AuditLog.entity_id, String).ilike(pattern),
                cast(AuditLog.action, String).ilike(pattern)
            )
        ).order_by(AuditLog.created_at.desc()).limit(limit).all()

    async def export(
        self,
        db: Session,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        entity_type: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Flat rows for spreadsheet export"""
        rows = self._filtered(
            db, entity_type=entity_type, start_date=start_date, end_date=end_date
        ).order_by(AuditLog.created_at.asc()).all()

        return [
            {
                "id": row.id,
                "created_at": row.created_at.isoformat() if row.created_at else None,
                "user_id": row.user_id,
                "user_email": row.user.email if row.user else None,
                "action": row.action.value,
                "entity_type": row.entity_type,
                "entity_id": row.entity_id,
                "ip_address": row.ip_address,
                "changes": row.changes,
                "metadata": row.extra_metadata
            }
            for row in rows
        ]


# Create singleton instance
audit_service = AuditService()

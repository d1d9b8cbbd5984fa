"""
Dashboard Service
Aggregations for the employee, manager and finance dashboards
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session

from src.models.claim import Claim, ClaimStatus, ClaimType
from src.models.department import Department
from src.models.travel_request import TravelRequest, TravelType, REVIEWABLE_TRAVEL_STATUSES
from src.models.user import User
from src.services.approval_service import approval_service
from src.services.notification_service import notification_service
from src.utils.helpers import month_key, months_back
from src.utils.logger import setup_logger

logger = setup_logger()

TREND_MONTHS = 6


def _counts(rows) -> Dict[str, int]:
    return {key.value: count for key, count in rows}


def _brief_request(request: TravelRequest) -> Dict[str, Any]:
    return {
        "id": request.id,
        "request_number": request.request_number,
        "purpose": request.purpose,
        "destination": request.destination,
        "travel_type": request.travel_type.value,
        "status": request.status.value,
        "start_date": request.start_date,
        "end_date": request.end_date,
        "requester_id": request.requester_id
    }


def _brief_claim(claim: Claim) -> Dict[str, Any]:
    return {
        "id": claim.id,
        "claim_number": claim.claim_number,
        "claim_type": claim.claim_type.value,
        "status": claim.status.value,
        "amount": claim.amount,
        "submitter_id": claim.submitter_id,
        "travel_request_id": claim.travel_request_id,
        "paid_at": claim.paid_at
    }


class DashboardService:
    """Read-only aggregations"""

    def _claims(self, db: Session, start_date: Optional[datetime] = None, end_date: Optional[datetime] = None):
        query = db.query(Claim).filter(Claim.deleted_at.is_(None))
        if start_date:
            query = query.filter(Claim.created_at >= start_date)
        if end_date:
            query = query.filter(Claim.created_at <= end_date)
        return query

    def _requests(self, db: Session, department_id: Optional[int] = None):
        query = db.query(TravelRequest).filter(TravelRequest.deleted_at.is_(None))
        if department_id is not None:
            query = query.join(User, User.id == TravelRequest.requester_id).filter(
                User.department_id == department_id
            )
        return query

    async def get_my_dashboard(self, db: Session, current_user: User) -> Dict[str, Any]:
        requests = db.query(TravelRequest).filter(
            TravelRequest.requester_id == current_user.id,
            TravelRequest.deleted_at.is_(None)
        )
        claims = db.query(Claim).filter(
            Claim.submitter_id == current_user.id,
            Claim.deleted_at.is_(None)
        )

        dashboard = {
            "travel_requests": {
                "total": requests.count(),
                "by_status": _counts(
                    requests.with_entities(TravelRequest.status, func.count(TravelRequest.id))
                    .group_by(TravelRequest.status).all()
                ),
                "recent": [
                    _brief_request(r)
                    for r in requests.order_by(TravelRequest.created_at.desc(), TravelRequest.id.desc()).limit(5).all()
                ]
            },
            "claims": {
                "total": claims.count(),
                "by_status": _counts(
                    claims.with_entities(Claim.status, func.count(Claim.id)).group_by(Claim.status).all()
                ),
                "recent": [
                    _brief_claim(c)
                    for c in claims.order_by(Claim.created_at.desc(), Claim.id.desc()).limit(5).all()
                ]
            },
            "pending_approvals": approval_service.pending_count(db, current_user.id),
            "unread_notifications": notification_service.unread_count(db, current_user.id)
        }

        reports = [u.id for u in current_user.direct_reports if u.deleted_at is None]
        if reports:
            dashboard["team_pending_requests"] = db.query(TravelRequest).filter(
                TravelRequest.requester_id.in_(reports),
                TravelRequest.status.in_(REVIEWABLE_TRAVEL_STATUSES),
                TravelRequest.deleted_at.is_(None)
            ).count()

        return dashboard

    async def get_manager_dashboard(
        self,
        db: Session,
        current_user: User,
        department_id: Optional[int] = None
    ) -> Dict[str, Any]:
        requests = self._requests(db, department_id)

        paid = db.query(
            User.id, User.name, func.count(Claim.id), func.coalesce(func.sum(Claim.amount), 0)
        ).join(Claim, Claim.submitter_id == User.id).filter(
            Claim.status == ClaimStatus.PAID,
            Claim.deleted_at.is_(None)
        )
        if department_id is not None:
            paid = paid.filter(User.department_id == department_id)
        top_spenders = paid.group_by(User.id, User.name).order_by(
            func.sum(Claim.amount).desc()
        ).limit(5).all()

        months = months_back(TREND_MONTHS)
        trend = {key: {"travel_requests": 0, "claims_amount": 0.0} for key in months}
        window_start = datetime.strptime(months[0], "%Y-%m")
        for (created_at,) in requests.with_entities(TravelRequest.created_at).filter(
            TravelRequest.created_at >= window_start
        ).all():
            key = month_key(created_at)
            if key in trend:
                trend[key]["travel_requests"] += 1
        claims = self._claims(db, start_date=window_start)
        if department_id is not None:
            claims = claims.join(User, User.id == Claim.submitter_id).filter(User.department_id == department_id)
        for created_at, amount in claims.with_entities(Claim.created_at, Claim.amount).all():
            key = month_key(created_at)
            if key in trend:
                trend[key]["claims_amount"] += amount

        return {
            "travel_requests": {
                "total": requests.count(),
                "by_status": _counts(
                    requests.with_entities(TravelRequest.status, func.count(TravelRequest.id))
                    .group_by(TravelRequest.status).all()
                )
            },
            "pending_approvals": approval_service.pending_count(db, current_user.id),
            "recent_requests": [
                _brief_request(r)
                for r in requests.order_by(TravelRequest.created_at.desc(), TravelRequest.id.desc()).limit(10).all()
            ],
            "top_spenders": [
                {"user_id": uid, "name": name, "claims": count, "total": total}
                for uid, name, count, total in top_spenders
            ],
            "monthly_trend": [{"month": key, **trend[key]} for key in months]
        }

    async def get_finance_dashboard(
        self,
        db: Session,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None
    ) -> Dict[str, Any]:
        claims = self._claims(db, start_date, end_date)

        def total(*statuses: ClaimStatus) -> float:
            return claims.with_entities(func.coalesce(func.sum(Claim.amount), 0)).filter(
                Claim.status.in_(statuses)
            ).scalar()

        by_status = claims.with_entities(
            Claim.status, func.count(Claim.id), func.coalesce(func.sum(Claim.amount), 0)
        ).group_by(Claim.status).all()
        by_type = claims.with_entities(
            Claim.claim_type, func.count(Claim.id), func.coalesce(func.sum(Claim.amount), 0)
        ).group_by(Claim.claim_type).all()

        spending = claims.join(User, User.id == Claim.submitter_id).outerjoin(
            Department, Department.id == User.department_id
        ).filter(Claim.status == ClaimStatus.PAID).with_entities(
            Department.id, Department.name, func.count(Claim.id), func.coalesce(func.sum(Claim.amount), 0)
        ).group_by(Department.id, Department.name).all()

        pending = claims.filter(Claim.status == ClaimStatus.APPROVED).order_by(Claim.created_at.asc()).all()
        recent = claims.filter(Claim.status == ClaimStatus.PAID).order_by(Claim.paid_at.desc()).limit(10).all()

        approved_total = total(ClaimStatus.APPROVED, ClaimStatus.PAID)
        paid_total = total(ClaimStatus.PAID)

        return {
            "overview": {
                "total_approved": approved_total,
                "total_paid": paid_total,
                "pending_payment": approved_total - paid_total
            },
            "claims_by_status": {s.value: {"count": c, "amount": a} for s, c, a in by_status},
            "claims_by_type": {t.value: {"count": c, "amount": a} for t, c, a in by_type},
            "department_spending": sorted(
                [
                    {"department_id": dept_id, "department": name or "Unassigned", "claims": count, "total": amount}
                    for dept_id, name, count, amount in spending
                ],
                key=lambda row: row["total"],
                reverse=True
            ),
            "pending_payments": {
                "count": len(pending),
                "total": sum(c.amount for c in pending),
                "claims": [_brief_claim(c) for c in pending]
            },
            "recent_payments": [_brief_claim(c) for c in recent]
        }

    async def get_travel_trends(
        self,
        db: Session,
        months: int = TREND_MONTHS,
        department_id: Optional[int] = None
    ) -> Dict[str, Any]:
        requests = self._requests(db, department_id)
        keys = months_back(months)
        window_start = datetime.strptime(keys[0], "%Y-%m")
        windowed = requests.filter(TravelRequest.created_at >= window_start)

        monthly = {key: {t.value: 0 for t in TravelType} for key in keys}
        for created_at, travel_type in windowed.with_entities(
            TravelRequest.created_at, TravelRequest.travel_type
        ).all():
            key = month_key(created_at)
            if key in monthly:
                monthly[key][travel_type.value] += 1

        return {
            "by_type": _counts(
                windowed.with_entities(TravelRequest.travel_type, func.count(TravelRequest.id))
                .group_by(TravelRequest.travel_type).all()
            ),
            "by_status": _counts(
                windowed.with_entities(TravelRequest.status, func.count(TravelRequest.id))
                .group_by(TravelRequest.status).all()
            ),
            "monthly_trend": [{"month": key, **monthly[key]} for key in keys]
        }

    async def get_expense_analysis(
        self,
        db: Session,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None
    ) -> Dict[str, Any]:
        end_date = end_date or datetime.utcnow()
        start_date = start_date or end_date - timedelta(days=180)
        claims = self._claims(db, start_date, end_date)

        count, amount = claims.with_entities(
            func.count(Claim.id), func.coalesce(func.sum(Claim.amount), 0)
        ).one()

        by_category = claims.filter(Claim.claim_type == ClaimType.ENTERTAINMENT).with_entities(
            Claim.entertainment_type, func.count(Claim.id), func.coalesce(func.sum(Claim.amount), 0)
        ).group_by(Claim.entertainment_type).all()

        monthly: Dict[str, Dict[str, float]] = {}
        for created_at, claim_type, value in claims.with_entities(
            Claim.created_at, Claim.claim_type, Claim.amount
        ).all():
            bucket = monthly.setdefault(month_key(created_at), {"entertainment": 0.0, "non_entertainment": 0.0, "total": 0.0})
            bucket["entertainment" if claim_type == ClaimType.ENTERTAINMENT else "non_entertainment"] += value
            bucket["total"] += value

        return {
            "period": {"start_date": start_date, "end_date": end_date},
            "overview": {
                "total_claims": count,
                "total_amount": amount,
                "average_amount": amount / count if count else 0
            },
            "by_category": [
                {
                    "entertainment_type": etype.value if etype else None,
                    "count": c,
                    "total": a,
                    "average": a / c if c else 0
                }
                for etype, c, a in by_category
            ],
            "monthly_trend": [{"month": key, **monthly[key]} for key in sorted(monthly)]
        }


# Create singleton instance
dashboard_service = DashboardService()

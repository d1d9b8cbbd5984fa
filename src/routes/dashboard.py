"""
Dashboard Routes
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from datetime import datetime

from src.config.database import get_db
from src.services.auth_service import auth_service, manager_user, finance_user
from src.services.dashboard_service import dashboard_service
from src.models.user import User

router = APIRouter()


@router.get("/me")
async def get_my_dashboard(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Own trips and claims, pending approvals and unread notifications"""
    return await dashboard_service.get_my_dashboard(db, current_user)


@router.get("/manager")
async def get_manager_dashboard(
    department_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(manager_user)
):
    return await dashboard_service.get_manager_dashboard(db, current_user, department_id=department_id)


@router.get("/finance")
async def get_finance_dashboard(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(finance_user)
):
    """Approved vs paid totals, department spending and the payment queue"""
    return await dashboard_service.get_finance_dashboard(db, start_date=start_date, end_date=end_date)


@router.get("/travel-trends")
async def get_travel_trends(
    months: int = Query(6, ge=1, le=24),
    department_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(manager_user)
):
    return await dashboard_service.get_travel_trends(db, months=months, department_id=department_id)


@router.get("/expense-analysis")
async def get_expense_analysis(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(finance_user)
):
    return await dashboard_service.get_expense_analysis(db, start_date=start_date, end_date=end_date)

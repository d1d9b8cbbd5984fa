"""
Chart of Account Routes
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional

from src.config.database import get_db
from src.services.auth_service import auth_service, admin_user
from src.services.chart_of_account_service import chart_of_account_service
from src.models.chart_of_account import COAType
from src.models.user import User
from src.schemas.chart_of_account import (
    ChartOfAccountCreate, ChartOfAccountUpdate, ChartOfAccountResponse, DeleteResult
)

router = APIRouter()


@router.get("", response_model=List[ChartOfAccountResponse])
async def list_accounts(
    account_type: Optional[COAType] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    parent_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await chart_of_account_service.get_all(
        db, account_type=account_type, is_active=is_active, search=search, parent_id=parent_id
    )


@router.get("/hierarchy")
async def get_account_hierarchy(
    account_type: Optional[COAType] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await chart_of_account_service.get_hierarchy(db, account_type=account_type)


@router.get("/active", response_model=List[ChartOfAccountResponse])
async def get_active_accounts(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await chart_of_account_service.get_active(db)


@router.get("/type/{account_type}", response_model=List[ChartOfAccountResponse])
async def get_accounts_by_type(
    account_type: COAType,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await chart_of_account_service.get_by_type(db, account_type)


@router.get("/{account_id}", response_model=ChartOfAccountResponse)
async def get_account(
    account_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await chart_of_account_service.get_by_id(db, account_id)


@router.post("", response_model=ChartOfAccountResponse, status_code=201)
async def create_account(
    data: ChartOfAccountCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_user)
):
    """Create an account; codes use uppercase letters, digits and hyphens"""
    return await chart_of_account_service.create(db, current_user, data.model_dump())


@router.put("/{account_id}", response_model=ChartOfAccountResponse)
async def update_account(
    account_id: int,
    data: ChartOfAccountUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_user)
):
    return await chart_of_account_service.update(db, current_user, account_id, data.model_dump(exclude_unset=True))


@router.delete("/{account_id}", response_model=DeleteResult)
async def delete_account(
    account_id: int,
    force: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_user)
):
    """
    Delete an account

    Accounts used by claims are only deactivated, and only with force=true.
    """
    return await chart_of_account_service.delete(db, current_user, account_id, force=force)


@router.post("/{account_id}/toggle-active", response_model=ChartOfAccountResponse)
async def toggle_account_active(
    account_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_user)
):
    """Deactivating cascades to sub-accounts; activating needs an active parent"""
    return await chart_of_account_service.toggle_active(db, current_user, account_id)

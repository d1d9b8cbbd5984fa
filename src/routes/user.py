"""
User Routes
Profiles, org hierarchy and user administration
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from src.config.database import get_db
from src.services.auth_service import auth_service, supervisor_user, manager_user, admin_user
from src.services.user_service import user_service
from src.models.user import User, UserRole
from src.schemas.common import MessageResponse
from src.schemas.user import (
    UserCreate, UserUpdate, UserSelfUpdate, PasswordChange, UserResponse
)

router = APIRouter()


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(auth_service.get_current_user)):
    """Get own profile"""
    return current_user


@router.put("/me", response_model=UserResponse)
async def update_me(
    data: UserSelfUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Update own name and phone number"""
    return await user_service.update_me(db, current_user, data.model_dump(exclude_unset=True))


@router.post("/me/change-password", response_model=MessageResponse)
async def change_password(
    data: PasswordChange,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Change own password"""
    await user_service.change_password(db, current_user, data.current_password, data.new_password)
    return {"message": "Password changed successfully"}


@router.get("/by-phone/{phone}", response_model=UserResponse)
async def get_user_by_phone(
    phone: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(manager_user)
):
    """Look up a user by phone number (leading + and spaces ignored)"""
    return await user_service.get_by_phone(db, phone)


@router.get("/hierarchy")
async def get_hierarchy(
    root_id: Optional[int] = None,
    max_depth: int = Query(10, ge=1, le=20),
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Nested supervisor tree"""
    return await user_service.get_hierarchy(db, root_id=root_id, max_depth=max_depth)


@router.get("")
async def list_users(
    role: Optional[UserRole] = None,
    department_id: Optional[int] = None,
    include_deleted: bool = False,
    search: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(manager_user)
):
    """
    List users

    Filters by role, department and free-text search over name,
    email and employee ID.
    """
    result = await user_service.get_all(
        db, role=role, department_id=department_id, include_deleted=include_deleted,
        search=search, skip=skip, limit=limit
    )
    return {
        "items": [UserResponse.model_validate(u) for u in result["items"]],
        "total": result["total"]
    }


@router.post("", response_model=UserResponse, status_code=201)
async def create_user(
    data: UserCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_user)
):
    """Create a user"""
    return await user_service.create(db, current_user, data.model_dump())


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await user_service.get_by_id(db, current_user, user_id)


@router.get("/{user_id}/direct-reports", response_model=List[UserResponse])
async def get_direct_reports(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(supervisor_user)
):
    return await user_service.get_direct_reports(db, user_id)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    data: UserUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_user)
):
    """Update a user; supervisor changes are checked for cycles"""
    return await user_service.update(db, current_user, user_id, data.model_dump(exclude_unset=True))


@router.delete("/{user_id}", response_model=UserResponse)
async def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_user)
):
    """Soft delete a user with no active direct reports"""
    return await user_service.delete(db, current_user, user_id)


@router.post("/{user_id}/restore", response_model=UserResponse)
async def restore_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_user)
):
    return await user_service.restore(db, current_user, user_id)

"""
Department Routes
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional

from src.config.database import get_db
from src.services.auth_service import auth_service, admin_user
from src.services.department_service import department_service
from src.models.user import User
from src.schemas.department import DepartmentCreate, DepartmentUpdate, DepartmentResponse

router = APIRouter()


@router.get("", response_model=List[DepartmentResponse])
async def list_departments(
    search: Optional[str] = None,
    parent_id: Optional[int] = None,
    include_deleted: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await department_service.get_all(
        db, search=search, parent_id=parent_id, include_deleted=include_deleted
    )


@router.get("/hierarchy")
async def get_department_hierarchy(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Department tree with user counts"""
    return await department_service.get_hierarchy(db)


@router.get("/code/{code}", response_model=DepartmentResponse)
async def get_department_by_code(
    code: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await department_service.get_by_code(db, code)


@router.get("/{department_id}", response_model=DepartmentResponse)
async def get_department(
    department_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await department_service.get_by_id(db, department_id)


@router.post("", response_model=DepartmentResponse, status_code=201)
async def create_department(
    data: DepartmentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_user)
):
    return await department_service.create(db, current_user, data.model_dump())


@router.put("/{department_id}", response_model=DepartmentResponse)
async def update_department(
    department_id: int,
    data: DepartmentUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_user)
):
    """Update a department; a new parent cannot be the department or one of its descendants"""
    return await department_service.update(db, current_user, department_id, data.model_dump(exclude_unset=True))


@router.delete("/{department_id}", response_model=DepartmentResponse)
async def delete_department(
    department_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_user)
):
    return await department_service.delete(db, current_user, department_id)


@router.post("/{department_id}/restore", response_model=DepartmentResponse)
async def restore_department(
    department_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_user)
):
    return await department_service.restore(db, current_user, department_id)

"""
Project Routes
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from src.config.database import get_db
from src.services.auth_service import auth_service, manager_user
from src.services.project_service import project_service
from src.models.user import User
from src.schemas.common import Page
from src.schemas.project import ProjectCreate, ProjectUpdate, ProjectResponse

router = APIRouter()


@router.get("", response_model=Page[ProjectResponse])
async def list_projects(
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    limit: int = Query(50, ge=1, le=100),
    cursor: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await project_service.get_all(db, is_active=is_active, search=search, limit=limit, cursor=cursor)


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await project_service.get_by_id(db, project_id)


@router.post("", response_model=ProjectResponse, status_code=201)
async def create_project(
    data: ProjectCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(manager_user)
):
    return await project_service.create(db, current_user, data.model_dump())


@router.put("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: int,
    data: ProjectUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(manager_user)
):
    return await project_service.update(db, current_user, project_id, data.model_dump(exclude_unset=True))


@router.delete("/{project_id}", response_model=ProjectResponse)
async def delete_project(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(manager_user)
):
    """Soft delete a project that no travel request references"""
    return await project_service.delete(db, current_user, project_id)

"""
Project Service
Client projects referenced by sales trips
"""

from datetime import datetime
from typing import Any, Dict, Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session

from src.models.audit_log import AuditAction
from src.models.project import Project
from src.models.travel_request import TravelRequest
from src.models.user import User
from src.services.audit_service import audit_service
from src.utils.exceptions import NotFoundError, BadRequestError, ConflictError
from src.utils.helpers import model_snapshot, paginate
from src.utils.logger import setup_logger

logger = setup_logger()


class ProjectService:
    """Service for projects"""

    def _get(self, db: Session, project_id: int) -> Project:
        project = db.query(Project).filter(Project.id == project_id).first()
        if not project:
            raise NotFoundError("Project not found")
        return project

    def _check_code(self, db: Session, code: Optional[str], exclude_id: Optional[int] = None):
        if not code:
            return
        query = db.query(Project).filter(Project.code == code)
        if exclude_id is not None:
            query = query.filter(Project.id != exclude_id)
        if query.first():
            raise ConflictError("Project code is already in use")

    async def get_all(
        self,
        db: Session,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        limit: int = 50,
        cursor: Optional[int] = None
    ):
        query = db.query(Project).filter(Project.deleted_at.is_(None))
        if is_active is not None:
            query = query.filter(Project.is_active == is_active)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(
                Project.name.ilike(pattern),
                Project.code.ilike(pattern),
                Project.client_name.ilike(pattern)
            ))
        items, next_cursor = paginate(query, Project.id, limit, cursor)
        return {"items": items, "next_cursor": next_cursor}

    async def get_by_id(self, db: Session, project_id: int) -> Project:
        return self._get(db, project_id)

    async def create(self, db: Session, current_user: User, data: Dict[str, Any]) -> Project:
        self._check_code(db, data.get("code"))
        project = Project(**data)
        db.add(project)
        db.flush()
        audit_service.record(
            db, current_user.id, AuditAction.CREATE, "Project", project.id,
            changes={"after": model_snapshot(project)}
        )
        db.commit()
        db.refresh(project)
        logger.info(f"Project {project.code} created by {current_user.email}")
        return project

    async def update(self, db: Session, current_user: User, project_id: int, data: Dict[str, Any]) -> Project:
        project = self._get(db, project_id)
        self._check_code(db, data.get("code"), exclude_id=project.id)
        before = model_snapshot(project)
        for field, value in data.items():
            setattr(project, field, value)
        audit_service.record(
            db, current_user.id, AuditAction.UPDATE, "Project", project.id,
            changes={"before": before, "after": model_snapshot(project)}
        )
        db.commit()
        db.refresh(project)
        return project

    async def delete(self, db: Session, current_user: User, project_id: int) -> Project:
        project = self._get(db, project_id)
        trips = db.query(TravelRequest).filter(TravelRequest.project_id == project.id).count()
        if trips:
            raise BadRequestError(
                f"Project is used by {trips} travel request(s) and cannot be deleted. Deactivate it instead."
            )
        project.deleted_at = datetime.utcnow()
        project.is_active = False
        audit_service.record(db, current_user.id, AuditAction.DELETE, "Project", project.id)
        db.commit()
        db.refresh(project)
        return project


# Create singleton instance
project_service = ProjectService()

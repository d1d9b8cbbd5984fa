"""
Department Service
Department tree maintenance
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session

from src.models.audit_log import AuditAction
from src.models.department import Department
from src.models.user import User
from src.services.audit_service import audit_service
from src.utils.exceptions import NotFoundError, BadRequestError, ConflictError
from src.utils.helpers import ensure_no_cycle, model_snapshot
from src.utils.logger import setup_logger

logger = setup_logger()


class DepartmentService:
    """Service for departments"""

    def _get(self, db: Session, department_id: int) -> Department:
        department = db.query(Department).filter(Department.id == department_id).first()
        if not department:
            raise NotFoundError("Department not found")
        return department

    def _validate(self, db: Session, data: Dict[str, Any], department: Optional[Department] = None):
        code = data.get("code")
        if code:
            query = db.query(Department).filter(Department.code == code)
            if department is not None:
                query = query.filter(Department.id != department.id)
            if query.first():
                raise ConflictError(f"Department code '{code}' already exists")

        parent_id = data.get("parent_id")
        if parent_id is not None:
            parent = self._get(db, parent_id)
            if parent.deleted_at is not None:
                raise BadRequestError("Parent department is deleted")
            if department is not None:
                def parent_of(dept_id: int) -> Optional[int]:
                    row = db.query(Department.parent_id).filter(Department.id == dept_id).first()
                    return row[0] if row else None

                ensure_no_cycle(
                    parent_id, department.id, parent_of,
                    "Department cannot be its own parent or a child of its descendants"
                )

        for key in ("manager_id", "director_id"):
            if data.get(key) is not None and not db.query(User).filter(
                User.id == data[key], User.deleted_at.is_(None)
            ).first():
                raise NotFoundError(f"{key.replace('_id', '').capitalize()} not found")

    async def get_all(
        self,
        db: Session,
        search: Optional[str] = None,
        parent_id: Optional[int] = None,
        include_deleted: bool = False
    ) -> List[Department]:
        query = db.query(Department)
        if not include_deleted:
            query = query.filter(Department.deleted_at.is_(None))
        if parent_id is not None:
            query = query.filter(Department.parent_id == parent_id)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(Department.name.ilike(pattern), Department.code.ilike(pattern)))
        return query.order_by(Department.name.asc()).all()

    async def get_by_id(self, db: Session, department_id: int) -> Department:
        return self._get(db, department_id)

    async def get_by_code(self, db: Session, code: str) -> Department:
        department = db.query(Department).filter(Department.code == code).first()
        if not department:
            raise NotFoundError("Department not found")
        return department

    async def get_hierarchy(self, db: Session) -> List[Dict[str, Any]]:
        departments = db.query(Department).filter(Department.deleted_at.is_(None)).all()
        children: Dict[Optional[int], List[Department]] = {}
        for dept in departments:
            children.setdefault(dept.parent_id, []).append(dept)

        def build(dept: Department) -> Dict[str, Any]:
            return {
                "id": dept.id,
                "code": dept.code,
                "name": dept.name,
                "manager_id": dept.manager_id,
                "director_id": dept.director_id,
                "user_count": len([u for u in dept.users if u.deleted_at is None]),
                "children": [build(child) for child in children.get(dept.id, [])]
            }

        return [build(dept) for dept in children.get(None, [])]

    async def create(self, db: Session, current_user: User, data: Dict[str, Any]) -> Department:
        self._validate(db, data)
        department = Department(**data)
        db.add(department)
        db.flush()
        audit_service.record(
            db, current_user.id, AuditAction.CREATE, "Department", department.id,
            changes={"after": model_snapshot(department)}
        )
        db.commit()
        db.refresh(department)
        logger.info(f"Department {department.code} created by {current_user.email}")
        return department

    async def update(self, db: Session, current_user: User, department_id: int, data: Dict[str, Any]) -> Department:
        department = self._get(db, department_id)
        self._validate(db, data, department)
        before = model_snapshot(department)
        for field, value in data.items():
            setattr(department, field, value)
        audit_service.record(
            db, current_user.id, AuditAction.UPDATE, "Department", department.id,
            changes={"before": before, "after": model_snapshot(department)}
        )
        db.commit()
        db.refresh(department)
        return department

    async def delete(self, db: Session, current_user: User, department_id: int) -> Department:
        department = self._get(db, department_id)
        if department.deleted_at is not None:
            raise BadRequestError("Department is already deleted")

        active_children = db.query(Department).filter(
            Department.parent_id == department.id,
            Department.deleted_at.is_(None)
        ).count()
        if active_children:
            raise BadRequestError(f"Cannot delete department with {active_children} active sub-department(s)")

        active_users = db.query(User).filter(
            User.department_id == department.id,
            User.deleted_at.is_(None)
        ).count()
        if active_users:
            raise BadRequestError(f"Cannot delete department with {active_users} active user(s)")

        department.deleted_at = datetime.utcnow()
        audit_service.record(db, current_user.id, AuditAction.DELETE, "Department", department.id)
        db.commit()
        db.refresh(department)
        logger.info(f"Department {department.code} deleted by {current_user.email}")
        return department

    async def restore(self, db: Session, current_user: User, department_id: int) -> Department:
        department = self._get(db, department_id)
        if department.deleted_at is None:
            raise BadRequestError("Department is not deleted")
        department.deleted_at = None
        audit_service.record(db, current_user.id, AuditAction.REOPEN, "Department", department.id)
        db.commit()
        db.refresh(department)
        return department


# Create singleton instance
department_service = DepartmentService()

"""
User Service
User administration and organisation hierarchy
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session

from src.config.permissions import Permission
from src.models.audit_log import AuditAction
from src.models.department import Department
from src.models.user import User, UserRole
from src.services.audit_service import audit_service
from src.utils.exceptions import NotFoundError, ForbiddenError, BadRequestError, ConflictError, UnauthorizedError
from src.utils.helpers import ensure_no_cycle, model_snapshot, normalize_phone
from src.utils.security import get_password_hash, verify_password
from src.utils.logger import setup_logger

logger = setup_logger()


class UserService:
    """Service for user management"""

    def _get(self, db: Session, user_id: int, include_deleted: bool = True) -> User:
        query = db.query(User).filter(User.id == user_id)
        if not include_deleted:
            query = query.filter(User.deleted_at.is_(None))
        user = query.first()
        if not user:
            raise NotFoundError("User not found")
        return user

    def _check_unique(self, db: Session, email: Optional[str], employee_id: Optional[str], exclude_id: Optional[int] = None):
        if email:
            query = db.query(User).filter(User.email == email)
            if exclude_id is not None:
                query = query.filter(User.id != exclude_id)
            if query.first():
                raise ConflictError("A user with this email already exists")
        if employee_id:
            query = db.query(User).filter(User.employee_id == employee_id)
            if exclude_id is not None:
                query = query.filter(User.id != exclude_id)
            if query.first():
                raise ConflictError("A user with this employee ID already exists")

    def _check_references(self, db: Session, department_id: Optional[int], supervisor_id: Optional[int]):
        if department_id is not None and not db.query(Department).filter(
            Department.id == department_id, Department.deleted_at.is_(None)
        ).first():
            raise NotFoundError("Department not found")
        if supervisor_id is not None:
            self._get(db, supervisor_id, include_deleted=False)

    def check_supervisor(self, db: Session, user_id: int, supervisor_id: Optional[int]):
        """
        Validate a supervisor assignment keeps the hierarchy a forest

        Raises:
            BadRequestError: On self-supervision or a cycle
        """
        if supervisor_id is None:
            return
        if supervisor_id == user_id:
            raise BadRequestError("A user cannot be their own supervisor")

        def parent_of(uid: int) -> Optional[int]:
            row = db.query(User.supervisor_id).filter(User.id == uid).first()
            return row[0] if row else None

        ensure_no_cycle(supervisor_id, user_id, parent_of, "Circular supervisor reference detected")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_all(
        self,
        db: Session,
        role: Optional[UserRole] = None,
        department_id: Optional[int] = None,
        include_deleted: bool = False,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 50
    ) -> Dict[str, Any]:
        query = db.query(User)
        if not include_deleted:
            query = query.filter(User.deleted_at.is_(None))
        if role:
            query = query.filter(User.role == role)
        if department_id is not None:
            query = query.filter(User.department_id == department_id)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(
                User.name.ilike(pattern),
                User.email.ilike(pattern),
                User.employee_id.ilike(pattern)
            ))
        total = query.count()
        users = query.order_by(User.name.asc()).offset(skip).limit(limit).all()
        return {"items": users, "total": total}

    async def get_by_id(self, db: Session, current_user: User, user_id: int) -> User:
        if user_id != current_user.id and not current_user.has_permission(Permission.VIEW_ANY_USER):
            raise ForbiddenError("You can only view your own profile")
        return self._get(db, user_id)

    async def get_by_phone(self, db: Session, phone: str) -> User:
        wanted = normalize_phone(phone)
        for user in db.query(User).filter(User.deleted_at.is_(None), User.phone_number.isnot(None)).all():
            if normalize_phone(user.phone_number) == wanted:
                return user
        raise NotFoundError("User not found")

    async def get_direct_reports(self, db: Session, user_id: int) -> List[User]:
        return db.query(User).filter(
            User.supervisor_id == user_id,
            User.deleted_at.is_(None)
        ).order_by(User.name.asc()).all()

    async def get_hierarchy(self, db: Session, root_id: Optional[int] = None, max_depth: int = 10) -> List[Dict[str, Any]]:
        """
        Nested supervisor tree

        Args:
            db: Database session
            root_id: Start from this user (default: all top-level users)
            max_depth: Depth limit for the nesting

        Returns:
            list: Nodes of {id, name, email, role, subordinates}
        """
        users = db.query(User).filter(User.deleted_at.is_(None)).all()
        children: Dict[Optional[int], List[User]] = {}
        for user in users:
            children.setdefault(user.supervisor_id, []).append(user)

        def build(user: User, depth: int) -> Dict[str, Any]:
            node = {
                "id": user.id,
                "name": user.name,
                "email": user.email,
                "role": user.role.value,
                "subordinates": []
            }
            if depth < max_depth:
                node["subordinates"] = [build(child, depth + 1) for child in children.get(user.id, [])]
            return node

        if root_id is not None:
            return [build(self._get(db, root_id, include_deleted=False), 0)]
        return [build(user, 0) for user in children.get(None, [])]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(self, db: Session, current_user: User, data: Dict[str, Any]) -> User:
        self._check_unique(db, data.get("email"), data.get("employee_id"))
        self._check_references(db, data.get("department_id"), data.get("supervisor_id"))

        password = data.pop("password", None)
        user = User(**data)
        if password:
            user.hashed_password = get_password_hash(password)
        db.add(user)
        db.flush()

        audit_service.record(
            db, current_user.id, AuditAction.CREATE, "User", user.id,
            changes={"after": model_snapshot(user)}
        )
        db.commit()
        db.refresh(user)
        logger.info(f"User created: {user.email} ({user.role.value}) by {current_user.email}")
        return user

    async def update(self, db: Session, current_user: User, user_id: int, data: Dict[str, Any]) -> User:
        user = self._get(db, user_id)
        before = model_snapshot(user)

        self._check_unique(db, data.get("email"), data.get("employee_id"), exclude_id=user.id)
        self._check_references(db, data.get("department_id"), data.get("supervisor_id"))
        if "supervisor_id" in data:
            self.check_supervisor(db, user.id, data["supervisor_id"])

        password = data.pop("password", None)
        for field, value in data.items():
            setattr(user, field, value)
        if password:
            user.hashed_password = get_password_hash(password)

        audit_service.record(
            db, current_user.id, AuditAction.UPDATE, "User", user.id,
            changes={"before": before, "after": model_snapshot(user)}
        )
        db.commit()
        db.refresh(user)
        logger.info(f"User {user.email} updated by {current_user.email}")
        return user

    async def update_me(self, db: Session, current_user: User, data: Dict[str, Any]) -> User:
        before = model_snapshot(current_user)
        for field, value in data.items():
            setattr(current_user, field, value)
        audit_service.record(
            db, current_user.id, AuditAction.UPDATE, "User", current_user.id,
            changes={"before": before, "after": model_snapshot(current_user)}
        )
        db.commit()
        db.refresh(current_user)
        return current_user

    async def change_password(self, db: Session, current_user: User, current_password: str, new_password: str):
        if not verify_password(current_password, current_user.hashed_password):
            raise UnauthorizedError("Current password is incorrect")
        current_user.hashed_password = get_password_hash(new_password)
        audit_service.record(
            db, current_user.id, AuditAction.UPDATE, "User", current_user.id,
            metadata={"action": "password_changed"}
        )
        db.commit()
        logger.info(f"Password changed for {current_user.email}")

    async def delete(self, db: Session, current_user: User, user_id: int) -> User:
        """
        Soft delete a user

        Raises:
            BadRequestError: If the user still has active direct reports
        """
        user = self._get(db, user_id)
        if user.deleted_at is not None:
            raise BadRequestError("User is already deleted")

        reports = db.query(User).filter(
            User.supervisor_id == user.id,
            User.deleted_at.is_(None)
        ).count()
        if reports > 0:
            raise BadRequestError(
                f"Cannot delete user with {reports} active direct report(s). Reassign them first."
            )

        user.deleted_at = datetime.utcnow()
        audit_service.record(db, current_user.id, AuditAction.DELETE, "User", user.id)
        db.commit()
        db.refresh(user)
        logger.info(f"User {user.email} deleted by {current_user.email}")
        return user

    async def restore(self, db: Session, current_user: User, user_id: int) -> User:
        user = self._get(db, user_id)
        if user.deleted_at is None:
            raise BadRequestError("User is not deleted")
        user.deleted_at = None
        audit_service.record(db, current_user.id, AuditAction.REOPEN, "User", user.id)
        db.commit()
        db.refresh(user)
        return user


# Create singleton instance
user_service = UserService()

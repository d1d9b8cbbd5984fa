"""
Authentication Service
Handles user authentication and authorization
"""

import secrets
from typing import Optional
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from src.config.database import get_db
from src.config.permissions import Permission
from src.config.settings import settings
from src.models.user import User
from src.utils.exceptions import UnauthorizedError, ForbiddenError
from src.utils.security import verify_password, create_access_token, create_refresh_token, decode_token
from src.utils.logger import setup_logger

logger = setup_logger()

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


class AuthService:
    """Authentication service"""

    def authenticate_user(self, db: Session, username: str, password: str) -> Optional[User]:
        """
        Authenticate user with email or employee ID

        Args:
            db: Database session
            username: Email or employee ID
            password: Password

        Returns:
            User: Authenticated user or None
        """
        user = db.query(User).filter(
            (User.email == username) | (User.employee_id == username)
        ).first()

        if not user or user.deleted_at is not None:
            return None

        if not verify_password(password, user.hashed_password):
            return None

        logger.info(f"User authenticated: {user.email}")
        return user

    def create_tokens(self, user: User) -> dict:
        """
        Create access and refresh tokens for user

        Args:
            user: User object

        Returns:
            dict: Access and refresh tokens
        """
        access_token = create_access_token(
            data={
                "sub": str(user.id),
                "email": user.email,
                "role": user.role.value
            }
        )

        refresh_token = create_refresh_token(
            data={"sub": str(user.id)}
        )

        return {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_type": "bearer"
        }

    def refresh_tokens(self, db: Session, refresh_token: str) -> dict:
        """Exchange a refresh token for a new token pair"""
        payload = decode_token(refresh_token)
        if not payload or payload.get("type") != "refresh" or payload.get("sub") is None:
            raise UnauthorizedError("Invalid refresh token")

        user = db.query(User).filter(User.id == int(payload["sub"])).first()
        if user is None or user.deleted_at is not None:
            raise UnauthorizedError("Invalid refresh token")

        return self.create_tokens(user)

    def _service_account(self, db: Session) -> User:
        """Synthetic session for API-key callers"""
        if not settings.SERVICE_ACCOUNT_EMAIL:
            raise UnauthorizedError("Service account is not configured")
        user = db.query(User).filter(
            User.email == settings.SERVICE_ACCOUNT_EMAIL,
            User.deleted_at.is_(None)
        ).first()
        if user is None:
            raise UnauthorizedError("Service account user not found")
        logger.debug(f"Service API key mapped to {user.email}")
        return user

    async def get_current_user(
        self,
        token: str = Depends(oauth2_scheme),
        db: Session = Depends(get_db)
    ) -> User:
        """
        Get current authenticated user from token

        Args:
            token: JWT token or service API key
            db: Database session

        Returns:
            User: Current user

        Raises:
            UnauthorizedError: If authentication fails
            ForbiddenError: If the account has been deleted
        """
        api_key = settings.SERVICE_API_KEY
        if api_key and secrets.compare_digest(token.encode(), api_key.encode()):
            return self._service_account(db)

        payload = decode_token(token)
        if payload is None or payload.get("type") != "access":
            raise UnauthorizedError()

        user_id = payload.get("sub")
        if user_id is None:
            raise UnauthorizedError()

        user = db.query(User).filter(User.id == int(user_id)).first()
        if user is None:
            raise UnauthorizedError()

        if user.deleted_at is not None:
            raise ForbiddenError("User account is deactivated")

        return user

    def require_permission(self, permission: Permission):
        """
        Dependency factory requiring a policy permission

        Args:
            permission: Required permission
        """
        async def permission_checker(current_user: User = Depends(self.get_current_user)):
            if not current_user.has_permission(permission):
                raise ForbiddenError(f"Permission denied: {permission.value} required")
            return current_user

        return permission_checker


# Create singleton instance
auth_service = AuthService()

# Tier dependencies
supervisor_user = auth_service.require_permission(Permission.SUPERVISOR_TIER)
manager_user = auth_service.require_permission(Permission.MANAGER_TIER)
finance_user = auth_service.require_permission(Permission.FINANCE_TIER)
admin_user = auth_service.require_permission(Permission.ADMIN_TIER)

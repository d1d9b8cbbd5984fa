"""
Authentication Routes
Login and token management
"""

from fastapi import APIRouter, Depends
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from src.config.database import get_db
from src.config.settings import settings
from src.services.auth_service import auth_service
from src.schemas.auth import Token, RefreshRequest
from src.schemas.user import UserResponse
from src.models.user import User
from src.utils.exceptions import UnauthorizedError
from src.utils.logger import setup_logger

logger = setup_logger()
router = APIRouter()


@router.post("/login", response_model=Token)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
):
    """
    Login endpoint

    OAuth2 compatible token login. The username may be an email address
    or an employee ID.
    """
    user = auth_service.authenticate_user(db, form_data.username, form_data.password)

    if not user:
        logger.warning(f"Failed login attempt for {form_data.username}")
        raise UnauthorizedError("Incorrect username or password")

    tokens = auth_service.create_tokens(user)
    tokens["expires_in"] = settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60

    logger.info(f"User logged in: {user.email}")
    return tokens


@router.post("/refresh", response_model=Token)
async def refresh_token(
    request: RefreshRequest,
    db: Session = Depends(get_db)
):
    """Refresh access token using refresh token"""
    tokens = auth_service.refresh_tokens(db, request.refresh_token)
    tokens["expires_in"] = settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
    return tokens


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: User = Depends(auth_service.get_current_user)
):
    """Get current user information"""
    return current_user

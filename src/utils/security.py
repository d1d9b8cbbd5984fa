"""
Security Utilities
Password hashing and JWT token helpers
"""

from datetime import datetime, timedelta
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from passlib.context import CryptContext

from src.config.settings import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def get_password_hash(password: str) -> str:
    """Hash a plain text password"""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """
    Verify a password against its hash

    Args:
        plain_password: Password supplied by the user
        hashed_password: Stored bcrypt hash (may be empty)

    Returns:
        bool: True if the password matches
    """
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def _encode(data: Dict[str, Any], expires_delta: timedelta, token_type: str) -> str:
    to_encode = data.copy()
    to_encode.update({
        "exp": datetime.utcnow() + expires_delta,
        "type": token_type
    })
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed access token

    Args:
        data: Claims to embed (must include "sub")
        expires_delta: Optional custom lifetime

    Returns:
        str: Encoded JWT
    """
    return _encode(
        data,
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        "access"
    )


def create_refresh_token(data: Dict[str, Any]) -> str:
    """Create a signed refresh token"""
    return _encode(data, timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS), "refresh")


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode and verify a JWT

    Args:
        token: Encoded JWT

    Returns:
        dict: Token payload, or None when the token is invalid or expired
    """
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None

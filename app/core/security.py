"""
Security utilities for authentication and ownership checks
Resolves the calling user from a bearer token and verifies course ownership
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from app.core.config import settings
from app.core.exceptions import AuthenticationException, AuthorizationException
from app.core.logging import LoggerFactory

logger = logging.getLogger(__name__)
security_logger = LoggerFactory.get_security_logger()

# HTTP Bearer scheme
bearer_scheme = HTTPBearer(auto_error=False)

ACCESS_TOKEN_EXPIRE_MINUTES = 30


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create JWT access token

    Args:
        data: Claims to encode; ``sub`` carries the user id
        expires_delta: Token lifetime

    Returns:
        Encoded JWT token
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise AuthenticationException("Could not validate credentials")


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
) -> int:
    """Dependency returning the authenticated user's id"""
    if credentials is None:
        raise AuthenticationException("Not authenticated")

    payload = decode_token(credentials.credentials)
    user_id = payload.get("sub")
    if user_id is None:
        raise AuthenticationException("Invalid authentication credentials")
    try:
        return int(user_id)
    except (TypeError, ValueError):
        raise AuthenticationException("Invalid authentication credentials")


class OwnershipResolver:
    """Maps the calling user to an instructor and checks course ownership"""

    def __init__(self, repository):
        self.repository = repository

    def require_owner(
        self,
        user_id: int,
        course,
        message: str,
        require_verified: bool = False,
        resource_id: Any = None,
    ):
        """
        Ensure ``user_id`` is the instructor who owns ``course``.

        Returns:
            The owning Instructor
        """
        instructor = self.repository.get_instructor_by_user(user_id)
        if instructor is None or instructor.id != course.instructor_id:
            security_logger.warning(
                "UNAUTHORIZED_QUIZ_ACCESS_ATTEMPT",
                extra={
                    "severity": "HIGH",
                    "user_id": user_id,
                    "resource_id": resource_id,
                    "actual_owner_id": course.instructor_id,
                },
            )
            raise AuthorizationException(message)

        if require_verified and not instructor.is_verified:
            raise AuthorizationException("Only verified instructors can create quizzes")

        return instructor

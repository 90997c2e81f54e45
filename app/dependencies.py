# ================================
# DEPENDENCIES (dependencies.py)
# ================================

from typing import Set
from fastapi import Depends, Request
from sqlalchemy.orm import Session
import uuid

from app.config import settings
from app.core.exceptions import AuthenticationError, AuthorizationError

def get_db(request: Request) -> Session:
    """Database session created by RequestContextMiddleware"""
    return request.state.db

def get_request_id(request: Request) -> str:
    return getattr(request.state, 'request_id', 'unknown')

def get_current_user_id(request: Request) -> uuid.UUID:
    """Caller id forwarded by the auth gateway"""
    raw_user_id = request.headers.get(settings.CALLER_ID_HEADER)
    if not raw_user_id:
        raise AuthenticationError("Authentication required")

    try:
        return uuid.UUID(raw_user_id)
    except ValueError:
        raise AuthenticationError("Invalid caller id")

def get_current_user_roles(
    request: Request,
    current_user_id: uuid.UUID = Depends(get_current_user_id)
) -> Set[str]:
    """Roles forwarded by the auth gateway alongside the caller id"""
    raw_roles = request.headers.get(settings.CALLER_ROLES_HEADER, "")
    return {role.strip() for role in raw_roles.split(",") if role.strip()}

def is_staff_caller(roles: Set[str] = Depends(get_current_user_roles)) -> bool:
    return settings.STAFF_ROLE in roles

# ================================
# ROLE-BASED DEPENDENCIES
# ================================

def require_role(role_name: str):
    """Factory for role-based dependencies"""

    def role_dependency(roles: Set[str] = Depends(get_current_user_roles)) -> bool:
        if role_name not in roles:
            raise AuthorizationError(f"Role required: {role_name}")
        return True

    return role_dependency

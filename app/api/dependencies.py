"""
Request dependencies: current user, role guards, provider transport
"""
from typing import Optional

import httpx
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.exceptions import Unauthenticated, Forbidden
from app.core.security import get_user_id_from_token
from app.models.user import User


security = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """Resolve the bearer token to an active user"""
    if not credentials:
        raise Unauthenticated("Not authorized, no token")

    user_id = get_user_id_from_token(credentials.credentials)
    if not user_id:
        raise Unauthenticated("Not authorized, invalid token")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise Unauthenticated("User not found")

    if not user.is_active or user.is_suspended:
        raise Forbidden("Account is suspended or inactive")

    return user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_admin:
        raise Forbidden("Admin access required")
    return current_user


def require_farmer(current_user: User = Depends(get_current_user)) -> User:
    """Farmers, and admins acting on their behalf"""
    if not (current_user.is_farmer or current_user.is_admin):
        raise Forbidden("Farmer access required")
    return current_user


def get_payment_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Default network transport; overridden in tests"""
    return None

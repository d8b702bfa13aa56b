from typing import Optional
import secrets

from fastapi import Depends, Header
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from .models.user import User
from .auth import AuthService
from .config import settings
from .errors import AuthError, PermissionDeniedError
from .db import init_db

# Security setup
security = HTTPBearer(auto_error=False)


async def ensure_db():
    """
    FastAPI dependency: call on routes/routers requiring DB.
    First call triggers init_beanie once; subsequent calls are cheap.
    """
    await init_db()


# Dependency to get current user
async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> User:
    """Get current user from the bearer token"""
    if not credentials:
        raise AuthError("No token provided")
    return await AuthService.get_current_user(credentials.credentials)


async def get_current_user_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[User]:
    """Return current user if a valid token is provided, otherwise None."""
    if not credentials:
        return None
    try:
        return await AuthService.get_current_user(credentials.credentials)
    except AuthError:
        return None


# Admin-only middleware
async def admin_required(current_user: User = Depends(get_current_user)) -> User:
    """Check if current user has admin role"""
    if not current_user.is_admin:
        raise PermissionDeniedError("Forbidden: Admin access required")
    return current_user


async def verify_cron_secret(authorization: Optional[str] = Header(default=None)):
    """Reject scheduled-trigger calls without the shared secret, when one is set"""
    if not settings.CRON_SECRET:
        return
    expected = f"Bearer {settings.CRON_SECRET}"
    if not authorization or not secrets.compare_digest(authorization, expected):
        raise AuthError("Unauthorized")

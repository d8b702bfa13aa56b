from typing import Optional
import logging

import jwt
from pydantic import BaseModel
from pymongo.errors import DuplicateKeyError

from .config import settings
from .errors import AuthError
from .models.user import User
from .models.base import utc_now
from .db import init_beanie_if_needed
from .input_sanitizer import InputSanitizer

# Configure logging
logger = logging.getLogger(__name__)


class TokenData(BaseModel):
    uid: str
    email: str = ""
    name: Optional[str] = None
    picture: Optional[str] = None


class AuthService:
    @staticmethod
    def verify_token(token: str) -> TokenData:
        """Verify an identity provider token and return its claims"""
        # Audience is only checked when one is configured
        options = {
            "require": ["sub", "exp"],
            "verify_aud": bool(settings.AUTH_TOKEN_AUDIENCE),
        }
        try:
            payload = jwt.decode(
                token,
                settings.AUTH_TOKEN_SECRET,
                algorithms=[settings.AUTH_TOKEN_ALGORITHM],
                audience=settings.AUTH_TOKEN_AUDIENCE,
                options=options,
            )
        except jwt.PyJWTError as e:
            logger.warning(f"Authentication error: {str(e)}")
            raise AuthError("Invalid or expired token")

        uid = payload.get("sub")
        if not uid:
            raise AuthError("Invalid or expired token")

        return TokenData(
            uid=uid,
            email=payload.get("email") or "",
            name=payload.get("name"),
            picture=payload.get("picture"),
        )

    @staticmethod
    async def get_or_create_user(token_data: TokenData) -> User:
        """Load the user for a verified token, creating it on first sight"""
        user = await User.find_one({"uid": token_data.uid})
        if user:
            return user

        email = InputSanitizer.normalize_email(token_data.email) or token_data.email.lower()
        user = User(
            uid=token_data.uid,
            email=email,
            display_name=token_data.name or email.split("@")[0],
            photo_url=token_data.picture or "",
            last_login=utc_now(),
        )
        try:
            await user.insert()
        except DuplicateKeyError:
            # A parallel first request created the same user
            existing = await User.find_one({"uid": token_data.uid})
            if existing is None:
                raise
            return existing
        logger.info(f"Created user {user.id} for {email}")

        # Avoid a circular import: sharing depends on models only
        from .services.sharing_service import SharingService

        await SharingService.claim_pending_shares(user)
        return user

    @staticmethod
    async def get_current_user(token: str) -> User:
        """Get current user from a bearer token"""
        token_data = AuthService.verify_token(token)

        await init_beanie_if_needed()
        return await AuthService.get_or_create_user(token_data)

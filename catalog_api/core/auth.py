"""
Identity resolution for the catalog API

Session issuing lives in the auth service; this module only reads the bearer
token it hands out and turns it into a TokenUser. Product creation is allowed
anonymously, so every dependency here is optional.
"""
import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from pydantic import BaseModel

from catalog_api.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

# Security scheme for bearer tokens
security = HTTPBearer(auto_error=False)

JWT_ALGORITHM = "HS256"


class TokenUser(BaseModel):
    """User data extracted from the session token"""
    id: str
    email: str
    name: Optional[str] = None


def decode_session_token(token: str, secret: str) -> dict:
    """
    Decode and validate a session JWT.

    Expected payload:
    {
        "sub": "user_id",
        "id": "user_id",
        "name": "Ana",
        "email": "ana@example.com",
        "iat": 1234567890,
        "exp": 1234567890
    }

    Raises:
        JWTError: If the signature, expiry or format is invalid
    """
    if not secret:
        raise JWTError("AUTH_SECRET is not configured")

    return jwt.decode(
        token,
        secret,
        algorithms=[JWT_ALGORITHM],
        options={"verify_aud": False}
    )


def user_from_payload(payload: dict) -> Optional[TokenUser]:
    user_id = payload.get("id") or payload.get("sub")
    email = payload.get("email")

    if not user_id or not email:
        return None

    return TokenUser(id=str(user_id), email=email, name=payload.get("name"))


async def get_current_user_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_settings),
) -> Optional[TokenUser]:
    """
    Optional authentication - returns None if no valid token provided.

    Usage:
        @router.post("/products/create-new-product")
        async def create(user: Optional[TokenUser] = Depends(get_current_user_optional)):
            ...
    """
    if not credentials:
        return None

    try:
        payload = decode_session_token(credentials.credentials, settings.AUTH_SECRET)
    except JWTError as e:
        logger.info(f"Ignoring invalid session token: {e}")
        return None

    return user_from_payload(payload)

# Access token handling - signs and verifies the bearer JWTs issued by the sign-in provider

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from pydantic import BaseModel

from .config import settings

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


class CurrentUser(BaseModel):
    id: str
    email: Optional[str] = None
    name: Optional[str] = None


def create_access_token(
    user_id: str,
    email: Optional[str] = None,
    name: Optional[str] = None,
    expires_minutes: Optional[int] = None,
) -> str:
    """
    Create a signed access token for a user.

    The sign-in provider shares SECRET_KEY with the API and mints tokens
    with the same claims.
    """
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes if expires_minutes is not None else settings.access_token_expire_minutes
    )
    claims: Dict[str, Any] = {"sub": user_id, "exp": expire}
    if email:
        claims["email"] = email
    if name:
        claims["name"] = name
    return jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Verify a token and return its claims"""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        error_msg = str(e)
        logger.warning(f"Token verification failed: {error_msg}")

        detail = "Unauthorized"
        if "expired" in error_msg.lower():
            detail = "Token expired. Please sign in again."

        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> CurrentUser:
    """
    Dependency to get the current authenticated user.
    Validates the JWT from the Authorization header.
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_access_token(credentials.credentials)

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing subject",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return CurrentUser(id=str(user_id), email=payload.get("email"), name=payload.get("name"))

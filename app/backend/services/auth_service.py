"""
Authentication utilities.

Password hashing (PBKDF2-SHA256), JWT issuing/decoding, and the FastAPI
dependency that resolves a bearer token to an account id.
"""

import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from ..config import get_settings

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 200_000

# HTTP Bearer security scheme
security = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    """Hash a password as `pbkdf2_sha256$<iterations>$<salt>$<hash>`."""
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("utf-8"), PBKDF2_ITERATIONS
    ).hex()
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt}${digest}"


def verify_password(password: str, stored: str) -> bool:
    try:
        algorithm, iterations, salt, digest = stored.split("$")
    except ValueError:
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    candidate = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("utf-8"), int(iterations)
    ).hex()
    return hmac.compare_digest(candidate, digest)


def create_access_token(account_id: int, email: str, expires_delta: timedelta | None = None) -> str:
    """
    Create a JWT access token.

    Payload:
        {"sub": email, "account_id": 123, "exp": 1234567890}
    """
    settings = get_settings()
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)

    to_encode = {
        "sub": email,
        "account_id": account_id,
        "exp": datetime.utcnow() + expires_delta,
    }
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Decode and validate a JWT. Returns None when invalid or expired."""
    settings = get_settings()
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


async def get_current_account_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> int:
    """
    FastAPI dependency resolving the bearer token to an account id.

    Raises:
        HTTPException: 401 without a token, 403 for an invalid one.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_access_token(credentials.credentials)
    account_id = payload.get("account_id") if payload else None
    if not isinstance(account_id, int):
        logger.info("Rejected invalid access token")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid token",
        )
    return account_id

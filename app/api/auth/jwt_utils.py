"""
JWT token utilities for admin authentication.

Two kinds of tokens are issued:
    - "2fa_pending": password checked, second factor still missing. Short lived,
      only accepted by /auth/verify_totp.
    - "admin": full access token for protected admin routes.
"""

import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
import jwt
from dotenv import load_dotenv
from fastapi import HTTPException, Header
from common.log_handler import log

load_dotenv()

# JWT configuration from environment variables
SECRET_KEY = os.getenv("JWT_SECRET_KEY")
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_HOURS = int(os.getenv("JWT_ACCESS_TOKEN_EXPIRE_HOURS", "12"))
PENDING_TOKEN_EXPIRE_MINUTES = int(os.getenv("JWT_PENDING_TOKEN_EXPIRE_MINUTES", "5"))

SCOPE_ADMIN = "admin"
SCOPE_PENDING = "2fa_pending"


@dataclass
class AdminIdentity:
    id: int
    username: str


def _encode(admin_id: int, username: str, scope: str, expires_delta: timedelta) -> str:
    now = datetime.now(timezone.utc)
    to_encode = {
        "sub": username,
        "aid": admin_id,
        "scope": scope,
        "exp": now + expires_delta,
        "iat": now,
    }
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def create_access_token(admin_id: int, username: str, expires_delta: Optional[timedelta] = None) -> tuple[str, int]:
    """
    Create a JWT access token for an admin user.

    Args:
        admin_id: Database id of the admin
        username: Admin username to encode in token
        expires_delta: Optional custom expiration time, defaults to configured hours

    Returns:
        Tuple of (token_string, expires_in_seconds)
    """
    if expires_delta is None:
        expires_delta = timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS)

    encoded_jwt = _encode(admin_id, username, SCOPE_ADMIN, expires_delta)
    log.info(f"Created JWT token for admin '{username}', expires in {int(expires_delta.total_seconds())} seconds")

    return encoded_jwt, int(expires_delta.total_seconds())


def create_pending_token(admin_id: int, username: str) -> tuple[str, int]:
    """Token proving the password step passed. Only good for the second factor."""
    expires_delta = timedelta(minutes=PENDING_TOKEN_EXPIRE_MINUTES)
    return _encode(admin_id, username, SCOPE_PENDING, expires_delta), int(expires_delta.total_seconds())


def verify_token(token: str, scope: str = SCOPE_ADMIN) -> AdminIdentity:
    """
    Verify and decode a JWT token of the given scope.

    Args:
        token: JWT token string
        scope: Expected token scope

    Returns:
        AdminIdentity from the token if valid

    Raises:
        HTTPException: If token is invalid, expired, malformed or of another scope
    """
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        log.warning("JWT token validation failed: token expired")
        raise HTTPException(status_code=401, detail="Token has expired")
    except jwt.InvalidTokenError as e:
        log.warning(f"JWT token validation failed: {str(e)}")
        raise HTTPException(status_code=401, detail="Invalid token")

    username = payload.get("sub")
    admin_id = payload.get("aid")
    if username is None or admin_id is None:
        raise HTTPException(status_code=401, detail="Invalid token: no admin")
    if payload.get("scope") != scope:
        log.warning(f"JWT token for '{username}' used with wrong scope '{payload.get('scope')}'")
        raise HTTPException(status_code=401, detail="Invalid token")

    return AdminIdentity(id=int(admin_id), username=username)


async def get_current_admin(authorization: Optional[str] = Header(None)) -> AdminIdentity:
    """
    FastAPI dependency to validate the bearer token of protected admin routes.

    Expects Authorization header in format: "Bearer <token>"

    Raises:
        HTTPException: If authorization header is missing or token is invalid
    """
    if authorization is None:
        log.warning("Admin route access attempt without Authorization header")
        raise HTTPException(
            status_code=401,
            detail="Missing authorization header",
            headers={"WWW-Authenticate": "Bearer"}
        )

    parts = authorization.split()

    if len(parts) != 2 or parts[0].lower() != "bearer":
        log.warning("Admin route access attempt with malformed Authorization header")
        raise HTTPException(
            status_code=401,
            detail="Invalid authorization header format. Expected: Bearer <token>",
            headers={"WWW-Authenticate": "Bearer"}
        )

    return verify_token(parts[1], SCOPE_ADMIN)

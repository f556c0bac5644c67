"""
Authentication router for admin login with TOTP verification.
"""

from datetime import datetime, timezone
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import async_sessionmaker
from api.utils import api_response, twofactor_error_response
from api.rate_limiter import limiter
from database.session import get_session_factory
from database.utils import fetch_admin, fetch_admin_by_id
from twofactor import TOTPEngine, CredentialState, TwoFactorError
from twofactor.throttle import AttemptLimiter
from .schemas import LoginRequest, TOTPVerifyRequest, AuthResponse
from .password_utils import verify_password
from .totp_utils import get_totp_engine, get_attempt_limiter
from .jwt_utils import create_access_token, create_pending_token, verify_token, SCOPE_PENDING
from .tracker import login_attempts_total, second_factor_total, auth_request_latency
from common.log_handler import log

router = APIRouter(
    prefix="/auth",
    tags=["authentication"],
)


@router.post("/login", response_model=AuthResponse)
@limiter.limit("10/minute")
async def login(
    request: Request,
    credentials: LoginRequest,
    session_factory: async_sessionmaker = Depends(get_session_factory),
    engine: TOTPEngine = Depends(get_totp_engine),
):
    """
    Password step of the admin login.

    Admins with TOTP enabled get a short-lived pending token that has to be
    exchanged at /auth/verify_totp. Admins without (or with an unconfirmed)
    TOTP setup get the access token right away.

    Args:
        request: FastAPI request object (for IP logging)
        credentials: Username and password

    Responses:
        200: Password accepted, returns pending token or access token
        401: Invalid username or password
        503: Credential store unavailable
    """
    with auth_request_latency.labels(endpoint="login").time():
        async with session_factory() as session:
            admin = await fetch_admin(session, credentials.username)

        if not verify_password(credentials.password, admin.password_hash if admin else None):
            login_attempts_total.labels(status="failure").inc()
            log.warning(f"Admin login attempt with invalid credentials for '{credentials.username}' from {request.client.host}")
            return api_response(
                message="Invalid username or password",
                success=False,
                status_code=401
            )
        login_attempts_total.labels(status="success").inc()

        try:
            state = await engine.state(admin.id)
        except TwoFactorError as e:
            return twofactor_error_response(e)

        if state == CredentialState.ENABLED:
            pending_token, expires_in = create_pending_token(admin.id, admin.username)
            log.info(f"Admin '{admin.username}' passed password step from {request.client.host}, TOTP required")
            return api_response(
                message="TOTP code required",
                data={
                    "two_factor_required": True,
                    "pending_token": pending_token,
                    "expires_in": expires_in
                }
            )

        access_token, expires_in = create_access_token(admin.id, admin.username)
        log.info(f"Admin '{admin.username}' authenticated without TOTP from {request.client.host}")
        return api_response(
            message="Authentication successful",
            data={
                "two_factor_required": False,
                "access_token": access_token,
                "token_type": "bearer",
                "expires_in": expires_in
            }
        )


@router.post("/verify_totp", response_model=AuthResponse)
@limiter.limit("10/minute")
async def verify_totp_endpoint(
    request: Request,
    body: TOTPVerifyRequest,
    session_factory: async_sessionmaker = Depends(get_session_factory),
    engine: TOTPEngine = Depends(get_totp_engine),
    attempt_limiter: AttemptLimiter = Depends(get_attempt_limiter),
):
    """
    Second factor of the admin login, return JWT access token.

    The TOTP code is checked first; the backup code is only tried when the
    TOTP code is missing or wrong. A used backup code is gone for good.
    Repeated failures from the same address lock the admin out for a while.

    Args:
        request: FastAPI request object (for IP logging)
        body: Pending token plus TOTP code and/or backup code

    Responses:
        200: Authentication successful, returns access token
        401: Invalid pending token or code
        409: TOTP is not configured for this admin
        429: Too many failed attempts
    """
    identity = verify_token(body.pending_token, SCOPE_PENDING)
    ip = request.client.host

    with auth_request_latency.labels(endpoint="verify_totp").time():
        try:
            method = await attempt_limiter.guard(
                identity.id,
                ip,
                lambda: engine.verify_login(identity.id, totp_code=body.totp_code, backup_code=body.backup_code),
            )
        except TwoFactorError as e:
            second_factor_total.labels(method="any", status="failure").inc()
            log.warning(f"Admin '{identity.username}' failed second factor from {ip}: {type(e).__name__}")
            return twofactor_error_response(e)

        second_factor_total.labels(method=method.value, status="success").inc()

        async with session_factory() as session:
            admin = await fetch_admin_by_id(session, identity.id)
            if admin is None:
                return api_response(message="Invalid username or password", success=False, status_code=401)
            admin.last_login = datetime.now(timezone.utc).replace(tzinfo=None)
            await session.commit()

        access_token, expires_in = create_access_token(identity.id, identity.username)
        log.info(f"Admin '{identity.username}' successfully authenticated with {method.value} from {ip}")

        return api_response(
            message="Authentication successful",
            data={
                "access_token": access_token,
                "token_type": "bearer",
                "expires_in": expires_in,
                "method": method.value
            }
        )

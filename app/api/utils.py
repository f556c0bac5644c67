from fastapi.responses import JSONResponse
from typing import Any, Optional
from common.log_handler import log
from twofactor.errors import (
    TwoFactorError,
    AlreadyEnabled,
    ConfigurationMissing,
    InvalidCode,
    StorageFailure,
    RandomnessFailure,
    TooManyAttempts,
)


def api_response(
    data: Any = None,
    message: Optional[str] = None,
    success: bool = True,
    status_code: int = 200,
    headers: dict = None,
):
    payload = {
        "success": success,
        "message": message,
        "data": data
    }

    return JSONResponse(
        content=payload,
        status_code=status_code,
        headers=headers
    )


def twofactor_error_response(exc: TwoFactorError):
    """Map a two-factor error kind to the API envelope."""
    if isinstance(exc, InvalidCode):
        return api_response(message="Invalid TOTP code or backup code", success=False, status_code=401)
    if isinstance(exc, ConfigurationMissing):
        return api_response(message="TOTP is not configured for this account", success=False, status_code=409)
    if isinstance(exc, AlreadyEnabled):
        return api_response(message="TOTP is already enabled, disable it first", success=False, status_code=409)
    if isinstance(exc, TooManyAttempts):
        retry_seconds = max(int(exc.retry_after.total_seconds()), 1)
        return api_response(
            message="Too many failed attempts",
            data={"retry_after_seconds": retry_seconds},
            success=False,
            status_code=429,
            headers={"Retry-After": str(retry_seconds)},
        )
    if isinstance(exc, (StorageFailure, RandomnessFailure)):
        log.error(f"Two-factor backend unavailable: {exc}")
        return api_response(message="Service temporarily unavailable", success=False, status_code=503)
    raise exc

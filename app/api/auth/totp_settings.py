"""
TOTP management for the logged-in admin: setup, enable, disable and
backup code regeneration.
"""

from fastapi import APIRouter, Depends, Request
from api.utils import api_response, twofactor_error_response
from twofactor import TOTPEngine, TwoFactorError
from .jwt_utils import AdminIdentity, get_current_admin
from .schemas import TOTPCodeRequest, TOTPResponse, TOTPSetupData, TOTPStatusData
from .totp_utils import get_totp_engine, qr_code_data_url
from .tracker import totp_changes_total
from common.log_handler import log

router = APIRouter(
    prefix="/auth/totp",
    tags=["totp"],
)


@router.get("/status", response_model=TOTPResponse)
async def totp_status(
    admin: AdminIdentity = Depends(get_current_admin),
    engine: TOTPEngine = Depends(get_totp_engine),
):
    """Current TOTP state of the admin and how many backup codes are left."""
    try:
        state = await engine.state(admin.id)
        remaining = await engine.remaining_backup_codes(admin.id)
    except TwoFactorError as e:
        return twofactor_error_response(e)
    data = TOTPStatusData(state=state.value, remaining_backup_codes=remaining)
    return api_response(message="TOTP status", data=data.model_dump())


@router.post("/setup", response_model=TOTPResponse)
async def totp_setup(
    request: Request,
    admin: AdminIdentity = Depends(get_current_admin),
    engine: TOTPEngine = Depends(get_totp_engine),
):
    """
    Start TOTP enrollment.

    Generates a new secret and a new batch of backup codes, replacing a
    pending setup. TOTP stays inactive until /auth/totp/enable succeeds.
    The secret and backup codes are only ever returned by this call.

    Responses:
        200: Secret, provisioning URI, QR code and backup codes
        401: Unauthorized or invalid token
        409: TOTP is already enabled, disable it first
        503: Credential store or random source unavailable
    """
    try:
        enrollment = await engine.setup(admin.id, admin.username)
    except TwoFactorError as e:
        totp_changes_total.labels(action="setup", status="failure").inc()
        return twofactor_error_response(e)

    totp_changes_total.labels(action="setup", status="success").inc()
    log.info(f"TOTP setup initiated for admin '{admin.username}' from {request.client.host}")
    data = TOTPSetupData(
        secret=enrollment.secret,
        provisioning_uri=enrollment.uri,
        qr_code=qr_code_data_url(enrollment.uri),
        backup_codes=enrollment.backup_codes,
    )
    return api_response(
        message="TOTP setup initiated. Please scan the QR code with your authenticator app.",
        data=data.model_dump()
    )


@router.post("/enable", response_model=TOTPResponse)
async def totp_enable(
    request: Request,
    body: TOTPCodeRequest,
    admin: AdminIdentity = Depends(get_current_admin),
    engine: TOTPEngine = Depends(get_totp_engine),
):
    """
    Confirm the pending secret with a code from the authenticator app.

    Responses:
        200: TOTP enabled
        401: Invalid TOTP code
        409: No pending setup, run /auth/totp/setup first
    """
    try:
        await engine.confirm(admin.id, body.code)
    except TwoFactorError as e:
        totp_changes_total.labels(action="enable", status="failure").inc()
        log.warning(f"TOTP enable failed for admin '{admin.username}' from {request.client.host}")
        return twofactor_error_response(e)

    totp_changes_total.labels(action="enable", status="success").inc()
    return api_response(message="TOTP has been successfully enabled!")


@router.post("/disable", response_model=TOTPResponse)
async def totp_disable(
    request: Request,
    body: TOTPCodeRequest,
    admin: AdminIdentity = Depends(get_current_admin),
    engine: TOTPEngine = Depends(get_totp_engine),
):
    """
    Turn TOTP off. Accepts a current TOTP code or an unused backup code.
    The secret and all backup codes are deleted.

    Responses:
        200: TOTP disabled
        401: Invalid code
        409: TOTP is not enabled
    """
    try:
        method = await engine.disable(admin.id, body.code)
    except TwoFactorError as e:
        totp_changes_total.labels(action="disable", status="failure").inc()
        log.warning(f"TOTP disable failed for admin '{admin.username}' from {request.client.host}")
        return twofactor_error_response(e)

    totp_changes_total.labels(action="disable", status="success").inc()
    return api_response(message="TOTP has been disabled.", data={"method": method.value})


@router.post("/backup_codes", response_model=TOTPResponse)
async def totp_backup_codes(
    request: Request,
    body: TOTPCodeRequest,
    admin: AdminIdentity = Depends(get_current_admin),
    engine: TOTPEngine = Depends(get_totp_engine),
):
    """
    Replace all backup codes with a fresh batch. Old codes stop working,
    used or not. Requires a current TOTP code.

    Responses:
        200: New backup codes (shown once)
        401: Invalid TOTP code
        409: TOTP is not configured
    """
    try:
        codes = await engine.regenerate_backup_codes(admin.id, body.code)
    except TwoFactorError as e:
        totp_changes_total.labels(action="backup_codes", status="failure").inc()
        return twofactor_error_response(e)

    totp_changes_total.labels(action="backup_codes", status="success").inc()
    log.info(f"Backup codes regenerated for admin '{admin.username}' from {request.client.host}")
    return api_response(message="New backup codes generated", data={"backup_codes": codes})

"""
Glue between the HTTP layer and the two-factor core: FastAPI dependencies
building the engine on top of the SQL store, and QR rendering of the
enrollment URI.
"""

import base64
from io import BytesIO

import qrcode
from fastapi import Depends
from sqlalchemy.ext.asyncio import async_sessionmaker

from database.session import get_session_factory
from database.store import SqlCredentialStore
from twofactor import TOTPEngine
from twofactor.throttle import AttemptLimiter


def get_credential_store(session_factory: async_sessionmaker = Depends(get_session_factory)) -> SqlCredentialStore:
    return SqlCredentialStore(session_factory)


def get_totp_engine(store: SqlCredentialStore = Depends(get_credential_store)) -> TOTPEngine:
    return TOTPEngine(store)


def get_attempt_limiter(store: SqlCredentialStore = Depends(get_credential_store)) -> AttemptLimiter:
    return AttemptLimiter(store)


def qr_code_data_url(uri: str) -> str:
    """
    Render an otpauth:// URI as a PNG data URL for the setup page.

    Args:
        uri: Enrollment URI from TOTPEngine.provisioning_uri

    Returns:
        "data:image/png;base64,..." string usable as an <img> src
    """
    image = qrcode.make(uri)
    buffer = BytesIO()
    image.save(buffer, "PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")

"""
otpauth:// enrollment URIs for authenticator apps.

Rendering the URI as a QR image is left to the caller.
"""

from urllib.parse import quote

from .hotp import DEFAULT_ALGORITHM, DEFAULT_DIGITS, DEFAULT_PERIOD


def build_uri(
    secret: str,
    account: str,
    issuer: str,
    algorithm: str = DEFAULT_ALGORITHM,
    digits: int = DEFAULT_DIGITS,
    period: int = DEFAULT_PERIOD,
) -> str:
    """
    Build the key URI scanned by Google Authenticator and compatible apps.

    Args:
        secret: Base32 secret as stored
        account: Admin username shown in the app
        issuer: Application name shown in the app

    Returns:
        otpauth://totp/... URI string
    """
    issuer_quoted = quote(issuer, safe="")
    return (
        f"otpauth://totp/{issuer_quoted}:{quote(account, safe='')}"
        f"?secret={secret}&issuer={issuer_quoted}"
        f"&algorithm={algorithm.upper()}&digits={digits}&period={period}"
    )

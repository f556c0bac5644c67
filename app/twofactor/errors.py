"""
Error kinds raised by the two-factor core.

Callers map these to responses; nothing here is ever swallowed into a
plain False.
"""

from datetime import timedelta


class TwoFactorError(Exception):
    """Base class for every two-factor error kind."""


class ConfigurationMissing(TwoFactorError):
    """No TOTP secret is on file for the admin."""

    def __init__(self, admin_id: int):
        super().__init__(f"TOTP is not configured for admin {admin_id}")
        self.admin_id = admin_id


class InvalidCode(TwoFactorError):
    """Neither a TOTP window nor an unused backup code matched."""

    def __init__(self, message: str = "Invalid TOTP code or backup code"):
        super().__init__(message)


class StorageFailure(TwoFactorError):
    """A credential store operation failed."""


class RandomnessFailure(TwoFactorError):
    """The secure random source is unavailable."""


class TooManyAttempts(TwoFactorError):
    """Raised by the attempt limiter while an admin/ip pair is locked out."""

    def __init__(self, retry_after: timedelta):
        super().__init__(f"Too many failed attempts, retry in {int(retry_after.total_seconds())} seconds")
        self.retry_after = retry_after


class AlreadyEnabled(TwoFactorError):
    """Setup was requested while TOTP is active. Disable it with a code first."""

    def __init__(self, admin_id: int):
        super().__init__(f"TOTP is already enabled for admin {admin_id}")
        self.admin_id = admin_id

"""
TOTP engine: the admin credential state machine.

    NOT_CONFIGURED --setup--> PENDING --confirm--> ENABLED
    PENDING --setup--> PENDING (secret replaced)
    ENABLED --setup--> AlreadyEnabled (disable first)
    ENABLED --disable--> NOT_CONFIGURED (secret and backup codes purged)

The engine holds no state of its own besides its settings; everything
persistent goes through the injected CredentialStore.
"""

import enum
import os
import secrets
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

from common.log_handler import log
from . import base32, hotp, provisioning, verifier
from .backup_codes import BackupCodeManager
from .errors import AlreadyEnabled, ConfigurationMissing, InvalidCode, RandomnessFailure
from .store import CredentialStore

load_dotenv()

TOTP_ISSUER = os.getenv("TOTP_ISSUER", "Voting System")
TOTP_DIGITS = int(os.getenv("TOTP_DIGITS", str(hotp.DEFAULT_DIGITS)))
TOTP_PERIOD = int(os.getenv("TOTP_PERIOD", str(hotp.DEFAULT_PERIOD)))
TOTP_ALGORITHM = os.getenv("TOTP_ALGORITHM", hotp.DEFAULT_ALGORITHM)
TOTP_TOLERANCE = int(os.getenv("TOTP_TOLERANCE", "1"))
TOTP_SECRET_BYTES = int(os.getenv("TOTP_SECRET_BYTES", "32"))


class CredentialState(str, enum.Enum):
    NOT_CONFIGURED = "not_configured"
    PENDING = "pending"
    ENABLED = "enabled"


class AuthMethod(str, enum.Enum):
    TOTP = "totp"
    BACKUP_CODE = "backup_code"


@dataclass
class Enrollment:
    """Everything an admin needs to finish setup. Shown once, never stored as is."""
    secret: str
    uri: str
    backup_codes: List[str] = field(default_factory=list)


class TOTPEngine:
    def __init__(
        self,
        store: CredentialStore,
        issuer: str = TOTP_ISSUER,
        digits: int = TOTP_DIGITS,
        period: int = TOTP_PERIOD,
        algorithm: str = TOTP_ALGORITHM,
        tolerance: int = TOTP_TOLERANCE,
        secret_bytes: int = TOTP_SECRET_BYTES,
        backup_codes: Optional[BackupCodeManager] = None,
    ):
        hotp.get_digestmod(algorithm)  # unknown algorithms fail here, not at first login
        self.store = store
        self.issuer = issuer
        self.digits = digits
        self.period = period
        self.algorithm = algorithm.lower()
        self.tolerance = tolerance
        self.secret_bytes = secret_bytes
        self.backup_codes = backup_codes or BackupCodeManager(store)

    # -- stateless helpers --------------------------------------------------

    def generate_secret(self) -> str:
        """
        Generate a new random secret.

        Returns:
            Base32-encoded secret string

        Raises:
            RandomnessFailure: If the OS random source is unavailable
        """
        try:
            raw = secrets.token_bytes(self.secret_bytes)
        except (OSError, NotImplementedError) as e:
            log.critical("Secure random source unavailable, refusing to generate TOTP secret")
            raise RandomnessFailure("Secure random source unavailable") from e
        return base32.encode(raw)

    def provisioning_uri(self, secret: str, account: str) -> str:
        return provisioning.build_uri(
            secret, account, self.issuer,
            algorithm=self.algorithm, digits=self.digits, period=self.period,
        )

    def current_code(self, secret: str, now: Optional[float] = None) -> str:
        return hotp.totp_at(base32.decode(secret), now, self.period, self.digits, self.algorithm)

    def check_code(self, secret: str, code: str, now: Optional[float] = None) -> bool:
        return verifier.verify(
            base32.decode(secret), code,
            tolerance=self.tolerance, now=now,
            period=self.period, digits=self.digits, algorithm=self.algorithm,
        )

    # -- state machine ------------------------------------------------------

    async def state(self, admin_id: int) -> CredentialState:
        if await self.store.get_secret(admin_id) is None:
            return CredentialState.NOT_CONFIGURED
        if await self.store.is_enabled(admin_id):
            return CredentialState.ENABLED
        return CredentialState.PENDING

    async def setup(self, admin_id: int, account: str) -> Enrollment:
        """
        Start (or restart) TOTP enrollment for an admin.

        The new secret replaces a pending one and starts out unconfirmed.
        A fresh batch of backup codes replaces the old batch. An enabled
        credential is never replaced here, it has to be disabled with a
        valid code first.

        Args:
            admin_id: Admin being enrolled
            account: Label shown in the authenticator app, usually the username

        Returns:
            Enrollment with the secret, otpauth URI and plaintext backup codes

        Raises:
            AlreadyEnabled: TOTP is active for the admin
        """
        if await self.state(admin_id) == CredentialState.ENABLED:
            log.warning(f"TOTP setup refused for admin {admin_id}, already enabled")
            raise AlreadyEnabled(admin_id)
        secret = self.generate_secret()
        await self.store.store_secret(admin_id, secret)
        codes = await self.backup_codes.generate(admin_id)
        return Enrollment(secret=secret, uri=self.provisioning_uri(secret, account), backup_codes=codes)

    async def confirm(self, admin_id: int, code: str, now: Optional[float] = None) -> None:
        """
        Prove possession of the secret and enable TOTP.

        Raises:
            ConfigurationMissing: setup() was never run (or TOTP was disabled)
            InvalidCode: The code doesn't match any window in tolerance
        """
        secret = await self._require_secret(admin_id)
        if not self.check_code(secret, code, now):
            log.warning(f"TOTP confirmation failed for admin {admin_id}")
            raise InvalidCode("Invalid TOTP code")
        await self.store.enable(admin_id)
        log.info(f"TOTP enabled for admin {admin_id}")

    async def verify_login(
        self,
        admin_id: int,
        totp_code: Optional[str] = None,
        backup_code: Optional[str] = None,
        now: Optional[float] = None,
    ) -> AuthMethod:
        """
        Second factor of the admin login. The TOTP code is tried first,
        the backup code only when the TOTP code is missing or wrong.

        Returns:
            The method that succeeded

        Raises:
            ConfigurationMissing: No secret on file for the admin
            InvalidCode: Nothing matched. Expired and wrong codes are not told apart.
        """
        secret = await self._require_secret(admin_id)
        if totp_code and self.check_code(secret, totp_code, now):
            log.info(f"Admin {admin_id} passed second factor with TOTP")
            return AuthMethod.TOTP
        if backup_code and await self.backup_codes.verify(admin_id, backup_code):
            log.info(f"Admin {admin_id} passed second factor with a backup code")
            return AuthMethod.BACKUP_CODE
        log.warning(f"Admin {admin_id} failed second factor")
        raise InvalidCode()

    async def disable(self, admin_id: int, code: str, now: Optional[float] = None) -> AuthMethod:
        """Turn TOTP off. `code` may be a current TOTP code or an unused backup code."""
        method = await self.verify_login(admin_id, totp_code=code, backup_code=code, now=now)
        await self.store.disable(admin_id)
        log.info(f"TOTP disabled for admin {admin_id}")
        return method

    async def regenerate_backup_codes(self, admin_id: int, code: str, now: Optional[float] = None) -> List[str]:
        secret = await self._require_secret(admin_id)
        if not self.check_code(secret, code, now):
            log.warning(f"Backup code regeneration refused for admin {admin_id}")
            raise InvalidCode("Invalid TOTP code")
        return await self.backup_codes.generate(admin_id)

    async def remaining_backup_codes(self, admin_id: int) -> int:
        return await self.backup_codes.remaining(admin_id)

    async def _require_secret(self, admin_id: int) -> str:
        secret = await self.store.get_secret(admin_id)
        if secret is None:
            raise ConfigurationMissing(admin_id)
        return secret

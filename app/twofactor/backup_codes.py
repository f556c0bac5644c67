"""
Single-use backup codes for admins who lost their authenticator.

Plaintext codes are returned exactly once by generate() and only bcrypt
hashes are persisted. Every code row is salted on its own, so verification
has to compare against each unused row in turn.
"""

import asyncio
import os
import re
import secrets
import string
from typing import List, Optional

import bcrypt
from dotenv import load_dotenv

from common.log_handler import log
from .errors import RandomnessFailure
from .store import CredentialStore

load_dotenv()

BACKUP_CODE_COUNT = int(os.getenv("BACKUP_CODE_COUNT", "10"))
BACKUP_CODE_BCRYPT_ROUNDS = int(os.getenv("BACKUP_CODE_BCRYPT_ROUNDS", "12"))
BACKUP_CODE_LENGTH = 8
BACKUP_CODE_ALPHABET = string.ascii_uppercase + string.digits

_NOT_ALNUM = re.compile(r"[^A-Z0-9]")


def normalize(code: str) -> str:
    """Uppercase and strip everything that can't be part of a code ("ab12-cd34" -> "AB12CD34")."""
    return _NOT_ALNUM.sub("", code.upper())


def generate_codes(count: int = BACKUP_CODE_COUNT) -> List[str]:
    """
    Draw `count` distinct backup codes from the OS random source.

    Raises:
        RandomnessFailure: If the secure random source is unavailable
    """
    codes: List[str] = []
    try:
        while len(codes) < count:
            code = "".join(secrets.choice(BACKUP_CODE_ALPHABET) for _ in range(BACKUP_CODE_LENGTH))
            if code not in codes:
                codes.append(code)
    except (OSError, NotImplementedError) as e:
        raise RandomnessFailure("Secure random source unavailable") from e
    return codes


def hash_code(code: str, rounds: int = BACKUP_CODE_BCRYPT_ROUNDS) -> str:
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(normalize(code).encode("utf-8"), salt).decode("utf-8")


def check_code(code: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(normalize(code).encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # malformed hash in storage
        return False


class BackupCodeManager:
    def __init__(self, store: CredentialStore, count: int = BACKUP_CODE_COUNT, rounds: int = BACKUP_CODE_BCRYPT_ROUNDS):
        self.store = store
        self.count = count
        self.rounds = rounds

    async def generate(self, admin_id: int, count: Optional[int] = None) -> List[str]:
        """
        Create a fresh batch of backup codes, replacing any previous batch.

        Args:
            admin_id: Admin the codes belong to
            count: Batch size, defaults to the manager's count

        Returns:
            The plaintext codes. They are not stored anywhere and can't be shown again.
        """
        codes = generate_codes(count if count is not None else self.count)
        # bcrypt blocks, so it runs in worker threads
        hashed = [await asyncio.to_thread(hash_code, code, self.rounds) for code in codes]
        await self.store.store_backup_codes(admin_id, hashed)
        log.info(f"Generated {len(codes)} backup codes for admin {admin_id}")
        return codes

    async def verify(self, admin_id: int, candidate: str) -> bool:
        """
        Consume a backup code.

        Returns True only when the candidate matches an unused code and this
        call is the one that marked it used.
        """
        candidate = normalize(candidate)
        if len(candidate) != BACKUP_CODE_LENGTH:
            return False

        for row in await self.store.fetch_unused_backup_codes(admin_id):
            if not await asyncio.to_thread(check_code, candidate, row.code_hash):
                continue
            if await self.store.mark_backup_code_used(row.id):
                log.info(f"Backup code {row.id} consumed by admin {admin_id}")
                return True
            log.warning(f"Backup code {row.id} of admin {admin_id} was consumed concurrently")
            return False

        return False

    async def remaining(self, admin_id: int) -> int:
        return len(await self.store.fetch_unused_backup_codes(admin_id))

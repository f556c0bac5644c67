"""
TOTP verification over a window of adjacent time steps.
"""

import hmac
import time
from typing import Optional

from .hotp import DEFAULT_ALGORITHM, DEFAULT_DIGITS, DEFAULT_PERIOD, derive_code, time_counter


def verify(
    secret: bytes,
    candidate: str,
    tolerance: int = 1,
    now: Optional[float] = None,
    period: int = DEFAULT_PERIOD,
    digits: int = DEFAULT_DIGITS,
    algorithm: str = DEFAULT_ALGORITHM,
) -> bool:
    """
    Check a submitted code against the secret.

    Windows are tried from `-tolerance` to `+tolerance` steps around `now`,
    in that order. Drift beyond `tolerance * period` seconds is rejected.

    Args:
        secret: Raw secret bytes
        candidate: Code typed by the admin
        tolerance: Number of time steps accepted before/after the current one
        now: Unix time to verify against, defaults to the wall clock

    Returns:
        True if any window in range produces the candidate
    """
    if tolerance < 0:
        raise ValueError("tolerance must not be negative")
    if now is None:
        now = time.time()

    candidate = candidate.strip()
    if len(candidate) != digits or not (candidate.isascii() and candidate.isdigit()):
        return False
    candidate_bytes = candidate.encode("utf-8")

    for step in range(-tolerance, tolerance + 1):
        counter = time_counter(now + step * period, period)
        if counter < 0:
            continue
        expected = derive_code(secret, counter, digits, algorithm)
        if hmac.compare_digest(expected.encode("utf-8"), candidate_bytes):
            return True

    return False

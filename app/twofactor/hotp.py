"""
HOTP (RFC 4226) code derivation and the TOTP (RFC 6238) time counter.
"""

import hashlib
import hmac
import struct
import time
from typing import Optional

DEFAULT_DIGITS = 6
DEFAULT_PERIOD = 30
DEFAULT_ALGORITHM = "sha1"

SUPPORTED_ALGORITHMS = {
    "sha1": hashlib.sha1,
    "sha256": hashlib.sha256,
    "sha512": hashlib.sha512,
}

_MAX_COUNTER = 2**64 - 1


def get_digestmod(algorithm: str):
    try:
        return SUPPORTED_ALGORITHMS[algorithm.lower()]
    except KeyError:
        raise ValueError(f"Unsupported TOTP algorithm '{algorithm}'") from None


def derive_code(
    secret: bytes,
    counter: int,
    digits: int = DEFAULT_DIGITS,
    algorithm: str = DEFAULT_ALGORITHM,
) -> str:
    """
    Derive a one-time code from a secret and a counter.

    Args:
        secret: Raw secret bytes (the HMAC key)
        counter: Moving factor, for TOTP the time counter
        digits: Length of the returned code
        algorithm: sha1, sha256 or sha512

    Returns:
        Zero-padded decimal code of exactly `digits` characters
    """
    if not 1 <= digits <= 10:
        raise ValueError("digits must be between 1 and 10")
    if not 0 <= counter <= _MAX_COUNTER:
        raise ValueError("counter must fit in an unsigned 64-bit integer")

    # the counter field is 8 bytes even though real counters fit in 4
    counter_bytes = struct.pack(">Q", counter)
    digest = hmac.new(secret, counter_bytes, get_digestmod(algorithm)).digest()

    offset = digest[-1] & 0x0F
    binary = struct.unpack(">I", digest[offset:offset + 4])[0] & 0x7FFFFFFF

    return str(binary % (10 ** digits)).zfill(digits)


def time_counter(unix_time: float, period: int = DEFAULT_PERIOD) -> int:
    """Index of the time window `unix_time` falls into."""
    if period <= 0:
        raise ValueError("period must be positive")
    return int(unix_time // period)


def totp_at(
    secret: bytes,
    unix_time: Optional[float] = None,
    period: int = DEFAULT_PERIOD,
    digits: int = DEFAULT_DIGITS,
    algorithm: str = DEFAULT_ALGORITHM,
) -> str:
    if unix_time is None:
        unix_time = time.time()
    return derive_code(secret, time_counter(unix_time, period), digits, algorithm)

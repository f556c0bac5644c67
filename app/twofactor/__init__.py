"""
Two-factor authentication core for admin accounts.

Secrets, code derivation and verification, backup codes and the
credential state machine. Storage is injected, see store.py.
"""

from .errors import (
    TwoFactorError,
    AlreadyEnabled,
    ConfigurationMissing,
    InvalidCode,
    StorageFailure,
    RandomnessFailure,
    TooManyAttempts,
)
from .engine import TOTPEngine, Enrollment, CredentialState, AuthMethod
from .store import CredentialStore, AttemptStore, InMemoryCredentialStore

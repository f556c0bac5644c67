import secrets

import pyotp
import pytest

from twofactor import engine as engine_module
from twofactor import (
    AlreadyEnabled,
    AuthMethod,
    ConfigurationMissing,
    CredentialState,
    InvalidCode,
    RandomnessFailure,
    TOTPEngine,
    base32,
)

ADMIN = 7
NOW = 1_700_000_015


def test_generate_secret_is_32_random_bytes(engine):
    secret = engine.generate_secret()
    assert len(secret) == 52
    assert len(base32.decode(secret)) == 32
    assert engine.generate_secret() != secret


def test_generate_secret_refuses_without_randomness(engine, monkeypatch):
    def broken_token_bytes(length):
        raise OSError("no entropy")

    monkeypatch.setattr(secrets, "token_bytes", broken_token_bytes)
    with pytest.raises(RandomnessFailure):
        engine.generate_secret()


def test_provisioning_uri(store):
    engine = TOTPEngine(store, issuer="E-Halal BTECHenyo")
    uri = engine.provisioning_uri("JBSWY3DPEHPK3PXP", "admin@example.com")
    assert uri == (
        "otpauth://totp/E-Halal%20BTECHenyo:admin%40example.com"
        "?secret=JBSWY3DPEHPK3PXP&issuer=E-Halal%20BTECHenyo"
        "&algorithm=SHA1&digits=6&period=30"
    )


def test_provisioning_uri_is_readable_by_authenticators(engine):
    secret = engine.generate_secret()
    otp = pyotp.parse_uri(engine.provisioning_uri(secret, "admin"))
    assert otp.issuer == "Voting System"
    assert otp.name == "admin"
    assert otp.at(NOW) == engine.current_code(secret, NOW)


def test_unsupported_algorithm_is_rejected(store):
    with pytest.raises(ValueError):
        TOTPEngine(store, algorithm="md5")


async def test_initial_state(engine):
    assert await engine.state(ADMIN) == CredentialState.NOT_CONFIGURED


async def test_setup_creates_pending_credential(engine, store):
    enrollment = await engine.setup(ADMIN, "admin")
    assert await engine.state(ADMIN) == CredentialState.PENDING
    assert await store.get_secret(ADMIN) == enrollment.secret
    assert not await store.is_enabled(ADMIN)
    assert enrollment.uri.startswith("otpauth://totp/Voting%20System:admin?secret=" + enrollment.secret)
    assert len(enrollment.backup_codes) == 10
    assert await engine.remaining_backup_codes(ADMIN) == 10


async def test_confirm_enables(engine):
    enrollment = await engine.setup(ADMIN, "admin")
    await engine.confirm(ADMIN, engine.current_code(enrollment.secret, NOW), now=NOW)
    assert await engine.state(ADMIN) == CredentialState.ENABLED


async def test_confirm_with_wrong_code(engine):
    enrollment = await engine.setup(ADMIN, "admin")
    wrong = engine.current_code(enrollment.secret, NOW + 300)
    with pytest.raises(InvalidCode):
        await engine.confirm(ADMIN, wrong, now=NOW)
    assert await engine.state(ADMIN) == CredentialState.PENDING


async def test_confirm_without_setup(engine):
    with pytest.raises(ConfigurationMissing):
        await engine.confirm(ADMIN, "123456", now=NOW)


async def test_resetup_replaces_pending_secret(engine):
    first = await engine.setup(ADMIN, "admin")
    second = await engine.setup(ADMIN, "admin")
    assert first.secret != second.secret
    with pytest.raises(InvalidCode):
        await engine.confirm(ADMIN, engine.current_code(first.secret, NOW), now=NOW)
    await engine.confirm(ADMIN, engine.current_code(second.secret, NOW), now=NOW)
    assert await engine.state(ADMIN) == CredentialState.ENABLED


async def test_resetup_of_enabled_credential_is_refused(engine, store):
    enrollment = await engine.setup(ADMIN, "admin")
    await engine.confirm(ADMIN, engine.current_code(enrollment.secret, NOW), now=NOW)
    with pytest.raises(AlreadyEnabled):
        await engine.setup(ADMIN, "admin")
    assert await engine.state(ADMIN) == CredentialState.ENABLED
    assert await store.get_secret(ADMIN) == enrollment.secret
    assert await engine.remaining_backup_codes(ADMIN) == 10


async def test_resetup_after_disable(engine):
    enrollment = await engine.setup(ADMIN, "admin")
    await engine.confirm(ADMIN, engine.current_code(enrollment.secret, NOW), now=NOW)
    await engine.disable(ADMIN, engine.current_code(enrollment.secret, NOW), now=NOW)
    second = await engine.setup(ADMIN, "admin")
    assert second.secret != enrollment.secret
    assert await engine.state(ADMIN) == CredentialState.PENDING


async def _enabled(engine):
    enrollment = await engine.setup(ADMIN, "admin")
    await engine.confirm(ADMIN, engine.current_code(enrollment.secret, NOW), now=NOW)
    return enrollment


async def test_login_with_totp(engine):
    enrollment = await _enabled(engine)
    code = engine.current_code(enrollment.secret, NOW)
    assert await engine.verify_login(ADMIN, totp_code=code, now=NOW + 20) == AuthMethod.TOTP


async def test_login_falls_back_to_backup_code(engine):
    enrollment = await _enabled(engine)
    method = await engine.verify_login(ADMIN, totp_code="000000", backup_code=enrollment.backup_codes[0], now=NOW + 300)
    assert method == AuthMethod.BACKUP_CODE
    assert await engine.remaining_backup_codes(ADMIN) == 9
    with pytest.raises(InvalidCode):
        await engine.verify_login(ADMIN, backup_code=enrollment.backup_codes[0], now=NOW)


async def test_totp_success_does_not_consume_backup_code(engine):
    enrollment = await _enabled(engine)
    code = engine.current_code(enrollment.secret, NOW)
    await engine.verify_login(ADMIN, totp_code=code, backup_code=enrollment.backup_codes[0], now=NOW)
    assert await engine.remaining_backup_codes(ADMIN) == 10


async def test_login_without_any_match(engine):
    await _enabled(engine)
    with pytest.raises(InvalidCode):
        await engine.verify_login(ADMIN, totp_code="000000", backup_code="AAAAAAAA", now=NOW + 3000)
    with pytest.raises(InvalidCode):
        await engine.verify_login(ADMIN, now=NOW)


async def test_login_without_configuration(engine):
    with pytest.raises(ConfigurationMissing):
        await engine.verify_login(ADMIN, totp_code="123456", now=NOW)


async def test_disable_with_totp_purges_everything(engine, store):
    enrollment = await _enabled(engine)
    method = await engine.disable(ADMIN, engine.current_code(enrollment.secret, NOW), now=NOW)
    assert method == AuthMethod.TOTP
    assert await engine.state(ADMIN) == CredentialState.NOT_CONFIGURED
    assert await store.get_secret(ADMIN) is None
    assert await engine.remaining_backup_codes(ADMIN) == 0


async def test_disable_with_backup_code(engine):
    enrollment = await _enabled(engine)
    assert await engine.disable(ADMIN, enrollment.backup_codes[3], now=NOW + 3000) == AuthMethod.BACKUP_CODE
    assert await engine.state(ADMIN) == CredentialState.NOT_CONFIGURED


async def test_disable_with_wrong_code_keeps_credential(engine):
    await _enabled(engine)
    with pytest.raises(InvalidCode):
        await engine.disable(ADMIN, "AAAAAAAA", now=NOW)
    assert await engine.state(ADMIN) == CredentialState.ENABLED


async def test_disable_when_not_configured(engine):
    with pytest.raises(ConfigurationMissing):
        await engine.disable(ADMIN, "123456", now=NOW)


async def test_regenerate_backup_codes(engine):
    enrollment = await _enabled(engine)
    code = engine.current_code(enrollment.secret, NOW)
    new_codes = await engine.regenerate_backup_codes(ADMIN, code, now=NOW)
    assert len(new_codes) == 10
    old_only = [c for c in enrollment.backup_codes if c not in new_codes]
    with pytest.raises(InvalidCode):
        await engine.verify_login(ADMIN, backup_code=old_only[0], now=NOW + 3000)
    assert await engine.verify_login(ADMIN, backup_code=new_codes[0], now=NOW + 3000) == AuthMethod.BACKUP_CODE


async def test_regenerate_backup_codes_needs_totp(engine):
    enrollment = await _enabled(engine)
    with pytest.raises(InvalidCode):
        await engine.regenerate_backup_codes(ADMIN, enrollment.backup_codes[0], now=NOW)
    assert await engine.remaining_backup_codes(ADMIN) == 10


async def test_admins_are_independent(engine):
    enrollment = await _enabled(engine)
    other = await engine.setup(ADMIN + 1, "other")
    assert other.secret != enrollment.secret
    assert await engine.state(ADMIN) == CredentialState.ENABLED
    assert await engine.state(ADMIN + 1) == CredentialState.PENDING


def test_engine_codes_match_pyotp(engine):
    secret = engine.generate_secret()
    assert pyotp.TOTP(secret).at(NOW) == engine.current_code(secret, NOW)
    assert engine.check_code(secret, pyotp.TOTP(secret).at(NOW - 30), now=NOW)


class RecordingLog:
    def __init__(self):
        self.messages = []

    def __getattr__(self, level):
        return lambda message, *args, **kwargs: self.messages.append((level, message))


async def test_setup_leaves_the_announcement_to_the_caller(engine, monkeypatch):
    recorder = RecordingLog()
    monkeypatch.setattr(engine_module, "log", recorder)
    await engine.setup(ADMIN, "admin")
    assert not any("setup initiated" in message for _, message in recorder.messages)

import time

from conftest import make_jwt

from f1tv_dl.models.credential import (
    EXPIRY_BUFFER_SECONDS,
    MAX_CACHE_AGE_SECONDS,
    Credential,
    CredentialSource,
    parse_token_expiry,
)


def test_parse_token_expiry_reads_exp_claim():
    assert parse_token_expiry(make_jwt({"exp": 1700000000})) == 1700000000


def test_parse_token_expiry_is_none_for_garbage():
    assert parse_token_expiry("not-a-jwt") is None
    assert parse_token_expiry("a.!!!.c") is None
    assert parse_token_expiry(make_jwt({"sub": "user"})) is None


def test_credential_expiring_within_buffer_is_expired():
    now = time.time()
    credential = Credential("t", CredentialSource.CACHE, expires_at=int(now + EXPIRY_BUFFER_SECONDS - 10))
    assert credential.is_expired(now)


def test_credential_expiring_after_buffer_is_not_expired():
    now = time.time()
    credential = Credential("t", CredentialSource.CACHE, expires_at=int(now + EXPIRY_BUFFER_SECONDS + 60))
    assert not credential.is_expired(now)
    assert credential.is_reusable(now)


def test_credential_without_expiry_never_expires_but_goes_stale():
    now = time.time()
    credential = Credential("t", CredentialSource.MANUAL_FILE, acquired_at=now - MAX_CACHE_AGE_SECONDS - 1)
    assert not credential.is_expired(now)
    assert credential.is_stale(now)
    assert not credential.is_reusable(now)


def test_cache_record_shape():
    credential = Credential("tok", CredentialSource.AUTOMATED_LOGIN, acquired_at=1700000000.5, expires_at=1700003600)
    assert credential.to_cache_record() == {
        "token": "tok",
        "source": "automated-login",
        "timestamp": 1700000000500,
        "expires": 1700003600,
    }


def test_from_cache_record_maps_unknown_source_to_cache():
    credential = Credential.from_cache_record(
        {"token": "tok", "source": "login-helper", "timestamp": 1700000000000, "expires": None}
    )
    assert credential.source is CredentialSource.CACHE
    assert credential.acquired_at == 1700000000.0
    assert credential.expires_at is None

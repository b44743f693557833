# tests/test_security.py
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from account_service.errors import TokenExpired, TokenInvalid
from account_service.security import PasswordHasher, TokenIssuer


def test_hash_and_verify():
    hasher = PasswordHasher(rounds=4)
    digest = hasher.hash("secret123")
    assert digest != "secret123"
    assert hasher.verify("secret123", digest)
    assert not hasher.verify("secret124", digest)


def test_hash_is_salted():
    hasher = PasswordHasher(rounds=4)
    assert hasher.hash("secret123") != hasher.hash("secret123")


def test_verify_rejects_garbage_digest():
    hasher = PasswordHasher(rounds=4)
    assert not hasher.verify("secret123", "not-a-hash")
    assert not hasher.verify("secret123", None)


def test_token_round_trip():
    issuer = TokenIssuer("secret", ttl_seconds=3600)
    assert issuer.verify(issuer.issue(42)) == 42


def test_token_expired():
    issuer = TokenIssuer("secret", ttl_seconds=60)
    past = datetime.now(timezone.utc) - timedelta(seconds=120)
    with pytest.raises(TokenExpired):
        issuer.verify(issuer.issue(42, now=past))


def test_token_wrong_secret():
    token = TokenIssuer("secret").issue(42)
    with pytest.raises(TokenInvalid):
        TokenIssuer("other").verify(token)


def test_token_garbage():
    with pytest.raises(TokenInvalid):
        TokenIssuer("secret").verify("abc.def.ghi")


def test_token_without_subject():
    token = jwt.encode({"exp": int(datetime.now(timezone.utc).timestamp()) + 60}, "secret", algorithm="HS256")
    with pytest.raises(TokenInvalid):
        TokenIssuer("secret").verify(token)

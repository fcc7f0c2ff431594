from uuid import uuid4

import jwt
import pytest
from fastapi import HTTPException

from esurat_api.core.config import get_settings
from esurat_api.core.security import parse_authorization_header, reset_revoked_tokens, revoke_token_jti
from esurat_api.exceptions import conflict
from esurat_api.models.identity import User
from esurat_api.services.local_auth import hash_password, issue_access_token, verify_password


@pytest.fixture(autouse=True)
def _jwt_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("ESURAT_AUTH_JWT_SECRET", "unit-test-secret")
    monkeypatch.setenv("ESURAT_AUTH_JWT_ALGORITHMS", "HS256")
    monkeypatch.setenv("ESURAT_AUTH_PASSWORD_HASH_ITERATIONS", "1000")
    monkeypatch.delenv("ESURAT_AUTH_JWT_ISSUER", raising=False)
    monkeypatch.delenv("ESURAT_AUTH_JWT_AUDIENCE", raising=False)
    get_settings.cache_clear()
    reset_revoked_tokens()
    yield
    reset_revoked_tokens()
    get_settings.cache_clear()


def test_parse_authorization_header_jwt():
    token = jwt.encode(
        {"sub": "user-1", "email": "u1@example.com", "permissions": ["letter.view", 3]},
        "unit-test-secret",
        algorithm="HS256",
    )
    principal = parse_authorization_header(f"Bearer {token}")

    assert principal.subject == "user-1"
    assert principal.email == "u1@example.com"
    assert principal.permissions == ["letter.view"]


def test_parse_authorization_header_rejects_missing_and_bad_tokens():
    with pytest.raises(HTTPException) as missing:
        parse_authorization_header(None)
    assert missing.value.status_code == 401

    bad = jwt.encode({"sub": "user-1"}, "other-secret", algorithm="HS256")
    with pytest.raises(HTTPException):
        parse_authorization_header(f"Bearer {bad}")

    no_subject = jwt.encode({"email": "x@example.com"}, "unit-test-secret", algorithm="HS256")
    with pytest.raises(HTTPException):
        parse_authorization_header(f"Bearer {no_subject}")


def test_parse_authorization_header_prefers_last_bearer_token():
    token = jwt.encode({"sub": "user-2"}, "unit-test-secret", algorithm="HS256")
    principal = parse_authorization_header(f"Bearer placeholder, Bearer {token}")

    assert principal.subject == "user-2"


def test_parse_authorization_header_revoked_token():
    token = jwt.encode({"sub": "user-1", "jti": "jti-1", "exp": 4102444800}, "unit-test-secret", algorithm="HS256")
    assert parse_authorization_header(f"Bearer {token}").subject == "user-1"

    revoke_token_jti("jti-1", 4102444800)

    with pytest.raises(HTTPException) as exc:
        parse_authorization_header(f"Bearer {token}")
    assert exc.value.status_code == 401


def test_password_hash_and_verify():
    password_hash = hash_password("Rahasia123")

    assert password_hash.startswith("pbkdf2_sha256$1000$")
    assert verify_password("Rahasia123", password_hash)
    assert not verify_password("salah", password_hash)
    assert not verify_password("Rahasia123", "bcrypt$broken")


def test_issue_access_token_contains_permission_snapshot():
    user = User(id=uuid4(), name="Budi", email="budi@example.com", password_hash="x")

    token, exp_ts, _ = issue_access_token(user, permissions=["letter.create"], roles=["Staff"])
    principal = parse_authorization_header(f"Bearer {token}")

    assert principal.subject == str(user.id)
    assert principal.permissions == ["letter.create"]
    assert principal.roles == ["Staff"]
    assert principal.claims["exp"] == exp_ts
    assert principal.claims["iss"] == "esurat"


def test_error_detail_may_reuse_helper_parameter_names():
    exc = conflict("CATEGORY_CONFLICT", "Kode sudah ada", code="ND", message="raw")

    assert exc.status_code == 409
    assert exc.detail == {
        "code": "CATEGORY_CONFLICT",
        "message": "Kode sudah ada",
        "details": {"code": "ND", "message": "raw"},
    }

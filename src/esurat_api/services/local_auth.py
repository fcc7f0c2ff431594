"""账号口令校验与访问令牌签发。"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import jwt
from sqlalchemy import select
from sqlalchemy.orm import Session

from esurat_api.core.config import get_settings
from esurat_api.models.identity import User
from esurat_api.services.permissions import get_user_permissions, get_user_roles

PASSWORD_SCHEME = "pbkdf2_sha256"
_SALT_BYTES = 16


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _pbkdf2(password: str, salt: bytes, iterations: int) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)


def hash_password(password: str) -> str:
    """返回 `scheme$iterations$salt$digest` 格式的口令哈希，salt 与 digest 为 base64。"""
    iterations = get_settings().auth_password_hash_iterations
    salt = secrets.token_bytes(_SALT_BYTES)
    encoded = [base64.b64encode(part).decode("ascii") for part in (salt, _pbkdf2(password, salt, iterations))]
    return "$".join([PASSWORD_SCHEME, str(iterations), *encoded])


def verify_password(password: str, password_hash: str) -> bool:
    parts = password_hash.split("$", 3)
    if len(parts) != 4 or parts[0] != PASSWORD_SCHEME:
        return False
    try:
        iterations = int(parts[1])
        salt = base64.b64decode(parts[2])
        expected = base64.b64decode(parts[3])
    except (ValueError, binascii.Error):
        return False
    return hmac.compare_digest(_pbkdf2(password, salt, iterations), expected)


def authenticate(db: Session, email: str, password: str) -> User | None:
    """邮箱不存在、账号停用或口令不符时一律返回 None。"""
    user = db.execute(select(User).where(User.email == normalize_email(email))).scalar_one_or_none()
    if user is None or not user.is_active:
        return None
    return user if verify_password(password, user.password_hash) else None


def issue_access_token(
    user: User,
    *,
    permissions: list[str],
    roles: list[str],
) -> tuple[str, int, datetime]:
    """签发 HS 令牌，返回 (token, exp 时间戳, 过期时刻)。"""
    settings = get_settings()
    issued_at = datetime.now(timezone.utc)
    expires_at = issued_at + timedelta(seconds=settings.auth_access_token_ttl_seconds)
    exp_ts = int(expires_at.timestamp())

    claims: dict[str, object] = {
        "sub": str(user.id),
        "jti": str(uuid4()),
        "iss": settings.auth_jwt_issuer or settings.auth_local_issuer,
        "iat": int(issued_at.timestamp()),
        "exp": exp_ts,
        "email": user.email,
        "name": user.name,
        "permissions": permissions,
        "roles": roles,
    }
    if settings.auth_jwt_audience:
        claims["aud"] = settings.auth_jwt_audience

    return jwt.encode(claims, settings.auth_jwt_secret, algorithm=settings.auth_algorithms[0]), exp_ts, expires_at


def issue_token_for_user(db: Session, user: User) -> tuple[str, int, datetime]:
    return issue_access_token(
        user,
        permissions=get_user_permissions(db, user.id),
        roles=get_user_roles(db, user.id),
    )

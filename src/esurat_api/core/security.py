"""Bearer 令牌解析、校验与注销。"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
import re
from threading import Lock
from typing import Any

import jwt
from fastapi import HTTPException, status
from jwt import InvalidTokenError

from esurat_api.core.config import get_settings

UNAUTHORIZED = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="unauthorized",
)

_BEARER_PATTERN = re.compile(r"Bearer\s+([^,\s]+)", flags=re.IGNORECASE)


@dataclass
class AuthenticatedPrincipal:
    """已通过校验的调用者。

    permissions 与 roles 是登录时签进令牌的快照，路由鉴权只看这里。
    """

    subject: str
    email: str | None
    display_name: str | None
    permissions: list[str] = field(default_factory=list)
    roles: list[str] = field(default_factory=list)
    claims: dict[str, Any] = field(default_factory=dict)


class RevokedTokens:
    """进程内 jti 黑名单，条目到令牌过期时间后自动清除。"""

    def __init__(self) -> None:
        self._expiry_by_jti: dict[str, int] = {}
        self._lock = Lock()

    @staticmethod
    def _now_ts() -> int:
        return int(datetime.now(timezone.utc).timestamp())

    def _purge(self, now_ts: int) -> None:
        for jti in [key for key, exp_ts in self._expiry_by_jti.items() if exp_ts <= now_ts]:
            del self._expiry_by_jti[jti]

    def add(self, jti: str, exp_ts: int) -> None:
        with self._lock:
            self._purge(self._now_ts())
            self._expiry_by_jti[jti] = exp_ts

    def contains(self, jti: str) -> bool:
        now_ts = self._now_ts()
        with self._lock:
            self._purge(now_ts)
            return self._expiry_by_jti.get(jti, 0) > now_ts

    def clear(self) -> None:
        with self._lock:
            self._expiry_by_jti.clear()


_revoked = RevokedTokens()


def revoke_token_jti(jti: str, exp_ts: int) -> None:
    _revoked.add(jti, exp_ts)


def is_token_jti_revoked(jti: str) -> bool:
    return _revoked.contains(jti)


def reset_revoked_tokens() -> None:
    _revoked.clear()


def _decode(token: str) -> dict[str, Any]:
    settings = get_settings()
    try:
        return jwt.decode(
            token,
            key=settings.auth_jwt_secret,
            algorithms=settings.auth_algorithms,
            issuer=settings.auth_jwt_issuer,
            audience=settings.auth_jwt_audience,
            leeway=settings.auth_jwt_leeway_seconds,
            options={"verify_signature": True, "verify_aud": bool(settings.auth_jwt_audience)},
        )
    except InvalidTokenError as exc:
        raise UNAUTHORIZED from exc


def _bearer_token(authorization: str | None) -> str:
    """取最后一个非空 Bearer 值；重复的 Authorization 头可能被逗号拼成一行。"""
    candidates = [item.strip() for item in _BEARER_PATTERN.findall(authorization or "")]
    candidates = [item for item in candidates if item]
    if not candidates:
        raise UNAUTHORIZED
    return candidates[-1]


def _optional_str(value: object) -> str | None:
    return value if isinstance(value, str) else None


def _str_items(value: object) -> list[str]:
    if isinstance(value, list):
        return [item for item in value if isinstance(item, str)]
    return []


def parse_token(token: str) -> AuthenticatedPrincipal:
    claims = _decode(token)

    jti = claims.get("jti")
    if isinstance(jti, str) and jti and is_token_jti_revoked(jti):
        raise UNAUTHORIZED

    subject = str(claims.get("sub") or "").strip()
    if not subject:
        raise UNAUTHORIZED

    return AuthenticatedPrincipal(
        subject=subject,
        email=_optional_str(claims.get("email")),
        display_name=_optional_str(claims.get("name")),
        permissions=_str_items(claims.get("permissions")),
        roles=_str_items(claims.get("roles")),
        claims=claims,
    )


def parse_authorization_header(authorization: str | None) -> AuthenticatedPrincipal:
    return parse_token(_bearer_token(authorization))

"""会话令牌签发与校验。

三类令牌共用同一签名密钥，但声明形态互不兼容：
- access: 访问受保护接口；
- mfa:    证明近期完成过 TOTP 校验，只用于免输验证码登录，不授予资源访问；
- login:  证明口令校验已通过，用于衔接第二步 TOTP 校验。

`token_use` 声明与受众（aud）同时区分类别，任何一类令牌都不能冒充另一类。
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from functools import lru_cache
from typing import Any
from uuid import uuid4

import jwt
from jwt import InvalidTokenError

from secure_notes_api.core.config import Settings, get_settings
from secure_notes_api.exceptions import InvalidOrExpiredToken


class TokenKind(str, Enum):
    """令牌类别。"""

    ACCESS = "access"
    MFA = "mfa"
    LOGIN = "login"


@dataclass(frozen=True)
class TokenConfig:
    """令牌签发配置，构造签发器时显式传入。"""

    secret: str
    algorithm: str
    issuer: str
    access_ttl: timedelta
    mfa_ttl: timedelta
    login_ttl: timedelta
    leeway_seconds: int = 0

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenConfig:
        return cls(
            secret=settings.auth_jwt_secret,
            algorithm=settings.auth_jwt_algorithm,
            issuer=settings.auth_jwt_issuer,
            access_ttl=timedelta(seconds=settings.auth_access_token_ttl_seconds),
            mfa_ttl=timedelta(seconds=settings.auth_mfa_token_ttl_seconds),
            login_ttl=timedelta(seconds=settings.auth_login_token_ttl_seconds),
            leeway_seconds=settings.auth_jwt_leeway_seconds,
        )

    def ttl_for(self, kind: TokenKind) -> timedelta:
        if kind is TokenKind.ACCESS:
            return self.access_ttl
        if kind is TokenKind.MFA:
            return self.mfa_ttl
        return self.login_ttl


@dataclass(frozen=True)
class TokenSubject:
    """令牌主体：用户 ID + 用户名。"""

    user_id: str
    username: str


@dataclass(frozen=True)
class IssuedToken:
    """签发结果。"""

    token: str
    kind: TokenKind
    expires_at: datetime
    jti: str

    @property
    def expires_in(self) -> int:
        return max(0, int((self.expires_at - datetime.now(timezone.utc)).total_seconds()))


@dataclass
class AuthenticatedPrincipal:
    """访问令牌解析后的认证主体。"""

    # 用户 ID（sub）。
    subject: str
    username: str
    # 原始声明集，便于下游扩展。
    claims: dict[str, Any]


class SessionTokenIssuer:
    """签发并校验短时效会话令牌；无状态，不维护吊销列表。"""

    def __init__(self, config: TokenConfig) -> None:
        self.config = config

    def _audience(self, kind: TokenKind) -> str:
        return f"{self.config.issuer}:{kind.value}"

    def _issue(self, subject: TokenSubject, kind: TokenKind, *, now: datetime | None = None) -> IssuedToken:
        issued_at = now or datetime.now(timezone.utc)
        exp_ts = int((issued_at + self.config.ttl_for(kind)).timestamp())
        jti = str(uuid4())
        claims: dict[str, Any] = {
            "sub": subject.user_id,
            "username": subject.username,
            "token_use": kind.value,
            "iss": self.config.issuer,
            "aud": self._audience(kind),
            "iat": int(issued_at.timestamp()),
            "exp": exp_ts,
            "jti": jti,
        }
        if kind is TokenKind.MFA:
            claims["mfa"] = True
        token = jwt.encode(claims, self.config.secret, algorithm=self.config.algorithm)
        expires_at = datetime.fromtimestamp(exp_ts, tz=timezone.utc)
        return IssuedToken(token=token, kind=kind, expires_at=expires_at, jti=jti)

    def issue_access_token(self, subject: TokenSubject, *, now: datetime | None = None) -> IssuedToken:
        """签发访问令牌。"""
        return self._issue(subject, TokenKind.ACCESS, now=now)

    def issue_mfa_token(self, subject: TokenSubject, *, now: datetime | None = None) -> IssuedToken:
        """签发 MFA 通过令牌。"""
        return self._issue(subject, TokenKind.MFA, now=now)

    def issue_login_token(self, subject: TokenSubject, *, now: datetime | None = None) -> IssuedToken:
        """签发登录挑战令牌（口令已通过，待 TOTP）。"""
        return self._issue(subject, TokenKind.LOGIN, now=now)

    def verify(
        self,
        token: str | None,
        kind: TokenKind,
        *,
        at: datetime | None = None,
        message: str | None = None,
    ) -> dict[str, Any]:
        """校验签名、有效期与令牌类别，任何异常一律视为无效。

        有效期按 `at`（默认当前时间）判断：`at < exp` 才有效，到达 exp 即失效。
        """
        if not token or not isinstance(token, str):
            raise InvalidOrExpiredToken(message)
        try:
            claims = jwt.decode(
                token,
                key=self.config.secret,
                algorithms=[self.config.algorithm],
                issuer=self.config.issuer,
                audience=self._audience(kind),
                leeway=self.config.leeway_seconds,
                options={"require": ["exp", "iat", "sub", "aud", "iss"], "verify_exp": False},
            )
        except InvalidTokenError as exc:
            raise InvalidOrExpiredToken(message) from exc

        exp = claims.get("exp")
        now_ts = (at or datetime.now(timezone.utc)).timestamp()
        if not isinstance(exp, int) or now_ts >= exp + self.config.leeway_seconds:
            raise InvalidOrExpiredToken(message)

        if claims.get("token_use") != kind.value:
            raise InvalidOrExpiredToken(message)
        if kind is TokenKind.MFA and claims.get("mfa") is not True:
            raise InvalidOrExpiredToken(message)
        if not isinstance(claims.get("sub"), str) or not isinstance(claims.get("username"), str):
            raise InvalidOrExpiredToken(message)
        return claims

    def verify_access_token(self, token: str | None, *, at: datetime | None = None) -> dict[str, Any]:
        return self.verify(token, TokenKind.ACCESS, at=at)

    def verify_mfa_token(self, token: str | None, *, at: datetime | None = None) -> dict[str, Any]:
        return self.verify(token, TokenKind.MFA, at=at, message="Invalid or expired MFA token")

    def verify_login_token(self, token: str | None, *, at: datetime | None = None) -> dict[str, Any]:
        return self.verify(token, TokenKind.LOGIN, at=at, message="Invalid or expired login session")


@lru_cache
def get_token_issuer() -> SessionTokenIssuer:
    """返回按当前配置构造的签发器单例。"""
    return SessionTokenIssuer(TokenConfig.from_settings(get_settings()))


def _is_placeholder_token(token: str) -> bool:
    return ("{{" in token and "}}" in token) or ("${" in token and "}" in token)


def extract_bearer_token(authorization: str | None) -> str:
    """从 Authorization 头中提取 Bearer token，兼容重复头被逗号拼接的场景。"""
    if not authorization:
        raise InvalidOrExpiredToken("Access denied. No token provided.")
    tokens = re.findall(r"Bearer\s+([^,\s]+)", authorization, flags=re.IGNORECASE)
    for candidate in reversed(tokens):
        token = candidate.strip()
        # 调试工具未替换的变量占位符不是令牌。
        if token and not _is_placeholder_token(token):
            return token
    raise InvalidOrExpiredToken()


def parse_authorization_header(authorization: str | None) -> AuthenticatedPrincipal:
    """解析认证头并返回访问令牌主体。"""
    token = extract_bearer_token(authorization)
    claims = get_token_issuer().verify_access_token(token)
    return AuthenticatedPrincipal(subject=claims["sub"], username=claims["username"], claims=claims)

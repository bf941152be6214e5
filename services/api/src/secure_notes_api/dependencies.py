"""请求上下文依赖。

职责:
1. 解析并校验访问令牌（请求闸门），失败一律 401。
2. 将令牌主体映射为本地 User。
3. 为认证路由组装 AuthFlow 及其协作者。
"""

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from secure_notes_api.core.config import get_settings
from secure_notes_api.core.security import (
    AuthenticatedPrincipal,
    SessionTokenIssuer,
    get_token_issuer,
    parse_authorization_header,
)
from secure_notes_api.db.session import get_db
from secure_notes_api.exceptions import InvalidOrExpiredToken
from secure_notes_api.models.user import User
from secure_notes_api.services.auth_flow import AuthFlow
from secure_notes_api.services.credential_store import CredentialStore
from secure_notes_api.services.totp import TotpEngine

bearer_scheme = HTTPBearer(auto_error=False)


def get_totp_engine() -> TotpEngine:
    """按当前配置构造 TOTP 引擎。"""
    settings = get_settings()
    return TotpEngine(
        settings.totp_issuer,
        interval=settings.totp_interval_seconds,
        digits=settings.totp_digits,
        valid_window=settings.totp_valid_window,
    )


def get_credential_store(db: Session = Depends(get_db)) -> CredentialStore:
    return CredentialStore(db)


def get_auth_flow(
    store: CredentialStore = Depends(get_credential_store),
    tokens: SessionTokenIssuer = Depends(get_token_issuer),
    totp: TotpEngine = Depends(get_totp_engine),
) -> AuthFlow:
    return AuthFlow(store, tokens, totp)


def get_current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> AuthenticatedPrincipal:
    """提取并解析当前请求认证主体。"""
    authorization = None
    if credentials is not None and credentials.credentials:
        authorization = f"{credentials.scheme} {credentials.credentials}"
    return parse_authorization_header(authorization)


def get_current_user(
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    store: CredentialStore = Depends(get_credential_store),
) -> User:
    """请求闸门：令牌有效且对应用户仍存在才放行。"""
    user = store.find_by_id(principal.subject)
    if user is None:
        # 令牌签名有效但用户已不存在，按无效令牌处理。
        raise InvalidOrExpiredToken()
    return user

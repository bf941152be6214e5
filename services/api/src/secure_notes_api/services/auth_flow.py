"""认证与 MFA 状态机。

账号状态不单独落库，而是由用户记录推导:
- NO_ACCOUNT:             无记录；
- PENDING_MFA_ENROLLMENT: 已写入 TOTP 密钥但尚未用验证码确认；
- ENROLLED:               已确认，或从未绑定密钥（有密钥才要求验证码）。

登录分两步：口令通过后签发 login 令牌，第二步携带它提交 TOTP 验证码。
服务端不保存任何会话状态，步骤顺序完全由令牌约束。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Any

from secure_notes_api.core.security import IssuedToken, SessionTokenIssuer, TokenSubject
from secure_notes_api.exceptions import (
    InvalidCredentials,
    InvalidMfaCode,
    InvalidOrExpiredToken,
    MfaAlreadyEnrolled,
    MfaEnrollmentRequired,
    NotFound,
)
from secure_notes_api.models.user import User
from secure_notes_api.services.credential_store import CredentialStore, normalize_username
from secure_notes_api.services.passwords import hash_password, verify_password
from secure_notes_api.services.totp import TotpEngine

logger = logging.getLogger(__name__)


class AccountState(str, Enum):
    """由用户记录推导出的账号状态。"""

    NO_ACCOUNT = "no_account"
    PENDING_MFA_ENROLLMENT = "pending_mfa_enrollment"
    ENROLLED = "enrolled"


def account_state(user: User | None) -> AccountState:
    if user is None:
        return AccountState.NO_ACCOUNT
    if user.totp_secret and user.mfa_confirmed_at is None:
        return AccountState.PENDING_MFA_ENROLLMENT
    return AccountState.ENROLLED


@dataclass(frozen=True)
class EnrollmentResult:
    """绑定材料：二维码 data URI 与 otpauth 配置地址。"""

    qr_code: str
    otpauth_url: str


@dataclass(frozen=True)
class LoginResult:
    """第一步登录结果；需要 MFA 时只有 login_token，否则直接给出 access_token。"""

    mfa_required: bool
    login_token: IssuedToken | None = None
    access_token: IssuedToken | None = None


@dataclass(frozen=True)
class MfaLoginResult:
    access_token: IssuedToken
    mfa_token: IssuedToken


@lru_cache
def _dummy_password_hash() -> str:
    # 用户不存在时也执行一次完整的 bcrypt 校验，使两种失败耗时接近。
    return hash_password("secure-notes-timing-placeholder")


def _subject(user: User) -> TokenSubject:
    return TokenSubject(user_id=str(user.id), username=user.username)


class AuthFlow:
    """编排凭据存储、口令校验、TOTP 与令牌签发的认证流程。"""

    def __init__(self, store: CredentialStore, tokens: SessionTokenIssuer, totp: TotpEngine) -> None:
        self.store = store
        self.tokens = tokens
        self.totp = totp

    def _authenticate(self, username: str, password: str, *, flag: str) -> User:
        """校验用户名与口令；任何一项不符都抛出同一个 InvalidCredentials。"""
        user = self.store.find_by_username(username)
        if user is None:
            verify_password(password, _dummy_password_hash())
            logger.warning("credential check failed: unknown user")
            raise InvalidCredentials(extra={flag: False})
        if not verify_password(password, user.password_hash):
            logger.warning("credential check failed: wrong password user_id=%s", user.id)
            raise InvalidCredentials(extra={flag: False})
        return user

    def _enroll(self, user: User) -> EnrollmentResult:
        """生成并写入新密钥，返回绑定材料。"""
        enrollment = self.totp.generate_secret(user.username)
        self.store.attach_totp_secret(user.id, enrollment.secret_base32)
        # 二维码渲染失败时密钥已落库，账号停留在待绑定状态，可通过重发二维码恢复。
        qr_code = self.totp.render_qr(enrollment.provisioning_uri)
        return EnrollmentResult(qr_code=qr_code, otpauth_url=enrollment.provisioning_uri)

    def signup(self, username: str, password: str) -> EnrollmentResult:
        """注册账号并开始 TOTP 绑定；不签发任何令牌。"""
        user = self.store.create(normalize_username(username), hash_password(password))
        result = self._enroll(user)
        logger.info("signup completed user_id=%s state=%s", user.id, AccountState.PENDING_MFA_ENROLLMENT.value)
        return result

    def verify_mfa_setup(self, username: str, code: str) -> bool:
        """用首个验证码确认绑定。

        验证码错误时状态不变并返回 False；已绑定账号再次提交正确验证码仍返回 True。
        """
        user = self.store.find_by_username(username)
        if user is None:
            raise NotFound(extra={"verified": False})
        if not self.totp.verify_code(user.totp_secret, code):
            logger.warning("mfa setup rejected user_id=%s", user.id)
            return False
        if account_state(user) is AccountState.PENDING_MFA_ENROLLMENT:
            self.store.confirm_mfa(user.id)
            logger.info("mfa enrollment confirmed user_id=%s", user.id)
        return True

    def resend_enrollment(self, username: str, password: str) -> EnrollmentResult:
        """为待绑定账号重新生成密钥与二维码，旧密钥随即作废。"""
        user = self._authenticate(username, password, flag="success")
        if account_state(user) is not AccountState.PENDING_MFA_ENROLLMENT:
            raise MfaAlreadyEnrolled()
        result = self._enroll(user)
        logger.info("mfa enrollment reissued user_id=%s", user.id)
        return result

    def login(self, username: str, password: str) -> LoginResult:
        """第一步：口令校验。"""
        user = self._authenticate(username, password, flag="success")
        if account_state(user) is AccountState.PENDING_MFA_ENROLLMENT:
            logger.warning("login blocked: mfa enrollment pending user_id=%s", user.id)
            raise MfaEnrollmentRequired(extra={"success": False})

        if user.totp_secret:
            login_token = self.tokens.issue_login_token(_subject(user))
            logger.info("credentials accepted, mfa required user_id=%s", user.id)
            return LoginResult(mfa_required=True, login_token=login_token)

        self.store.record_login(user.id)
        logger.info("login completed without mfa user_id=%s", user.id)
        return LoginResult(mfa_required=False, access_token=self.tokens.issue_access_token(_subject(user)))

    def verify_mfa_login(self, username: str, code: str, login_token: str | None) -> MfaLoginResult:
        """第二步：凭 login 令牌提交验证码，换取访问令牌与 MFA 通过令牌。"""
        try:
            claims = self.tokens.verify_login_token(login_token)
        except InvalidOrExpiredToken as exc:
            exc.extra.setdefault("verified", False)
            raise

        user = self.store.find_by_username(username)
        if user is None or str(user.id) != claims["sub"]:
            logger.warning("mfa login rejected: login session does not match user")
            raise InvalidOrExpiredToken("Invalid or expired login session", extra={"verified": False})
        if not self.totp.verify_code(user.totp_secret, code):
            logger.warning("mfa login rejected: wrong code user_id=%s", user.id)
            raise InvalidMfaCode(extra={"verified": False})

        self.store.record_login(user.id)
        subject = _subject(user)
        logger.info("mfa login completed user_id=%s", user.id)
        return MfaLoginResult(
            access_token=self.tokens.issue_access_token(subject),
            mfa_token=self.tokens.issue_mfa_token(subject),
        )

    def skip_mfa_login(self, username: str, password: str, mfa_token: str | None) -> IssuedToken:
        """凭有效 MFA 通过令牌免输验证码登录。

        口令每次都重新校验；只签发新的访问令牌，不续期 MFA 通过令牌。
        """
        user = self._authenticate(username, password, flag="verified")
        if account_state(user) is AccountState.PENDING_MFA_ENROLLMENT:
            raise MfaEnrollmentRequired(extra={"verified": False})
        try:
            claims = self.tokens.verify_mfa_token(mfa_token)
        except InvalidOrExpiredToken as exc:
            exc.extra.setdefault("verified", False)
            raise
        if claims["sub"] != str(user.id):
            logger.warning("mfa bypass rejected: token subject mismatch user_id=%s", user.id)
            raise InvalidOrExpiredToken("Invalid or expired MFA token", extra={"verified": False})

        self.store.record_login(user.id)
        logger.info("mfa bypass login completed user_id=%s", user.id)
        return self.tokens.issue_access_token(_subject(user))

    def validate_mfa_token(self, token: str | None) -> dict[str, Any]:
        """检查 MFA 通过令牌是否仍有效，返回其声明。"""
        try:
            return self.tokens.verify_mfa_token(token)
        except InvalidOrExpiredToken as exc:
            exc.extra.setdefault("valid", False)
            raise

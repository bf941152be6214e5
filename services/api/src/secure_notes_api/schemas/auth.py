"""认证与 MFA 请求/响应结构。

线上字段沿用前端约定的驼峰命名（qrCode、mfaToken 等），
代码内部统一用下划线字段名构造。
"""

from typing import Annotated

from pydantic import AfterValidator, Field

from secure_notes_api.schemas.common import CamelSchema
from secure_notes_api.services.passwords import BCRYPT_MAX_PASSWORD_BYTES


def _check_password_bytes(value: str) -> str:
    # bcrypt 只取前 72 字节，超长口令直接拒绝而不是静默截断。
    if len(value.encode("utf-8")) > BCRYPT_MAX_PASSWORD_BYTES:
        raise ValueError(f"password must be at most {BCRYPT_MAX_PASSWORD_BYTES} bytes when UTF-8 encoded")
    return value


Username = Annotated[
    str,
    Field(
        min_length=3,
        max_length=64,
        pattern=r"^\s*[A-Za-z0-9_.\-]+\s*$",
        description="登录用户名，大小写不敏感。",
        examples=["alice"],
    ),
]
Password = Annotated[
    str,
    Field(min_length=8, max_length=128, description="登录密码。", examples=["StrongPassw0rd!"]),
    AfterValidator(_check_password_bytes),
]
# 登录侧只校验非空与长度上限。
LoginUsername = Annotated[
    str,
    Field(min_length=1, max_length=256, description="登录用户名，大小写不敏感。", examples=["alice"]),
]
LoginPassword = Annotated[
    str,
    Field(min_length=1, max_length=1024, description="登录密码。", examples=["StrongPassw0rd!"]),
]
TotpCode = Annotated[
    str,
    Field(min_length=1, max_length=16, description="验证器应用当前显示的验证码。", examples=["123456"]),
]


class SignupRequest(CamelSchema):
    """注册请求；用户名与口令格式在此处校验。"""

    username: Username
    password: Password


class CredentialsRequest(CamelSchema):
    """用户名 + 口令，登录与重发二维码共用。"""

    username: LoginUsername
    password: LoginPassword


class VerifyMfaSetupRequest(CamelSchema):
    """绑定确认请求。"""

    username: LoginUsername
    token: TotpCode


class VerifyMfaLoginRequest(CamelSchema):
    """登录第二步请求。"""

    username: LoginUsername
    token: TotpCode
    login_token: str = Field(alias="loginToken", min_length=1, description="第一步登录返回的 login 令牌。")


class SkipMfaLoginRequest(CamelSchema):
    """凭 MFA 通过令牌免输验证码登录。"""

    username: LoginUsername
    password: LoginPassword
    mfa_token: str = Field(alias="mfaToken", min_length=1, description="最近一次 MFA 登录获得的通过令牌。")


class EnrollmentData(CamelSchema):
    """绑定材料。"""

    qr_code: str = Field(alias="qrCode", description="PNG 二维码 data URI。")
    otpauth_url: str = Field(alias="otpauthUrl", description="otpauth://totp 配置地址。")


class VerifyMfaSetupData(CamelSchema):
    verified: bool = Field(description="验证码是否通过。")


class LoginData(CamelSchema):
    """第一步登录结果；需要 MFA 时返回 loginToken，否则直接返回 token。"""

    success: bool = Field(default=True, description="口令是否通过。")
    mfa_required: bool = Field(alias="mfaRequired", description="是否还需提交 TOTP 验证码。")
    login_token: str | None = Field(default=None, alias="loginToken", description="login 令牌。")
    token: str | None = Field(default=None, description="访问令牌（无需 MFA 时）。")
    expires_in: int | None = Field(default=None, alias="expiresIn", description="所返回令牌的剩余有效秒数。")


class MfaLoginData(CamelSchema):
    verified: bool = Field(default=True, description="验证码是否通过。")
    token: str = Field(description="访问令牌。")
    mfa_token: str = Field(alias="mfaToken", description="MFA 通过令牌，可用于后续免输验证码登录。")
    expires_in: int = Field(alias="expiresIn", description="访问令牌剩余有效秒数。")


class ValidateMfaData(CamelSchema):
    valid: bool = Field(description="MFA 通过令牌是否有效。")
    username: str = Field(description="令牌所属用户名。")


class SkipMfaLoginData(CamelSchema):
    token: str = Field(description="新的访问令牌。")
    verified: bool = Field(default=True, description="是否已通过。")
    expires_in: int = Field(alias="expiresIn", description="访问令牌剩余有效秒数。")

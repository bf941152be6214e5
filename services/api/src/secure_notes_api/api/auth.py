"""认证与 MFA 接口。

认证接口直接返回前端约定的扁平结构（如 `{verified, token, mfaToken}`），
失败时由异常处理器补充对应的流程标记（`success`/`verified`/`valid` 为 false）。
"""

from fastapi import APIRouter, Depends, Header, Request, status

from secure_notes_api.dependencies import get_auth_flow, get_current_user
from secure_notes_api.models.user import User
from secure_notes_api.schemas.auth import (
    CredentialsRequest,
    EnrollmentData,
    LoginData,
    MfaLoginData,
    SignupRequest,
    SkipMfaLoginData,
    SkipMfaLoginRequest,
    ValidateMfaData,
    VerifyMfaLoginRequest,
    VerifyMfaSetupData,
    VerifyMfaSetupRequest,
)
from secure_notes_api.schemas.common import ErrorResponse, SuccessResponse
from secure_notes_api.schemas.responses import UserProfileData
from secure_notes_api.services.auth_flow import AuthFlow
from secure_notes_api.utils.response import success

router = APIRouter(tags=["auth"])


@router.post(
    "/signup",
    summary="注册账号",
    description="创建账号并返回 TOTP 绑定二维码；此时不签发任何令牌，需先完成绑定确认。",
    status_code=status.HTTP_201_CREATED,
    response_model=EnrollmentData,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def signup(payload: SignupRequest, flow: AuthFlow = Depends(get_auth_flow)):
    """注册并开始 MFA 绑定。"""
    result = flow.signup(payload.username, payload.password)
    return EnrollmentData(qr_code=result.qr_code, otpauth_url=result.otpauth_url)


@router.post(
    "/verify-mfa-setup",
    summary="确认 MFA 绑定",
    description="提交验证器应用中的首个验证码完成绑定；验证码错误时返回 verified=false，账号状态不变。",
    status_code=status.HTTP_200_OK,
    response_model=VerifyMfaSetupData,
    responses={404: {"model": ErrorResponse}},
)
def verify_mfa_setup(payload: VerifyMfaSetupRequest, flow: AuthFlow = Depends(get_auth_flow)):
    return VerifyMfaSetupData(verified=flow.verify_mfa_setup(payload.username, payload.token))


@router.post(
    "/resend-qr",
    summary="重新获取绑定二维码",
    description="仅限尚未完成绑定的账号；需再次校验口令，并重新生成密钥，旧二维码随即失效。",
    status_code=status.HTTP_200_OK,
    response_model=EnrollmentData,
    responses={401: {"model": ErrorResponse}, 409: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def resend_qr(payload: CredentialsRequest, flow: AuthFlow = Depends(get_auth_flow)):
    result = flow.resend_enrollment(payload.username, payload.password)
    return EnrollmentData(qr_code=result.qr_code, otpauth_url=result.otpauth_url)


@router.post(
    "/login",
    summary="口令登录（第一步）",
    description=(
        "校验用户名口令。已绑定 MFA 的账号返回 mfaRequired=true 与 loginToken，"
        "需继续调用 /verify-mfa-login；未绑定密钥的账号直接返回访问令牌。"
    ),
    status_code=status.HTTP_200_OK,
    response_model=LoginData,
    response_model_exclude_none=True,
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def login(payload: CredentialsRequest, flow: AuthFlow = Depends(get_auth_flow)):
    result = flow.login(payload.username, payload.password)
    issued = result.login_token if result.mfa_required else result.access_token
    return LoginData(
        success=True,
        mfa_required=result.mfa_required,
        login_token=result.login_token.token if result.login_token else None,
        token=result.access_token.token if result.access_token else None,
        expires_in=issued.expires_in if issued else None,
    )


@router.post(
    "/verify-mfa-login",
    summary="验证码登录（第二步）",
    description=(
        "请求体为 {username, token, loginToken}：loginToken 必填，取自第一步 /login 的返回值，"
        "用于保证先完成口令校验再提交验证码。成功后返回访问令牌与 MFA 通过令牌。"
    ),
    status_code=status.HTTP_200_OK,
    response_model=MfaLoginData,
    responses={401: {"model": ErrorResponse}},
)
def verify_mfa_login(payload: VerifyMfaLoginRequest, flow: AuthFlow = Depends(get_auth_flow)):
    result = flow.verify_mfa_login(payload.username, payload.token, payload.login_token)
    return MfaLoginData(
        verified=True,
        token=result.access_token.token,
        mfa_token=result.mfa_token.token,
        expires_in=result.access_token.expires_in,
    )


@router.get(
    "/validate-mfa",
    summary="检查 MFA 通过令牌",
    description="通过 x-mfa-token 请求头提交 MFA 通过令牌，判断是否仍可免输验证码登录。",
    status_code=status.HTTP_200_OK,
    response_model=ValidateMfaData,
    responses={401: {"model": ErrorResponse}},
)
def validate_mfa(
    x_mfa_token: str | None = Header(default=None, alias="x-mfa-token"),
    flow: AuthFlow = Depends(get_auth_flow),
):
    claims = flow.validate_mfa_token(x_mfa_token)
    return ValidateMfaData(valid=True, username=claims["username"])


@router.post(
    "/skip-mfa-login",
    summary="免输验证码登录",
    description="口令仍需校验；MFA 通过令牌有效且属于同一用户时直接签发新的访问令牌。",
    status_code=status.HTTP_200_OK,
    response_model=SkipMfaLoginData,
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def skip_mfa_login(payload: SkipMfaLoginRequest, flow: AuthFlow = Depends(get_auth_flow)):
    issued = flow.skip_mfa_login(payload.username, payload.password, payload.mfa_token)
    return SkipMfaLoginData(token=issued.token, verified=True, expires_in=issued.expires_in)


@router.get(
    "/me",
    summary="获取当前身份",
    description="返回访问令牌对应的用户资料。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[UserProfileData],
    responses={401: {"model": ErrorResponse}},
)
def me(request: Request, user: User = Depends(get_current_user)):
    return success(
        request,
        {
            "id": user.id,
            "username": user.username,
            "mfa_enrolled": user.mfa_confirmed_at is not None,
            "last_login_at": user.last_login_at,
            "created_at": user.created_at,
        },
    )

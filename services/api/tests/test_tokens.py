from dataclasses import replace
from datetime import datetime, timedelta, timezone

import jwt
import pytest
from pydantic import ValidationError

from secure_notes_api.core.config import Settings
from secure_notes_api.core.security import (
    SessionTokenIssuer,
    TokenConfig,
    TokenKind,
    TokenSubject,
    extract_bearer_token,
    get_token_issuer,
    parse_authorization_header,
)
from secure_notes_api.exceptions import InvalidOrExpiredToken

SUBJECT = TokenSubject(user_id="6f1c2a0e-5d0e-4b5c-9a43-1f1f2b3c4d5e", username="alice")


def _past(seconds: int) -> datetime:
    return datetime.now(timezone.utc) - timedelta(seconds=seconds)


def test_access_token_round_trip(tokens: SessionTokenIssuer):
    issued = tokens.issue_access_token(SUBJECT)
    claims = tokens.verify_access_token(issued.token)

    assert claims["sub"] == SUBJECT.user_id
    assert claims["username"] == "alice"
    assert claims["token_use"] == "access"
    assert claims["aud"] == "secure-notes-test:access"
    assert claims["jti"] == issued.jti
    assert claims["exp"] == int(issued.expires_at.timestamp())
    assert issued.kind is TokenKind.ACCESS
    assert 0 < issued.expires_in <= 600


def test_mfa_token_carries_mfa_flag(tokens: SessionTokenIssuer):
    claims = tokens.verify_mfa_token(tokens.issue_mfa_token(SUBJECT).token)

    assert claims["mfa"] is True
    assert claims["token_use"] == "mfa"


def test_each_token_has_unique_jti(tokens: SessionTokenIssuer):
    assert tokens.issue_access_token(SUBJECT).jti != tokens.issue_access_token(SUBJECT).jti


def test_token_is_valid_until_exactly_exp(tokens: SessionTokenIssuer):
    issued = tokens.issue_access_token(SUBJECT, now=_past(5))
    exp = issued.expires_at

    tokens.verify_access_token(issued.token, at=exp - timedelta(seconds=1))
    with pytest.raises(InvalidOrExpiredToken):
        tokens.verify_access_token(issued.token, at=exp)
    with pytest.raises(InvalidOrExpiredToken):
        tokens.verify_access_token(issued.token, at=exp + timedelta(seconds=1))


def test_leeway_extends_the_expiry_boundary(token_config: TokenConfig):
    issuer = SessionTokenIssuer(replace(token_config, leeway_seconds=10))
    issued = issuer.issue_access_token(SUBJECT, now=_past(5))

    issuer.verify_access_token(issued.token, at=issued.expires_at + timedelta(seconds=9))
    with pytest.raises(InvalidOrExpiredToken):
        issuer.verify_access_token(issued.token, at=issued.expires_at + timedelta(seconds=10))


def test_expired_token_is_rejected_at_current_time(tokens: SessionTokenIssuer):
    issued = tokens.issue_mfa_token(SUBJECT, now=_past(3600))

    with pytest.raises(InvalidOrExpiredToken) as exc:
        tokens.verify_mfa_token(issued.token)
    assert exc.value.message == "Invalid or expired MFA token"


@pytest.mark.parametrize(
    ("issued_kind", "verified_kind"),
    [
        (TokenKind.MFA, TokenKind.ACCESS),
        (TokenKind.ACCESS, TokenKind.MFA),
        (TokenKind.LOGIN, TokenKind.ACCESS),
        (TokenKind.ACCESS, TokenKind.LOGIN),
        (TokenKind.LOGIN, TokenKind.MFA),
        (TokenKind.MFA, TokenKind.LOGIN),
    ],
)
def test_token_of_one_kind_is_never_accepted_as_another(tokens: SessionTokenIssuer, issued_kind, verified_kind):
    issued = tokens._issue(SUBJECT, issued_kind)

    with pytest.raises(InvalidOrExpiredToken):
        tokens.verify(issued.token, verified_kind)


def test_token_signed_with_other_secret_is_rejected(tokens: SessionTokenIssuer, token_config: TokenConfig):
    foreign = SessionTokenIssuer(replace(token_config, secret="another-secret-key-that-is-long-enough"))

    with pytest.raises(InvalidOrExpiredToken):
        tokens.verify_access_token(foreign.issue_access_token(SUBJECT).token)


def test_token_with_matching_use_but_wrong_audience_is_rejected(token_config: TokenConfig, tokens: SessionTokenIssuer):
    now = datetime.now(timezone.utc)
    forged = jwt.encode(
        {
            "sub": SUBJECT.user_id,
            "username": SUBJECT.username,
            "token_use": "access",
            "iss": token_config.issuer,
            "aud": f"{token_config.issuer}:mfa",
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(minutes=5)).timestamp()),
        },
        token_config.secret,
        algorithm="HS256",
    )

    with pytest.raises(InvalidOrExpiredToken):
        tokens.verify_access_token(forged)


def test_tampered_token_is_rejected(tokens: SessionTokenIssuer):
    header, payload, signature = tokens.issue_access_token(SUBJECT).token.split(".")
    tampered_signature = ("A" if signature[0] != "A" else "B") + signature[1:]

    with pytest.raises(InvalidOrExpiredToken):
        tokens.verify_access_token(f"{header}.{payload}.{tampered_signature}")


@pytest.mark.parametrize("token", [None, "", "garbage", "a.b.c"])
def test_malformed_tokens_are_rejected(tokens: SessionTokenIssuer, token):
    with pytest.raises(InvalidOrExpiredToken) as exc:
        tokens.verify_access_token(token)
    assert exc.value.status_code == 401


def test_settings_require_a_strong_secret(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("SN_AUTH_JWT_SECRET", raising=False)
    with pytest.raises(ValidationError):
        Settings(_env_file=None)
    with pytest.raises(ValidationError):
        Settings(_env_file=None, auth_jwt_secret="too-short")


def test_token_config_from_settings():
    settings = Settings(_env_file=None, auth_jwt_secret="x" * 40, auth_login_token_ttl_seconds=120)
    config = TokenConfig.from_settings(settings)

    assert config.secret == "x" * 40
    assert config.ttl_for(TokenKind.ACCESS) == timedelta(seconds=600)
    assert config.ttl_for(TokenKind.MFA) == timedelta(seconds=1800)
    assert config.ttl_for(TokenKind.LOGIN) == timedelta(seconds=120)


def test_extract_bearer_token_prefers_real_token_when_placeholder_exists():
    assert extract_bearer_token("Bearer {{token}}, Bearer real-token") == "real-token"
    assert extract_bearer_token("bearer real-token") == "real-token"


@pytest.mark.parametrize("authorization", [None, "", "Basic dXNlcjpwYXNz", "Bearer ${TOKEN}"])
def test_extract_bearer_token_rejects_missing_token(authorization):
    with pytest.raises(InvalidOrExpiredToken):
        extract_bearer_token(authorization)


def test_parse_authorization_header_accepts_access_token_only():
    get_token_issuer.cache_clear()
    issuer = get_token_issuer()
    access = issuer.issue_access_token(SUBJECT).token
    mfa = issuer.issue_mfa_token(SUBJECT).token

    principal = parse_authorization_header(f"Bearer {access}")
    assert principal.subject == SUBJECT.user_id
    assert principal.username == "alice"

    with pytest.raises(InvalidOrExpiredToken):
        parse_authorization_header(f"Bearer {mfa}")

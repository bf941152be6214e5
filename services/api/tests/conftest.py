import os
from collections.abc import Generator
from datetime import timedelta
from urllib.parse import parse_qs, urlparse

# 配置在模块导入阶段即被读取，必须先于应用导入设置。
os.environ.setdefault("SN_AUTH_JWT_SECRET", "unit-test-secret-key-at-least-32-bytes")
os.environ["SN_AUTH_PASSWORD_HASH_ROUNDS"] = "4"
os.environ["SN_DB_AUTO_CREATE"] = "false"
os.environ["SN_DATABASE_URL"] = "sqlite+pysqlite://"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import secure_notes_api.models  # noqa: F401
from secure_notes_api.core.config import get_settings
from secure_notes_api.core.security import SessionTokenIssuer, TokenConfig, get_token_issuer
from secure_notes_api.db.session import get_db
from secure_notes_api.main import app
from secure_notes_api.models.base import Base
from secure_notes_api.services.auth_flow import AuthFlow
from secure_notes_api.services.credential_store import CredentialStore
from secure_notes_api.services.totp import TotpEngine

TEST_SECRET = "unit-test-secret-key-at-least-32-bytes"
STRONG_PASSWORD = "StrongPassw0rd!"


def secret_from_otpauth_url(url: str) -> str:
    """从 otpauth 配置地址中取出 base32 密钥。"""
    return parse_qs(urlparse(url).query)["secret"][0]


def _sqlite_engine():
    return create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )


@pytest.fixture
def db_session() -> Generator[Session, None, None]:
    engine = _sqlite_engine()
    Base.metadata.create_all(bind=engine)
    local_session = sessionmaker(bind=engine, autoflush=False, autocommit=False, class_=Session)
    db = local_session()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def token_config() -> TokenConfig:
    return TokenConfig(
        secret=TEST_SECRET,
        algorithm="HS256",
        issuer="secure-notes-test",
        access_ttl=timedelta(seconds=600),
        mfa_ttl=timedelta(seconds=1800),
        login_ttl=timedelta(seconds=300),
    )


@pytest.fixture
def tokens(token_config: TokenConfig) -> SessionTokenIssuer:
    return SessionTokenIssuer(token_config)


@pytest.fixture
def totp() -> TotpEngine:
    return TotpEngine("SecureNotes")


@pytest.fixture
def store(db_session: Session) -> CredentialStore:
    return CredentialStore(db_session)


@pytest.fixture
def flow(store: CredentialStore, tokens: SessionTokenIssuer, totp: TotpEngine) -> AuthFlow:
    return AuthFlow(store, tokens, totp)


@pytest.fixture
def api_client() -> Generator[TestClient, None, None]:
    get_settings.cache_clear()
    get_token_issuer.cache_clear()
    app.dependency_overrides.clear()

    engine = _sqlite_engine()
    testing_session_local = sessionmaker(bind=engine, autoflush=False, autocommit=False, class_=Session)
    Base.metadata.create_all(bind=engine)

    def override_get_db() -> Generator[Session, None, None]:
        db = testing_session_local()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=engine)
    get_token_issuer.cache_clear()
    get_settings.cache_clear()

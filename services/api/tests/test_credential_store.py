from uuid import uuid4

import pytest

from secure_notes_api.exceptions import DuplicateUser, NotFound
from secure_notes_api.services.credential_store import CredentialStore, normalize_username

DIGEST = "$2b$04$abcdefghijklmnopqrstuuN2vGmVwJr7oRjZ1QkS0bq5Yp6m3T9uS"


def test_normalize_username():
    assert normalize_username("  Alice ") == "alice"


def test_create_and_find_user(store: CredentialStore):
    user = store.create("Alice", DIGEST)

    assert user.username == "alice"
    assert user.totp_secret is None
    assert user.mfa_confirmed_at is None
    assert store.find_by_username("ALICE").id == user.id
    assert store.find_by_id(user.id).username == "alice"
    assert store.find_by_id(str(user.id)).username == "alice"


def test_find_returns_none_for_unknown_user(store: CredentialStore):
    assert store.find_by_username("nobody") is None
    assert store.find_by_id(uuid4()) is None
    assert store.find_by_id("not-a-uuid") is None


def test_create_rejects_duplicate_username(store: CredentialStore):
    store.create("alice", DIGEST)

    with pytest.raises(DuplicateUser) as exc:
        store.create(" ALICE ", DIGEST)
    assert exc.value.status_code == 400
    assert exc.value.message == "User already exists"


def test_unique_constraint_guards_against_concurrent_signup(store: CredentialStore, monkeypatch: pytest.MonkeyPatch):
    original = store.create("alice", DIGEST)
    # 模拟另一个请求在预检查之后、提交之前抢先插入同名用户。
    monkeypatch.setattr(store, "find_by_username", lambda _username: None)

    with pytest.raises(DuplicateUser):
        store.create("alice", DIGEST)

    monkeypatch.undo()
    assert store.find_by_username("alice").id == original.id


def test_attach_totp_secret_resets_confirmation(store: CredentialStore):
    user = store.create("alice", DIGEST)
    store.attach_totp_secret(user.id, "JBSWY3DPEHPK3PXP")
    store.confirm_mfa(user.id)
    assert store.find_by_id(user.id).mfa_confirmed_at is not None

    store.attach_totp_secret(user.id, "KRSXG5CTMVRXEZLU")
    refreshed = store.find_by_id(user.id)
    assert refreshed.totp_secret == "KRSXG5CTMVRXEZLU"
    assert refreshed.mfa_confirmed_at is None


def test_confirm_mfa_is_idempotent(store: CredentialStore):
    user = store.create("alice", DIGEST)
    store.attach_totp_secret(user.id, "JBSWY3DPEHPK3PXP")
    store.confirm_mfa(user.id)
    first = store.find_by_id(user.id).mfa_confirmed_at

    store.confirm_mfa(user.id)
    assert store.find_by_id(user.id).mfa_confirmed_at == first


def test_record_login(store: CredentialStore):
    user = store.create("alice", DIGEST)
    store.record_login(user.id)
    assert store.find_by_id(user.id).last_login_at is not None


def test_writes_to_unknown_user_raise_not_found(store: CredentialStore):
    with pytest.raises(NotFound):
        store.attach_totp_secret(uuid4(), "JBSWY3DPEHPK3PXP")
    with pytest.raises(NotFound):
        store.confirm_mfa(uuid4())
    with pytest.raises(NotFound):
        store.record_login(uuid4())

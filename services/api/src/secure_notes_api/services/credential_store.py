"""用户凭据存储。

每次查询都直接访问数据库，不做缓存；写操作同步提交。
用户名唯一性由数据库唯一约束保证，并发注册同名账号时只有一个能成功。
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from secure_notes_api.exceptions import DuplicateUser, NotFound
from secure_notes_api.models.user import User

logger = logging.getLogger(__name__)


def normalize_username(username: str) -> str:
    """统一用户名格式：去首尾空白并转小写。"""
    return username.strip().lower()


class CredentialStore:
    """用户记录的持久化读写。"""

    def __init__(self, db: Session) -> None:
        self.db = db

    def find_by_username(self, username: str) -> User | None:
        stmt = select(User).where(User.username == normalize_username(username))
        return self.db.execute(stmt).scalar_one_or_none()

    def find_by_id(self, user_id: UUID | str) -> User | None:
        try:
            key = user_id if isinstance(user_id, UUID) else UUID(str(user_id))
        except ValueError:
            return None
        return self.db.get(User, key)

    def _require(self, user_id: UUID | str) -> User:
        user = self.find_by_id(user_id)
        if user is None:
            raise NotFound()
        return user

    def create(self, username: str, password_hash: str) -> User:
        """创建用户；用户名已存在时抛出 DuplicateUser。"""
        normalized = normalize_username(username)
        if self.find_by_username(normalized) is not None:
            raise DuplicateUser()

        user = User(id=uuid4(), username=normalized, password_hash=password_hash)
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as exc:
            # 预检查与插入之间被并发请求抢先，唯一约束兜底。
            self.db.rollback()
            logger.warning("signup lost unique username race")
            raise DuplicateUser() from exc
        self.db.refresh(user)
        return user

    def attach_totp_secret(self, user_id: UUID | str, secret: str) -> None:
        """写入（或重置）TOTP 密钥，并清除已确认状态。"""
        user = self._require(user_id)
        user.totp_secret = secret
        user.mfa_confirmed_at = None
        self.db.commit()

    def confirm_mfa(self, user_id: UUID | str) -> None:
        user = self._require(user_id)
        if user.mfa_confirmed_at is None:
            user.mfa_confirmed_at = datetime.now(timezone.utc)
            self.db.commit()

    def record_login(self, user_id: UUID | str) -> None:
        user = self._require(user_id)
        user.last_login_at = datetime.now(timezone.utc)
        self.db.commit()

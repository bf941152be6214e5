"""用户身份模型。"""

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from secure_notes_api.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class User(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """本地账号：用户名口令 + 可选 TOTP 密钥。"""

    __tablename__ = "users"

    # 登录用户名，规范化后全局唯一；唯一约束保证并发注册不会重复插入。
    username: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    # bcrypt 口令哈希，不存明文，也不出现在任何响应中。
    password_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    # base32 编码的 TOTP 密钥，开始 MFA 绑定后才存在。
    totp_secret: Mapped[str | None] = mapped_column(String(64))
    # 首次校验 TOTP 成功的时间；为空表示绑定尚未完成。
    mfa_confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    # 最近一次完成登录的时间。
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

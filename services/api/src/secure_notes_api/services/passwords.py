"""口令哈希与校验。"""

from __future__ import annotations

import bcrypt

from secure_notes_api.core.config import get_settings

# bcrypt 只处理前 72 字节，超出部分在入参校验阶段拒绝。
BCRYPT_MAX_PASSWORD_BYTES = 72


def hash_password(password: str, *, rounds: int | None = None) -> str:
    """使用 bcrypt 生成带盐口令哈希，工作因子取自配置。"""
    cost = rounds if rounds is not None else get_settings().auth_password_hash_rounds
    digest = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=cost))
    return digest.decode("ascii")


def verify_password(password: str, password_hash: str) -> bool:
    """校验口令是否匹配；不匹配或哈希格式非法时返回 False，不抛异常。"""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("ascii"))
    except (ValueError, TypeError, UnicodeEncodeError):
        return False

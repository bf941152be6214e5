"""数据库结构初始化。

生产环境由迁移脚本维护表结构；`create_schema` 仅在开启
`SN_DB_AUTO_CREATE` 时于启动阶段调用，便于本地开发。
"""

import logging

from sqlalchemy.engine import Engine

import secure_notes_api.models  # noqa: F401
from secure_notes_api.models.base import Base

logger = logging.getLogger(__name__)


def create_schema(bind: Engine) -> None:
    """按模型定义补齐缺失的表。"""
    Base.metadata.create_all(bind=bind)
    logger.info("database schema ensured tables=%s", sorted(Base.metadata.tables))


__all__ = ["Base", "create_schema"]

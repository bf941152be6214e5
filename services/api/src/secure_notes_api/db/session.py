"""数据库会话管理。"""

from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from secure_notes_api.core.config import get_settings


def build_engine(database_url: str) -> Engine:
    """按连接地址创建引擎。

    SQLite 连接会在线程池的不同线程间复用，需关闭同线程检查。
    """
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    return create_engine(database_url, future=True, pool_pre_ping=True, connect_args=connect_args)


# 全局数据库引擎，开启连接预检查以减少僵尸连接影响。
engine = build_engine(get_settings().database_url)
# 路由层通过依赖注入获取短生命周期会话，每个请求互不共享。
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, class_=Session)


def get_db() -> Generator[Session, None, None]:
    """为每个请求提供独立数据库会话；异常时回滚未提交的写入。"""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

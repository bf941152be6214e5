"""FastAPI 应用入口点。"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from secure_notes_api.api.router import api_router
from secure_notes_api.core.config import get_settings
from secure_notes_api.core.logging_config import setup_logging
from secure_notes_api.db.base import create_schema
from secure_notes_api.db.session import engine
from secure_notes_api.exceptions import register_exception_handlers
from secure_notes_api.middlewares import register_middlewares

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """启动时按配置补齐表结构。"""
    settings = get_settings()
    if settings.db_auto_create:
        create_schema(engine)
    logger.info("%s started env=%s", settings.app_name, settings.app_env)
    yield


def create_app() -> FastAPI:
    """创建并配置 FastAPI 应用实例。"""
    settings = get_settings()
    setup_logging()
    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        debug=settings.app_debug,
        lifespan=lifespan,
        description=(
            "带 TOTP 双因素认证的笔记服务接口。\n\n"
            "认证接口返回扁平结构；笔记与健康检查接口统一返回 `{request_id, data, meta}`。\n"
            "笔记接口通过 `Authorization: Bearer <访问令牌>` 认证。"
        ),
        openapi_tags=[
            {"name": "health", "description": "服务存活与就绪探针。"},
            {"name": "auth", "description": "注册、MFA 绑定与两步登录。"},
            {"name": "notes", "description": "当前用户的笔记增删改查。"},
        ],
    )

    register_middlewares(app)
    register_exception_handlers(app)
    app.include_router(api_router, prefix=settings.api_prefix)
    return app


app = create_app()

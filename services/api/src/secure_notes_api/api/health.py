"""健康检查接口。"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from secure_notes_api.core.config import get_settings
from secure_notes_api.db.session import get_db
from secure_notes_api.schemas.common import ErrorResponse, SuccessResponse
from secure_notes_api.schemas.responses import HealthStatusData
from secure_notes_api.utils.response import success

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


@router.get(
    "/live",
    summary="存活探针",
    description="仅表示进程存活，不校验外部依赖。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[HealthStatusData],
)
def live(request: Request):
    settings = get_settings()
    return success(request, {"status": "ok", "app": settings.app_name, "env": settings.app_env})


@router.get(
    "/ready",
    summary="就绪探针",
    description="数据库可连通时返回 ready，否则返回 503。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[HealthStatusData],
    responses={503: {"model": ErrorResponse}},
)
def ready(request: Request, db: Session = Depends(get_db)):
    settings = get_settings()
    try:
        db.execute(text("select 1"))
    except SQLAlchemyError as exc:
        logger.warning("readiness probe failed: %s", exc.__class__.__name__)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"code": "DATABASE_UNAVAILABLE", "message": "database unavailable"},
        ) from exc
    return success(request, {"status": "ready", "app": settings.app_name, "env": settings.app_env})

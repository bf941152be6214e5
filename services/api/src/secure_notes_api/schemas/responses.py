"""接口成功响应 `data` 字段结构定义。

说明：
1. 笔记与健康检查接口统一返回 `SuccessResponse[data=...]`。
2. 本文件专注于定义各接口在 `data` 中的业务字段。
3. 字段描述会直接用于 Swagger 展示，便于联调时理解含义。
"""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from secure_notes_api.schemas.common import BaseSchema


class HealthStatusData(BaseSchema):
    """健康检查返回结构。"""

    status: str = Field(description="健康状态值：ok 或 ready。")
    app: str = Field(description="应用名称。")
    env: str = Field(description="运行环境标识。")


class UserProfileData(BaseSchema):
    """当前登录用户的基础资料，不含口令哈希与 TOTP 密钥。"""

    id: UUID = Field(description="用户主键 ID。")
    username: str = Field(description="登录用户名。")
    mfa_enrolled: bool = Field(description="是否已完成 TOTP 绑定。")
    last_login_at: datetime | None = Field(default=None, description="最近一次登录时间。")
    created_at: datetime = Field(description="注册时间。")


class NoteData(BaseSchema):
    """笔记详情。"""

    id: UUID = Field(description="笔记 ID。")
    title: str = Field(description="标题。")
    content: str = Field(description="正文。")
    tags: list[str] = Field(default_factory=list, description="标签。")
    created_at: datetime = Field(description="创建时间。")
    updated_at: datetime = Field(description="最近更新时间。")


class NoteDeleteData(BaseSchema):
    id: UUID = Field(description="已删除笔记 ID。")
    deleted: bool = Field(description="是否已删除。")

"""笔记请求结构。"""

from pydantic import BaseModel, Field


class NoteCreateRequest(BaseModel):
    """创建笔记请求。"""

    title: str = Field(min_length=1, max_length=256, description="标题。", examples=["购物清单"])
    content: str = Field(min_length=1, max_length=100_000, description="正文。")
    tags: list[str] = Field(default_factory=list, max_length=32, description="标签。")


class NoteUpdateRequest(BaseModel):
    """更新笔记请求，未提供的字段保持不变。"""

    title: str | None = Field(default=None, min_length=1, max_length=256, description="标题。")
    content: str | None = Field(default=None, min_length=1, max_length=100_000, description="正文。")
    tags: list[str] | None = Field(default=None, max_length=32, description="标签。")

"""ORM 模型导出集合。"""

from secure_notes_api.models.note import Note
from secure_notes_api.models.user import User

__all__ = ["Note", "User"]

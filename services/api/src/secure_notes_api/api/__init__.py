"""路由模块导出集合。"""

from . import auth, health, notes

__all__ = [
    "auth",
    "health",
    "notes",
]

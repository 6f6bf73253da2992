"""路由模块导出集合。"""

from . import auth, health, identities

__all__ = ["auth", "health", "identities"]

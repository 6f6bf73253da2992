"""FastAPI 应用入口点。"""

import logging

from fastapi import FastAPI

from idcore.api.router import api_router
from idcore.core.config import get_settings
from idcore.exceptions import register_exception_handlers
from idcore.middlewares import register_middlewares

settings = get_settings()


def _setup_logging() -> None:
    """初始化日志输出格式与级别。"""
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app() -> FastAPI:
    """创建并配置 FastAPI 应用实例。"""
    _setup_logging()
    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        debug=settings.app_debug,
        description=(
            "身份与凭据核心接口。\n\n"
            "成功统一返回 `{request_id, data, meta}`，失败返回 `{request_id, error}`。\n"
            "任何响应都不包含口令哈希、盐值与双因素密钥。"
        ),
        openapi_tags=[
            {"name": "health", "description": "服务存活与就绪探针。"},
            {"name": "auth", "description": "注册、登录与口令重置。"},
            {"name": "identities", "description": "身份查询。"},
        ],
    )

    register_middlewares(app)
    register_exception_handlers(app)
    app.include_router(api_router, prefix=settings.api_prefix)
    logging.getLogger("idcore").info("app created env=%s prefix=%s", settings.app_env, settings.api_prefix)
    return app


app = create_app()

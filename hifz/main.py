"""FastAPI 入口：路由注册、异常映射与数据库初始化。"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from hifz.api.v1 import router as api_v1_router
from hifz.config import get_settings
from hifz.db import Base, engine
from hifz.errors import (
    ConfigurationError,
    HifzError,
    InvalidStateError,
    NotFoundError,
    UpstreamUnavailable,
)
from hifz.logging import configure_logging, get_logger
from hifz.migrations import run_migrations

logger = get_logger("api")


def _error_body(exc: HifzError, message: str) -> dict:
    return {"detail": message, "code": exc.code}


def create_app() -> FastAPI:
    """应用工厂，便于测试替换依赖。"""

    settings = get_settings()
    configure_logging(settings.log_level)
    app = FastAPI(title="Hifz Progression API", version="0.1.0")

    @app.on_event("startup")
    def init_models() -> None:
        """启动时确保表存在，再补齐旧库缺失的列。"""

        Base.metadata.create_all(bind=engine)
        run_migrations(engine)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(
            status_code=404, content=_error_body(exc, f"{exc}. Please start the task again")
        )

    @app.exception_handler(InvalidStateError)
    async def handle_invalid_state(request: Request, exc: InvalidStateError) -> JSONResponse:
        return JSONResponse(status_code=409, content=_error_body(exc, str(exc)))

    @app.exception_handler(UpstreamUnavailable)
    async def handle_upstream(request: Request, exc: UpstreamUnavailable) -> JSONResponse:
        logger.warning("Upstream unavailable on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=503, content=_error_body(exc, str(exc)))

    @app.exception_handler(ConfigurationError)
    async def handle_configuration(request: Request, exc: ConfigurationError) -> JSONResponse:
        logger.error("Configuration error on %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=500,
            content=_error_body(exc, "Group is misconfigured, please contact an administrator"),
        )

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(api_v1_router)
    return app


app = create_app()

"""Application factory: configuration, database, routers and error handling."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy.engine import Engine
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import settings
from .core.errors import (
    EquipTrackError,
    equiptrack_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from .core.logging import configure_logging
from .db.migrate import run_migrations
from .db.session import Base, engine
from .middlewares import RequestIdMiddleware

# Importing the models registers their tables with ``Base.metadata``.
from .models import equipment as _equipment  # noqa: F401
from .models import history as _history  # noqa: F401
from .models import system as _system  # noqa: F401
from .routers import api_bulk, api_equipment, api_history, api_planning, api_repair, api_systems


def init_db(bind: Engine) -> None:
    Base.metadata.create_all(bind=bind)
    run_migrations(bind)


def create_app(*, bind: Engine | None = None, metrics: bool = True) -> FastAPI:
    configure_logging(settings.LOG_LEVEL)
    init_db(bind or engine)

    app = FastAPI(title=settings.APP_NAME)
    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(EquipTrackError, equiptrack_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    for module in (api_equipment, api_systems, api_history, api_repair, api_bulk, api_planning):
        app.include_router(module.router)

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    if metrics:
        Instrumentator().instrument(app).expose(app)
    return app


def run() -> None:
    import uvicorn

    uvicorn.run("equiptrack.main:create_app", factory=True, host=settings.HOST, port=settings.PORT)


__all__ = ["create_app", "init_db", "run"]

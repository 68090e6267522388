"""Application wiring for the stock ledger service.

Importing the package builds the FastAPI ``app``: tables are created and
upgraded, middleware and error handlers are installed and the API routers are
mounted. ``stockledger.main`` adds logging, metrics and the health probe on
top for the deployed process.
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import settings
from .core.errors import register_exception_handlers
from .db.migrate import run_migrations
from .db.session import Base, engine
from .middlewares import RequestIdMiddleware

# Importing the models registers their tables with ``Base.metadata``.
from .models import device as _device  # noqa: F401
from .models import device_log as _device_log  # noqa: F401

Base.metadata.create_all(bind=engine)
run_migrations(engine)

app = FastAPI(title=settings.APP_NAME)

if settings.ALLOWED_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
app.add_middleware(RequestIdMiddleware)

register_exception_handlers(app)

from .routers import api_auth as api_auth_router  # noqa: E402

app.include_router(api_auth_router.router)

from .routers import api_devices as api_devices_router  # noqa: E402

app.include_router(api_devices_router.router)

from .routers import api_device_logs as api_device_logs_router  # noqa: E402

app.include_router(api_device_logs_router.router)


__all__ = ["app"]

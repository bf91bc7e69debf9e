import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import get_settings
from .core.db import Database
from .core.logging import configure_logging
from .core.responses import register_exception_handlers
from .routes_auth import router as auth_router
from .routes_events import router as events_router
from .routes_guests import router as guests_router
from .routes_menu import router as menu_router
from .routes_overview import router as overview_router
from .routes_staff import router as staff_router
from .routes_tables import router as tables_router
from .routes_upload import router as upload_router
from .routes_whatsapp import router as whatsapp_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings)

    owns_database = getattr(app.state, "db", None) is None
    if owns_database:
        app.state.db = Database.from_settings(settings)
        logger.info(f"Database pool ready ({app.state.db.dialect})")

    if settings.allow_unsigned_sessions:
        logger.warning("ALLOW_UNSIGNED_SESSIONS is on: unsigned session cookies are trusted (development only)")
    if not settings.session_secret:
        logger.warning("SESSION_SECRET is not set: signed sessions cannot be issued or verified")

    try:
        yield
    finally:
        if owns_database:
            await app.state.db.dispose()
            app.state.db = None


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="EventFlow Backend", lifespan=lifespan)
    app.state.db = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    app.include_router(auth_router)
    app.include_router(events_router)
    app.include_router(guests_router)
    app.include_router(menu_router)
    app.include_router(tables_router)
    app.include_router(staff_router)
    app.include_router(overview_router)
    app.include_router(whatsapp_router)
    app.include_router(upload_router)

    @app.get("/health")
    async def healthcheck():
        return {"status": "ok"}

    return app


app = create_app()

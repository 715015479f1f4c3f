"""
Tabroom API application

create_app() builds the FastAPI app for one Settings instance. The database
engine, session factory and participant repository are created in the
lifespan and kept on app.state; nothing connects at import time.

Run with:
    uvicorn tabroom.main:app
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from tabroom import __version__
from tabroom.config import Settings, get_settings, setup_logging
from tabroom.database import (
    close_db, create_engine_from_settings, create_session_factory, init_db
)
from tabroom.errors import get_error_summary, register_exception_handlers
from tabroom.repositories.participant_repository import SqlAlchemyParticipantRepository
from tabroom.routes import router

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    if settings is None:
        settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting application...")
        engine = create_engine_from_settings(settings)
        session_factory = create_session_factory(engine)

        app.state.engine = engine
        app.state.session_factory = session_factory
        app.state.participant_repository = SqlAlchemyParticipantRepository(session_factory)

        try:
            await init_db(engine)
            logger.info("Database connected successfully")
        except Exception as e:
            logger.error(f"Failed to initialize database: {str(e)}")
            await close_db(engine)
            raise

        yield

        logger.info("Shutting down application...")
        await close_db(engine)

    app = FastAPI(
        title="Tabroom API",
        description="Debate tournament draws, judge allocation and debate room role reservation",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    register_exception_handlers(app)

    @app.get("/health", tags=["Health"])
    async def health_check():
        return {
            "status": "healthy",
            "version": __version__,
            "config": settings.to_dict(),
        }

    @app.get("/api/errors/health", tags=["Health"])
    async def error_handling_health():
        return get_error_summary()

    app.include_router(router)
    return app


def build_default_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)
    return create_app(settings)


app = build_default_app()

"""CalcTree API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map CalcTreeError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database and CalculationService initialized on startup via lifespan context manager
    - Shutdown drains background cache writes before disposing connections

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Error handlers live in api/error_handlers.py (register_error_handlers)
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from calctree.api.error_handlers import register_error_handlers
from calctree.api.routes import calculations, health
from calctree.config import get_settings
from calctree.infrastructure.container import (
    close_calculation_service, init_calculation_service,
)
from calctree.infrastructure.database import init_db
from calctree.infrastructure.observability import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    db_manager = init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    init_calculation_service(settings, db_manager)
    logger.info("CalcTree API started")
    yield
    logger.info("CalcTree API shutting down")
    await close_calculation_service()
    await db_manager.close()


app = FastAPI(
    title="CalcTree API", version="1.0.0", lifespan=lifespan,
)

# CORS: configured from settings, not hardcoded
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes: explicit registration
app.include_router(health.router)
app.include_router(calculations.router)

register_error_handlers(app)

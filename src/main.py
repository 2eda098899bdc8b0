"""FastAPI application entry point for the SACCO fraud engine."""

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.middleware.error_handler import register_exception_handlers
from src.api.middleware.logging import StructuredLoggingMiddleware
from src.api.routes.behavior import router as behavior_router
from src.api.routes.decisions import router as decisions_router
from src.api.routes.engine import router as engine_router
from src.api.routes.fraud import router as fraud_router
from src.api.routes.health import router as health_router
from src.api.routes.risk import router as risk_router
from src.api.routes.withdrawals import router as withdrawals_router
from src.config import settings
from src.shared.logging import setup_logging

logger = structlog.get_logger()

# Track app start time for uptime calculation
APP_START_TIME: float = 0.0


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown logic."""
    global APP_START_TIME
    APP_START_TIME = time.time()
    setup_logging(settings.log_level)

    logger.info(
        "fraud_engine_starting",
        app_name=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
    )

    from src.db.database import init_db

    await init_db()

    yield

    logger.info("fraud_engine_shutting_down")


app = FastAPI(
    title="SACCO Fraud Engine",
    description="Rule scans, member risk scoring and fraud decisions for SACCO back-office",
    version=settings.app_version,
    lifespan=lifespan,
)

# CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.debug else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(StructuredLoggingMiddleware)

register_exception_handlers(app)

app.include_router(health_router)
app.include_router(fraud_router)
app.include_router(withdrawals_router)
app.include_router(behavior_router)
app.include_router(risk_router)
app.include_router(decisions_router)
app.include_router(engine_router)


def get_uptime() -> int:
    """Get application uptime in seconds."""
    if APP_START_TIME == 0.0:
        return 0
    return int(time.time() - APP_START_TIME)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )

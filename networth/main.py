"""
FastAPI Main Application
Net worth aggregation API: FX-normalized consolidated view and section reordering
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from networth.config import settings
from networth.core.logging import setup_logging
from networth.infrastructure.db.database import async_session_factory, close_db, init_db
from networth.infrastructure.fx.provider_factory import get_fx_provider
from networth.realtime.snapshot_queue import SnapshotQueue, SnapshotWorker, dispatch_handler

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager
    Database, FX provider and the snapshot worker
    """
    logger.info("Starting net worth API (%s)", settings.APP_ENV)

    await init_db()
    logger.info("Database initialized")

    app.state.fx_provider = get_fx_provider()
    logger.info("FX provider: %s", settings.FX_PROVIDER)

    # scope_id -> PortfolioAggregationService, registered via POST /scopes/{scope_id}/watch
    app.state.aggregation_services = {}
    app.state.session_factory = async_session_factory
    app.state.snapshot_queue = SnapshotQueue()
    snapshot_worker = SnapshotWorker(
        app.state.snapshot_queue,
        dispatch_handler(app.state.aggregation_services),
    )
    snapshot_worker.start()

    yield

    logger.info("Shutting down net worth API")
    await snapshot_worker.stop()
    close_fx = getattr(app.state.fx_provider, "close", None)
    if close_fx is not None:
        await close_fx()
    await close_db()
    logger.info("Database connections closed")


app = FastAPI(
    title="Net Worth Aggregation API",
    description="Multi-currency portfolio consolidation and section ordering",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


from networth.api.routes import health, portfolio  # noqa: E402

app.include_router(health.router, tags=["Health"])
app.include_router(portfolio.router, prefix="/api/v1/portfolio", tags=["Portfolio"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("networth.main:app", host=settings.API_HOST, port=settings.API_PORT, reload=settings.DEBUG)

"""Main application entry point."""

import logging

# Configure logging FIRST, before any other imports
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)

# Reduce noise from third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("asyncio").setLevel(logging.WARNING)

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.strategy import list_strategies

from decision.api import router
from decision.config import get_settings
from decision.desk_config import load_desk_config
from decision.service import build_aggregator
from decision.sources import RemoteAnalyzerClient

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting Signal Desk...")
    settings = get_settings()
    desk = load_desk_config(Path(settings.config_path) if settings.config_path else None)

    client = None
    if settings.analyzer_base_url:
        client = RemoteAnalyzerClient(
            settings.analyzer_base_url,
            api_key=settings.analyzer_api_key or desk.analyzer_api_key,
            timeout=settings.source_timeout,
        )

    app.state.aggregator = build_aggregator(settings, desk, client)
    logger.info("%d strategies registered", len(list_strategies()))

    yield

    # Shutdown
    logger.info("Shutting down...")
    app.state.aggregator = None
    if client is not None:
        await client.close()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Signal Desk",
    description="Indicator signals, backtests, aggregation and precision gate for crypto markets",
    version="0.1.0",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, restrict this
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include REST routes
app.include_router(router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Signal Desk",
        "version": "0.1.0",
        "docs": "/docs",
        "strategies": len(list_strategies()),
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


def main():
    """Run the application."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "decision.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()

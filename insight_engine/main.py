"""
Main FastAPI application.

The lifespan is the composition root: it builds the aggregator (and with
it the shared rate limiter, circuit breaker and cache) once, and tears it
down on shutdown.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from insight_engine.core.config import get_settings
from insight_engine.services.factory import build_aggregator
from insight_engine.api.v1 import market_data

# Configure logging
logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Runs on startup and shutdown.
    """
    # Startup
    settings = get_settings()
    logger.info("Starting Insight Engine market data service")
    logger.info(f"Log level: {settings.log_level}")

    missing = settings.missing_credentials()
    if missing:
        logger.warning(
            f"No credentials for {', '.join(missing)}; "
            f"these providers will be skipped"
        )

    aggregator = build_aggregator(settings)
    aggregator.cache.start_sweeper(settings.cache_sweep_interval)
    app.state.aggregator = aggregator

    yield

    # Shutdown
    logger.info("Shutting down")
    await aggregator.cache.stop_sweeper()
    await aggregator.close()


# Create FastAPI app
app = FastAPI(
    title="Insight Engine Market Data Service",
    description="Resilient multi-source property and market data aggregation",
    version="0.1.0",
    lifespan=lifespan
)

# CORS middleware (configure as needed)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(market_data.router, prefix="/api/v1")


@app.get("/")
def root():
    """Root endpoint with service info."""
    return {
        "service": "Insight Engine Market Data Service",
        "version": "0.1.0",
        "sources": ["listings", "public_records", "valuation"],
        "docs": "/docs"
    }


@app.get("/health")
def health_check():
    """
    Health check endpoint.

    Healthy when at least one provider is configured and its circuit is
    not open; degraded otherwise.
    """
    aggregator = getattr(app.state, "aggregator", None)
    if aggregator is None:
        return {"status": "starting", "service": "running", "providers": {}}

    providers = {}
    for name, status in aggregator.get_service_status()["services"].items():
        if not status["configured"]:
            providers[name] = "not_configured"
        else:
            providers[name] = status["circuit"]["state"]

    usable = [state for state in providers.values() if state in ("closed", "half_open")]
    return {
        "status": "healthy" if usable else "degraded",
        "service": "running",
        "providers": providers,
    }

"""
bomcalc API
FastAPI backend for recipe-based material requirement planning and
unit-aware order pricing (carpets, textiles, bulk raw materials).
"""
import os
import logging
import time
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

# Load .env before bomcalc.db reads DATABASE_URL (no-op when the file is missing)
load_dotenv()

from bomcalc.db import is_configured as db_is_configured  # noqa: E402
from bomcalc.services.logging_config import setup_logging  # noqa: E402
from bomcalc.services.middleware import RequestTimingMiddleware, SecurityHeadersMiddleware  # noqa: E402
from bomcalc.services.perf_monitor import tracker as perf_tracker  # noqa: E402

_log_level = os.getenv("LOG_LEVEL", "INFO")
_json_logs = os.getenv("LOG_FORMAT", "json").lower() != "text"
setup_logging(level=_log_level, json_output=_json_logs)
logger = logging.getLogger("bomcalc-api")

# Record process start time for uptime calculation
_PROCESS_START = time.monotonic()

if not db_is_configured():
    logger.warning("MISSING env var: DATABASE_URL, running in dev mode")


@asynccontextmanager
async def lifespan(app: FastAPI):
    from bomcalc.db import init_db
    await init_db()
    yield
    from bomcalc.db import engine
    await engine.dispose()


app = FastAPI(
    title="bomcalc API",
    version="1.0.0",
    description="Recipe requirement resolution and unit-aware pricing",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# CORS: restricted to allowed origins from env
# ---------------------------------------------------------------------------
_cors_default = "http://localhost:3000,http://localhost:8000"
cors_origins = [o.strip() for o in os.getenv("CORS_ORIGINS", _cors_default).split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "X-Requested-With", "X-Request-ID"],
)
app.add_middleware(SecurityHeadersMiddleware)
# Request timing + X-Request-ID must be outermost so it wraps all other middleware
app.add_middleware(RequestTimingMiddleware)

# Routers
from bomcalc.api.pricing_routes import router as pricing_router  # noqa: E402
from bomcalc.api.recipe_routes import router as recipe_router  # noqa: E402

app.include_router(pricing_router)
app.include_router(recipe_router)


@app.get("/health")
async def health_check():
    return {
        "status": "active",
        "version": "1.0.0",
        "db_configured": db_is_configured(),
    }


@app.get("/metrics")
async def metrics():
    """
    Calculation metrics, sourced from the in-process PerformanceTracker
    singleton.
    """
    snapshot = perf_tracker.get_metrics()
    return {
        "uptime_seconds": round(time.monotonic() - _PROCESS_START, 1),
        **snapshot,
    }

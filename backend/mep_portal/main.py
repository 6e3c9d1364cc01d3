"""
MEP Portal API v1.0
FastAPI backend for electrical load calculation of residential and mixed-use
societies: connected load, maximum demand, transformer sizing and MSEDCL
compliance flags. Async PostgreSQL storage for saved calculations.
"""
import os
import sys
import logging
import time
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env before reading config (no-op when the file is missing)
load_dotenv()

from mep_portal.config import APP_VERSION, CORS_ORIGINS, LOG_JSON, LOG_LEVEL  # noqa: E402
from mep_portal.db import db_configured, init_db  # noqa: E402
from mep_portal.services.logging_config import setup_logging  # noqa: E402
from mep_portal.services.middleware import RequestTimingMiddleware  # noqa: E402
from mep_portal.services.perf_monitor import tracker as perf_tracker  # noqa: E402
from mep_portal.api.electrical_load_routes import router as electrical_load_router  # noqa: E402

setup_logging(level=LOG_LEVEL, json_output=LOG_JSON)
logger = logging.getLogger("mep-portal-api")

# Record process start time for uptime calculation
_PROCESS_START = time.monotonic()

if not os.getenv("DATABASE_URL"):
    logger.warning("MISSING env var: DATABASE_URL — running in dev mode (calculate only, no saving)")


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield


app = FastAPI(
    title="MEP Portal API",
    version=APP_VERSION,
    description="Electrical load calculation and MSEDCL compliance for building societies",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "OPTIONS"],
    allow_headers=["Content-Type", "Accept", "X-Requested-With", "X-Request-ID"],
    expose_headers=["X-Request-ID", "X-Process-Time"],
)
# Request timing + X-Request-ID must be outermost so it wraps all other middleware
app.add_middleware(RequestTimingMiddleware)

app.include_router(electrical_load_router)


@app.get("/health")
async def health_check():
    return {
        "status": "active",
        "version": APP_VERSION,
        "db_configured": db_configured(),
    }


@app.get("/metrics")
async def metrics():
    """
    Calculation throughput, average duration, per-stage timings, error counts
    and process memory. Sourced from the in-process CalculationTracker.
    """
    uptime_seconds = round(time.monotonic() - _PROCESS_START, 1)

    memory_mb: float = 0.0
    try:
        import resource  # Unix only
        usage = resource.getrusage(resource.RUSAGE_SELF)
        # ru_maxrss is in kilobytes on Linux, bytes on macOS
        if sys.platform == "darwin":
            memory_mb = round(usage.ru_maxrss / (1024 * 1024), 2)
        else:
            memory_mb = round(usage.ru_maxrss / 1024, 2)
    except ImportError:
        memory_mb = 0.0

    snapshot = perf_tracker.get_metrics()
    return {
        "uptime_seconds": uptime_seconds,
        "memory_usage_mb": memory_mb,
        **snapshot,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("mep_portal.main:app", host="0.0.0.0", port=8000, reload=True)

"""
Unified backend entry point for the class reminder service.

Architecture:
- One Python process, one asyncio event loop
- FastAPI serves the cron trigger endpoint (called by QStash every 5 minutes)
- Optionally, an in-process APScheduler interval job runs the same dispatch
  (LOCAL_REMINDER_TRIGGER=true, for development without QStash)

We use FastAPI's lifespan to manage startup/shutdown.

Run with: python main.py [--port PORT] [--local-trigger]
"""

import logging
import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path

# Set up import paths before any local imports
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from dotenv import load_dotenv

# Load .env.local first (if exists), then .env as fallback
# .env.local is gitignored and used for local dev overrides
load_dotenv(project_root / ".env.local")  # Local overrides (gitignored)
load_dotenv()  # Fallback to .env

import sentry_sdk
from fastapi import FastAPI

from core.config import check_required_env_vars, get_reminder_settings
from core.database import close_engine
from core.notifications.channels.telegram import close_client
from core.notifications.scheduler import init_scheduler, shutdown_scheduler

# Import routes using full paths (don't add web_api to sys.path to avoid main.py conflict)
from web_api.routes.cron import router as cron_router

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

if os.environ.get("SENTRY_DSN"):
    sentry_sdk.init(
        dsn=os.environ["SENTRY_DSN"],
        environment=os.environ.get("RAILWAY_ENVIRONMENT", "development"),
        traces_sample_rate=0.0,
    )


def _local_trigger_enabled() -> bool:
    return os.getenv("LOCAL_REMINDER_TRIGGER", "").lower() in ("true", "1", "yes")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan context manager.

    Validates configuration and starts the local trigger if enabled.
    """
    ok, warnings = check_required_env_vars()
    for warning in warnings:
        print(warning)
    if not ok:
        raise RuntimeError("Missing required environment variables")

    if _local_trigger_enabled():
        init_scheduler(get_reminder_settings().interval_minutes)

    yield  # FastAPI runs here

    print("Shutting down...")
    shutdown_scheduler()
    await close_client()
    await close_engine()  # Close database connections


# Create FastAPI app with lifespan
app = FastAPI(
    title="Class Reminder Service",
    lifespan=lifespan,
)

# Include routers
app.include_router(cron_router)


@app.get("/")
async def root():
    """API status."""
    return {"status": "ok"}


@app.get("/health")
async def health():
    """Health check endpoint with detailed status."""
    return {
        "status": "healthy",
        "local_trigger": _local_trigger_enabled(),
    }


if __name__ == "__main__":
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="Class Reminder Service")
    parser.add_argument(
        "--local-trigger",
        action="store_true",
        help="Run reminder dispatch in-process on the configured interval",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to run the server on (default: 8000)",
    )
    args = parser.parse_args()

    # Set env var so it persists across uvicorn reloads
    if args.local_trigger:
        os.environ["LOCAL_REMINDER_TRIGGER"] = "true"

    # Pass app object directly (not string) to avoid module reimport issues
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=args.port,
    )

"""
Talent Pool Engagement API - Main Application Entry Point

This module initializes the FastAPI application with:
- Database connection and schema initialization
- Background scheduler for invitation expiry and outbox flushing
- Domain error handling and Prometheus metrics
- CORS middleware for frontend communication
- API router registration

Architecture:
    FastAPI App
    ├── Lifespan Management (startup/shutdown)
    ├── CORS Middleware (localhost:3000)
    ├── Prometheus Middleware (/metrics)
    └── API Router
        ├── /auth - Recruiter session endpoints
        ├── /talent-pool - Browse, invite, source, notes, analytics
        └── /invitations - Public invitation links (view, accept, decline)
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from talentpool.config import get_settings
from talentpool.database import init_db
from talentpool.api import api_router
from talentpool.middleware import setup_metrics
from talentpool.scheduler import start_scheduler, stop_scheduler
from talentpool.services.errors import TalentPoolError

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle events.

    Startup:
        1. Configure logging
        2. Initialize database tables
        3. Start background scheduler (when enabled)

    Shutdown:
        1. Gracefully stop the scheduler

    Yields:
        Control to the application during its runtime
    """
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    await init_db()
    if settings.scheduler_enabled:
        start_scheduler()
    yield
    if settings.scheduler_enabled:
        stop_scheduler()


app = FastAPI(
    title="Talent Pool Engagement API",
    description="Invite, source and score talent pool candidates",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_metrics(app)


@app.exception_handler(TalentPoolError)
async def talent_pool_error_handler(request: Request, exc: TalentPoolError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "reason": exc.reason},
    )


app.include_router(api_router)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}

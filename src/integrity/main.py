"""FastAPI application for the account integrity engine.

Provides:
- Credential validation (password strength, breach lookup, email checks)
- Login recording with background multi-account correlation
- Ban gate, bans and appeals
- Admin review of multi-account links and the security event log

Flow:
1. POST /integrity/password/validate, /integrity/email/validate - pre-auth
2. GET /integrity/bans/{user_id}/status - on every authentication attempt
3. POST /integrity/logins - after every attempt; successes are correlated
4. /admin/integrity/* - review links, ban, unban, decide appeals
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from integrity import __version__
from integrity.db.database import init_db
from integrity.routes.admin import router as admin_router
from integrity.routes.integrity import router as integrity_router
from integrity.security.login_recorder import CorrelationWorker

logger = logging.getLogger("integrity.api")


# =============================================================================
# App Lifecycle
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage app lifecycle - create tables, start/stop correlation worker."""
    await init_db()

    worker = CorrelationWorker()
    await worker.start()
    app.state.correlation_worker = worker
    logger.info("Correlation worker started")
    yield
    await worker.stop()
    app.state.correlation_worker = None


app = FastAPI(
    title="Account Integrity API",
    description="Multi-account detection, bans and credential validation",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(integrity_router)
app.include_router(admin_router)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: str
    correlation_worker_running: bool
    correlation_queue_depth: int


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    worker: CorrelationWorker | None = getattr(
        app.state, "correlation_worker", None
    )
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc).isoformat(),
        correlation_worker_running=bool(worker and worker.running),
        correlation_queue_depth=worker.pending if worker else 0,
    )

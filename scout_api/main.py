"""
FastAPI application for the Basketball Scouting API.

Public reads (games, players) and scout-owned reports live under ``/api``;
``/api/admin`` holds roster corrections and sync triggers. The sync
scheduler runs in-process only when ``SCHEDULER_ENABLED`` is set, so a
deployment can keep it on a single node.
"""
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from sqlalchemy import text

from scout_api.api.errors import register_error_handlers
from scout_api.api.routes import admin_players, admin_sync, games, players, reports
from scout_api.core import metrics
from scout_api.core import scheduler as automation
from scout_api.core.config import settings
from scout_api.core.database import init_db, session_scope
from scout_api.core.logging import configure_logging, get_logger
from scout_api.core.middleware import CorrelationIdMiddleware

configure_logging(level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)
logger = get_logger(__name__)

ENDPOINTS = {
    "games": "/api/games/today",
    "players": "/api/players",
    "reports": "/api/reports",
    "admin": {
        "players": "/api/admin/players",
        "sync": "/api/admin/sync/{job}",
        "sync_status": "/api/admin/sync/status",
        "deduplicate": "/api/admin/deduplicate",
    },
    "docs": "/docs",
    "health": "/health",
    "metrics": "/metrics",
}


def client_address(request: Request) -> str:
    """Rate-limit key: first X-Forwarded-For hop behind the load balancer."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


limiter = Limiter(
    key_func=client_address,
    default_limits=["60/minute"],
    storage_uri=settings.REDIS_URL if settings.RATE_LIMIT_STORAGE == "redis" else "memory://",
    enabled=settings.RATE_LIMIT_ENABLED,
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION} ({settings.ENVIRONMENT})")
    init_db()
    if settings.SCHEDULER_ENABLED:
        await automation.start_scheduler()
    metrics.update_scheduler_metrics()

    yield

    if settings.SCHEDULER_ENABLED:
        await automation.stop_scheduler()
    metrics.update_scheduler_metrics()
    logger.info(f"{settings.APP_NAME} stopped")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="NBA schedule and roster aggregation with structured scouting reports",
    lifespan=lifespan,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
register_error_handlers(app)

# Sits inside CORS, which is added after it
app.add_middleware(CorrelationIdMiddleware)

# Instrument before the routers are included
Instrumentator().instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for module in (games, players, reports, admin_players, admin_sync):
    app.include_router(module.router, prefix="/api")


@app.get("/")
@limiter.limit("60/minute")
async def root(request: Request):
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "endpoints": ENDPOINTS,
    }


def _database_component() -> Dict[str, Any]:
    try:
        with session_scope() as db:
            db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return {"status": "unhealthy", "error": str(e)}
    return {"status": "connected"}


def _scheduler_component() -> Dict[str, Any]:
    running = automation.get_scheduler()
    if running is None or not running.running:
        return {"status": "stopped" if settings.SCHEDULER_ENABLED else "disabled"}
    return {
        "status": "running",
        "jobs": [{"id": job.id, "name": job.name} for job in running.scheduler.get_jobs()],
    }


@app.get("/health")
@limiter.limit("120/minute")
async def health_check(request: Request):
    """200 while the database answers; 503 with the failing component otherwise."""
    components = {
        "database": _database_component(),
        "scheduler": _scheduler_component(),
    }
    healthy = components["database"]["status"] == "connected"
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "healthy" if healthy else "degraded",
            "version": settings.APP_VERSION,
            "components": components,
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("scout_api.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)

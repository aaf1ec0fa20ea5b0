"""
FastAPI application entry point
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.api.v1.api import api_router
from app.core.logger import logger
from app.db.database import init_db
from app.services.background_jobs import case_priority_scheduler, start_scheduler, shutdown_scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.DEBUG:
        # Local runs only; production schemas are migrated separately
        init_db()
    start_scheduler()
    logger.info("%s started (scheduler enabled: %s)", settings.APP_NAME, settings.SCHEDULER_ENABLED)
    yield
    shutdown_scheduler()


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url="/openapi.json" if settings.DEBUG else None,
)

# ── Routers ───────────────────────────────────────────────────────────────────
app.include_router(api_router, prefix="/api/v1")

# ── CORS ──────────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


@app.get("/")
def read_root():
    return {
        "message": f"{settings.APP_NAME} case scheduler is running",
        "scheduler_state": case_priority_scheduler.state.value,
    }


@app.get("/health")
def health_check():
    return {"status": "healthy"}

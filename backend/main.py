"""OncoSight backend - FastAPI entry point.

Serves canonical oncology patient records, deterministic longitudinal
analytics, reconciled LLM insights and the clinical summary export contract.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import asyncio
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.config.settings import get_settings
from backend.config.logging_config import setup_logging, get_logger, bind_request_context
from backend.api.responses import HealthCheckResponse
from backend.api.routes import patients
from backend.patient_data.data_watcher import PatientDataWatcher
from backend.patient_data.exceptions import PatientSourceError
from backend.patient_data.repository import get_patient_repository
from backend.reasoning.insight_cache import get_insight_cache

VERSION = "0.1.0"

settings = get_settings()
setup_logging(log_level=settings.log_level)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: preload patients, optionally watch the CSV."""
    logger.info("Starting OncoSight backend", env=settings.app_env)

    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY not set, insights will use fallback providers or deterministic output")
    if not settings.anthropic_api_key:
        logger.warning("ANTHROPIC_API_KEY not set, Claude summary fallback unavailable")

    repository = get_patient_repository()
    try:
        count = await asyncio.to_thread(repository.reload)
        logger.info("Patient data loaded", patients=count, path=str(repository.csv_path))
    except PatientSourceError as e:
        logger.error("Patient data could not be loaded at startup", error=str(e))

    watcher = None
    if settings.watch_data_file:
        watcher = PatientDataWatcher(repository, get_insight_cache())
        watcher.start()

    yield

    if watcher is not None:
        watcher.stop()
    logger.info("Shutting down OncoSight backend")


app = FastAPI(
    title="OncoSight Backend",
    description="Oncology patient record normalization, longitudinal comparison and insight reconciliation",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", "X-Requested-With"],
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    bind_request_context(request_id=str(uuid.uuid4())[:8], path=request.url.path)
    return await call_next(request)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    error_id = str(uuid.uuid4())[:8]
    logger.error("Unhandled exception", error_id=error_id, error=str(exc), path=request.url.path, exc_info=True)
    return JSONResponse(status_code=500, content={"error": "Internal server error", "error_id": error_id})


# Routes
app.include_router(patients.router, prefix="/api/v1")


@app.get("/health", response_model=HealthCheckResponse)
async def health_check():
    repository = get_patient_repository()
    return HealthCheckResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=VERSION,
        components={
            "patient_data": repository.is_loaded,
            "gemini_configured": bool(settings.gemini_api_key),
            "claude_configured": bool(settings.anthropic_api_key),
            "azure_openai_configured": bool(settings.azure_openai_api_key and settings.azure_openai_endpoint),
        },
    )


@app.get("/")
async def root():
    return {
        "name": "OncoSight Backend",
        "version": VERSION,
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("backend.main:app", host="0.0.0.0", port=5000, reload=True)

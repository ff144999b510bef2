from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import logging
import time

from driftwatch.api.routes import drift as drift_router
from driftwatch.core.config import settings
from driftwatch.core.errors import DriftWatchError
from driftwatch.core.observability import initialize_metrics, API_REQUEST_DURATION

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.DEBUG else logging.WARNING,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler()]
)

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="DriftWatch API drift detection",
    version=settings.VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

# Set up observability
if settings.METRICS_ENABLED:
    initialize_metrics(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "X-Requested-With"],
)

# Add middleware to track API request duration
@app.middleware("http")
async def add_metrics_middleware(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    API_REQUEST_DURATION.labels(
        endpoint=request.url.path,
        method=request.method,
        status_code=response.status_code
    ).observe(duration)

    return response

@app.exception_handler(DriftWatchError)
async def drift_error_handler(request: Request, exc: DriftWatchError):
    """Engine errors are caller errors: bad snapshots or not enough history"""
    logger.warning(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=422,
        content={"detail": exc.message, "code": exc.code, "guidance": exc.guidance},
    )

app.include_router(drift_router.router, prefix=settings.API_V1_STR)

@app.get("/health")
async def health():
    return {"status": "ok", "version": settings.VERSION}

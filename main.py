"""GeoPhoto: FastAPI backend

Per-user photo library: uploads land in blob storage, GPS position and
capture time are read from EXIF, and photos are listed, placed on a map,
relocated or deleted.
"""

import logging
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.concurrency import run_in_threadpool

from app.api import auth, photos
from app.api.dependencies import load_principal
from app.core.auth_gate import AuthenticationGate
from app.core.config import settings
from app.core.errors import PhotoError
from app.core.security import token_service
from app.observability import bind_request_id, setup_structured_logging
from app.services.blob_service import blob_service

setup_structured_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("GeoPhoto starting up")
    if settings.BLOB_ENSURE_BUCKET:
        blob_service.ensure_bucket()
    yield
    logger.info("GeoPhoto shutting down")


app = FastAPI(
    title="GeoPhoto API",
    description="Photo uploads with EXIF GPS and capture-time extraction.",
    version="0.1.0",
    lifespan=lifespan,
)

auth_gate = AuthenticationGate(token_service)

# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    expose_headers=["Authorization"],
    max_age=3600,
)


@app.middleware("http")
async def authentication_middleware(request: Request, call_next):
    # Runs ahead of every route, including the login endpoint
    request.state.principal = await run_in_threadpool(
        auth_gate.authenticate,
        request.method,
        request.url.path,
        request.headers.get("Authorization"),
        load_principal,
    )
    return await call_next(request)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id
    bind_request_id(request_id)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

@app.exception_handler(PhotoError)
async def photo_error_handler(request: Request, exc: PhotoError):
    request_id = getattr(request.state, "request_id", "unknown")
    if exc.status_code >= 500:
        logger.error("Photo operation failed", exc_info=exc, extra={"request_id": request_id})
    else:
        logger.warning("Photo request rejected: %s", exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "request_id": request_id},
    )


@app.exception_handler(500)
async def internal_error_handler(request: Request, exc: Exception):
    request_id = getattr(request.state, "request_id", "unknown")
    logger.error("Internal error", exc_info=exc, extra={"request_id": request_id})
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "request_id": request_id},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    request_id = getattr(request.state, "request_id", "unknown")
    return JSONResponse(
        status_code=422,
        content={
            "detail": jsonable_encoder(exc.errors()),
            "request_id": request_id,
        },
    )


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(auth.router, prefix=settings.API_PREFIX)
app.include_router(photos.router, prefix=settings.API_PREFIX)

# Files uploaded before blob storage existed
_upload_dir = Path(settings.UPLOAD_DIR)
_upload_dir.mkdir(parents=True, exist_ok=True)
app.mount(settings.STATIC_PATH_PREFIX.rstrip("/"), StaticFiles(directory=str(_upload_dir)), name="uploads")

# ---------------------------------------------------------------------------
# Prometheus
# ---------------------------------------------------------------------------

Instrumentator().instrument(app).expose(app, include_in_schema=False)


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@app.get("/health", tags=["system"])
def health():
    return {"status": "ok"}

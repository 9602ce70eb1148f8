"""
Application entry point for the Virtual Patient backend.
"""

from contextlib import asynccontextmanager

import mlflow
import sentry_sdk
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.common.mlflow_control import mlflow_enabled
from app.core.rate_limit import limiter, rate_limit_exceeded_handler
from app.patient_service.api.chat_routes import router as chat_router
from app.patient_service.config import settings
from app.patient_service.services.case_loader import load_case_document
from app.patient_service.utils.logger import get_logger

logger = get_logger(__name__)


# =========================================================
# Lifespan
# =========================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting application")

    # Missing or malformed case data is fatal: raising here aborts startup
    load_case_document()
    app.state.case_loaded = True

    if mlflow_enabled():
        mlflow.set_tracking_uri(settings.MLFLOW_TRACKING_URI)
        mlflow.set_experiment("virtual-patient")
        logger.info("MLflow tracking enabled")

    yield

    logger.info("Shutting down application")


# =========================================================
# Sentry (prod only)
# =========================================================
if settings.ENV == "prod" and settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        integrations=[
            FastApiIntegration(),
            StarletteIntegration(),
        ],
        traces_sample_rate=0.1,
        environment=settings.ENV,
    )
    logger.info("Sentry initialized for error tracking")


# =========================================================
# App Init
# =========================================================
app = FastAPI(
    lifespan=lifespan,
    title="Virtual Patient",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# =========================================================
# Rate Limiting
# =========================================================
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


# =========================================================
# Error bodies: always {"error": "..."}
# =========================================================
@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.warning(
        "Rejected malformed request body",
        extra={"path": request.url.path, "errors": len(exc.errors())},
    )
    return JSONResponse(status_code=400, content={"error": "Invalid request body"})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception", extra={"path": request.url.path})
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# =========================================================
# Request Logging
# =========================================================
@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(
        "Incoming request",
        extra={
            "method": request.method,
            "url": str(request.url),
        },
    )
    return await call_next(request)


# =========================================================
# Routers
# =========================================================
app.include_router(chat_router)


def run() -> None:
    """Serve the API with uvicorn on the configured port."""
    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.PORT)


if __name__ == "__main__":
    run()

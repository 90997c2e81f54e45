# ================================
# MAIN APPLICATION (main.py)
# ================================

from datetime import datetime, timezone
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from app.config import settings
from app.core.database import engine
from app.core.exceptions import AppException, BookingConflictError, ValidationMismatchError
from app.core.middleware import (
    RequestContextMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware
)
from app.core.scheduler import scheduler, initialize_scheduler
from app.api import API_VERSION, API_DESCRIPTION
from app.schemas.base import ErrorResponse

# API Routes
from app.api.v1 import fees, bookings, payments

import logging
import uvicorn

# ================================
# LOGGING CONFIGURATION
# ================================

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# ================================
# APPLICATION LIFECYCLE
# ================================

def database_available() -> bool:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database check failed: {e}")
        return False

def run_database_migrations():
    """Upgrade the schema to the latest Alembic revision"""
    from alembic.config import Config
    from alembic import command

    command.upgrade(Config("alembic.ini"), "head")
    logger.info("Database migrations completed")

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME}")

    if not database_available():
        raise RuntimeError("Database is not reachable")
    if settings.RUN_MIGRATIONS_ON_STARTUP and not settings.DEBUG:
        run_database_migrations()

    # Sweep startup failures do not block the API
    try:
        initialize_scheduler()
        await scheduler.start()
    except Exception as e:
        logger.error(f"Failed to start background scheduler: {e}")

    yield

    logger.info(f"Shutting down {settings.APP_NAME}")
    await scheduler.stop()
    engine.dispose()

# ================================
# FASTAPI APPLICATION
# ================================

app = FastAPI(
    title=settings.APP_NAME,
    version=API_VERSION,
    description=API_DESCRIPTION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan
)

# ================================
# MIDDLEWARE CONFIGURATION
# ================================

# Added last runs first: the request context wraps everything else
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Process-Time"]
)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(RequestContextMiddleware)

# ================================
# EXCEPTION HANDLERS
# ================================

def error_response(request: Request, status_code: int, detail, error_code=None, **extra) -> JSONResponse:
    content = {
        "detail": detail,
        "error_code": error_code,
        **extra,
        "request_id": getattr(request.state, "request_id", None)
    }
    return JSONResponse(status_code=status_code, content=content)

@app.exception_handler(BookingConflictError)
async def booking_conflict_handler(request: Request, exc: BookingConflictError):
    return error_response(
        request, exc.status_code, exc.detail, exc.error_code,
        conflicting_bookings=exc.conflicting_bookings
    )

@app.exception_handler(ValidationMismatchError)
async def validation_mismatch_handler(request: Request, exc: ValidationMismatchError):
    return error_response(
        request, exc.status_code, exc.detail, exc.error_code,
        expected_total=exc.expected_total,
        difference=exc.difference
    )

@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    return error_response(request, exc.status_code, exc.detail, exc.error_code)

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return error_response(request, exc.status_code, exc.detail)

@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
    detail = str(exc) if settings.DEBUG else "Internal server error"
    return error_response(request, 500, detail, "INTERNAL_ERROR")

# ================================
# HEALTH CHECK ENDPOINTS
# ================================

@app.get("/health", tags=["Health"])
async def health_check():
    return {"status": "healthy", "service": settings.APP_NAME, "version": API_VERSION}

@app.get("/health/detailed", tags=["Health"])
async def detailed_health_check():
    """Database reachability and background job state"""
    database_ok = database_available()

    return {
        "status": "healthy" if database_ok else "degraded",
        "service": settings.APP_NAME,
        "version": API_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": "healthy" if database_ok else "unhealthy",
            "scheduler": {
                "running": scheduler.running,
                "tasks": scheduler.get_task_status()
            }
        }
    }

@app.get("/ready", tags=["Health"])
async def readiness_check():
    if not database_available():
        raise HTTPException(status_code=503, detail="Service not ready")
    return {"status": "ready"}

# ================================
# API ROUTES
# ================================

app.include_router(
    fees.router,
    prefix="/api/v1/fees",
    tags=["Service Fees"]
)

app.include_router(
    bookings.router,
    prefix="/api/v1",
    tags=["Bookings"],
    responses={
        401: {"model": ErrorResponse, "description": "Caller id missing or malformed"},
        403: {"model": ErrorResponse, "description": "Caller lacks the role for this action"},
        404: {"model": ErrorResponse, "description": "Service or booking not found"},
        409: {"model": ErrorResponse, "description": "Slot taken or status change not allowed"}
    }
)

app.include_router(
    payments.router,
    prefix="/api/v1/payments",
    tags=["Payments"],
    responses={
        401: {"model": ErrorResponse, "description": "Caller id missing or malformed"},
        409: {"model": ErrorResponse, "description": "Application not payable or a payment is already in progress"},
        422: {"model": ErrorResponse, "description": "Submitted total does not match the server-side fee"},
        502: {"model": ErrorResponse, "description": "Payment processor error"}
    }
)

@app.get("/", tags=["Root"])
async def root():
    return {
        "service": settings.APP_NAME,
        "version": API_VERSION,
        "docs": "/docs" if settings.DEBUG else None
    }

if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )

# ================================
# MIDDLEWARE (core/middleware.py)
# ================================

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
import time
import uuid
import logging

from app.core.database import SessionLocal

logger = logging.getLogger(__name__)

class RequestContextMiddleware(BaseHTTPMiddleware):
    """Request id, request-scoped database session and timing headers"""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        db = SessionLocal()
        request.state.db = db

        try:
            response = await call_next(request)

            process_time = time.time() - start_time
            response.headers["X-Process-Time"] = f"{process_time:.4f}"
            response.headers["X-Request-ID"] = request_id

            return response

        except Exception as e:
            db.rollback()
            raise e
        finally:
            db.close()

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request and its outcome"""

    async def dispatch(self, request: Request, call_next):
        logger.info(
            f"Request: {request.method} {request.url.path}",
            extra={
                "request_id": getattr(request.state, "request_id", None),
                "method": request.method,
                "path": request.url.path,
                "ip_address": request.client.host if request.client else None
            }
        )

        response = await call_next(request)
        self._log_response(request, response)

        return response

    def _log_response(self, request: Request, response: Response):
        log = logger.warning if response.status_code >= 500 else logger.info
        log(
            f"Response: {response.status_code} {request.method} {request.url.path}",
            extra={
                "request_id": getattr(request.state, "request_id", None),
                "status_code": response.status_code
            }
        )

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds security headers to every response"""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cache-Control"] = "no-store"

        if request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response

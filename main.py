"""Gatekeeper - Account and Credential Service."""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from gatekeeper.config import get_settings
from gatekeeper.dependencies import get_event_dispatcher
from gatekeeper.exceptions import InfrastructureError
from gatekeeper.routers import admin_router, auth_router
from gatekeeper.services.jwt import get_token_service

VERSION = "0.1.0"

# Logging
logger = logging.getLogger("gatekeeper")
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    for warning in settings.validate():
        logger.warning("Config: %s", warning)

    # Fails startup with ConfigurationError when JWT_SECRET_KEY is missing.
    get_token_service()
    logger.info("Gatekeeper %s started (%s)", VERSION, settings.APP_ENV)
    yield

    notifier = get_event_dispatcher().notifier
    aclose = getattr(notifier, "aclose", None)
    if aclose is not None:
        await aclose()


app = FastAPI(title="Gatekeeper", version=VERSION, lifespan=lifespan)


# --- Security headers middleware ---
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Cache-Control"] = "no-store"
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
        return response


# --- Request size limit middleware ---
class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    MAX_BODY_SIZE = 64 * 1024  # credentials and profile fields only

    async def dispatch(self, request: Request, call_next) -> Response:
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self.MAX_BODY_SIZE:
            return JSONResponse(status_code=413, content={"detail": "Request body too large"})
        return await call_next(request)


# --- Audit logging middleware ---
class AuditLogMiddleware(BaseHTTPMiddleware):
    AUDIT_PREFIXES = ("/api/v1/auth/", "/api/v1/admin/")

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.time()
        response = await call_next(request)
        duration_ms = (time.time() - start) * 1000

        # Path only: query strings may carry tokens.
        path = request.url.path
        method = request.method
        if method in ("POST", "PUT", "DELETE") and path.startswith(self.AUDIT_PREFIXES):
            logger.info(
                "AUDIT %s %s -> %d (%.0fms) from %s",
                method,
                path,
                response.status_code,
                duration_ms,
                request.client.host if request.client else "unknown",
            )

        return response


app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestSizeLimitMiddleware)
app.add_middleware(AuditLogMiddleware)

# API routers
app.include_router(auth_router)
app.include_router(admin_router)


# --- Exception handlers ---
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return HTTP errors as JSON, keeping any headers set by the route."""
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report field errors without echoing submitted values (they may be passwords)."""
    errors = [
        {"field": ".".join(str(p) for p in err["loc"] if p != "body"), "message": err["msg"]} for err in exc.errors()
    ]
    return JSONResponse(status_code=422, content={"detail": "Validation failed", "errors": errors})


@app.exception_handler(InfrastructureError)
async def infrastructure_exception_handler(request: Request, exc: InfrastructureError) -> JSONResponse:
    """Store or configuration failure: retryable from the client's point of view."""
    logger.error("Infrastructure error on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=503, content={"detail": "Service temporarily unavailable"})


# --- Health check ---
@app.get("/api/health")
def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok", "app": "gatekeeper", "version": VERSION}

# app/main.py
"""
AgriSupply - Farmers' marketplace API
Main Application Entry Point
"""

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

load_dotenv()

from app.core.config import settings
from app.core.database import Base, engine
from app.core.exceptions import AppError
from app.core.logging_config import setup_logging
from app import models  # noqa: F401  (registers tables on Base.metadata)

from app.api.v1 import orders, payments

logger = logging.getLogger(__name__)


# ========================================
# LIFESPAN EVENT
# ========================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""

    # ===== STARTUP =====
    setup_logging()
    Base.metadata.create_all(bind=engine)

    logger.info("=" * 60)
    logger.info(f"🚀 {settings.PROJECT_NAME} API STARTED ({settings.ENVIRONMENT})")
    logger.info("=" * 60)

    routes_api = []
    for route in app.routes:
        if hasattr(route, 'methods') and hasattr(route, 'path'):
            methods = ', '.join(sorted(route.methods - {'HEAD', 'OPTIONS'}))
            if methods and route.path.startswith('/api/'):
                routes_api.append(f"  {methods:12} {route.path}")

    logger.info("🔌 API ROUTES:")
    for route in sorted(set(routes_api)):
        logger.info(route)

    yield

    # ===== SHUTDOWN =====
    logger.info("👋 Server stopped")


# ========================================
# CREATE APP
# ========================================
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    lifespan=lifespan
)


# ========================================
# ERROR HANDLERS
# ========================================
def _error_response(status_code: int, message: str, details=None) -> JSONResponse:
    error = {"message": message}
    if details is not None:
        error["details"] = details
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"[API] {request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    else:
        logger.info(f"[API] {request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return _error_response(exc.status_code, exc.message, exc.details)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg"),
        }
        for err in exc.errors()
    ]
    return _error_response(400, "Validation Error", details)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"[API] Unhandled error on {request.method} {request.url.path}")
    details = str(exc) if settings.DEBUG else None
    return _error_response(500, "Internal Server Error", details)


# ========================================
# ROUTERS API (prefix /api/v1)
# ========================================
app.include_router(orders.router, prefix=settings.API_V1_STR, tags=["orders"])
app.include_router(payments.router, prefix=settings.API_V1_STR, tags=["payments"])


@app.get("/health")
async def health():
    """Health check"""
    return {"status": "healthy", "app": "agrisupply", "version": settings.VERSION}

"""
FastAPI application for the supplier onboarding backend.

Production deployment configuration via environment variables
(see utils/config.py).
"""

import logging

import requests
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.crm import CrmError, get_crm_connection
from utils.config import get_config
from web.auth_routes import router as auth_router
from web.supplier_routes import router as supplier_router
from web.throttle import SlidingWindowThrottle


logger = logging.getLogger(__name__)


RATE_LIMIT_MESSAGE = "Too many requests, please try again later."


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    config = get_config()

    app = FastAPI(
        title="Supplier Onboarding",
        description="Supplier registration backend forwarding to Salesforce",
        version="0.1.0",
        debug=config.debug,
    )

    # ==========================================================================
    # Health endpoints first: no IO apart from reading the session flag
    # ==========================================================================
    @app.get("/", include_in_schema=False)
    def root():
        return {
            "message": "Supplier Onboarding Backend API",
            "authenticated": get_crm_connection().is_authenticated,
        }

    @app.get("/api/health")
    def health():
        return {
            "status": "OK",
            "authenticated": get_crm_connection().is_authenticated,
        }

    # Must be registered before CORS: 429 responses need CORS headers too
    throttle = SlidingWindowThrottle(
        limit=config.rate_limit_max,
        window_seconds=config.rate_limit_window_ms / 1000,
    )
    app.state.throttle = throttle

    @app.middleware("http")
    async def throttle_api(request: Request, call_next):
        if request.url.path.startswith("/api/"):
            identifier = request.client.host if request.client else "global"
            if not throttle.allow(identifier):
                logger.warning("Rate limit exceeded for %s", identifier)
                return JSONResponse(
                    {"success": False, "error": RATE_LIMIT_MESSAGE},
                    status_code=429,
                )
        return await call_next(request)

    # CORS restricted to the configured origins
    if config.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.allowed_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            allow_headers=["*"],
        )

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(
            {"success": False, "error": "Internal server error"},
            status_code=500,
        )

    # ==========================================================================
    # Startup: restore the CRM session from a stored refresh token
    # ==========================================================================
    @app.on_event("startup")
    def on_startup():
        connection = get_crm_connection()
        if connection.refresh_token:
            try:
                connection.refresh()
            except (CrmError, requests.RequestException) as e:
                logger.warning("Salesforce session bootstrap failed: %s", e)
        else:
            logger.info("No refresh token configured; log in at %s", config.login_url)
        logger.info("Supplier Onboarding backend started")

    app.include_router(supplier_router)
    app.include_router(auth_router)

    return app


# Create app instance for uvicorn
app = create_app()

#!/usr/bin/env python3
"""
Housing Matching API - FastAPI Application

Exposes tenant profiles, listings, ranked matches and match messaging.

Usage:
    python main.py --mode serve

Then open:
    - http://localhost:8080/docs - API Documentation (Swagger UI)
    - http://localhost:8080/redoc - Alternative API Documentation
"""

import logging

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from core.errors import HousingError
from .config import get_config
from .dependencies import get_app_context
from .exceptions import (
    housing_exception_handler,
    http_exception_handler,
    general_exception_handler
)
from .routers import (
    tenant_profiles_router,
    listings_router,
    landlords_router,
    matches_router,
    add_rate_limit_handlers
)

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Create the FastAPI application with routers and handlers registered."""
    app = FastAPI(
        title="Housing Matching API",
        description="Compatibility matching between tenants and property listings",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_config().web.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register exception handlers
    app.add_exception_handler(HousingError, housing_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
    add_rate_limit_handlers(app)

    # Include routers
    app.include_router(tenant_profiles_router)
    app.include_router(listings_router)
    app.include_router(landlords_router)
    app.include_router(matches_router)

    @app.on_event("shutdown")
    def shutdown_context():
        if get_app_context.cache_info().currsize:
            get_app_context().shutdown(wait=False)

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": "housing-matching"}

    return app


app = create_app()


def main():
    """Run the web server."""
    import uvicorn

    config = get_config()
    logger.info(f"Starting Housing Matching API on {config.web.host}:{config.web.port}")
    logger.info(f"API Docs: http://{config.web.host}:{config.web.port}/docs")

    uvicorn.run(
        "web.backend.app:app",
        host=config.web.host,
        port=config.web.port,
        reload=False,
        log_level="info"
    )


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    main()

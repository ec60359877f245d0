#!/usr/bin/env python3
"""
Error handlers for the web application.

Domain errors carry their own HTTP status (core.errors); these handlers
render every failure in the same JSON envelope.
"""

import logging
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse

from core.errors import HousingError

logger = logging.getLogger(__name__)


async def housing_exception_handler(
    request: Request,
    exc: HousingError
) -> JSONResponse:
    """
    Handle matching-engine exceptions.

    Args:
        request: The FastAPI request.
        exc: The domain exception.

    Returns:
        JSONResponse with error details.
    """
    if exc.status_code >= 500:
        logger.error(f"Service error in {request.url.path}: {exc}", exc_info=True)
    else:
        logger.info(f"Rejected request to {request.url.path}: {exc.__class__.__name__}")

    content = {
        "success": False,
        "error": exc.message,
        "type": exc.__class__.__name__
    }
    if exc.details is not None:
        content["details"] = exc.details

    return JSONResponse(status_code=exc.status_code, content=content)


async def http_exception_handler(
    request: Request,
    exc: HTTPException
) -> JSONResponse:
    """
    Handle FastAPI HTTP exceptions with consistent format.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.detail,
            "type": "HTTPException"
        }
    )


async def general_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """
    Handle unexpected exceptions.
    """
    logger.exception(f"Unexpected error in {request.url.path}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal server error",
            "type": "InternalError"
        }
    )

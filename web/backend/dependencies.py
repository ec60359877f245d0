#!/usr/bin/env python3
"""
FastAPI dependencies for dependency injection.
"""

from functools import lru_cache

from fastapi import Header

from core.app_context import AppContext
from database.database import configure_database
from .config import get_config


@lru_cache()
def get_app_context() -> AppContext:
    """
    Build the shared application context once per process.

    Tests override this dependency with a context bound to their own
    session factory.
    """
    config = get_config()
    configure_database(config.database.url)
    return AppContext.build(config)


def get_current_user(x_user_id: str = Header(..., min_length=1, description="Caller identity")) -> str:
    """
    Caller identity from the X-User-Id header.

    Authentication happens upstream; this service trusts the header.
    """
    return x_user_id

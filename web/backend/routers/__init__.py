"""API route handlers."""

from .tenant_profiles import router as tenant_profiles_router
from .listings import router as listings_router, landlords_router
from .matches import router as matches_router, add_rate_limit_handlers

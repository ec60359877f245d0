#!/usr/bin/env python3
"""
Test suite configuration and utilities.

All tests run against throwaway SQLite databases, so no external service
is needed:

    python -m pytest tests/ -v

DB-backed tests build their own engine with make_session_factory() and pass
the resulting sessionmaker to the services under test.
"""

import os
import shutil
import tempfile
import uuid
from datetime import timedelta
from decimal import Decimal
from typing import Optional, Tuple

# The global engine is built at import time; keep it off PostgreSQL
os.environ["DATABASE_URL"] = "sqlite://"

from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

from database.models import Base, HousingMatch, ListingStatus, ListingTier, PropertyListing, TenantProfile
from database.types import utcnow
from database.uow import housing_uow


def make_session_factory() -> Tuple[sessionmaker, str]:
    """
    Create a file-backed SQLite database with all tables.

    Returns (session_factory, temp_dir); pass temp_dir to drop_database().
    A file database keeps worker threads off a shared connection.
    """
    temp_dir = tempfile.mkdtemp(prefix="housing-test-")
    engine = create_engine(
        f"sqlite:///{os.path.join(temp_dir, 'test.db')}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    return factory, temp_dir


def drop_database(session_factory: sessionmaker, temp_dir: str) -> None:
    session_factory.kw['bind'].dispose()
    shutil.rmtree(temp_dir, ignore_errors=True)


def tenant_fields(**overrides) -> dict:
    """Complete column values for a Manchester tenant (Example 1 profile)."""
    now = utcnow()
    fields = dict(
        user_id="tenant-1",
        target_cities=["Manchester"],
        target_countries=[],
        neighborhoods=[],
        min_budget=Decimal("800"),
        max_budget=Decimal("1200"),
        currency="USD",
        property_types=[],
        min_bedrooms=1,
        max_bedrooms=None,
        move_in_date=now + timedelta(days=14),
        move_in_flexibility_days=7,
        min_stay_months=6,
        max_stay_months=12,
        wants_furnished=None,
        has_pets=None,
        smokes=None,
        prefers_quiet=None,
        required_amenities=["wifi"],
        preferred_amenities=[],
        bio=None,
        age=None,
        occupation=None,
        languages=[],
        is_active=True,
        last_active_at=now,
        created_at=now,
        updated_at=now,
    )
    fields.update(overrides)
    return fields


def listing_fields(**overrides) -> dict:
    """Complete column values for an active Manchester flat (Example 1 listing)."""
    now = utcnow()
    fields = dict(
        landlord_id="landlord-1",
        title="Bright two bed flat near the centre",
        description=None,
        property_type="apartment",
        address=None,
        city="Manchester",
        country="UK",
        neighborhood=None,
        latitude=None,
        longitude=None,
        rent_amount=Decimal("1000"),
        currency="USD",
        deposit_amount=None,
        utilities_included=False,
        bedrooms=2,
        bathrooms=1,
        square_meters=None,
        furnished=False,
        pet_friendly=False,
        smoking_allowed=False,
        quiet_building=None,
        amenities=["wifi", "parking"],
        images=[],
        available_from=now + timedelta(days=14),
        available_to=None,
        min_stay_months=1,
        max_stay_months=None,
        status=ListingStatus.ACTIVE,
        is_verified=False,
        listing_tier=ListingTier.BASIC,
        listing_expires_at=None,
        total_views=0,
        created_at=now,
        updated_at=now,
    )
    fields.update(overrides)
    return fields


def build_tenant(**overrides) -> TenantProfile:
    """Transient tenant for pure scoring tests."""
    return TenantProfile(id=overrides.pop('id', uuid.uuid4()), **tenant_fields(**overrides))


def build_listing(**overrides) -> PropertyListing:
    """Transient listing for pure scoring tests."""
    return PropertyListing(id=overrides.pop('id', uuid.uuid4()), **listing_fields(**overrides))


def seed_tenant(session_factory, **overrides) -> TenantProfile:
    with housing_uow(session_factory) as repo:
        return repo.tenants.create(**tenant_fields(**overrides))


def seed_listing(session_factory, **overrides) -> PropertyListing:
    with housing_uow(session_factory) as repo:
        return repo.listings.create(**listing_fields(**overrides))


def get_match(session_factory, match_id):
    with housing_uow(session_factory) as repo:
        return repo.matches.get_fresh(match_id)


def live_match(session_factory, tenant_profile_id, listing_id):
    with housing_uow(session_factory) as repo:
        return repo.matches.get_live(tenant_profile_id, listing_id)


def count_matches(session_factory, tenant_profile_id=None, listing_id=None) -> int:
    stmt = select(func.count(HousingMatch.id))
    if tenant_profile_id is not None:
        stmt = stmt.where(HousingMatch.tenant_profile_id == tenant_profile_id)
    if listing_id is not None:
        stmt = stmt.where(HousingMatch.listing_id == listing_id)
    with housing_uow(session_factory) as repo:
        return repo.db.execute(stmt).scalar_one()


def build_matching(session_factory, rates: Optional[dict] = None, notifier=None, matching_config=None):
    """
    Wire scorer, lifecycle manager and match index against a test database.

    Returns (scorer, lifecycle, match_index); call match_index.shutdown().
    """
    from core.config_loader import MatchingConfig
    from core.fx import StaticFxRateProvider
    from core.lifecycle import MatchLifecycleManager
    from core.match_index import MatchIndex
    from core.scorer import CompatibilityScorer

    config = matching_config or MatchingConfig()
    scorer = CompatibilityScorer(config.weights, StaticFxRateProvider(rates or {}), config.neutral_factor)
    lifecycle = MatchLifecycleManager(config, session_factory, notifier)
    index = MatchIndex(scorer, lifecycle, config, session_factory, notifier)
    return scorer, lifecycle, index

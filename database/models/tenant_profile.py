import uuid

from sqlalchemy import Column, Text, String, Boolean, Integer, Numeric, Uuid, Index

from database.types import JSONType, UTCDateTime, utcnow
from .base import Base


class TenantProfile(Base):
    """
    Housing preferences of a rental-seeking user.

    Empty target_cities / target_countries mean "anywhere". Optional soft
    preferences left as NULL score neutrally.
    """
    __tablename__ = 'tenant_profile'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, nullable=False, unique=True)

    # Location
    target_cities = Column(JSONType, nullable=False, default=list)
    target_countries = Column(JSONType, nullable=False, default=list)
    neighborhoods = Column(JSONType, nullable=False, default=list)

    # Budget
    min_budget = Column(Numeric(10, 2), nullable=False)
    max_budget = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default='USD')

    # Housing
    property_types = Column(JSONType, nullable=False, default=list)
    min_bedrooms = Column(Integer, nullable=False, default=1)
    max_bedrooms = Column(Integer)

    # Move-in / stay
    move_in_date = Column(UTCDateTime, nullable=False)
    move_in_flexibility_days = Column(Integer, nullable=False, default=7)
    min_stay_months = Column(Integer, nullable=False, default=6)
    max_stay_months = Column(Integer)

    # Lifestyle (NULL = no preference)
    wants_furnished = Column(Boolean)
    has_pets = Column(Boolean)
    smokes = Column(Boolean)
    prefers_quiet = Column(Boolean)

    required_amenities = Column(JSONType, nullable=False, default=list)
    preferred_amenities = Column(JSONType, nullable=False, default=list)

    # Personal
    bio = Column(Text)
    age = Column(Integer)
    occupation = Column(String(100))
    languages = Column(JSONType, nullable=False, default=list)

    is_active = Column(Boolean, nullable=False, default=True)
    last_active_at = Column(UTCDateTime, nullable=False, default=utcnow)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index('idx_tenant_profile_budget', 'min_budget', 'max_budget'),
        Index('idx_tenant_profile_move_in', 'move_in_date'),
        Index('idx_tenant_profile_active', 'is_active'),
    )

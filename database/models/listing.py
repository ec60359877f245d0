import uuid

from sqlalchemy import Column, Text, String, Boolean, Integer, Numeric, Uuid, Index

from database.types import JSONType, UTCDateTime, utcnow
from .base import Base


class ListingStatus:
    PENDING = 'pending'
    ACTIVE = 'active'
    INACTIVE = 'inactive'
    RENTED = 'rented'

    ALL = (PENDING, ACTIVE, INACTIVE, RENTED)


class ListingTier:
    BASIC = 'basic'
    FEATURED = 'featured'
    PREMIUM = 'premium'


class PropertyListing(Base):
    __tablename__ = 'property_listing'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    landlord_id = Column(Text, nullable=False)

    title = Column(String(200), nullable=False)
    description = Column(Text)
    property_type = Column(Text, nullable=False)  # apartment|house|room|co-living|studio

    # Location
    address = Column(Text)
    city = Column(String(100), nullable=False)
    country = Column(String(100), nullable=False)
    neighborhood = Column(String(100))
    latitude = Column(Numeric(10, 8))
    longitude = Column(Numeric(11, 8))

    # Pricing
    rent_amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default='USD')
    deposit_amount = Column(Numeric(10, 2))
    utilities_included = Column(Boolean, nullable=False, default=False)

    # Details
    bedrooms = Column(Integer, nullable=False)
    bathrooms = Column(Integer, nullable=False)
    square_meters = Column(Integer)
    furnished = Column(Boolean, nullable=False, default=False)
    pet_friendly = Column(Boolean, nullable=False, default=False)
    smoking_allowed = Column(Boolean, nullable=False, default=False)
    quiet_building = Column(Boolean)

    amenities = Column(JSONType, nullable=False, default=list)
    images = Column(JSONType, nullable=False, default=list)

    # Availability
    available_from = Column(UTCDateTime, nullable=False)
    available_to = Column(UTCDateTime)
    min_stay_months = Column(Integer, nullable=False, default=1)
    max_stay_months = Column(Integer)

    status = Column(Text, nullable=False, default=ListingStatus.PENDING)
    is_verified = Column(Boolean, nullable=False, default=False)
    listing_tier = Column(Text, nullable=False, default=ListingTier.BASIC)
    listing_expires_at = Column(UTCDateTime)
    total_views = Column(Integer, nullable=False, default=0)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index('idx_listing_city_country', 'city', 'country'),
        Index('idx_listing_property_type', 'property_type'),
        Index('idx_listing_status', 'status'),
        Index('idx_listing_landlord', 'landlord_id'),
        Index('idx_listing_rent', 'rent_amount'),
    )

    def is_expired(self, now) -> bool:
        return self.listing_expires_at is not None and self.listing_expires_at <= now

    def is_live(self, now) -> bool:
        return self.status == ListingStatus.ACTIVE and not self.is_expired(now)

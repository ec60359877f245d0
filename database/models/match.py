import uuid

from sqlalchemy import Column, Text, ForeignKey, Boolean, Integer, Numeric, Uuid, UniqueConstraint, Index
from sqlalchemy.orm import relationship

from database.types import JSONType, UTCDateTime, utcnow
from .base import Base


class MatchStatus:
    PENDING = 'pending'
    VIEWED = 'viewed'
    CONTACTED = 'contacted'
    DECLINED = 'declined'
    EXPIRED = 'expired'

    TERMINAL = frozenset({DECLINED, EXPIRED})
    LIVE = (PENDING, VIEWED, CONTACTED)


def pair_key(tenant_profile_id, listing_id) -> str:
    return f"{tenant_profile_id}:{listing_id}"


class HousingMatch(Base):
    """
    Scored pairing of one tenant profile with one listing.

    Tracks:
    - Compatibility score (0-100) and the fixed-key factor breakdown
    - Lifecycle status, guarded by an optimistic-concurrency version
    - Interest flags from both parties and messaging counters

    live_pair_key holds "<tenant>:<listing>" while the match is live and is
    cleared when it is retired, so at most one live row exists per pair while
    declined/expired rows stay as history.
    """
    __tablename__ = 'housing_match'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_profile_id = Column(Uuid, ForeignKey('tenant_profile.id'), nullable=False)
    listing_id = Column(Uuid, ForeignKey('property_listing.id'), nullable=False)
    live_pair_key = Column(Text, nullable=True)

    compatibility_score = Column(Numeric(5, 2), nullable=False)
    match_factors = Column(JSONType, nullable=False, default=dict)

    status = Column(Text, nullable=False, default=MatchStatus.PENDING)
    status_reason = Column(Text)
    tenant_interest = Column(Boolean)
    landlord_interest = Column(Boolean)

    messages_count = Column(Integer, nullable=False, default=0)
    last_message_at = Column(UTCDateTime)

    version = Column(Integer, nullable=False, default=1)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow)
    scored_at = Column(UTCDateTime, nullable=False, default=utcnow)

    tenant_profile = relationship("TenantProfile")
    listing = relationship("PropertyListing")
    messages = relationship(
        "HousingMessage",
        back_populates="match",
        order_by="HousingMessage.created_at",
    )

    __table_args__ = (
        UniqueConstraint('live_pair_key', name='uq_housing_match_live_pair'),
        Index('idx_housing_match_tenant', 'tenant_profile_id'),
        Index('idx_housing_match_listing', 'listing_id'),
        Index('idx_housing_match_pair', 'tenant_profile_id', 'listing_id'),
        Index('idx_housing_match_score', 'compatibility_score'),
        Index('idx_housing_match_status', 'status'),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in MatchStatus.TERMINAL


class FailedPair(Base):
    """
    A tenant/listing pair whose scoring raised (e.g. FX timeout).

    Picked up again by the sweeper; removed once the pair scores cleanly.
    """
    __tablename__ = 'failed_pair'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_profile_id = Column(Uuid, ForeignKey('tenant_profile.id'), nullable=False)
    listing_id = Column(Uuid, ForeignKey('property_listing.id'), nullable=False)
    error = Column(Text)
    attempts = Column(Integer, nullable=False, default=1)
    first_failed_at = Column(UTCDateTime, nullable=False, default=utcnow)
    last_attempt_at = Column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint('tenant_profile_id', 'listing_id', name='uq_failed_pair'),
    )

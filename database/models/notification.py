import uuid

from sqlalchemy import Column, Text, ForeignKey, Boolean, Integer, Uuid, UniqueConstraint, Index
from sqlalchemy.orm import relationship

from database.types import JSONType, UTCDateTime, utcnow
from .base import Base


class NotificationTracker(Base):
    """
    Tracks sent notifications for deduplication.

    Keeps the same event (e.g. a match turning "contacted") from being
    delivered to a user more than once per channel.
    """
    __tablename__ = 'notification_tracker'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # What was notified
    user_id = Column(Text, nullable=False, index=True)
    housing_match_id = Column(Uuid, ForeignKey('housing_match.id'), nullable=True)
    notification_type = Column(Text, nullable=False)
    channel_type = Column(Text, nullable=False)  # in_app, webhook, ...

    # Deduplication key - hash of user + match + event type + channel
    dedup_hash = Column(Text, nullable=False, index=True)
    content_hash = Column(Text, nullable=True)

    event_type = Column(Text, nullable=False)  # new_match, status_changed, new_message
    event_data = Column(JSONType, default=dict)

    recipient = Column(Text, nullable=False)
    subject = Column(Text)
    sent_successfully = Column(Boolean, default=False)
    error_message = Column(Text, nullable=True)

    first_sent_at = Column(UTCDateTime, nullable=False, default=utcnow)
    last_sent_at = Column(UTCDateTime, nullable=False, default=utcnow)
    send_count = Column(Integer, default=1)

    housing_match = relationship("HousingMatch")

    __table_args__ = (
        UniqueConstraint('dedup_hash', name='uq_notification_dedup'),
        Index('idx_notification_user', 'user_id', 'first_sent_at'),
        Index('idx_notification_recent', 'dedup_hash', 'last_sent_at'),
    )

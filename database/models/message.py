import uuid

from sqlalchemy import Column, Text, ForeignKey, Boolean, Uuid, Index
from sqlalchemy.orm import relationship

from database.types import JSONType, UTCDateTime, utcnow
from .base import Base


class HousingMessage(Base):
    """Append-only message inside a match thread."""
    __tablename__ = 'housing_message'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    match_id = Column(Uuid, ForeignKey('housing_match.id'), nullable=False)
    sender_id = Column(Text, nullable=False)
    recipient_id = Column(Text, nullable=False)

    body = Column(Text, nullable=False)
    message_type = Column(Text, nullable=False, default='text')  # text|image|document
    attachments = Column(JSONType, nullable=False, default=list)

    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(UTCDateTime)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    match = relationship("HousingMatch", back_populates="messages")

    __table_args__ = (
        Index('idx_housing_message_match', 'match_id', 'created_at'),
        Index('idx_housing_message_recipient', 'recipient_id', 'is_read'),
    )

from sqlalchemy import Column, Integer, String, Text

from database.types import UTCDateTime, utcnow
from .base import Base


class AppSettings(Base):
    """Key/value store for small pieces of process state (sweep checkpoints)."""
    __tablename__ = 'app_settings'

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String(255), unique=True, nullable=False, index=True)
    value = Column(Text)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

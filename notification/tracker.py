#!/usr/bin/env python3
"""
Notification Tracker - Deduplication Service

Keeps the same match event from reaching a user twice on the same channel.

Usage:
    from notification.tracker import NotificationTrackerService

    tracker = NotificationTrackerService(repo)

    if tracker.should_send_notification(
        user_id="user123",
        housing_match_id=match_id,
        event_type="status_changed:viewed",
        channel_type="in_app"
    ):
        ...
        tracker.record_notification(...)
"""

import hashlib
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from dataclasses import dataclass
from abc import ABC, abstractmethod

from sqlalchemy import select

from database.repository import HousingRepository
from database.models import NotificationTracker

logger = logging.getLogger(__name__)


@dataclass
class NotificationEvent:
    """Represents a notification event for tracking."""
    user_id: str
    housing_match_id: Optional[str]
    event_type: str  # e.g., "new_match", "status_changed:contacted", "new_message"
    channel_type: str  # e.g., "in_app", "webhook"
    content_hash: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class DeduplicationStrategy(ABC):
    """Policy deciding whether a previously recorded event may be sent again."""

    @abstractmethod
    def should_allow_notification(
        self,
        existing_notification: Optional[NotificationTracker],
        new_event: NotificationEvent
    ) -> bool:
        pass


class DefaultDeduplicationStrategy(DeduplicationStrategy):
    """
    Default deduplication strategy: an event already recorded for the same
    user, match and channel is never sent again. Callers that want every
    occurrence delivered (new messages) skip deduplication instead.
    """

    def should_allow_notification(
        self,
        existing_notification: Optional[NotificationTracker],
        new_event: NotificationEvent
    ) -> bool:
        if existing_notification is None:
            return True
        logger.info(f"Event {new_event.event_type} already sent via {new_event.channel_type}")
        return False


class NotificationTrackerService:
    """Tracks sent notifications and applies a DeduplicationStrategy."""

    def __init__(
        self,
        repo: HousingRepository,
        strategy: Optional[DeduplicationStrategy] = None
    ):
        self.repo = repo
        self.strategy = strategy or DefaultDeduplicationStrategy()

    def generate_dedup_hash(
        self,
        user_id: str,
        housing_match_id: Optional[str],
        event_type: str,
        channel_type: str
    ) -> str:
        key = f"{user_id}:{housing_match_id}:{event_type}:{channel_type}"
        return hashlib.sha256(key.encode('utf-8')).hexdigest()[:32]

    def generate_content_hash(
        self,
        subject: str,
        body: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> str:
        content = {
            'subject': subject,
            'body': body[:500],
            'metadata': json.dumps(metadata, sort_keys=True, default=str) if metadata else None
        }
        normalized = json.dumps(content, sort_keys=True)
        return hashlib.sha256(normalized.encode('utf-8')).hexdigest()[:16]

    def should_send_notification(
        self,
        user_id: str,
        housing_match_id: Optional[str],
        event_type: str,
        channel_type: str,
        subject: str = "",
        body: str = "",
        metadata: Optional[Dict[str, Any]] = None
    ) -> bool:
        dedup_hash = self.generate_dedup_hash(user_id, housing_match_id, event_type, channel_type)
        existing = self._get_existing_notification(dedup_hash)

        if not existing:
            return True

        event = NotificationEvent(
            user_id=user_id,
            housing_match_id=housing_match_id,
            event_type=event_type,
            channel_type=channel_type,
            content_hash=self.generate_content_hash(subject, body, metadata),
            metadata=metadata
        )

        should_send = self.strategy.should_allow_notification(existing, event)
        if not should_send:
            logger.info(f"Suppressing duplicate notification: {event_type} via {channel_type}")
        return should_send

    def _get_existing_notification(self, dedup_hash: str) -> Optional[NotificationTracker]:
        stmt = select(NotificationTracker).where(
            NotificationTracker.dedup_hash == dedup_hash
        ).limit(1)
        return self.repo.db.execute(stmt).scalar_one_or_none()

    def record_notification(
        self,
        user_id: str,
        housing_match_id: Optional[str],
        event_type: str,
        channel_type: str,
        recipient: str,
        subject: str,
        body: str,
        success: bool,
        error_message: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> NotificationTracker:
        dedup_hash = self.generate_dedup_hash(user_id, housing_match_id, event_type, channel_type)
        content_hash = self.generate_content_hash(subject, body, metadata)

        existing = self._get_existing_notification(dedup_hash)

        if existing:
            existing.last_sent_at = datetime.now(timezone.utc)
            existing.send_count += 1
            existing.content_hash = content_hash
            existing.sent_successfully = success
            existing.error_message = error_message
            tracker = existing
            logger.info(f"Updated notification record (send count: {tracker.send_count})")
        else:
            tracker = NotificationTracker(
                user_id=user_id,
                housing_match_id=uuid.UUID(str(housing_match_id)) if housing_match_id else None,
                notification_type=event_type.split(':', 1)[0],
                channel_type=channel_type,
                dedup_hash=dedup_hash,
                content_hash=content_hash,
                event_type=event_type,
                event_data=metadata or {},
                recipient=recipient,
                subject=subject,
                sent_successfully=success,
                error_message=error_message,
            )
            self.repo.db.add(tracker)
            logger.info(f"Created new notification record for {event_type}")

        self.repo.db.flush()
        return tracker

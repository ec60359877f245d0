#!/usr/bin/env python3
"""
Notification Service with Deduplication

Dispatches match events (new match, status change, new message) to the
configured channels. Uses:
- NotificationChannel implementations via NotificationChannelFactory
- NotificationTrackerService for deduplication
- Redis Queue for async processing, with a synchronous fallback

Usage:
    from notification.service import NotificationService

    service = NotificationService(config.notifications)
    service.notify_status_change(notice)
"""

import os
import logging
import uuid
from typing import Optional, Dict, Any, List, Iterable

from enum import Enum

from redis import Redis
from rq import Queue, Retry

from core.config_loader import NotificationConfig
from database.database import db_session_scope
from database.repository import HousingRepository
from notification.channels import NotificationChannelFactory
from notification.channels import RateLimitException
from notification.tracker import NotificationTrackerService
from notification.message_builder import NotificationMessageBuilder, MatchNotice

logger = logging.getLogger(__name__)


class NotificationPriority(Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class NotificationService:
    """
    Main notification service with deduplication.

    This service coordinates:
    1. Deduplication checking (via NotificationTracker)
    2. Channel selection (via NotificationChannelFactory)
    3. Queueing for async processing (via RQ)
    """

    def __init__(
        self,
        config: NotificationConfig,
        session_factory=None,
        skip_dedup: bool = False,
    ):
        self.config = config
        self.session_factory = session_factory
        self.skip_dedup = skip_dedup or not config.deduplication_enabled
        self.builder = NotificationMessageBuilder(config.base_url)

        self.redis_url = config.redis_url or os.environ.get('REDIS_URL', 'redis://localhost:6379/0')

        if not config.enabled or not config.use_async_queue:
            logger.info("Async queue disabled via config. Using sync mode.")
            self.redis_conn = None
            self.queue = None
            self.async_mode = False
        else:
            try:
                self.redis_conn = Redis.from_url(self.redis_url)
                self.redis_conn.ping()
                self.queue = Queue('notifications', connection=self.redis_conn)
                self.async_mode = True
                logger.info("Notification service connected to Redis")
            except Exception as e:
                logger.error(f"Redis connection failed: {e}. Falling back to sync mode.")
                self.redis_conn = None
                self.queue = None
                self.async_mode = False

    def send_notification(
        self,
        channel_type: str,
        recipient: str,
        subject: str,
        body: str,
        user_id: str,
        housing_match_id: Optional[str] = None,
        event_type: str = "general",
        priority: NotificationPriority = NotificationPriority.NORMAL,
        metadata: Optional[Dict[str, Any]] = None,
        deduplicate: bool = True,
    ) -> Optional[str]:
        """
        Send a notification with deduplication check.

        Returns:
            Notification ID if sent/queued, None if suppressed as duplicate
        """
        if deduplicate and not self.skip_dedup:
            with db_session_scope(self.session_factory) as session:
                tracker = NotificationTrackerService(HousingRepository(session))
                should_send = tracker.should_send_notification(
                    user_id=user_id,
                    housing_match_id=housing_match_id,
                    event_type=event_type,
                    channel_type=channel_type,
                    subject=subject,
                    body=body,
                    metadata=metadata,
                )
            if not should_send:
                return None

        notification_data = {
            'channel_type': channel_type,
            'recipient': recipient,
            'subject': subject,
            'body': body,
            'metadata': {**(metadata or {}), 'event_type': event_type, 'user_id': user_id},
            'user_id': user_id,
            'housing_match_id': housing_match_id,
            'event_type': event_type,
            'priority': priority.value,
        }

        if self.async_mode:
            job = self.queue.enqueue(
                process_notification_task,
                notification_data,
                job_timeout='5m',
                result_ttl=86400,
                retry=Retry(max=3, interval=[30, 60, 120]),
            )
            logger.info(f"Queued notification as job {job.id}")
            return job.id

        return process_notification_task(notification_data, session_factory=self.session_factory)

    def notify_new_match(self, notice: MatchNotice) -> Dict[str, Optional[str]]:
        if not (self.config.enabled and self.config.notify_on_new_match):
            return {}
        content = self.builder.new_match(notice)
        priority = NotificationPriority.HIGH if notice.score >= 80 else NotificationPriority.NORMAL
        return self._fan_out(
            [notice.tenant_user_id, notice.landlord_id], notice, "new_match", content, priority
        )

    def notify_status_change(self, notice: MatchNotice) -> Dict[str, Optional[str]]:
        if not (self.config.enabled and self.config.notify_on_status_change):
            return {}
        content = self.builder.status_changed(notice)
        return self._fan_out(
            [notice.tenant_user_id, notice.landlord_id],
            notice,
            f"status_changed:{notice.status}",
            content,
            NotificationPriority.NORMAL,
        )

    def notify_new_message(
        self,
        notice: MatchNotice,
        recipient_id: str,
        message_type: str = 'text',
    ) -> Dict[str, Optional[str]]:
        if not (self.config.enabled and self.config.notify_on_new_message):
            return {}
        content = self.builder.new_message(notice, message_type)
        return self._fan_out(
            [recipient_id], notice, "new_message", content, NotificationPriority.NORMAL, deduplicate=False
        )

    def _fan_out(
        self,
        user_ids: Iterable[str],
        notice: MatchNotice,
        event_type: str,
        content: Dict[str, Any],
        priority: NotificationPriority,
        deduplicate: bool = True,
    ) -> Dict[str, Optional[str]]:
        results = {}
        for user_id in user_ids:
            for channel in self._enabled_channels():
                key = f"{user_id}:{channel}"
                try:
                    recipient = self._get_recipient_for_channel(user_id, channel)
                    if not recipient:
                        results[key] = None
                        continue
                    results[key] = self.send_notification(
                        channel_type=channel,
                        recipient=recipient,
                        subject=content['subject'],
                        body=content['body'],
                        user_id=user_id,
                        housing_match_id=notice.match_id,
                        event_type=event_type,
                        priority=priority,
                        metadata={'match': notice.model_dump()},
                        deduplicate=deduplicate,
                    )
                except Exception as e:
                    logger.error(f"Failed to send {channel} notification: {e}")
                    results[key] = None
        return results

    def _enabled_channels(self) -> List[str]:
        channels = [name for name, cfg in self.config.channels.items() if cfg.enabled]
        return channels or ['in_app']

    def _get_recipient_for_channel(self, user_id: str, channel: str) -> Optional[str]:
        if channel == 'in_app':
            return user_id
        channel_config = self.config.channels.get(channel)
        if channel_config and channel_config.recipient:
            return channel_config.recipient
        if channel == 'webhook':
            return os.environ.get('NOTIFICATION_WEBHOOK_URL')
        raise ValueError(f"Unsupported channel type: {channel}")

    def get_queue_status(self) -> Dict[str, Any]:
        if not self.async_mode:
            return {'status': 'sync_mode', 'queue_length': 0}
        try:
            return {
                'status': 'active',
                'queue_length': len(self.queue),
                'redis_connected': self.redis_conn.ping()
            }
        except Exception as e:
            return {'status': 'error', 'error': str(e)}


# Worker task - must be at module level for RQ
def process_notification_task(notification_data: Dict[str, Any], session_factory=None) -> str:
    """
    Process a notification (called by RQ worker or inline in sync mode).

    Sends via the channel and records the outcome in the tracker. Rate-limit
    errors propagate so the RQ retry policy can reschedule the job.
    """
    notification_id = str(uuid.uuid4())

    channel_type = notification_data['channel_type']
    recipient = notification_data['recipient']
    subject = notification_data['subject']
    body = notification_data['body']
    metadata = notification_data.get('metadata', {})
    event_type = notification_data['event_type']

    logger.info(f"Processing notification {notification_id} via {channel_type}")

    error_message = None
    try:
        channel = NotificationChannelFactory.get_channel(channel_type)
        success = channel.send(recipient, subject, body, metadata)
        if not success:
            error_message = "Send failed"
    except RateLimitException:
        logger.warning(f"Rate limited by {channel_type}; leaving notification {notification_id} to the retry policy")
        raise
    except Exception as e:
        logger.error(f"Failed to process notification {notification_id}: {e}", exc_info=True)
        success = False
        error_message = str(e)

    try:
        with db_session_scope(session_factory) as session:
            tracker = NotificationTrackerService(HousingRepository(session))
            tracker.record_notification(
                user_id=notification_data['user_id'],
                housing_match_id=notification_data.get('housing_match_id'),
                event_type=event_type,
                channel_type=channel_type,
                recipient=recipient,
                subject=subject,
                body=body,
                success=success,
                error_message=error_message,
                metadata=metadata,
            )
    except Exception as db_error:
        logger.error(f"Failed to record notification {notification_id}: {db_error}")

    if success:
        logger.info(f"Notification {notification_id} sent successfully")
    else:
        logger.error(f"Notification {notification_id} failed to send")
    return notification_id

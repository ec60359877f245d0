"""
Notification Module

Delivers match events to tenants and landlords over pluggable channels,
with deduplication and async processing.

Usage:
    from notification import NotificationService, NotificationChannelFactory

    service = NotificationService(config.notifications)
    service.notify_status_change(notice)

    channel = NotificationChannelFactory.get_channel('in_app')
    channel.send('user123', 'Subject', 'Body', {})
"""

from notification.channels import (
    NotificationChannel,
    WebhookChannel,
    InAppChannel,
    NotificationChannelFactory,
    RateLimitException,
)

from notification.tracker import (
    NotificationTrackerService,
    NotificationEvent,
    DefaultDeduplicationStrategy,
)

from notification.message_builder import MatchNotice, NotificationMessageBuilder

from notification.service import (
    NotificationService,
    NotificationPriority,
    process_notification_task,
)

__all__ = [
    # Channels
    'NotificationChannel',
    'WebhookChannel',
    'InAppChannel',
    'NotificationChannelFactory',
    'RateLimitException',
    # Tracker
    'NotificationTrackerService',
    'NotificationEvent',
    'DefaultDeduplicationStrategy',
    # Messages
    'MatchNotice',
    'NotificationMessageBuilder',
    # Service
    'NotificationService',
    'NotificationPriority',
    'process_notification_task',
]

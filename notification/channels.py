#!/usr/bin/env python3
"""
Notification Channels

Each channel delivers one notification to one recipient. New channels are
added by registering a NotificationChannel subclass with the factory.

Usage:
    from notification.channels import NotificationChannelFactory

    channel = NotificationChannelFactory.get_channel('webhook')
    channel.send(recipient, subject, body, metadata)
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional
from datetime import datetime, timezone
import logging
import os
import urllib.parse
import ipaddress
import socket

import requests

logger = logging.getLogger(__name__)


class RateLimitException(Exception):
    """Raised when a channel is throttled by its upstream."""

    def __init__(self, message: str, retry_after: Optional[int] = None):
        super().__init__(message)
        self.retry_after = retry_after


def _validate_webhook_url(url: str) -> bool:
    """
    Validate webhook URL to prevent SSRF attacks.

    Checks:
    - Scheme is http or https
    - Hostname resolves to public IP (not private/loopback)
    """
    try:
        parsed = urllib.parse.urlparse(url)

        if parsed.scheme not in ('http', 'https'):
            logger.error(f"Invalid URL scheme: {parsed.scheme}")
            return False

        if not parsed.hostname:
            logger.error("URL missing hostname")
            return False

        try:
            addrinfo = socket.getaddrinfo(parsed.hostname, None)
            for _, _, _, _, sockaddr in addrinfo:
                ip = ipaddress.ip_address(sockaddr[0])
                if ip.is_private or ip.is_loopback or ip.is_reserved or ip.is_link_local:
                    logger.error(f"URL resolves to private/reserved IP: {ip}")
                    return False
        except socket.gaierror:
            logger.error(f"Could not resolve hostname: {parsed.hostname}")
            return False

        return True
    except Exception as e:
        logger.error(f"URL validation error: {e}")
        return False


def _is_dry_run_mode() -> bool:
    """Check if notification channels should run in dry-run (log-only) mode."""
    return os.environ.get('NOTIFICATION_DRY_RUN', '').lower() in ('true', '1', 'yes')


class NotificationChannel(ABC):
    """Abstract base class for all notification channels."""

    @property
    @abstractmethod
    def channel_type(self) -> str:
        """Return the channel type identifier."""
        pass

    @abstractmethod
    def send(self, recipient: str, subject: str, body: str, metadata: Dict[str, Any]) -> bool:
        """
        Send a notification through this channel.

        Returns:
            True if sent successfully, False otherwise
        """
        pass


class WebhookChannel(NotificationChannel):
    """Posts match events as JSON to a configured URL."""

    @property
    def channel_type(self) -> str:
        return 'webhook'

    def send(self, recipient: str, subject: str, body: str, metadata: Dict[str, Any]) -> bool:
        webhook_url = recipient

        if not _validate_webhook_url(webhook_url):
            logger.error("Invalid or unsafe webhook URL")
            return False

        payload = {
            'type': metadata.get('event_type', 'housing_match'),
            'subject': subject,
            'body': body,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'match': metadata.get('match', {}),
            'user_id': metadata.get('user_id'),
        }

        if _is_dry_run_mode():
            logger.info(f"[DRY RUN] Webhook payload: {payload['type']} / {subject}")
            return True

        try:
            response = requests.post(
                webhook_url,
                json=payload,
                headers={'User-Agent': 'HousingMatch-Notification-Service/1.0'},
                timeout=30,
            )
            if response.status_code == 429:
                retry_after = response.headers.get('Retry-After')
                raise RateLimitException(
                    "Webhook rate limited",
                    retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
                )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Failed to send webhook: {e}")
            return False

        parsed = urllib.parse.urlparse(webhook_url)
        logger.info(f"Webhook sent to {parsed.scheme}://{parsed.hostname}{parsed.path}")
        return True


class InAppChannel(NotificationChannel):
    """In-app notification; the tracker row written after sending is the inbox entry."""

    @property
    def channel_type(self) -> str:
        return 'in_app'

    def send(self, recipient: str, subject: str, body: str, metadata: Dict[str, Any]) -> bool:
        logger.info(f"[IN_APP] {metadata.get('event_type', 'notification')}: {subject}")
        return True


class NotificationChannelFactory:
    """
    Factory for creating notification channels.

    Channels are looked up by type; register_channel adds custom ones.
    """

    _channels: Dict[str, type] = {
        'webhook': WebhookChannel,
        'in_app': InAppChannel,
    }

    @classmethod
    def get_channel(cls, channel_type: str) -> NotificationChannel:
        channel_class = cls._channels.get(channel_type)
        if not channel_class:
            raise ValueError(
                f"Unknown channel type: {channel_type}. Available: {', '.join(cls._channels)}"
            )
        return channel_class()

    @classmethod
    def register_channel(cls, channel_type: str, channel_class: type):
        if not issubclass(channel_class, NotificationChannel):
            raise TypeError(f"{channel_class.__name__} must subclass NotificationChannel")
        cls._channels[channel_type] = channel_class
        logger.info(f"Registered notification channel: {channel_type}")

    @classmethod
    def list_channels(cls) -> list:
        return list(cls._channels.keys())

from core.messaging.service import MessagingService

__all__ = ['MessagingService']

"""
Domain events emitted by profile and listing writes.

Events are published only after the writing transaction has committed;
subscribers (the rescan dispatcher) must not assume they run on the
publishing thread.
"""

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TenantProfileChanged:
    tenant_profile_id: Any
    reason: str = "updated"


@dataclass(frozen=True)
class ListingChanged:
    listing_id: Any
    reason: str = "updated"


class EventBus:
    """In-process publish/subscribe keyed by event class."""

    def __init__(self):
        self._handlers: Dict[type, List[Callable]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, event_type: type, handler: Callable) -> None:
        with self._lock:
            self._handlers[event_type].append(handler)

    def publish(self, event) -> None:
        with self._lock:
            handlers = list(self._handlers.get(type(event), []))
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Handler {getattr(handler, '__name__', handler)} failed for {event}: {e}", exc_info=True)

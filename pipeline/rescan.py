"""
Rescan dispatcher: consumes profile/listing change events on a small
thread pool so writes return before any scoring happens.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

from core.events import EventBus, ListingChanged, TenantProfileChanged
from core.match_index import MatchIndex, RescanReport

logger = logging.getLogger(__name__)


class RescanDispatcher:
    def __init__(self, match_index: MatchIndex, max_workers: int = 2):
        self.match_index = match_index
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="rescan")

    def subscribe(self, events: EventBus) -> None:
        events.subscribe(TenantProfileChanged, self.on_tenant_changed)
        events.subscribe(ListingChanged, self.on_listing_changed)

    def on_tenant_changed(self, event: TenantProfileChanged) -> Future:
        return self.compute_for_tenant(event.tenant_profile_id)

    def on_listing_changed(self, event: ListingChanged) -> Future:
        return self.compute_for_listing(event.listing_id)

    def compute_for_tenant(self, tenant_profile_id: Any) -> Future:
        return self._executor.submit(self._run, self.match_index.rescan_for_tenant, tenant_profile_id)

    def compute_for_listing(self, listing_id: Any) -> Future:
        return self._executor.submit(self._run, self.match_index.rescan_for_listing, listing_id)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    @staticmethod
    def _run(rescan, owner_id: Any) -> RescanReport:
        try:
            return rescan(owner_id)
        except Exception as e:
            logger.error(f"Rescan for {owner_id} failed: {e}", exc_info=True)
            raise

"""
Match Lifecycle Manager.

Every transition is a compare-and-set on housing_match.version. A lost race
is retried once against a fresh read; since transitions only move up the
rank order, the retry either applies or becomes a no-op when the other
writer already reached an equal or more terminal state.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from core.config_loader import MatchingConfig
from core.errors import ConcurrencyConflict, MatchTerminalError, NotAParty, NotFoundError, ValidationError
from core.lifecycle.state_machine import is_terminal, resolve_transition
from database.models import HousingMatch, ListingStatus, MatchStatus
from database.types import utcnow
from database.uow import housing_uow
from notification.message_builder import MatchNotice

logger = logging.getLogger(__name__)

PARTIES = ('tenant', 'landlord')

# decide(match) -> (target status or None, column values, reason)
Decision = Tuple[Optional[str], Dict[str, Any], Optional[str]]


def party_of(match: HousingMatch, user_id: str) -> Optional[str]:
    """'tenant' or 'landlord' for a participant of the match, else None."""
    if user_id == match.tenant_profile.user_id:
        return 'tenant'
    if user_id == match.listing.landlord_id:
        return 'landlord'
    return None


class MatchLifecycleManager:
    def __init__(self, config: MatchingConfig, session_factory=None, notifier=None):
        self.config = config
        self.session_factory = session_factory
        self.notifier = notifier

    # Public operations

    def get_match(self, match_id: Any, user_id: str) -> HousingMatch:
        """Load a match for one of its parties."""
        with housing_uow(self.session_factory) as repo:
            match = repo.matches.get_by_id(match_id)
            if match is None:
                raise NotFoundError(f"Match {match_id} not found")
            if party_of(match, user_id) is None:
                raise NotAParty(f"User is not a party to match {match_id}")
            return match

    def party_for(self, match_id: Any, user_id: str) -> str:
        with housing_uow(self.session_factory) as repo:
            match = repo.matches.get_by_id(match_id)
            if match is None:
                raise NotFoundError(f"Match {match_id} not found")
            party = party_of(match, user_id)
        if party is None:
            raise NotAParty(f"User is not a party to match {match_id}")
        return party

    def transition(self, match_id: Any, target: str, reason: Optional[str] = None) -> HousingMatch:
        return self._apply(match_id, lambda match: (target, {}, reason))

    def mark_viewed(self, match_id: Any, viewer_id: str) -> HousingMatch:
        def decide(match: HousingMatch) -> Decision:
            party = party_of(match, viewer_id)
            if party is None:
                raise NotAParty(f"User is not a party to match {match_id}")
            return MatchStatus.VIEWED, {}, f"viewed_by_{party}"

        return self._apply(match_id, decide)

    def set_interest(
        self,
        match_id: Any,
        party: str,
        interested: bool,
        actor_id: Optional[str] = None,
    ) -> HousingMatch:
        """
        Record a party's interest. Negative interest declines the match;
        positive interest implies the match has been viewed.
        """
        if party not in PARTIES:
            raise ValidationError(f"party must be one of {PARTIES}, got {party!r}")

        def decide(match: HousingMatch) -> Decision:
            if actor_id is not None and party_of(match, actor_id) != party:
                raise NotAParty(f"User cannot act as {party} on match {match_id}")
            if match.is_terminal:
                raise MatchTerminalError(f"Match {match_id} is {match.status}")
            if interested:
                return MatchStatus.VIEWED, {f"{party}_interest": True}, f"interest_from_{party}"
            return MatchStatus.DECLINED, {f"{party}_interest": False}, f"declined_by_{party}"

        return self._apply(match_id, decide)

    def expire(self, match_id: Any, reason: str) -> HousingMatch:
        return self.transition(match_id, MatchStatus.EXPIRED, reason)

    def expire_for_listing(self, listing_id: Any, reason: str = "listing_unavailable") -> int:
        with housing_uow(self.session_factory) as repo:
            match_ids = [m.id for m in repo.matches.live_for_listing(listing_id)]
        return self._expire_each(match_ids, reason)

    def expire_for_tenant(self, tenant_profile_id: Any, reason: str = "tenant_inactive") -> int:
        with housing_uow(self.session_factory) as repo:
            match_ids = [m.id for m in repo.matches.live_for_tenant(tenant_profile_id)]
        return self._expire_each(match_ids, reason)

    def expire_if_due(self, match_id: Any, now: Optional[datetime] = None) -> bool:
        """Expire a live match whose listing, tenant or age no longer allows it to stay open."""
        now = now or utcnow()

        def decide(match: HousingMatch) -> Decision:
            reason = self.expiry_reason(match, now)
            return (MatchStatus.EXPIRED if reason else None), {}, reason

        match = self._apply(match_id, decide)
        return match.status == MatchStatus.EXPIRED

    def expiry_reason(self, match: HousingMatch, now: datetime) -> Optional[str]:
        if match.is_terminal:
            return None
        listing = match.listing
        if listing.status in (ListingStatus.INACTIVE, ListingStatus.RENTED):
            return f"listing_{listing.status}"
        if listing.is_expired(now):
            return "listing_expired"
        if not match.tenant_profile.is_active:
            return "tenant_inactive"
        ttl = timedelta(days=self.config.match_ttl_days)
        if match.status != MatchStatus.CONTACTED and match.created_at + ttl <= now:
            return "ttl_elapsed"
        return None

    def sweep_expired(
        self,
        now: Optional[datetime] = None,
        after_id: Any = None,
        limit: int = 200,
    ) -> Tuple[int, int, Any]:
        """
        Check one batch of live matches ordered by id after `after_id`.

        Returns (scanned, expired, last_id); last_id is None once no live
        match remains after the checkpoint.
        """
        now = now or utcnow()
        with housing_uow(self.session_factory) as repo:
            match_ids = repo.matches.live_ids_after(after_id, limit)

        expired = 0
        for match_id in match_ids:
            try:
                if self.expire_if_due(match_id, now):
                    expired += 1
            except Exception as e:
                logger.error(f"Expiry check failed for match {match_id}: {e}", exc_info=True)

        last_id = match_ids[-1] if match_ids else None
        return len(match_ids), expired, last_id

    # Internals

    def _expire_each(self, match_ids: List[Any], reason: str) -> int:
        expired = 0
        for match_id in match_ids:
            try:
                match = self.transition(match_id, MatchStatus.EXPIRED, reason)
                if match.status == MatchStatus.EXPIRED:
                    expired += 1
            except Exception as e:
                logger.error(f"Failed to expire match {match_id}: {e}", exc_info=True)
        if expired:
            logger.info(f"Expired {expired} matches ({reason})")
        return expired

    def _apply(self, match_id: Any, decide: Callable[[HousingMatch], Decision]) -> HousingMatch:
        for attempt in (1, 2):
            notice = None
            with housing_uow(self.session_factory) as repo:
                match = repo.matches.get_fresh(match_id)
                if match is None:
                    raise NotFoundError(f"Match {match_id} not found")

                target, values, reason = decide(match)
                new_status = resolve_transition(match.status, target) if target else None
                changes = {k: v for k, v in values.items() if getattr(match, k) != v}
                if new_status is None and not changes:
                    return match

                now = utcnow()
                changes['updated_at'] = now
                if new_status:
                    changes['status'] = new_status
                    changes['status_reason'] = reason
                    if is_terminal(new_status):
                        changes['live_pair_key'] = None

                previous_status = match.status
                applied = repo.matches.compare_and_set(match.id, match.version, **changes)
                if applied:
                    match = repo.matches.get_fresh(match.id)
                    if new_status:
                        notice = MatchNotice.from_match(match, match.tenant_profile, match.listing, previous_status)

            if applied:
                if new_status:
                    logger.info(f"Match {match_id}: {previous_status} -> {new_status} ({reason})")
                    self._notify(notice)
                return match

            logger.warning(f"Version conflict on match {match_id} (attempt {attempt}); re-reading")

        raise ConcurrencyConflict(f"Match {match_id} was modified concurrently, please retry")

    def _notify(self, notice: Optional[MatchNotice]) -> None:
        if self.notifier is None or notice is None:
            return
        try:
            self.notifier.notify_status_change(notice)
        except Exception as e:
            logger.error(f"Status notification failed for match {notice.match_id}: {e}")

"""
Match Index - deduplicated storage of scored tenant/listing pairs.

A rescan loads the changed side plus coarse candidates for the other side,
scores all pairs on a bounded thread pool, then persists each pair in its
own unit of work so one failing pair never aborts the rest.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Callable, Iterable, Iterator, List, Optional, Set, Tuple

from sqlalchemy.exc import IntegrityError

from core.config_loader import MatchingConfig
from core.errors import ExternalDependencyError, NotFoundError
from core.lifecycle import MatchLifecycleManager
from core.match_index.persistence import UpsertOutcome, persist_score, rank_key
from core.scorer import CompatibilityScorer, ScoreResult
from core.scorer.hard_filters import location_matches, property_type_matches
from database.models import PropertyListing, TenantProfile
from database.types import utcnow
from database.uow import housing_uow
from notification.message_builder import MatchNotice

logger = logging.getLogger(__name__)

Pair = Tuple[TenantProfile, PropertyListing]


@dataclass
class RescanReport:
    scored: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    expired: int = 0
    rejected: int = 0
    below_threshold: int = 0
    suppressed: int = 0
    capped: int = 0
    failed: int = 0

    def count(self, outcome: str) -> None:
        setattr(self, outcome, getattr(self, outcome) + 1)

    def to_dict(self) -> dict:
        return asdict(self)


class MatchIndex:
    def __init__(
        self,
        scorer: CompatibilityScorer,
        lifecycle: MatchLifecycleManager,
        config: MatchingConfig,
        session_factory=None,
        notifier=None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.scorer = scorer
        self.lifecycle = lifecycle
        self.config = config
        self.session_factory = session_factory
        self.notifier = notifier
        self._executor = executor or ThreadPoolExecutor(
            max_workers=config.rescan_workers, thread_name_prefix="pair-scorer"
        )

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    # Single pair

    def upsert_candidate(self, tenant_profile_id: Any, listing_id: Any, now: Optional[datetime] = None) -> str:
        """Score one pair and apply the index rules. Returns an UpsertOutcome value."""
        now = now or utcnow()
        with housing_uow(self.session_factory) as repo:
            tenant = repo.tenants.get_by_id(tenant_profile_id)
            listing = repo.listings.get_by_id(listing_id)
        if tenant is None or listing is None:
            raise NotFoundError(f"Pair {tenant_profile_id}/{listing_id} not found")

        try:
            result = self.scorer.score(tenant, listing, now)
        except ExternalDependencyError as e:
            self._record_failure(tenant.id, listing.id, e)
            return UpsertOutcome.FAILED
        return self._persist_pair(tenant, listing, result, now)

    # Rescans

    def rescan_for_tenant(self, tenant_profile_id: Any, now: Optional[datetime] = None) -> RescanReport:
        now = now or utcnow()
        with housing_uow(self.session_factory) as repo:
            tenant = repo.tenants.get_by_id(tenant_profile_id)
            if tenant is None:
                raise NotFoundError(f"Tenant profile {tenant_profile_id} not found")
            live_listing_ids = {m.listing_id for m in repo.matches.live_for_tenant(tenant.id)}

        if not tenant.is_active:
            report = RescanReport()
            report.expired = self.remove_tenant(tenant.id, reason="tenant_inactive")
            return report

        pages = self._candidate_batches(
            lambda repo, after_id, limit: repo.listings.candidates_for_tenant(tenant, now, after_id, limit),
            lambda repo, ids: repo.listings.get_many(ids),
            live_listing_ids,
        )
        live_pairs = {(tenant.id, listing_id) for listing_id in live_listing_ids}
        report = self._rescan(([(tenant, listing) for listing in page] for page in pages), live_pairs, now)
        logger.info(f"Rescan for tenant {tenant.id}: {report.to_dict()}")
        return report

    def rescan_for_listing(self, listing_id: Any, now: Optional[datetime] = None) -> RescanReport:
        now = now or utcnow()
        with housing_uow(self.session_factory) as repo:
            listing = repo.listings.get_by_id(listing_id)
            if listing is None:
                raise NotFoundError(f"Listing {listing_id} not found")
            live_tenant_ids = {m.tenant_profile_id for m in repo.matches.live_for_listing(listing.id)}

        if not listing.is_live(now):
            report = RescanReport()
            reason = "listing_expired" if listing.is_expired(now) else f"listing_{listing.status}"
            report.expired = self.remove_listing(listing.id, reason=reason)
            return report

        # JSON location/type membership is not portable SQL, so it is checked here
        pages = self._candidate_batches(
            lambda repo, after_id, limit: repo.tenants.candidates_for_listing(
                listing.bedrooms, listing.rent_amount, listing.currency, after_id, limit
            ),
            lambda repo, ids: repo.tenants.get_many(ids),
            live_tenant_ids,
            keep=lambda tenant: location_matches(tenant, listing, now) and property_type_matches(tenant, listing, now),
        )
        live_pairs = {(tenant_id, listing.id) for tenant_id in live_tenant_ids}
        report = self._rescan(([(tenant, listing) for tenant in page] for page in pages), live_pairs, now)
        logger.info(f"Rescan for listing {listing.id}: {report.to_dict()}")
        return report

    def retry_failed_pairs(self, limit: int = 100, now: Optional[datetime] = None) -> RescanReport:
        """Re-score pairs whose previous scoring raised."""
        now = now or utcnow()
        with housing_uow(self.session_factory) as repo:
            failed = [
                (f.tenant_profile_id, f.listing_id)
                for f in repo.matches.failed_pairs(limit, max_attempts=self.config.max_pair_attempts)
            ]

        report = RescanReport()
        for tenant_profile_id, listing_id in failed:
            try:
                outcome = self.upsert_candidate(tenant_profile_id, listing_id, now)
                if outcome != UpsertOutcome.FAILED:
                    report.scored += 1
                report.count(outcome)
            except NotFoundError:
                with housing_uow(self.session_factory) as repo:
                    repo.matches.clear_failure(tenant_profile_id, listing_id)
            except Exception as e:
                logger.error(f"Retry of pair {tenant_profile_id}/{listing_id} failed: {e}", exc_info=True)
                report.failed += 1
        if failed:
            logger.info(f"Retried {len(failed)} failed pairs: {report.to_dict()}")
        return report

    # Removal

    def remove_listing(self, listing_id: Any, reason: str = "listing_removed") -> int:
        expired = self.lifecycle.expire_for_listing(listing_id, reason)
        with housing_uow(self.session_factory) as repo:
            repo.matches.clear_failures_for(listing_id=listing_id)
        return expired

    def remove_tenant(self, tenant_profile_id: Any, reason: str = "tenant_removed") -> int:
        expired = self.lifecycle.expire_for_tenant(tenant_profile_id, reason)
        with housing_uow(self.session_factory) as repo:
            repo.matches.clear_failures_for(tenant_profile_id=tenant_profile_id)
        return expired

    # Internals

    def _candidate_batches(
        self,
        fetch_page: Callable[[Any, Any, int], list],
        fetch_many: Callable[[Any, List[Any]], list],
        live_ids: Set[Any],
        keep: Optional[Callable[[Any], bool]] = None,
    ) -> Iterator[list]:
        """
        Yield pre-filtered candidates in id-ordered pages of candidate_batch_size,
        then the live counterparts the pre-filter no longer returns so their
        matches get re-scored (and expired) too.
        """
        size = self.config.candidate_batch_size
        seen = set()
        after_id = None
        while True:
            with housing_uow(self.session_factory) as repo:
                rows = fetch_page(repo, after_id, size)
            if rows:
                after_id = rows[-1].id
            page = [row for row in rows if keep is None or keep(row)]
            seen.update(row.id for row in page)
            if page:
                yield page
            if len(rows) < size:
                break

        remaining = [row_id for row_id in live_ids if row_id not in seen]
        for start in range(0, len(remaining), size):
            with housing_uow(self.session_factory) as repo:
                page = fetch_many(repo, remaining[start:start + size])
            if page:
                yield page

    def _rescan(self, batches: Iterable[List[Pair]], live_pairs: Set[Tuple[Any, Any]], now: datetime) -> RescanReport:
        """
        Score batch by batch. Existing live pairs are refreshed as they come;
        new pairs compete for max_new_matches_per_rescan slots across the
        whole rescan and only the winners are persisted at the end.
        """
        report = RescanReport()
        cap = self.config.max_new_matches_per_rescan
        fresh = []
        for pairs in batches:
            for tenant, listing, result in self._score_all(pairs, now, report):
                if (tenant.id, listing.id) in live_pairs:
                    self._persist_counted(tenant, listing, result, now, report)
                elif result.hard_fail:
                    report.rejected += 1
                elif result.total < self.config.min_score_threshold:
                    report.below_threshold += 1
                else:
                    fresh.append((tenant, listing, result))
            fresh.sort(key=lambda item: rank_key(*item))
            report.capped += len(fresh[cap:])
            del fresh[cap:]

        for tenant, listing, result in fresh:
            self._persist_counted(tenant, listing, result, now, report)
        return report

    def _persist_counted(
        self, tenant: TenantProfile, listing: PropertyListing, result: ScoreResult, now: datetime, report: RescanReport
    ) -> None:
        try:
            report.count(self._persist_pair(tenant, listing, result, now))
        except Exception as e:
            logger.error(f"Persisting pair {tenant.id}/{listing.id} failed: {e}", exc_info=True)
            self._record_failure(tenant.id, listing.id, e)
            report.failed += 1

    def _score_all(self, pairs: Iterable[Pair], now: datetime, report: RescanReport):
        futures = {self._executor.submit(self.scorer.score, tenant, listing, now): (tenant, listing) for tenant, listing in pairs}
        scored = []
        for future in as_completed(futures):
            tenant, listing = futures[future]
            try:
                result = future.result()
            except ExternalDependencyError as e:
                logger.warning(f"Skipping pair {tenant.id}/{listing.id}: {e}")
                self._record_failure(tenant.id, listing.id, e)
                report.failed += 1
                continue
            except Exception as e:
                logger.error(f"Scoring pair {tenant.id}/{listing.id} failed: {e}", exc_info=True)
                self._record_failure(tenant.id, listing.id, e)
                report.failed += 1
                continue
            report.scored += 1
            scored.append((tenant, listing, result))
        return scored

    def _persist_pair(self, tenant: TenantProfile, listing: PropertyListing, result: ScoreResult, now: datetime) -> str:
        for attempt in (1, 2):
            try:
                with housing_uow(self.session_factory) as repo:
                    outcome, match = persist_score(
                        repo, tenant, listing, result, self.config.min_score_threshold, now
                    )
                    repo.matches.clear_failure(tenant.id, listing.id)
                    stale_match_id = match.id if outcome == UpsertOutcome.REJECTED and match else None
                    notice = MatchNotice.from_match(match, tenant, listing) if outcome == UpsertOutcome.CREATED else None
                break
            except IntegrityError:
                # Another worker created the live row first; the retry refreshes it in place
                if attempt == 2:
                    raise
                logger.warning(f"Concurrent insert for pair {tenant.id}/{listing.id}; retrying as update")

        if outcome == UpsertOutcome.CREATED:
            logger.info(f"Created match {notice.match_id} for pair {tenant.id}/{listing.id} (score {result.total})")
            self._notify_new(notice)
        elif stale_match_id is not None:
            self.lifecycle.expire(stale_match_id, f"ineligible_{result.failed_filter}")
            outcome = UpsertOutcome.EXPIRED
        return outcome

    def _record_failure(self, tenant_profile_id: Any, listing_id: Any, error: Exception) -> None:
        try:
            with housing_uow(self.session_factory) as repo:
                repo.matches.record_failure(tenant_profile_id, listing_id, str(error)[:500])
        except Exception as e:
            logger.error(f"Could not record failed pair {tenant_profile_id}/{listing_id}: {e}")

    def _notify_new(self, notice: MatchNotice) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.notify_new_match(notice)
        except Exception as e:
            logger.error(f"New-match notification failed for {notice.match_id}: {e}")

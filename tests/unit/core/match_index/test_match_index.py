#!/usr/bin/env python3
"""
Tests for the Match Index: deduplicated upserts, thresholds, rescans,
failure isolation and re-qualification of retired pairs.
"""

import unittest
from datetime import timedelta
from decimal import Decimal
from typing import Optional
from unittest.mock import Mock, patch

from core.config_loader import MatchingConfig
from core.errors import ExternalDependencyError
from core.fx import FxRateProvider
from core.lifecycle import MatchLifecycleManager
from core.match_index import MatchIndex, UpsertOutcome
from core.scorer import CompatibilityScorer
from database.models import ListingStatus, MatchStatus
from database.types import utcnow
from database.repositories.listing import ListingRepository
from database.repositories.tenant_profile import TenantProfileRepository
from database.uow import housing_uow
from tests import (
    build_matching,
    count_matches,
    drop_database,
    get_match,
    live_match,
    make_session_factory,
    seed_listing,
    seed_tenant,
)


class SwitchableFx(FxRateProvider):
    """EUR->USD at 1.1 unless switched off, in which case lookups time out."""

    def __init__(self):
        self.down = False

    def get_rate(self, from_currency: str, to_currency: str) -> Optional[Decimal]:
        if self.down:
            raise ExternalDependencyError("FX service timed out")
        if (from_currency, to_currency) == ("EUR", "USD"):
            return Decimal("1.1")
        return None


class MatchIndexTestCase(unittest.TestCase):
    matching_config = None

    def setUp(self):
        self.session_factory, self.temp_dir = make_session_factory()
        self.notifier = Mock()
        self.scorer, self.lifecycle, self.index = build_matching(
            self.session_factory, notifier=self.notifier, matching_config=self.matching_config
        )
        self.move_in = utcnow() + timedelta(days=14)

    def tearDown(self):
        self.index.shutdown()
        drop_database(self.session_factory, self.temp_dir)

    def tenant(self, **overrides):
        overrides.setdefault('move_in_date', self.move_in)
        return seed_tenant(self.session_factory, **overrides)

    def listing(self, **overrides):
        overrides.setdefault('available_from', self.move_in)
        return seed_listing(self.session_factory, **overrides)

    def update_listing(self, listing_id, **fields):
        with housing_uow(self.session_factory) as repo:
            repo.listings.update(repo.listings.get_by_id(listing_id), **fields)

    def update_tenant(self, tenant_id, **fields):
        with housing_uow(self.session_factory) as repo:
            repo.tenants.update(repo.tenants.get_by_id(tenant_id), **fields)


class TestUpsertCandidate(MatchIndexTestCase):

    def test_01_example_pair_creates_pending_match(self):
        tenant, listing = self.tenant(), self.listing()

        outcome = self.index.upsert_candidate(tenant.id, listing.id)

        self.assertEqual(outcome, UpsertOutcome.CREATED)
        match = live_match(self.session_factory, tenant.id, listing.id)
        self.assertIsNotNone(match)
        self.assertEqual(match.status, MatchStatus.PENDING)
        self.assertAlmostEqual(float(match.compatibility_score), 88.75, places=1)
        self.assertEqual(match.match_factors['amenity_coverage'], 1.0)
        self.assertEqual(match.messages_count, 0)
        self.notifier.notify_new_match.assert_called_once()

    def test_02_example_over_budget_stores_nothing(self):
        tenant, listing = self.tenant(), self.listing(rent_amount=Decimal("1500"))

        outcome = self.index.upsert_candidate(tenant.id, listing.id)

        self.assertEqual(outcome, UpsertOutcome.REJECTED)
        self.assertEqual(count_matches(self.session_factory), 0)
        self.notifier.notify_new_match.assert_not_called()

    def test_reupsert_is_idempotent(self):
        tenant, listing = self.tenant(), self.listing()
        self.index.upsert_candidate(tenant.id, listing.id)
        first = live_match(self.session_factory, tenant.id, listing.id)

        outcome = self.index.upsert_candidate(tenant.id, listing.id)

        second = live_match(self.session_factory, tenant.id, listing.id)
        self.assertEqual(outcome, UpsertOutcome.UNCHANGED)
        self.assertEqual(count_matches(self.session_factory), 1)
        self.assertEqual(first.id, second.id)
        self.assertEqual(first.compatibility_score, second.compatibility_score)
        self.assertEqual(first.match_factors, second.match_factors)
        self.assertEqual(first.version, second.version)

    def test_rescore_updates_in_place_keeping_lifecycle(self):
        tenant, listing = self.tenant(), self.listing()
        self.index.upsert_candidate(tenant.id, listing.id)
        match = live_match(self.session_factory, tenant.id, listing.id)
        viewed = self.lifecycle.mark_viewed(match.id, tenant.user_id)

        self.update_listing(listing.id, rent_amount=Decimal("900"))
        outcome = self.index.upsert_candidate(tenant.id, listing.id)

        refreshed = get_match(self.session_factory, match.id)
        self.assertEqual(outcome, UpsertOutcome.UPDATED)
        self.assertEqual(refreshed.status, MatchStatus.VIEWED)
        self.assertEqual(refreshed.created_at, viewed.created_at)
        self.assertEqual(refreshed.updated_at, viewed.updated_at)
        self.assertEqual(refreshed.version, viewed.version)
        self.assertLess(float(refreshed.compatibility_score), float(viewed.compatibility_score))
        self.assertEqual(refreshed.match_factors['budget_fit'], 0.5)

    def test_below_threshold_is_not_stored(self):
        _, _, index = build_matching(
            self.session_factory, matching_config=MatchingConfig(min_score_threshold=95)
        )
        try:
            tenant, listing = self.tenant(), self.listing()
            outcome = index.upsert_candidate(tenant.id, listing.id)
        finally:
            index.shutdown()

        self.assertEqual(outcome, UpsertOutcome.BELOW_THRESHOLD)
        self.assertEqual(count_matches(self.session_factory), 0)

    def test_live_match_that_stops_qualifying_expires(self):
        tenant, listing = self.tenant(), self.listing()
        self.index.upsert_candidate(tenant.id, listing.id)
        match = live_match(self.session_factory, tenant.id, listing.id)

        self.update_listing(listing.id, rent_amount=Decimal("1500"))
        outcome = self.index.upsert_candidate(tenant.id, listing.id)

        expired = get_match(self.session_factory, match.id)
        self.assertEqual(outcome, UpsertOutcome.EXPIRED)
        self.assertEqual(expired.status, MatchStatus.EXPIRED)
        self.assertEqual(expired.status_reason, "ineligible_budget")
        self.assertIsNone(expired.live_pair_key)


class TestRescans(MatchIndexTestCase):

    def test_rescan_for_tenant_uses_prefilter_and_scores(self):
        tenant = self.tenant()
        good = self.listing()
        self.listing(city="Leeds")
        self.listing(rent_amount=Decimal("1500"))
        self.listing(status=ListingStatus.PENDING)

        report = self.index.rescan_for_tenant(tenant.id)

        self.assertEqual(report.created, 1)
        self.assertEqual(report.scored, 1)
        self.assertEqual(count_matches(self.session_factory, tenant_profile_id=tenant.id), 1)
        self.assertIsNotNone(live_match(self.session_factory, tenant.id, good.id))

    def test_rescan_for_listing_is_symmetric(self):
        listing = self.listing()
        match_tenant = self.tenant(user_id="tenant-a")
        self.tenant(user_id="tenant-b", target_cities=["London"])
        self.tenant(user_id="tenant-c", min_budget=Decimal("300"), max_budget=Decimal("600"))
        self.tenant(user_id="tenant-d", is_active=False)

        report = self.index.rescan_for_listing(listing.id)

        self.assertEqual(report.created, 1)
        self.assertEqual(count_matches(self.session_factory, listing_id=listing.id), 1)
        self.assertIsNotNone(live_match(self.session_factory, match_tenant.id, listing.id))

    def test_rescan_twice_never_duplicates(self):
        tenant = self.tenant()
        self.listing()
        self.listing(title="Second flat in the same area", rent_amount=Decimal("950"))

        self.index.rescan_for_tenant(tenant.id)
        report = self.index.rescan_for_tenant(tenant.id)

        self.assertEqual(report.created, 0)
        self.assertEqual(report.unchanged, 2)
        self.assertEqual(count_matches(self.session_factory), 2)

    def test_rescan_of_unavailable_listing_expires_its_matches(self):
        tenant, listing = self.tenant(), self.listing()
        self.index.rescan_for_tenant(tenant.id)
        match = live_match(self.session_factory, tenant.id, listing.id)

        self.update_listing(listing.id, status=ListingStatus.RENTED)
        report = self.index.rescan_for_listing(listing.id)

        self.assertEqual(report.expired, 1)
        expired = get_match(self.session_factory, match.id)
        self.assertEqual(expired.status, MatchStatus.EXPIRED)
        self.assertEqual(expired.status_reason, "listing_rented")

    def test_rescan_of_inactive_tenant_expires_its_matches(self):
        tenant, listing = self.tenant(), self.listing()
        self.index.rescan_for_tenant(tenant.id)

        self.update_tenant(tenant.id, is_active=False)
        report = self.index.rescan_for_tenant(tenant.id)

        self.assertEqual(report.expired, 1)
        self.assertIsNone(live_match(self.session_factory, tenant.id, listing.id))


    def test_padded_labels_match_from_both_sides(self):
        tenant = self.tenant(target_cities=[" manchester "])
        listing = self.listing(city="Manchester ")

        from_tenant = self.index.rescan_for_tenant(tenant.id)
        from_listing = self.index.rescan_for_listing(listing.id)

        self.assertEqual(from_tenant.created, 1)
        self.assertEqual(from_listing.unchanged, 1)
        self.assertEqual(count_matches(self.session_factory), 1)


class TestCandidateBatches(MatchIndexTestCase):
    matching_config = MatchingConfig(candidate_batch_size=2)

    def test_tenant_rescan_pages_through_all_listings(self):
        tenant = self.tenant()
        for rent in ("1000", "990", "980", "970", "960"):
            self.listing(rent_amount=Decimal(rent))
        original = ListingRepository.candidates_for_tenant

        with patch.object(ListingRepository, "candidates_for_tenant", autospec=True, side_effect=original) as fetch:
            report = self.index.rescan_for_tenant(tenant.id)

        self.assertEqual(report.created, 5)
        self.assertEqual(fetch.call_count, 3)
        self.assertEqual(count_matches(self.session_factory, tenant_profile_id=tenant.id), 5)

    def test_listing_rescan_pages_through_all_tenants(self):
        listing = self.listing()
        for i in range(4):
            self.tenant(user_id=f"tenant-{i}")
        self.tenant(user_id="tenant-london", target_cities=["London"])
        original = TenantProfileRepository.candidates_for_listing

        with patch.object(TenantProfileRepository, "candidates_for_listing", autospec=True, side_effect=original) as fetch:
            report = self.index.rescan_for_listing(listing.id)

        self.assertEqual(report.created, 4)
        self.assertEqual(fetch.call_count, 3)

    def test_cap_holds_across_batches(self):
        _, _, index = build_matching(
            self.session_factory,
            matching_config=MatchingConfig(candidate_batch_size=2, max_new_matches_per_rescan=2),
        )
        tenant = self.tenant()
        best = self.listing(title="Flat at the budget midpoint", rent_amount=Decimal("1000"))
        for rent in ("850", "860", "870"):
            self.listing(rent_amount=Decimal(rent))
        second = self.listing(title="Flat slightly under midpoint", rent_amount=Decimal("950"))
        try:
            report = index.rescan_for_tenant(tenant.id)
        finally:
            index.shutdown()

        self.assertEqual(report.created, 2)
        self.assertEqual(report.capped, 3)
        self.assertIsNotNone(live_match(self.session_factory, tenant.id, best.id))
        self.assertIsNotNone(live_match(self.session_factory, tenant.id, second.id))


class TestNewMatchCap(MatchIndexTestCase):
    matching_config = MatchingConfig(max_new_matches_per_rescan=2)

    def test_only_top_candidates_are_created(self):
        tenant = self.tenant()
        best = self.listing(title="Flat at the budget midpoint", rent_amount=Decimal("1000"))
        second = self.listing(title="Flat slightly under midpoint", rent_amount=Decimal("950"))
        third = self.listing(title="Flat near the budget floor", rent_amount=Decimal("850"))

        report = self.index.rescan_for_tenant(tenant.id)

        self.assertEqual(report.created, 2)
        self.assertEqual(report.capped, 1)
        self.assertIsNotNone(live_match(self.session_factory, tenant.id, best.id))
        self.assertIsNotNone(live_match(self.session_factory, tenant.id, second.id))
        self.assertIsNone(live_match(self.session_factory, tenant.id, third.id))

    def test_existing_matches_do_not_count_against_cap(self):
        tenant = self.tenant()
        for rent in ("1000", "950"):
            self.listing(rent_amount=Decimal(rent))
        self.index.rescan_for_tenant(tenant.id)
        self.listing(rent_amount=Decimal("900"))

        report = self.index.rescan_for_tenant(tenant.id)

        self.assertEqual(report.created, 1)
        self.assertEqual(report.unchanged, 2)
        self.assertEqual(count_matches(self.session_factory), 3)


class TestFailureIsolation(unittest.TestCase):

    def setUp(self):
        self.session_factory, self.temp_dir = make_session_factory()
        self.fx = SwitchableFx()
        config = MatchingConfig()
        self.scorer = CompatibilityScorer(config.weights, self.fx)
        self.lifecycle = MatchLifecycleManager(config, self.session_factory)
        self.index = MatchIndex(self.scorer, self.lifecycle, config, self.session_factory)
        self.move_in = utcnow() + timedelta(days=14)

    def tearDown(self):
        self.index.shutdown()
        drop_database(self.session_factory, self.temp_dir)

    def test_fx_outage_skips_pair_and_keeps_others(self):
        tenant = seed_tenant(self.session_factory, move_in_date=self.move_in)
        usd = seed_listing(self.session_factory, available_from=self.move_in)
        eur = seed_listing(self.session_factory, available_from=self.move_in,
                           rent_amount=Decimal("900"), currency="EUR")
        self.fx.down = True

        report = self.index.rescan_for_tenant(tenant.id)

        self.assertEqual(report.failed, 1)
        self.assertEqual(report.created, 1)
        self.assertIsNotNone(live_match(self.session_factory, tenant.id, usd.id))
        self.assertIsNone(live_match(self.session_factory, tenant.id, eur.id))
        with housing_uow(self.session_factory) as repo:
            failed = repo.matches.failed_pairs(limit=10)
        self.assertEqual([(f.tenant_profile_id, f.listing_id) for f in failed], [(tenant.id, eur.id)])

    def test_failed_pair_is_retried_once_provider_recovers(self):
        tenant = seed_tenant(self.session_factory, move_in_date=self.move_in)
        eur = seed_listing(self.session_factory, available_from=self.move_in,
                           rent_amount=Decimal("900"), currency="EUR")
        self.fx.down = True
        self.index.rescan_for_tenant(tenant.id)

        self.fx.down = False
        report = self.index.retry_failed_pairs()

        self.assertEqual(report.created, 1)
        self.assertIsNotNone(live_match(self.session_factory, tenant.id, eur.id))
        with housing_uow(self.session_factory) as repo:
            self.assertEqual(repo.matches.failed_pairs(limit=10), [])

    def test_repeated_failures_count_attempts(self):
        tenant = seed_tenant(self.session_factory, move_in_date=self.move_in)
        seed_listing(self.session_factory, available_from=self.move_in,
                     rent_amount=Decimal("900"), currency="EUR")
        self.fx.down = True

        self.index.rescan_for_tenant(tenant.id)
        report = self.index.retry_failed_pairs()

        self.assertEqual(report.failed, 1)
        with housing_uow(self.session_factory) as repo:
            failed = repo.matches.failed_pairs(limit=10)
        self.assertEqual(failed[0].attempts, 2)

    def test_unsupported_currency_is_a_hard_fail_not_a_failure(self):
        tenant = seed_tenant(self.session_factory, move_in_date=self.move_in)
        seed_listing(self.session_factory, available_from=self.move_in, currency="JPY",
                     rent_amount=Decimal("150000"))

        report = self.index.rescan_for_tenant(tenant.id)

        self.assertEqual(report.rejected, 1)
        self.assertEqual(report.failed, 0)
        self.assertEqual(count_matches(self.session_factory), 0)


class TestRequalification(MatchIndexTestCase):

    def setUp(self):
        super().setUp()
        self.tenant_row = self.tenant()
        self.listing_row = self.listing()
        self.index.upsert_candidate(self.tenant_row.id, self.listing_row.id)
        self.match = live_match(self.session_factory, self.tenant_row.id, self.listing_row.id)

    def test_declined_pair_is_never_revived(self):
        self.lifecycle.set_interest(self.match.id, 'tenant', False)
        self.update_tenant(self.tenant_row.id, bio="Still looking")

        outcome = self.index.upsert_candidate(self.tenant_row.id, self.listing_row.id)

        self.assertEqual(outcome, UpsertOutcome.SUPPRESSED)
        self.assertEqual(count_matches(self.session_factory), 1)
        self.assertEqual(get_match(self.session_factory, self.match.id).status, MatchStatus.DECLINED)

    def test_expired_pair_waits_for_a_change(self):
        self.lifecycle.expire(self.match.id, "ttl_elapsed")

        outcome = self.index.upsert_candidate(self.tenant_row.id, self.listing_row.id)

        self.assertEqual(outcome, UpsertOutcome.SUPPRESSED)
        self.assertEqual(count_matches(self.session_factory), 1)

    def test_expired_pair_requalifies_as_fresh_row(self):
        self.lifecycle.expire(self.match.id, "ttl_elapsed")
        self.update_listing(self.listing_row.id, description="Newly repainted")

        outcome = self.index.upsert_candidate(self.tenant_row.id, self.listing_row.id)

        self.assertEqual(outcome, UpsertOutcome.CREATED)
        self.assertEqual(count_matches(self.session_factory), 2)
        fresh = live_match(self.session_factory, self.tenant_row.id, self.listing_row.id)
        self.assertNotEqual(fresh.id, self.match.id)
        self.assertEqual(fresh.status, MatchStatus.PENDING)
        self.assertEqual(get_match(self.session_factory, self.match.id).status, MatchStatus.EXPIRED)


if __name__ == '__main__':
    unittest.main()

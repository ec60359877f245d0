#!/usr/bin/env python3
"""
Tests for the Match Lifecycle Manager.

Covers the forward-only state machine, party checks, terminal states,
expiry reasons and the version compare-and-set retry.
"""

import unittest
from datetime import timedelta
from unittest.mock import Mock, patch

from core.errors import ConcurrencyConflict, MatchTerminalError, NotAParty, NotFoundError, ValidationError
from core.lifecycle.state_machine import resolve_transition
from core.messaging import MessagingService
from database.models import ListingStatus, MatchStatus
from database.repositories.match import MatchRepository
from database.types import utcnow
from database.uow import housing_uow
from tests import build_matching, drop_database, get_match, live_match, make_session_factory, seed_listing, seed_tenant


class TestStateMachine(unittest.TestCase):

    def test_forward_moves_apply(self):
        self.assertEqual(resolve_transition(MatchStatus.PENDING, MatchStatus.VIEWED), MatchStatus.VIEWED)
        self.assertEqual(resolve_transition(MatchStatus.PENDING, MatchStatus.CONTACTED), MatchStatus.CONTACTED)
        self.assertEqual(resolve_transition(MatchStatus.VIEWED, MatchStatus.DECLINED), MatchStatus.DECLINED)
        self.assertEqual(resolve_transition(MatchStatus.CONTACTED, MatchStatus.EXPIRED), MatchStatus.EXPIRED)

    def test_backward_and_repeated_moves_are_noops(self):
        self.assertIsNone(resolve_transition(MatchStatus.CONTACTED, MatchStatus.VIEWED))
        self.assertIsNone(resolve_transition(MatchStatus.VIEWED, MatchStatus.VIEWED))
        self.assertIsNone(resolve_transition(MatchStatus.VIEWED, MatchStatus.PENDING))

    def test_terminal_states_absorb(self):
        for terminal in (MatchStatus.DECLINED, MatchStatus.EXPIRED):
            for target in (MatchStatus.PENDING, MatchStatus.VIEWED, MatchStatus.CONTACTED,
                           MatchStatus.DECLINED, MatchStatus.EXPIRED):
                self.assertIsNone(resolve_transition(terminal, target))

    def test_unknown_status_rejected(self):
        with self.assertRaises(ValueError):
            resolve_transition(MatchStatus.PENDING, 'archived')


class LifecycleTestCase(unittest.TestCase):

    def setUp(self):
        self.session_factory, self.temp_dir = make_session_factory()
        self.notifier = Mock()
        _, self.lifecycle, self.index = build_matching(self.session_factory, notifier=self.notifier)

        move_in = utcnow() + timedelta(days=14)
        self.tenant = seed_tenant(self.session_factory, move_in_date=move_in)
        self.listing = seed_listing(self.session_factory, available_from=move_in)
        self.index.upsert_candidate(self.tenant.id, self.listing.id)
        self.match = live_match(self.session_factory, self.tenant.id, self.listing.id)
        self.notifier.reset_mock()

    def tearDown(self):
        self.index.shutdown()
        drop_database(self.session_factory, self.temp_dir)


class TestViewAndInterest(LifecycleTestCase):

    def test_01_mark_viewed_by_tenant(self):
        match = self.lifecycle.mark_viewed(self.match.id, "tenant-1")

        self.assertEqual(match.status, MatchStatus.VIEWED)
        self.assertEqual(match.status_reason, "viewed_by_tenant")
        self.assertEqual(match.version, self.match.version + 1)
        self.assertGreaterEqual(match.updated_at, self.match.updated_at)
        self.notifier.notify_status_change.assert_called_once()

    def test_02_mark_viewed_twice_is_noop(self):
        first = self.lifecycle.mark_viewed(self.match.id, "tenant-1")
        second = self.lifecycle.mark_viewed(self.match.id, "landlord-1")

        self.assertEqual(second.status, MatchStatus.VIEWED)
        self.assertEqual(second.version, first.version)
        self.assertEqual(self.notifier.notify_status_change.call_count, 1)

    def test_mark_viewed_by_stranger_rejected(self):
        with self.assertRaises(NotAParty):
            self.lifecycle.mark_viewed(self.match.id, "someone-else")
        self.assertEqual(get_match(self.session_factory, self.match.id).status, MatchStatus.PENDING)

    def test_unknown_match_raises_not_found(self):
        with self.assertRaises(NotFoundError):
            self.lifecycle.mark_viewed(self.tenant.id, "tenant-1")

    def test_view_after_contact_does_not_regress(self):
        MessagingService(self.session_factory).post_message(self.match.id, "tenant-1", "Hi, is it available?")

        match = self.lifecycle.mark_viewed(self.match.id, "landlord-1")

        self.assertEqual(match.status, MatchStatus.CONTACTED)

    def test_positive_interest_implies_viewed(self):
        match = self.lifecycle.set_interest(self.match.id, 'landlord', True, actor_id="landlord-1")

        self.assertEqual(match.status, MatchStatus.VIEWED)
        self.assertTrue(match.landlord_interest)
        self.assertIsNone(match.tenant_interest)
        self.assertEqual(match.status_reason, "interest_from_landlord")

    def test_interest_on_viewed_match_only_sets_flag(self):
        viewed = self.lifecycle.mark_viewed(self.match.id, "tenant-1")

        match = self.lifecycle.set_interest(self.match.id, 'tenant', True)

        self.assertEqual(match.status, MatchStatus.VIEWED)
        self.assertTrue(match.tenant_interest)
        self.assertEqual(match.status_reason, viewed.status_reason)
        self.assertEqual(match.version, viewed.version + 1)

    def test_invalid_party_rejected(self):
        with self.assertRaises(ValidationError):
            self.lifecycle.set_interest(self.match.id, 'agent', True)

    def test_actor_must_be_the_party(self):
        with self.assertRaises(NotAParty):
            self.lifecycle.set_interest(self.match.id, 'landlord', True, actor_id="tenant-1")

    def test_party_for(self):
        self.assertEqual(self.lifecycle.party_for(self.match.id, "tenant-1"), 'tenant')
        self.assertEqual(self.lifecycle.party_for(self.match.id, "landlord-1"), 'landlord')
        with self.assertRaises(NotAParty):
            self.lifecycle.party_for(self.match.id, "someone-else")

    def test_get_match_checks_party(self):
        self.assertEqual(self.lifecycle.get_match(self.match.id, "tenant-1").id, self.match.id)
        with self.assertRaises(NotAParty):
            self.lifecycle.get_match(self.match.id, "someone-else")


class TestDecline(LifecycleTestCase):

    def test_decline_is_absorbing(self):
        declined = self.lifecycle.set_interest(self.match.id, 'tenant', False, actor_id="tenant-1")

        self.assertEqual(declined.status, MatchStatus.DECLINED)
        self.assertEqual(declined.status_reason, "declined_by_tenant")
        self.assertFalse(declined.tenant_interest)
        self.assertIsNone(declined.live_pair_key)
        self.assertIsNone(live_match(self.session_factory, self.tenant.id, self.listing.id))

        after = self.lifecycle.mark_viewed(self.match.id, "landlord-1")
        self.assertEqual(after.status, MatchStatus.DECLINED)
        self.assertEqual(after.version, declined.version)

    def test_interest_on_terminal_match_raises(self):
        self.lifecycle.set_interest(self.match.id, 'landlord', False)

        with self.assertRaises(MatchTerminalError):
            self.lifecycle.set_interest(self.match.id, 'tenant', True)

    def test_expire_after_decline_keeps_decline(self):
        self.lifecycle.set_interest(self.match.id, 'landlord', False)

        match = self.lifecycle.expire(self.match.id, "ttl_elapsed")

        self.assertEqual(match.status, MatchStatus.DECLINED)
        self.assertEqual(match.status_reason, "declined_by_landlord")


class TestCompareAndSet(LifecycleTestCase):

    def test_lost_race_is_retried_once(self):
        original = MatchRepository.compare_and_set
        calls = []

        def lose_first(repo, match_id, expected_version, **values):
            calls.append(expected_version)
            if len(calls) == 1:
                return False
            return original(repo, match_id, expected_version, **values)

        with patch.object(MatchRepository, 'compare_and_set', autospec=True, side_effect=lose_first):
            match = self.lifecycle.mark_viewed(self.match.id, "tenant-1")

        self.assertEqual(len(calls), 2)
        self.assertEqual(match.status, MatchStatus.VIEWED)

    def test_repeated_conflict_raises(self):
        with patch.object(MatchRepository, 'compare_and_set', autospec=True, return_value=False):
            with self.assertRaises(ConcurrencyConflict):
                self.lifecycle.mark_viewed(self.match.id, "tenant-1")

        self.assertEqual(get_match(self.session_factory, self.match.id).status, MatchStatus.PENDING)

    def test_concurrent_decline_wins_over_view(self):
        original = MatchRepository.compare_and_set
        calls = []

        def decline_first(repo, match_id, expected_version, **values):
            calls.append(expected_version)
            if len(calls) == 1:
                with housing_uow(self.session_factory) as other:
                    original(other.matches, match_id, expected_version, status=MatchStatus.DECLINED,
                             status_reason="declined_by_landlord", live_pair_key=None)
            return original(repo, match_id, expected_version, **values)

        with patch.object(MatchRepository, 'compare_and_set', autospec=True, side_effect=decline_first):
            match = self.lifecycle.mark_viewed(self.match.id, "tenant-1")

        self.assertEqual(match.status, MatchStatus.DECLINED)
        self.assertEqual(len(calls), 1)
        self.notifier.notify_status_change.assert_not_called()


class TestExpiry(LifecycleTestCase):

    def test_ttl_expires_uncontacted_match(self):
        later = utcnow() + timedelta(days=31)

        self.assertTrue(self.lifecycle.expire_if_due(self.match.id, later))

        match = get_match(self.session_factory, self.match.id)
        self.assertEqual(match.status, MatchStatus.EXPIRED)
        self.assertEqual(match.status_reason, "ttl_elapsed")
        self.assertIsNone(match.live_pair_key)
        self.notifier.notify_status_change.assert_called_once()

    def test_ttl_not_yet_elapsed(self):
        self.assertFalse(self.lifecycle.expire_if_due(self.match.id, utcnow() + timedelta(days=29)))
        self.assertEqual(get_match(self.session_factory, self.match.id).status, MatchStatus.PENDING)

    def test_contacted_match_survives_ttl(self):
        MessagingService(self.session_factory).post_message(self.match.id, "landlord-1", "Happy to arrange a viewing")

        self.assertFalse(self.lifecycle.expire_if_due(self.match.id, utcnow() + timedelta(days=60)))
        self.assertEqual(get_match(self.session_factory, self.match.id).status, MatchStatus.CONTACTED)

    def test_rented_listing_expires_match(self):
        with housing_uow(self.session_factory) as repo:
            repo.listings.update(repo.listings.get_by_id(self.listing.id), status=ListingStatus.RENTED)

        self.assertTrue(self.lifecycle.expire_if_due(self.match.id))
        self.assertEqual(get_match(self.session_factory, self.match.id).status_reason, "listing_rented")

    def test_lapsed_listing_expires_match(self):
        with housing_uow(self.session_factory) as repo:
            repo.listings.update(
                repo.listings.get_by_id(self.listing.id),
                listing_expires_at=utcnow() - timedelta(hours=1),
            )

        self.assertTrue(self.lifecycle.expire_if_due(self.match.id))
        self.assertEqual(get_match(self.session_factory, self.match.id).status_reason, "listing_expired")

    def test_inactive_tenant_expires_match(self):
        with housing_uow(self.session_factory) as repo:
            repo.tenants.update(repo.tenants.get_by_id(self.tenant.id), is_active=False)

        self.assertTrue(self.lifecycle.expire_if_due(self.match.id))
        self.assertEqual(get_match(self.session_factory, self.match.id).status_reason, "tenant_inactive")

    def test_expire_for_listing(self):
        expired = self.lifecycle.expire_for_listing(self.listing.id, "listing_inactive")

        self.assertEqual(expired, 1)
        self.assertEqual(get_match(self.session_factory, self.match.id).status_reason, "listing_inactive")
        self.assertEqual(self.lifecycle.expire_for_listing(self.listing.id), 0)

    def test_sweep_batch_reports_checkpoint(self):
        scanned, expired, last_id = self.lifecycle.sweep_expired(utcnow() + timedelta(days=31))

        self.assertEqual((scanned, expired, last_id), (1, 1, self.match.id))
        self.assertEqual(self.lifecycle.sweep_expired(utcnow()), (0, 0, None))


if __name__ == '__main__':
    unittest.main()

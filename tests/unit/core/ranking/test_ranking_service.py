#!/usr/bin/env python3
"""
Tests for the Ranking Service: ordering, keyset cursors and filtering.
"""

import base64
import unittest
import uuid
from datetime import timedelta

from core.errors import NotAParty, NotFoundError, ValidationError
from core.ranking import RankingService, decode_cursor
from database.models import MatchStatus
from database.types import utcnow
from database.uow import housing_uow
from tests import drop_database, make_session_factory, seed_listing, seed_tenant


class RankingTestCase(unittest.TestCase):

    def setUp(self):
        self.session_factory, self.temp_dir = make_session_factory()
        self.ranking = RankingService(self.session_factory)
        self.tenant = seed_tenant(self.session_factory)
        self.base_time = utcnow() - timedelta(days=1)
        self._listing_count = 0

    def tearDown(self):
        drop_database(self.session_factory, self.temp_dir)

    def add_match(self, score, status=MatchStatus.PENDING, minutes=0, tenant=None, listing=None):
        """Store a match with the given score/status, created `minutes` after base_time."""
        if listing is None:
            self._listing_count += 1
            listing = seed_listing(self.session_factory, title=f"Listing number {self._listing_count:03d}")
        tenant = tenant or self.tenant
        with housing_uow(self.session_factory) as repo:
            match = repo.matches.create(
                tenant.id, listing.id, score, {}, now=self.base_time + timedelta(minutes=minutes)
            )
            if status != MatchStatus.PENDING:
                values = {'status': status}
                if status in MatchStatus.TERMINAL:
                    values['live_pair_key'] = None
                repo.matches.compare_and_set(match.id, match.version, **values)
            match_id = match.id
        return match_id


class TestOrdering(RankingTestCase):

    def test_01_status_rank_then_score(self):
        pending_high = self.add_match(90)
        viewed = self.add_match(60, MatchStatus.VIEWED)
        contacted = self.add_match(50, MatchStatus.CONTACTED)
        pending_low = self.add_match(70)
        self.add_match(95, MatchStatus.DECLINED)

        page = self.ranking.matches_for_tenant(self.tenant.id)

        self.assertEqual([m.id for m in page.items], [contacted, viewed, pending_high, pending_low])
        self.assertIsNone(page.next_cursor)

    def test_02_terminal_rows_only_on_request(self):
        live = self.add_match(60)
        declined = self.add_match(95, MatchStatus.DECLINED)
        expired = self.add_match(90, MatchStatus.EXPIRED)

        page = self.ranking.matches_for_tenant(self.tenant.id, include_terminal=True)

        ids = [m.id for m in page.items]
        self.assertEqual(ids[0], live)
        self.assertEqual(set(ids[1:]), {declined, expired})

    def test_equal_scores_newest_first(self):
        older = self.add_match(80, minutes=1)
        newer = self.add_match(80, minutes=5)

        page = self.ranking.matches_for_tenant(self.tenant.id)

        self.assertEqual([m.id for m in page.items], [newer, older])

    def test_listing_side_listing(self):
        listing = seed_listing(self.session_factory, title="Shared listing for ranking")
        other = seed_tenant(self.session_factory, user_id="tenant-2")
        first = self.add_match(55, listing=listing)
        second = self.add_match(75, listing=listing, tenant=other)

        page = self.ranking.matches_for_listing(listing.id)

        self.assertEqual([m.id for m in page.items], [second, first])


class TestPagination(RankingTestCase):

    def test_pages_are_stable_under_inserts(self):
        expected = [self.add_match(score, minutes=i) for i, score in enumerate((90, 80, 70, 60, 50))]

        first = self.ranking.matches_for_tenant(self.tenant.id, page_size=2)
        self.assertEqual([m.id for m in first.items], expected[:2])
        self.assertIsNotNone(first.next_cursor)

        # A better match arriving between page loads must not shift later pages
        self.add_match(99, minutes=10)

        second = self.ranking.matches_for_tenant(self.tenant.id, cursor=first.next_cursor, page_size=2)
        third = self.ranking.matches_for_tenant(self.tenant.id, cursor=second.next_cursor, page_size=2)

        self.assertEqual([m.id for m in second.items], expected[2:4])
        self.assertEqual([m.id for m in third.items], expected[4:])
        self.assertIsNone(third.next_cursor)

    def test_exact_page_has_no_next_cursor(self):
        for score in (80, 70):
            self.add_match(score)

        page = self.ranking.matches_for_tenant(self.tenant.id, page_size=2)

        self.assertEqual(len(page.items), 2)
        self.assertIsNone(page.next_cursor)

    def test_cursor_round_trips_sort_key(self):
        self.add_match(80)
        match_id = self.add_match(70)

        page = self.ranking.matches_for_tenant(self.tenant.id, page_size=1)
        rank, score, created_at, decoded_id = decode_cursor(page.next_cursor)

        self.assertEqual(rank, 0)
        self.assertEqual(float(score), 80.0)
        self.assertNotEqual(decoded_id, match_id)
        self.assertIsNotNone(created_at.tzinfo)

    def test_malformed_cursor_rejected(self):
        self.add_match(80)
        bad_shape = base64.urlsafe_b64encode(b"[1, 2]").decode('ascii')

        for cursor in ("not a cursor", bad_shape):
            with self.assertRaises(ValidationError):
                self.ranking.matches_for_tenant(self.tenant.id, cursor=cursor)

    def test_unknown_owner_raises(self):
        with self.assertRaises(NotFoundError):
            self.ranking.matches_for_tenant(uuid.uuid4())
        with self.assertRaises(NotFoundError):
            self.ranking.matches_for_listing(self.tenant.id)

    def test_only_owner_may_list(self):
        listing = seed_listing(self.session_factory, title="Listing owned by landlord one")
        self.add_match(80, listing=listing)

        own = self.ranking.matches_for_tenant(self.tenant.id, viewer_id="tenant-1")
        landlord = self.ranking.matches_for_listing(listing.id, viewer_id="landlord-1")

        self.assertEqual(len(own.items), 1)
        self.assertEqual(len(landlord.items), 1)
        with self.assertRaises(NotAParty):
            self.ranking.matches_for_tenant(self.tenant.id, viewer_id="landlord-1")
        with self.assertRaises(NotAParty):
            self.ranking.matches_for_listing(listing.id, viewer_id="tenant-1")

    def test_empty_listing(self):
        page = self.ranking.matches_for_tenant(self.tenant.id)

        self.assertEqual(page.items, [])
        self.assertIsNone(page.next_cursor)


if __name__ == '__main__':
    unittest.main()

"""
Ranking/Query Service - stable, cursor-paginated match listings.

Reads never wait for rescans; results reflect the last committed scores.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from core.errors import NotAParty, NotFoundError
from core.ranking.cursor import decode_cursor, encode_cursor
from database.models import HousingMatch
from database.uow import housing_uow

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


@dataclass
class MatchPage:
    items: List[HousingMatch] = field(default_factory=list)
    next_cursor: Optional[str] = None


class RankingService:
    def __init__(self, session_factory=None, default_page_size: int = 20):
        self.session_factory = session_factory
        self.default_page_size = default_page_size

    def matches_for_tenant(
        self,
        tenant_profile_id: Any,
        cursor: Optional[str] = None,
        page_size: Optional[int] = None,
        include_terminal: bool = False,
        viewer_id: Optional[str] = None,
    ) -> MatchPage:
        """Matches of a tenant profile; when viewer_id is given it must be the profile's owner."""
        with housing_uow(self.session_factory) as repo:
            tenant = repo.tenants.get_by_id(tenant_profile_id)
            if tenant is None:
                raise NotFoundError(f"Tenant profile {tenant_profile_id} not found")
            if viewer_id is not None and viewer_id != tenant.user_id:
                raise NotAParty("Only the tenant can list their matches")
            return self._page(repo, HousingMatch.tenant_profile_id, tenant_profile_id, cursor, page_size, include_terminal)

    def matches_for_listing(
        self,
        listing_id: Any,
        cursor: Optional[str] = None,
        page_size: Optional[int] = None,
        include_terminal: bool = False,
        viewer_id: Optional[str] = None,
    ) -> MatchPage:
        with housing_uow(self.session_factory) as repo:
            listing = repo.listings.get_by_id(listing_id)
            if listing is None:
                raise NotFoundError(f"Listing {listing_id} not found")
            if viewer_id is not None and viewer_id != listing.landlord_id:
                raise NotAParty("Only the landlord can list matches for this listing")
            return self._page(repo, HousingMatch.listing_id, listing_id, cursor, page_size, include_terminal)

    def _page(self, repo, owner_column, owner_id, cursor, page_size, include_terminal) -> MatchPage:
        size = min(max(1, page_size or self.default_page_size), MAX_PAGE_SIZE)
        after = decode_cursor(cursor) if cursor else None
        # One extra row tells whether another page exists
        rows = repo.matches.page(owner_column, owner_id, after, size + 1, include_terminal)
        items = rows[:size]
        next_cursor = encode_cursor(items[-1]) if len(rows) > size else None
        return MatchPage(items=items, next_cursor=next_cursor)

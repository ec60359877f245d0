"""
Profile Store - tenant profiles and property listings.

Every write publishes a domain event after its transaction commits; the
rescan dispatcher turns those events into Match Index rescans.
"""

import logging
from typing import Any, Dict, List, Optional

from core.errors import ExternalDependencyError, InvalidTransition, NotFoundError, ValidationError
from core.events import EventBus, ListingChanged, TenantProfileChanged
from core.geocoding import GeocodingClient
from core.validation import ListingInput, ListingSearchFilters, TenantProfileInput, parse
from database.models import ListingStatus, ListingTier, PropertyListing, TenantProfile
from database.types import utcnow
from database.uow import housing_uow

logger = logging.getLogger(__name__)

# Allowed listing status moves; active <-> inactive is the only way back
LISTING_TRANSITIONS = {
    ListingStatus.PENDING: {ListingStatus.ACTIVE},
    ListingStatus.ACTIVE: {ListingStatus.RENTED, ListingStatus.INACTIVE},
    ListingStatus.INACTIVE: {ListingStatus.ACTIVE},
    ListingStatus.RENTED: set(),
}

TENANT_FIELDS = tuple(TenantProfileInput.model_fields)
LISTING_FIELDS = tuple(ListingInput.model_fields)


def _current_values(entity, names) -> Dict[str, Any]:
    return {name: getattr(entity, name) for name in names}


class ProfileService:
    def __init__(self, session_factory=None, events: Optional[EventBus] = None, geocoder: Optional[GeocodingClient] = None):
        self.session_factory = session_factory
        self.events = events or EventBus()
        self.geocoder = geocoder

    # Tenant profiles

    def create_tenant_profile(self, user_id: str, data: Dict[str, Any]) -> TenantProfile:
        now = utcnow()
        payload = parse(TenantProfileInput, data, context={'now': now})
        with housing_uow(self.session_factory) as repo:
            if repo.tenants.get_by_user_id(user_id) is not None:
                raise ValidationError(f"User {user_id} already has a tenant profile")
            profile = repo.tenants.create(user_id=user_id, created_at=now, updated_at=now, **payload.model_dump())
        logger.info(f"Created tenant profile {profile.id}")
        self.events.publish(TenantProfileChanged(profile.id, "created"))
        return profile

    def update_tenant_profile(self, user_id: str, data: Dict[str, Any]) -> TenantProfile:
        unknown = set(data) - set(TENANT_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown tenant profile fields: {sorted(unknown)}")
        with housing_uow(self.session_factory) as repo:
            profile = repo.tenants.get_by_user_id(user_id)
            if profile is None:
                raise NotFoundError(f"No tenant profile for user {user_id}")
            merged = {**_current_values(profile, TENANT_FIELDS), **data}
            context = {'now': utcnow(), 'check_move_in': 'move_in_date' in data}
            payload = parse(TenantProfileInput, merged, context=context)
            changes = payload.model_dump(include=set(data))
            repo.tenants.update(profile, last_active_at=utcnow(), **changes)
        self.events.publish(TenantProfileChanged(profile.id, "updated"))
        return profile

    def get_tenant_profile(self, user_id: str) -> TenantProfile:
        with housing_uow(self.session_factory) as repo:
            profile = repo.tenants.get_by_user_id(user_id)
        if profile is None:
            raise NotFoundError(f"No tenant profile for user {user_id}")
        return profile

    def get_tenant_profile_by_id(self, tenant_profile_id: Any) -> TenantProfile:
        with housing_uow(self.session_factory) as repo:
            profile = repo.tenants.get_by_id(tenant_profile_id)
        if profile is None:
            raise NotFoundError(f"Tenant profile {tenant_profile_id} not found")
        return profile

    def deactivate_tenant(self, user_id: str) -> TenantProfile:
        with housing_uow(self.session_factory) as repo:
            profile = repo.tenants.get_by_user_id(user_id)
            if profile is None:
                raise NotFoundError(f"No tenant profile for user {user_id}")
            repo.tenants.update(profile, is_active=False)
        logger.info(f"Deactivated tenant profile {profile.id}")
        self.events.publish(TenantProfileChanged(profile.id, "deactivated"))
        return profile

    # Listings

    def create_listing(self, landlord_id: str, data: Dict[str, Any]) -> PropertyListing:
        payload = parse(ListingInput, data)
        fields = payload.model_dump()
        self._fill_coordinates(fields)
        now = utcnow()
        with housing_uow(self.session_factory) as repo:
            listing = repo.listings.create(
                landlord_id=landlord_id,
                status=ListingStatus.PENDING,
                listing_tier=ListingTier.BASIC,
                created_at=now,
                updated_at=now,
                **fields,
            )
        logger.info(f"Created listing {listing.id}")
        self.events.publish(ListingChanged(listing.id, "created"))
        return listing

    def update_listing(self, listing_id: Any, landlord_id: str, data: Dict[str, Any]) -> PropertyListing:
        unknown = set(data) - set(LISTING_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown listing fields: {sorted(unknown)}")
        with housing_uow(self.session_factory) as repo:
            listing = self._owned_listing(repo, listing_id, landlord_id)
            merged = {**_current_values(listing, LISTING_FIELDS), **data}
            payload = parse(ListingInput, merged)
            changes = payload.model_dump(include=set(data))
            if {'address', 'city', 'country'} & set(changes) and 'latitude' not in data:
                geo = {**merged, **changes, 'latitude': None, 'longitude': None}
                self._fill_coordinates(geo)
                changes['latitude'], changes['longitude'] = geo['latitude'], geo['longitude']
            repo.listings.update(listing, **changes)
        self.events.publish(ListingChanged(listing.id, "updated"))
        return listing

    def get_listing(self, listing_id: Any, count_view: bool = True) -> PropertyListing:
        with housing_uow(self.session_factory) as repo:
            listing = repo.listings.get_by_id(listing_id)
            if listing is None:
                raise NotFoundError(f"Listing {listing_id} not found")
            if count_view:
                repo.listings.increment_views(listing.id)
                repo.db.refresh(listing)
        return listing

    def listings_for_landlord(self, landlord_id: str) -> List[PropertyListing]:
        with housing_uow(self.session_factory) as repo:
            return repo.listings.get_by_landlord(landlord_id)

    def change_listing_status(self, listing_id: Any, landlord_id: str, status: str) -> PropertyListing:
        if status not in ListingStatus.ALL:
            raise ValidationError(f"Unknown listing status: {status}")
        with housing_uow(self.session_factory) as repo:
            listing = self._owned_listing(repo, listing_id, landlord_id)
            if status == listing.status:
                return listing
            if status not in LISTING_TRANSITIONS[listing.status]:
                raise InvalidTransition(f"Listing cannot move from {listing.status} to {status}")
            previous = listing.status
            repo.listings.update(listing, status=status)
        logger.info(f"Listing {listing.id}: {previous} -> {status}")
        self.events.publish(ListingChanged(listing.id, f"status_{status}"))
        return listing

    def search_listings(self, filters: Any) -> Dict[str, Any]:
        criteria = parse(ListingSearchFilters, filters or {})
        with housing_uow(self.session_factory) as repo:
            rows, total = repo.listings.search(now=utcnow(), **criteria.model_dump())
        return {'items': rows, 'total': total, 'page': criteria.page, 'limit': criteria.limit}

    def listing_analytics(self, landlord_id: str) -> Dict[str, Any]:
        with housing_uow(self.session_factory) as repo:
            listings = repo.listings.get_by_landlord(landlord_id)
            ids = [listing.id for listing in listings]
            match_counts = repo.matches.count_by_listing(ids)
            message_counts = repo.messages.count_for_listings(ids)

        return {
            'total_listings': len(listings),
            'total_views': sum(listing.total_views or 0 for listing in listings),
            'total_matches': sum(match_counts.values()),
            'total_messages': sum(message_counts.values()),
            'listings': [
                {
                    'listing_id': str(listing.id),
                    'title': listing.title,
                    'status': listing.status,
                    'views': listing.total_views or 0,
                    'match_count': match_counts.get(listing.id, 0),
                    'message_count': message_counts.get(listing.id, 0),
                }
                for listing in listings
            ],
        }

    # Helpers

    @staticmethod
    def _owned_listing(repo, listing_id: Any, landlord_id: str) -> PropertyListing:
        listing = repo.listings.get_by_id(listing_id)
        if listing is None or listing.landlord_id != landlord_id:
            raise NotFoundError(f"Listing {listing_id} not found")
        return listing

    def _fill_coordinates(self, fields: Dict[str, Any]) -> None:
        if self.geocoder is None or fields.get('latitude') is not None or not fields.get('address'):
            return
        address = ", ".join(str(p) for p in (fields.get('address'), fields.get('city'), fields.get('country')) if p)
        try:
            coords = self.geocoder.geocode(address)
        except ExternalDependencyError as e:
            logger.warning(f"Geocoding skipped: {e}")
            return
        if coords:
            fields['latitude'], fields['longitude'] = coords

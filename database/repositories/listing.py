import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Any, Tuple

from sqlalchemy import select, update, func, or_, asc, desc

from core.utils import normalize_labels
from database.models import PropertyListing, ListingStatus, TenantProfile
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    'rent': PropertyListing.rent_amount,
    'created': PropertyListing.created_at,
    'popularity': PropertyListing.total_views,
}


class ListingRepository(BaseRepository):
    def get_by_id(self, listing_id: Any) -> Optional[PropertyListing]:
        return self.db.get(PropertyListing, listing_id)

    def create(self, **fields) -> PropertyListing:
        listing = PropertyListing(**fields)
        self.db.add(listing)
        self.db.flush()
        return listing

    def update(self, listing: PropertyListing, **fields) -> PropertyListing:
        for key, value in fields.items():
            setattr(listing, key, value)
        self.db.flush()
        return listing

    def increment_views(self, listing_id: Any) -> None:
        stmt = (
            update(PropertyListing)
            .where(PropertyListing.id == listing_id)
            .values(total_views=PropertyListing.total_views + 1, updated_at=PropertyListing.updated_at)
            .execution_options(synchronize_session=False)
        )
        self.db.execute(stmt)

    def get_by_landlord(self, landlord_id: str) -> List[PropertyListing]:
        stmt = (
            select(PropertyListing)
            .where(PropertyListing.landlord_id == landlord_id)
            .order_by(PropertyListing.created_at.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def get_many(self, ids: List[Any]) -> List[PropertyListing]:
        if not ids:
            return []
        stmt = select(PropertyListing).where(PropertyListing.id.in_(ids))
        return list(self.db.execute(stmt).scalars().all())

    def candidates_for_tenant(
        self,
        tenant: TenantProfile,
        now: datetime,
        after_id: Any = None,
        limit: Optional[int] = None,
    ) -> List[PropertyListing]:
        """
        Coarse pre-filter of live listings for a tenant: city, country,
        property type, bedrooms, and budget when currencies agree.

        Ordered by id; pass the last id of the previous page as `after_id`.
        """
        stmt = select(PropertyListing).where(
            PropertyListing.status == ListingStatus.ACTIVE,
            or_(PropertyListing.listing_expires_at.is_(None), PropertyListing.listing_expires_at > now),
            PropertyListing.bedrooms >= tenant.min_bedrooms,
        )
        if tenant.max_bedrooms is not None:
            stmt = stmt.where(PropertyListing.bedrooms <= tenant.max_bedrooms)
        if tenant.target_cities:
            cities = sorted(normalize_labels(tenant.target_cities))
            stmt = stmt.where(func.lower(func.trim(PropertyListing.city)).in_(cities))
        if tenant.target_countries:
            countries = sorted(normalize_labels(tenant.target_countries))
            stmt = stmt.where(func.lower(func.trim(PropertyListing.country)).in_(countries))
        if tenant.property_types:
            stmt = stmt.where(PropertyListing.property_type.in_(tenant.property_types))
        stmt = stmt.where(
            or_(
                PropertyListing.currency != tenant.currency,
                PropertyListing.rent_amount.between(tenant.min_budget, tenant.max_budget),
            )
        )
        if after_id is not None:
            stmt = stmt.where(PropertyListing.id > after_id)
        stmt = stmt.order_by(PropertyListing.id.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.db.execute(stmt).scalars().all())

    def search(
        self,
        city: Optional[str] = None,
        country: Optional[str] = None,
        property_type: Optional[str] = None,
        min_rent: Optional[Decimal] = None,
        max_rent: Optional[Decimal] = None,
        min_bedrooms: Optional[int] = None,
        max_bedrooms: Optional[int] = None,
        furnished: Optional[bool] = None,
        pet_friendly: Optional[bool] = None,
        available_from: Optional[datetime] = None,
        sort_by: str = 'created',
        sort_order: str = 'desc',
        page: int = 1,
        limit: int = 20,
        now: Optional[datetime] = None,
    ) -> Tuple[List[PropertyListing], int]:
        """Filtered, sorted, offset-paginated view over active listings. Returns (rows, total)."""
        conditions = [PropertyListing.status == ListingStatus.ACTIVE]
        if now is not None:
            conditions.append(
                or_(PropertyListing.listing_expires_at.is_(None), PropertyListing.listing_expires_at > now)
            )
        if city:
            conditions.append(PropertyListing.city.ilike(f"%{city}%"))
        if country:
            conditions.append(func.lower(PropertyListing.country) == country.lower())
        if property_type:
            conditions.append(PropertyListing.property_type == property_type)
        if min_rent is not None:
            conditions.append(PropertyListing.rent_amount >= min_rent)
        if max_rent is not None:
            conditions.append(PropertyListing.rent_amount <= max_rent)
        if min_bedrooms is not None:
            conditions.append(PropertyListing.bedrooms >= min_bedrooms)
        if max_bedrooms is not None:
            conditions.append(PropertyListing.bedrooms <= max_bedrooms)
        if furnished is not None:
            conditions.append(PropertyListing.furnished.is_(furnished))
        if pet_friendly is not None:
            conditions.append(PropertyListing.pet_friendly.is_(pet_friendly))
        if available_from is not None:
            conditions.append(PropertyListing.available_from <= available_from)

        total = self.db.execute(
            select(func.count()).select_from(PropertyListing).where(*conditions)
        ).scalar_one()

        column = SORT_COLUMNS.get(sort_by, PropertyListing.created_at)
        direction = asc if sort_order == 'asc' else desc
        stmt = (
            select(PropertyListing)
            .where(*conditions)
            .order_by(direction(column), PropertyListing.id.asc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        return list(self.db.execute(stmt).scalars().all()), total

import logging
from decimal import Decimal
from typing import List, Optional, Any

from sqlalchemy import select, or_

from database.models import TenantProfile
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class TenantProfileRepository(BaseRepository):
    def get_by_id(self, tenant_profile_id: Any) -> Optional[TenantProfile]:
        return self.db.get(TenantProfile, tenant_profile_id)

    def get_by_user_id(self, user_id: str) -> Optional[TenantProfile]:
        stmt = select(TenantProfile).where(TenantProfile.user_id == user_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def create(self, **fields) -> TenantProfile:
        profile = TenantProfile(**fields)
        self.db.add(profile)
        self.db.flush()
        return profile

    def update(self, profile: TenantProfile, **fields) -> TenantProfile:
        for key, value in fields.items():
            setattr(profile, key, value)
        self.db.flush()
        return profile

    def candidates_for_listing(
        self,
        bedrooms: int,
        rent_amount: Decimal,
        currency: str,
        after_id: Any = None,
        limit: Optional[int] = None,
    ) -> List[TenantProfile]:
        """
        Coarse pre-filter of active tenants for a listing, ordered by id.

        Bedroom bounds are applied in SQL; the budget bound only for tenants
        quoting the listing's currency (others need FX and are left to the
        scorer). JSON location/type membership is checked by the caller.
        """
        stmt = select(TenantProfile).where(
            TenantProfile.is_active.is_(True),
            TenantProfile.min_bedrooms <= bedrooms,
            or_(TenantProfile.max_bedrooms.is_(None), TenantProfile.max_bedrooms >= bedrooms),
            or_(
                TenantProfile.currency != currency,
                (TenantProfile.min_budget <= rent_amount) & (TenantProfile.max_budget >= rent_amount),
            ),
        )
        if after_id is not None:
            stmt = stmt.where(TenantProfile.id > after_id)
        stmt = stmt.order_by(TenantProfile.id.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.db.execute(stmt).scalars().all())

    def get_many(self, ids: List[Any]) -> List[TenantProfile]:
        if not ids:
            return []
        stmt = select(TenantProfile).where(TenantProfile.id.in_(ids))
        return list(self.db.execute(stmt).scalars().all())

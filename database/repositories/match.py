import logging
from datetime import datetime
from typing import List, Optional, Any, Tuple

from sqlalchemy import select, update, delete, func, case, or_, and_

from database.models import HousingMatch, FailedPair, MatchStatus, pair_key
from database.repositories.base import BaseRepository
from database.types import utcnow

logger = logging.getLogger(__name__)

# Ordering rank used by match listings: contacted > viewed > pending, retired last.
STATUS_RANK = case(
    (HousingMatch.status == MatchStatus.CONTACTED, 2),
    (HousingMatch.status == MatchStatus.VIEWED, 1),
    (HousingMatch.status == MatchStatus.PENDING, 0),
    else_=-1,
)


class MatchRepository(BaseRepository):
    def get_by_id(self, match_id: Any) -> Optional[HousingMatch]:
        return self.db.get(HousingMatch, match_id)

    def get_fresh(self, match_id: Any) -> Optional[HousingMatch]:
        """Re-read a match bypassing the identity map."""
        stmt = select(HousingMatch).where(HousingMatch.id == match_id).execution_options(populate_existing=True)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_for_update(self, match_id: Any) -> Optional[HousingMatch]:
        stmt = (
            select(HousingMatch)
            .where(HousingMatch.id == match_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def get_live(self, tenant_profile_id: Any, listing_id: Any) -> Optional[HousingMatch]:
        stmt = select(HousingMatch).where(HousingMatch.live_pair_key == pair_key(tenant_profile_id, listing_id))
        return self.db.execute(stmt).scalar_one_or_none()

    def latest_retired(self, tenant_profile_id: Any, listing_id: Any) -> Optional[HousingMatch]:
        stmt = (
            select(HousingMatch)
            .where(
                HousingMatch.tenant_profile_id == tenant_profile_id,
                HousingMatch.listing_id == listing_id,
                HousingMatch.status.in_(MatchStatus.TERMINAL),
            )
            .order_by(HousingMatch.updated_at.desc())
            .limit(1)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def create(
        self,
        tenant_profile_id: Any,
        listing_id: Any,
        score: float,
        factors: dict,
        now: Optional[datetime] = None,
    ) -> HousingMatch:
        now = now or utcnow()
        match = HousingMatch(
            tenant_profile_id=tenant_profile_id,
            listing_id=listing_id,
            live_pair_key=pair_key(tenant_profile_id, listing_id),
            compatibility_score=score,
            match_factors=factors,
            status=MatchStatus.PENDING,
            created_at=now,
            updated_at=now,
            scored_at=now,
        )
        self.db.add(match)
        self.db.flush()
        return match

    def update_score(self, match_id: Any, score: float, factors: dict, now: Optional[datetime] = None) -> None:
        """Refresh score columns in place; status, version and timestamps stay untouched."""
        stmt = (
            update(HousingMatch)
            .where(HousingMatch.id == match_id)
            .values(compatibility_score=score, match_factors=factors, scored_at=now or utcnow())
            .execution_options(synchronize_session=False)
        )
        self.db.execute(stmt)

    def compare_and_set(self, match_id: Any, expected_version: int, **values) -> bool:
        """Apply values only if the row still carries expected_version; bumps the version."""
        values['version'] = HousingMatch.version + 1
        stmt = (
            update(HousingMatch)
            .where(HousingMatch.id == match_id, HousingMatch.version == expected_version)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        return result.rowcount == 1

    def live_for_tenant(self, tenant_profile_id: Any) -> List[HousingMatch]:
        stmt = select(HousingMatch).where(
            HousingMatch.tenant_profile_id == tenant_profile_id,
            HousingMatch.live_pair_key.is_not(None),
        )
        return list(self.db.execute(stmt).scalars().all())

    def live_for_listing(self, listing_id: Any) -> List[HousingMatch]:
        stmt = select(HousingMatch).where(
            HousingMatch.listing_id == listing_id,
            HousingMatch.live_pair_key.is_not(None),
        )
        return list(self.db.execute(stmt).scalars().all())

    def live_ids_after(self, checkpoint: Optional[Any], limit: int) -> List[Any]:
        stmt = select(HousingMatch.id).where(HousingMatch.live_pair_key.is_not(None))
        if checkpoint is not None:
            stmt = stmt.where(HousingMatch.id > checkpoint)
        stmt = stmt.order_by(HousingMatch.id.asc()).limit(limit)
        return list(self.db.execute(stmt).scalars().all())

    def page(
        self,
        owner_column,
        owner_id: Any,
        after: Optional[Tuple[int, Any, datetime, Any]],
        limit: int,
        include_terminal: bool = False,
    ) -> List[HousingMatch]:
        """
        Keyset page ordered by (status rank desc, score desc, created_at desc, id asc).

        `after` is the sort key of the last row of the previous page.
        """
        stmt = select(HousingMatch).where(owner_column == owner_id)
        if not include_terminal:
            stmt = stmt.where(HousingMatch.status.in_(MatchStatus.LIVE))
        if after is not None:
            rank, score, created_at, match_id = after
            stmt = stmt.where(
                or_(
                    STATUS_RANK < rank,
                    and_(STATUS_RANK == rank, HousingMatch.compatibility_score < score),
                    and_(
                        STATUS_RANK == rank,
                        HousingMatch.compatibility_score == score,
                        HousingMatch.created_at < created_at,
                    ),
                    and_(
                        STATUS_RANK == rank,
                        HousingMatch.compatibility_score == score,
                        HousingMatch.created_at == created_at,
                        HousingMatch.id > match_id,
                    ),
                )
            )
        stmt = stmt.order_by(
            STATUS_RANK.desc(),
            HousingMatch.compatibility_score.desc(),
            HousingMatch.created_at.desc(),
            HousingMatch.id.asc(),
        ).limit(limit)
        return list(self.db.execute(stmt).scalars().all())

    def count_by_listing(self, listing_ids: List[Any]) -> dict:
        if not listing_ids:
            return {}
        stmt = (
            select(HousingMatch.listing_id, func.count(HousingMatch.id))
            .where(HousingMatch.listing_id.in_(listing_ids))
            .group_by(HousingMatch.listing_id)
        )
        return {listing_id: count for listing_id, count in self.db.execute(stmt).all()}

    # Failed pairs

    def record_failure(self, tenant_profile_id: Any, listing_id: Any, error: str) -> FailedPair:
        stmt = select(FailedPair).where(
            FailedPair.tenant_profile_id == tenant_profile_id,
            FailedPair.listing_id == listing_id,
        )
        failed = self.db.execute(stmt).scalar_one_or_none()
        now = utcnow()
        if failed is None:
            failed = FailedPair(
                tenant_profile_id=tenant_profile_id,
                listing_id=listing_id,
                error=error,
                attempts=1,
                first_failed_at=now,
                last_attempt_at=now,
            )
            self.db.add(failed)
        else:
            failed.error = error
            failed.attempts += 1
            failed.last_attempt_at = now
        self.db.flush()
        return failed

    def clear_failure(self, tenant_profile_id: Any, listing_id: Any) -> int:
        stmt = delete(FailedPair).where(
            FailedPair.tenant_profile_id == tenant_profile_id,
            FailedPair.listing_id == listing_id,
        ).execution_options(synchronize_session=False)
        return self.db.execute(stmt).rowcount

    def clear_failures_for(self, tenant_profile_id: Any = None, listing_id: Any = None) -> int:
        stmt = delete(FailedPair).execution_options(synchronize_session=False)
        if tenant_profile_id is not None:
            stmt = stmt.where(FailedPair.tenant_profile_id == tenant_profile_id)
        if listing_id is not None:
            stmt = stmt.where(FailedPair.listing_id == listing_id)
        return self.db.execute(stmt).rowcount

    def failed_pairs(self, limit: int, max_attempts: Optional[int] = None) -> List[FailedPair]:
        stmt = select(FailedPair)
        if max_attempts is not None:
            stmt = stmt.where(FailedPair.attempts < max_attempts)
        stmt = stmt.order_by(FailedPair.last_attempt_at.asc()).limit(limit)
        return list(self.db.execute(stmt).scalars().all())

import logging
from datetime import datetime
from typing import List, Any

from sqlalchemy import select, update, func

from database.models import HousingMessage, HousingMatch
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class MessageRepository(BaseRepository):
    def add(self, **fields) -> HousingMessage:
        message = HousingMessage(**fields)
        self.db.add(message)
        self.db.flush()
        return message

    def thread(self, match_id: Any) -> List[HousingMessage]:
        stmt = (
            select(HousingMessage)
            .where(HousingMessage.match_id == match_id)
            .order_by(HousingMessage.created_at.asc(), HousingMessage.id.asc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def mark_read(self, match_id: Any, recipient_id: str, now: datetime) -> int:
        stmt = (
            update(HousingMessage)
            .where(
                HousingMessage.match_id == match_id,
                HousingMessage.recipient_id == recipient_id,
                HousingMessage.is_read.is_(False),
            )
            .values(is_read=True, read_at=now)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount

    def unread_count(self, recipient_id: str) -> int:
        stmt = select(func.count(HousingMessage.id)).where(
            HousingMessage.recipient_id == recipient_id,
            HousingMessage.is_read.is_(False),
        )
        return self.db.execute(stmt).scalar_one()

    def count_for_listings(self, listing_ids: List[Any]) -> dict:
        if not listing_ids:
            return {}
        stmt = (
            select(HousingMatch.listing_id, func.count(HousingMessage.id))
            .join(HousingMatch, HousingMessage.match_id == HousingMatch.id)
            .where(HousingMatch.listing_id.in_(listing_ids))
            .group_by(HousingMatch.listing_id)
        )
        return {listing_id: count for listing_id, count in self.db.execute(stmt).all()}

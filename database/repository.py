from sqlalchemy.orm import Session

from database.repositories import (
    TenantProfileRepository,
    ListingRepository,
    MatchRepository,
    MessageRepository,
    SettingsRepository,
)


class HousingRepository:
    """Groups the per-entity repositories around one Session."""

    def __init__(self, db: Session):
        self.db = db
        self.tenants = TenantProfileRepository(db)
        self.listings = ListingRepository(db)
        self.matches = MatchRepository(db)
        self.messages = MessageRepository(db)
        self.settings = SettingsRepository(db)

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()

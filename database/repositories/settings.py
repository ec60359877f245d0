from typing import Optional

from sqlalchemy import select

from database.models import AppSettings
from database.repositories.base import BaseRepository
from database.types import utcnow


class SettingsRepository(BaseRepository):
    def _row(self, key: str) -> Optional[AppSettings]:
        stmt = select(AppSettings).where(AppSettings.key == key)
        return self.db.execute(stmt).scalar_one_or_none()

    def get(self, key: str) -> Optional[str]:
        row = self._row(key)
        return row.value if row else None

    def set(self, key: str, value: str) -> None:
        row = self._row(key)
        if row is None:
            self.db.add(AppSettings(key=key, value=value, updated_at=utcnow()))
        else:
            row.value = value
            row.updated_at = utcnow()
        self.db.flush()

    def delete(self, key: str) -> None:
        row = self._row(key)
        if row is not None:
            self.db.delete(row)
            self.db.flush()

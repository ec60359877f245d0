from database.repositories.base import BaseRepository
from database.repositories.tenant_profile import TenantProfileRepository
from database.repositories.listing import ListingRepository
from database.repositories.match import MatchRepository
from database.repositories.message import MessageRepository
from database.repositories.settings import SettingsRepository

__all__ = [
    'BaseRepository',
    'TenantProfileRepository',
    'ListingRepository',
    'MatchRepository',
    'MessageRepository',
    'SettingsRepository',
]

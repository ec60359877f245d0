from .base import Base
from .tenant_profile import TenantProfile
from .listing import PropertyListing, ListingStatus, ListingTier
from .match import HousingMatch, FailedPair, MatchStatus, pair_key
from .message import HousingMessage
from .notification import NotificationTracker
from .settings import AppSettings

__all__ = [
    'Base',
    'TenantProfile',
    'PropertyListing',
    'ListingStatus',
    'ListingTier',
    'HousingMatch',
    'FailedPair',
    'MatchStatus',
    'pair_key',
    'HousingMessage',
    'NotificationTracker',
    'AppSettings',
]

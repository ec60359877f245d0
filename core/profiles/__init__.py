from core.profiles.service import ProfileService, LISTING_TRANSITIONS

__all__ = ['ProfileService', 'LISTING_TRANSITIONS']

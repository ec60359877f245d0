"""Response shaping for the API layer."""

from .presenters import listing_out, match_summary, message_out, tenant_profile_out

from typing import Optional, Dict, Any
from pydantic import BaseModel


class MatchNotice(BaseModel):
    """Serializable snapshot of a match for notification payloads."""
    match_id: str
    tenant_user_id: str
    landlord_id: str
    listing_id: str
    listing_title: str
    city: str
    score: float
    status: str
    previous_status: Optional[str] = None
    status_reason: Optional[str] = None

    @classmethod
    def from_match(cls, match, tenant, listing, previous_status: Optional[str] = None) -> "MatchNotice":
        return cls(
            match_id=str(match.id),
            tenant_user_id=tenant.user_id,
            landlord_id=listing.landlord_id,
            listing_id=str(listing.id),
            listing_title=listing.title,
            city=listing.city,
            score=float(match.compatibility_score),
            status=match.status,
            previous_status=previous_status,
            status_reason=match.status_reason,
        )


STATUS_LABELS = {
    'pending': "New",
    'viewed': "Viewed",
    'contacted': "In conversation",
    'declined': "Declined",
    'expired': "Expired",
}


class NotificationMessageBuilder:
    def __init__(self, base_url: str = "http://localhost:8080"):
        self.base_url = base_url.rstrip("/")

    def match_url(self, match_id: str) -> str:
        return f"{self.base_url}/matches/{match_id}"

    def new_match(self, notice: MatchNotice) -> Dict[str, Any]:
        subject = f"🏠 New match: {notice.listing_title} ({notice.score:.0f}/100)"
        body = (
            f"{notice.listing_title} in {notice.city} scored {notice.score:.1f} for you.\n"
            f"View it at: {self.match_url(notice.match_id)}"
        )
        return {'subject': subject, 'body': body}

    def status_changed(self, notice: MatchNotice) -> Dict[str, Any]:
        label = STATUS_LABELS.get(notice.status, notice.status)
        subject = f"Match update: {notice.listing_title} is now {label.lower()}"
        lines = [f"Your match for {notice.listing_title} moved to \"{label}\"."]
        if notice.status_reason:
            lines.append(f"Reason: {notice.status_reason.replace('_', ' ')}")
        lines.append(f"Details: {self.match_url(notice.match_id)}")
        return {'subject': subject, 'body': "\n".join(lines)}

    def new_message(self, notice: MatchNotice, message_type: str = 'text') -> Dict[str, Any]:
        # Message bodies are never copied into notifications
        kind = "a new message" if message_type == 'text' else f"a new {message_type}"
        subject = f"💬 {notice.listing_title}: you have {kind}"
        body = f"Open the conversation: {self.match_url(notice.match_id)}"
        return {'subject': subject, 'body': body}

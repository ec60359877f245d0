"""
Messaging Thread - append-only conversation per match.

Writes to one match are serialised: the match row is locked (FOR UPDATE
where the backend supports it) and counters are bumped through the same
version compare-and-set the lifecycle uses, so messages_count always equals
the number of stored messages.
"""

import logging
from typing import Any, List, Optional

from core.errors import ConcurrencyConflict, InvalidSender, MatchTerminalError, NotAParty, NotFoundError
from core.lifecycle.state_machine import resolve_transition
from core.validation import MessageInput, parse
from database.models import HousingMatch, HousingMessage, MatchStatus
from database.repository import HousingRepository
from database.types import utcnow
from database.uow import housing_uow
from notification.message_builder import MatchNotice

logger = logging.getLogger(__name__)


def _parties(match: HousingMatch):
    return match.tenant_profile.user_id, match.listing.landlord_id


class MessagingService:
    def __init__(self, session_factory=None, notifier=None):
        self.session_factory = session_factory
        self.notifier = notifier

    def post_message(
        self,
        match_id: Any,
        sender_id: str,
        body: str,
        message_type: str = 'text',
        attachments: Optional[List[str]] = None,
    ) -> HousingMessage:
        payload = parse(MessageInput, {
            'body': body,
            'message_type': message_type,
            'attachments': attachments or [],
        })

        for attempt in (1, 2):
            with housing_uow(self.session_factory) as repo:
                match = self._load_for_write(repo, match_id)
                tenant_user_id, landlord_id = _parties(match)
                if sender_id not in (tenant_user_id, landlord_id):
                    raise InvalidSender(f"Sender is not a party to match {match_id}")
                if match.is_terminal:
                    raise MatchTerminalError(f"Match {match_id} is {match.status}; messaging is closed")

                recipient_id = landlord_id if sender_id == tenant_user_id else tenant_user_id
                now = utcnow()
                previous_status = match.status
                new_status = resolve_transition(match.status, MatchStatus.CONTACTED)

                changes = {
                    'messages_count': HousingMatch.messages_count + 1,
                    'last_message_at': now,
                    'updated_at': now,
                }
                if new_status:
                    changes['status'] = new_status
                    changes['status_reason'] = 'first_message'

                applied = repo.matches.compare_and_set(match.id, match.version, **changes)
                if applied:
                    message = repo.messages.add(
                        match_id=match.id,
                        sender_id=sender_id,
                        recipient_id=recipient_id,
                        body=payload.body,
                        message_type=payload.message_type,
                        attachments=payload.attachments,
                        created_at=now,
                    )
                    match = repo.matches.get_fresh(match.id)
                    notice = MatchNotice.from_match(match, match.tenant_profile, match.listing, previous_status)

            if applied:
                logger.info(f"Message {message.id} posted on match {match_id} (count {match.messages_count})")
                if new_status:
                    logger.info(f"Match {match_id}: {previous_status} -> {new_status} (first_message)")
                self._notify(notice, recipient_id, payload.message_type, status_changed=bool(new_status))
                return message

            logger.warning(f"Version conflict posting to match {match_id} (attempt {attempt}); re-reading")

        raise ConcurrencyConflict(f"Match {match_id} was modified concurrently, please retry")

    def mark_read(self, match_id: Any, reader_id: str) -> int:
        """Mark every message addressed to reader_id in this thread as read."""
        with housing_uow(self.session_factory) as repo:
            match = self._load_for_read(repo, match_id, reader_id)
            updated = repo.messages.mark_read(match.id, reader_id, utcnow())
        if updated:
            logger.info(f"Marked {updated} messages read on match {match_id}")
        return updated

    def get_thread(self, match_id: Any, reader_id: str) -> List[HousingMessage]:
        with housing_uow(self.session_factory) as repo:
            match = self._load_for_read(repo, match_id, reader_id)
            return repo.messages.thread(match.id)

    def unread_count(self, match_id: Any, reader_id: str) -> int:
        with housing_uow(self.session_factory) as repo:
            match = self._load_for_read(repo, match_id, reader_id)
            return sum(1 for m in repo.messages.thread(match.id) if m.recipient_id == reader_id and not m.is_read)

    def unread_total(self, user_id: str) -> int:
        with housing_uow(self.session_factory) as repo:
            return repo.messages.unread_count(user_id)

    @staticmethod
    def _load_for_write(repo: HousingRepository, match_id: Any) -> HousingMatch:
        match = repo.matches.get_for_update(match_id)
        if match is None:
            raise NotFoundError(f"Match {match_id} not found")
        return match

    @staticmethod
    def _load_for_read(repo: HousingRepository, match_id: Any, reader_id: str) -> HousingMatch:
        match = repo.matches.get_by_id(match_id)
        if match is None:
            raise NotFoundError(f"Match {match_id} not found")
        if reader_id not in _parties(match):
            raise NotAParty(f"User is not a party to match {match_id}")
        return match

    def _notify(self, notice: MatchNotice, recipient_id: str, message_type: str, status_changed: bool) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.notify_new_message(notice, recipient_id, message_type)
            if status_changed:
                self.notifier.notify_status_change(notice)
        except Exception as e:
            logger.error(f"Message notification failed for match {notice.match_id}: {e}")

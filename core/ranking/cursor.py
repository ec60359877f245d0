"""
Opaque keyset cursor over (status rank, score, created_at, id).
"""

import base64
import json
import uuid
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Tuple

from core.errors import ValidationError
from core.lifecycle.state_machine import STATUS_RANK
from database.models import HousingMatch

CursorKey = Tuple[int, Decimal, datetime, uuid.UUID]


def sort_key(match: HousingMatch) -> CursorKey:
    rank = STATUS_RANK[match.status] if not match.is_terminal else -1
    return rank, Decimal(str(match.compatibility_score)), match.created_at, match.id


def encode_cursor(match: HousingMatch) -> str:
    rank, score, created_at, match_id = sort_key(match)
    raw = json.dumps([rank, str(score), created_at.isoformat(), str(match_id)])
    return base64.urlsafe_b64encode(raw.encode('utf-8')).decode('ascii')


def decode_cursor(cursor: str) -> CursorKey:
    try:
        raw = base64.urlsafe_b64decode(cursor.encode('ascii'))
        rank, score, created_at, match_id = json.loads(raw)
        return int(rank), Decimal(score), datetime.fromisoformat(created_at), uuid.UUID(match_id)
    except (ValueError, TypeError, InvalidOperation, UnicodeError) as e:
        raise ValidationError("Malformed pagination cursor") from e

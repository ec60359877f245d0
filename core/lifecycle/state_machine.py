"""
Match status state machine.

    pending -> viewed -> contacted
    any non-terminal -> declined | expired   (absorbing)

Transitions only ever move up the rank order, so replaying or racing a
lower-ranked transition after a higher one is a no-op and the most terminal
state wins.
"""

from typing import Optional

from database.models import MatchStatus

STATUS_RANK = {
    MatchStatus.PENDING: 0,
    MatchStatus.VIEWED: 1,
    MatchStatus.CONTACTED: 2,
    MatchStatus.DECLINED: 3,
    MatchStatus.EXPIRED: 3,
}


def is_terminal(status: str) -> bool:
    return status in MatchStatus.TERMINAL


def resolve_transition(current: str, target: str) -> Optional[str]:
    """Status to write when `target` is requested from `current`, or None for a no-op."""
    if target not in STATUS_RANK:
        raise ValueError(f"Unknown match status: {target}")
    if is_terminal(current):
        return None
    if STATUS_RANK[target] <= STATUS_RANK[current]:
        return None
    return target

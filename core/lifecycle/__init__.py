from core.lifecycle.state_machine import STATUS_RANK, resolve_transition, is_terminal
from core.lifecycle.service import MatchLifecycleManager, party_of

__all__ = ['MatchLifecycleManager', 'STATUS_RANK', 'resolve_transition', 'is_terminal', 'party_of']

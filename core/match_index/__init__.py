from core.match_index.persistence import UpsertOutcome
from core.match_index.service import MatchIndex, RescanReport

__all__ = ['MatchIndex', 'RescanReport', 'UpsertOutcome']

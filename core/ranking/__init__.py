from core.ranking.cursor import decode_cursor, encode_cursor
from core.ranking.service import MatchPage, RankingService

__all__ = ['RankingService', 'MatchPage', 'encode_cursor', 'decode_cursor']

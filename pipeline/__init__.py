"""Background processing: leader lock, rescan dispatch and the expiry sweeper."""

from .control import LeaderLock, FileLeaderLock, RedisLeaderLock, build_leader_lock
from .rescan import RescanDispatcher
from .sweep import ExpirySweeper, SweepReport

__all__ = [
    'LeaderLock',
    'FileLeaderLock',
    'RedisLeaderLock',
    'build_leader_lock',
    'RescanDispatcher',
    'ExpirySweeper',
    'SweepReport',
]

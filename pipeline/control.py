import os
import fcntl
import json
import time
import socket
import logging
from abc import ABC, abstractmethod
from typing import Optional, Dict

from redis import Redis

from core.config_loader import SweepConfig

logger = logging.getLogger(__name__)


class LeaderLock(ABC):
    """Exclusive right to run the sweeper; non-blocking acquire."""

    @abstractmethod
    def acquire(self, metadata: Optional[Dict] = None) -> bool:
        pass

    @abstractmethod
    def release(self) -> None:
        pass

    def __enter__(self) -> bool:
        return self.acquire()

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False


class FileLeaderLock(LeaderLock):
    """
    Single-host leader lock on an fcntl file lock.
    The lock file holds the current owner's pid and start time.
    """
    def __init__(self, lock_file: str):
        self.lock_file = lock_file
        self.file_handle = None

    def _open_file(self):
        if not self.file_handle:
            self.file_handle = open(self.lock_file, "a+")

    def acquire(self, metadata: Optional[Dict] = None) -> bool:
        try:
            self._open_file()
            fcntl.flock(self.file_handle, fcntl.LOCK_EX | fcntl.LOCK_NB)

            self.file_handle.truncate(0)
            self.file_handle.seek(0)
            info = {
                "pid": os.getpid(),
                "host": socket.gethostname(),
                "timestamp": time.time(),
                **(metadata or {})
            }
            json.dump(info, self.file_handle)
            self.file_handle.flush()
            return True
        except BlockingIOError:
            return False
        except Exception as e:
            logger.error(f"Error acquiring sweeper lock: {e}")
            return False

    def release(self) -> None:
        if self.file_handle:
            try:
                self.file_handle.truncate(0)
                self.file_handle.seek(0)
                fcntl.flock(self.file_handle, fcntl.LOCK_UN)
                self.file_handle.close()
                self.file_handle = None
            except Exception as e:
                logger.error(f"Error releasing sweeper lock: {e}")

    def get_lock_info(self) -> Optional[Dict]:
        """Current owner info, or None if the file is missing or empty."""
        if not os.path.exists(self.lock_file):
            return None
        try:
            with open(self.lock_file, "r") as f:
                content = f.read().strip()
                if not content:
                    return None
                return json.loads(content)
        except Exception as e:
            logger.warning(f"Could not read lock info: {e}")
            return None


class RedisLeaderLock(LeaderLock):
    """Cluster-wide leader lock; expires after ttl_seconds if the holder dies."""

    LOCK_NAME = "housing:sweeper:leader"

    def __init__(self, redis_url: str, ttl_seconds: int = 600, redis_conn: Optional[Redis] = None):
        self.redis = redis_conn or Redis.from_url(redis_url)
        self.ttl_seconds = ttl_seconds
        self._lock = None

    def acquire(self, metadata: Optional[Dict] = None) -> bool:
        lock = self.redis.lock(self.LOCK_NAME, timeout=self.ttl_seconds)
        try:
            acquired = lock.acquire(blocking=False)
        except Exception as e:
            logger.error(f"Error acquiring sweeper lock: {e}")
            return False
        if acquired:
            self._lock = lock
        return bool(acquired)

    def release(self) -> None:
        if self._lock is None:
            return
        try:
            self._lock.release()
        except Exception as e:
            logger.error(f"Error releasing sweeper lock: {e}")
        finally:
            self._lock = None


def build_leader_lock(config: SweepConfig) -> LeaderLock:
    if config.lock_backend == "redis":
        redis_url = config.redis_url or os.environ.get("REDIS_URL", "redis://localhost:6379/0")
        return RedisLeaderLock(redis_url, ttl_seconds=config.lock_ttl_seconds)
    return FileLeaderLock(config.lock_file)

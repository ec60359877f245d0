#!/usr/bin/env python3
"""
Tests for the sweeper leader locks.
"""

import os
import shutil
import tempfile
import unittest
from unittest.mock import MagicMock, patch

from core.config_loader import SweepConfig
from pipeline.control import FileLeaderLock, RedisLeaderLock, build_leader_lock


class TestFileLeaderLock(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.lock_file = os.path.join(self.temp_dir, "sweeper.lock")

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_second_holder_is_refused_until_release(self):
        first = FileLeaderLock(self.lock_file)
        second = FileLeaderLock(self.lock_file)

        self.assertTrue(first.acquire({"task": "expiry_sweep"}))
        self.assertFalse(second.acquire())

        first.release()
        self.assertTrue(second.acquire())
        second.release()

    def test_lock_info_records_owner(self):
        lock = FileLeaderLock(self.lock_file)
        lock.acquire({"task": "expiry_sweep"})

        info = lock.get_lock_info()

        self.assertEqual(info["pid"], os.getpid())
        self.assertEqual(info["task"], "expiry_sweep")
        lock.release()
        self.assertIsNone(lock.get_lock_info())

    def test_context_manager(self):
        lock = FileLeaderLock(self.lock_file)
        with lock as acquired:
            self.assertTrue(acquired)
            self.assertFalse(FileLeaderLock(self.lock_file).acquire())
        self.assertTrue(FileLeaderLock(self.lock_file).acquire())


class TestRedisLeaderLock(unittest.TestCase):

    def test_acquire_and_release(self):
        redis_conn = MagicMock()
        redis_lock = redis_conn.lock.return_value
        redis_lock.acquire.return_value = True

        lock = RedisLeaderLock("redis://localhost:6379/0", ttl_seconds=60, redis_conn=redis_conn)

        self.assertTrue(lock.acquire())
        redis_conn.lock.assert_called_once_with(RedisLeaderLock.LOCK_NAME, timeout=60)
        redis_lock.acquire.assert_called_once_with(blocking=False)
        lock.release()
        redis_lock.release.assert_called_once()

    def test_redis_unreachable_means_not_leader(self):
        redis_conn = MagicMock()
        redis_conn.lock.return_value.acquire.side_effect = ConnectionError("refused")

        lock = RedisLeaderLock("redis://localhost:6379/0", redis_conn=redis_conn)

        self.assertFalse(lock.acquire())
        lock.release()


class TestBuildLeaderLock(unittest.TestCase):

    def test_file_backend_by_default(self):
        lock = build_leader_lock(SweepConfig(lock_file="/tmp/test-sweeper.lock"))

        self.assertIsInstance(lock, FileLeaderLock)
        self.assertEqual(lock.lock_file, "/tmp/test-sweeper.lock")

    @patch('pipeline.control.Redis')
    def test_redis_backend(self, mock_redis):
        lock = build_leader_lock(SweepConfig(lock_backend="redis", redis_url="redis://cache:6379/1"))

        self.assertIsInstance(lock, RedisLeaderLock)
        mock_redis.from_url.assert_called_once_with("redis://cache:6379/1")


if __name__ == '__main__':
    unittest.main()

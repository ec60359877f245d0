"""
Periodic sweeper.

Pass 1 expires live matches whose listing, tenant or TTL no longer allow
them to stay open. It walks live matches by id after a checkpoint stored in
app_settings, saving the checkpoint after every batch so a crashed sweep
resumes where it stopped. Pass 2 re-scores failed pairs.
"""

import logging
import uuid
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional

from core.config_loader import SweepConfig
from core.lifecycle import MatchLifecycleManager
from core.match_index import MatchIndex
from database.types import utcnow
from database.uow import housing_uow
from pipeline.control import LeaderLock

logger = logging.getLogger(__name__)

CHECKPOINT_KEY = "expiry_sweep_checkpoint"


@dataclass
class SweepReport:
    ran: bool = False
    scanned: int = 0
    expired: int = 0
    batches: int = 0
    completed_pass: bool = False
    retried_pairs: int = 0
    retry_failures: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


class ExpirySweeper:
    def __init__(
        self,
        lifecycle: MatchLifecycleManager,
        match_index: MatchIndex,
        lock: LeaderLock,
        config: SweepConfig,
        session_factory=None,
    ):
        self.lifecycle = lifecycle
        self.match_index = match_index
        self.lock = lock
        self.config = config
        self.session_factory = session_factory

    def run_once(self, now: Optional[datetime] = None, max_batches: Optional[int] = None) -> SweepReport:
        report = SweepReport()
        if not self.lock.acquire({"task": "expiry_sweep"}):
            logger.info("Sweeper lock held elsewhere; skipping this cycle")
            return report

        report.ran = True
        try:
            now = now or utcnow()
            self._expiry_pass(now, report, max_batches)
            retry = self.match_index.retry_failed_pairs(self.config.failed_pair_batch_size, now)
            report.retried_pairs = retry.scored + retry.failed
            report.retry_failures = retry.failed
        finally:
            self.lock.release()

        logger.info(f"Sweep finished: {report.to_dict()}")
        return report

    def _expiry_pass(self, now: datetime, report: SweepReport, max_batches: Optional[int]) -> None:
        checkpoint = self.load_checkpoint()
        if checkpoint is not None:
            logger.info(f"Resuming expiry sweep after match {checkpoint}")

        while max_batches is None or report.batches < max_batches:
            scanned, expired, last_id = self.lifecycle.sweep_expired(now, checkpoint, self.config.batch_size)
            report.batches += 1
            report.scanned += scanned
            report.expired += expired

            if scanned < self.config.batch_size:
                self.save_checkpoint(None)
                report.completed_pass = True
                return

            checkpoint = last_id
            self.save_checkpoint(checkpoint)

    def load_checkpoint(self) -> Optional[uuid.UUID]:
        with housing_uow(self.session_factory) as repo:
            value = repo.settings.get(CHECKPOINT_KEY)
        return uuid.UUID(value) if value else None

    def save_checkpoint(self, match_id: Optional[uuid.UUID]) -> None:
        with housing_uow(self.session_factory) as repo:
            if match_id is None:
                repo.settings.delete(CHECKPOINT_KEY)
            else:
                repo.settings.set(CHECKPOINT_KEY, str(match_id))

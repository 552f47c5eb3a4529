from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone

from ..config import MATCH_ROUND_TIMEOUT_SECONDS, MATCHER_INTERVAL_SECONDS
from ..domain import MatchRoundInfo

logger = logging.getLogger(__name__)


class PoolMatcher:
    """Periodically runs matching for every pool that is due.

    One pass runs immediately on start, then one per interval until stopped.
    A failing pool is logged and the pass moves on to the next one.
    """

    def __init__(
        self,
        engine,
        store,
        interval_seconds: float = MATCHER_INTERVAL_SECONDS,
        round_timeout_seconds: float = MATCH_ROUND_TIMEOUT_SECONDS,
    ) -> None:
        self.engine = engine
        self.store = store
        self.interval_seconds = interval_seconds if interval_seconds > 0 else 3600
        self.round_timeout_seconds = round_timeout_seconds
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._running = True
            self._stop.clear()
            self._thread = threading.Thread(target=self._run, name="pool-matcher", daemon=True)
            self._thread.start()
        logger.info("[POOL_MATCHER] started interval=%ss", self.interval_seconds)

    def stop(self, timeout: float | None = None) -> None:
        with self._lock:
            if not self._running:
                return
            self._running = False
            thread = self._thread
            self._thread = None
        self._stop.set()
        if thread is not None:
            thread.join(timeout)
        logger.info("[POOL_MATCHER] stopped")

    def _run(self) -> None:
        while True:
            try:
                self.run_once()
            except Exception:
                logger.exception("[POOL_MATCHER] failed to load pools due for matching")
            if self._stop.wait(self.interval_seconds):
                return

    def run_once(self, now: datetime | None = None) -> list[MatchRoundInfo]:
        now = now or datetime.now(timezone.utc)
        pools = self.store.get_pools_due_for_matching(now)
        if not pools:
            return []

        logger.info("[POOL_MATCHER] processing %s pools due for matching", len(pools))
        rounds: list[MatchRoundInfo] = []
        for pool in pools:
            deadline = time.monotonic() + self.round_timeout_seconds
            try:
                info = self.engine.run_matching(pool.id, now=now, deadline=deadline)
            except Exception:
                logger.exception("[POOL_MATCHER] error processing pool %s", pool.id)
                continue
            logger.info("[POOL_MATCHER] pool=%s created %s matches for round %s", pool.id, info.match_count, info.round)
            rounds.append(info)
        return rounds

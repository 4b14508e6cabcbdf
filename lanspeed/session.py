"""
Speed Test Session State
=======================

Mutable state of one throughput test run, scoped to one control connection.
Every field access goes through the session lock; the running flag together
with the per-run token is the single arbiter of who finishes a run.
"""

import asyncio
import itertools
import threading
import time
from typing import Any, Dict, List, Optional

_token_ids = itertools.count(1)


class RunToken:
    """Cancellation handle for one run; superseded by the next start()"""

    def __init__(self):
        self.run_id = next(_token_ids)
        self._cancelled = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self):
        self._cancelled.set()

    async def wait_cancelled(self):
        await self._cancelled.wait()

    async def wait(self, timeout: float) -> bool:
        """Sleep up to `timeout` seconds; True if the run was cancelled meanwhile"""
        if self.cancelled:
            return True
        try:
            await asyncio.wait_for(self._cancelled.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def __repr__(self) -> str:
        return f"<RunToken #{self.run_id}{' cancelled' if self.cancelled else ''}>"


class SpeedTestSession:
    """Running flag, collected samples and cancellation token for one connection"""

    def __init__(self):
        self._lock = threading.Lock()
        self._running = False
        self._samples: List[float] = []
        self._started_at: Optional[float] = None
        self._token: Optional[RunToken] = None

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running

    @property
    def samples(self) -> List[float]:
        with self._lock:
            return list(self._samples)

    @property
    def started_at(self) -> Optional[float]:
        with self._lock:
            return self._started_at

    def start(self) -> RunToken:
        """Begin a fresh run; any previous token is cancelled and superseded"""
        with self._lock:
            if self._token is not None:
                self._token.cancel()
            self._token = RunToken()
            self._running = True
            self._samples = []
            self._started_at = time.time()
            return self._token

    def stop(self, token: Optional[RunToken] = None) -> bool:
        """
        End the current run.

        Args:
            token: when given, only stop if it still owns the session

        Returns:
            True if this call moved the session from running to stopped and
            the caller must therefore report the final result.
        """
        with self._lock:
            if not self._running:
                return False
            if token is not None and token is not self._token:
                return False
            self._running = False
            self._token.cancel()
            self._token = None
            return True

    def add_speed(self, speed: float, token: Optional[RunToken] = None) -> bool:
        """Record a sample; late or stale samples are dropped silently"""
        with self._lock:
            if not self._running:
                return False
            if token is not None and token is not self._token:
                return False
            self._samples.append(speed)
            return True

    def average(self) -> float:
        with self._lock:
            if not self._samples:
                return 0.0
            return sum(self._samples) / len(self._samples)

    def is_current(self, token: RunToken) -> bool:
        with self._lock:
            return self._running and token is self._token

    def snapshot(self) -> Dict[str, Any]:
        """Diagnostic view of the session"""
        with self._lock:
            count = len(self._samples)
            return {
                'running': self._running,
                'sample_count': count,
                'average_mbps': round(sum(self._samples) / count, 2) if count else 0.0,
                'elapsed_seconds': round(time.time() - self._started_at, 1) if self._started_at else 0.0,
            }

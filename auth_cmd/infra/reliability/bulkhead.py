# =============================================================================
# File: auth_cmd/infra/reliability/bulkhead.py
# Description: Bulkhead pattern for bounded per-message concurrency
#              A topic reader hands every message to its own task, but never
#              more than max_concurrent at a time
# =============================================================================

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from auth_cmd.config.reliability_config import BulkheadConfig

logger = logging.getLogger("authcmd.reliability.bulkhead")


# =============================================================================
# EXCEPTIONS
# =============================================================================

class BulkheadError(Exception):
    """Base exception for bulkhead errors"""
    pass


class BulkheadTimeoutError(BulkheadError):
    """Raised when waiting for bulkhead slot times out"""

    def __init__(self, bulkhead_name: str, timeout_ms: int):
        self.bulkhead_name = bulkhead_name
        self.timeout_ms = timeout_ms
        super().__init__(f"Bulkhead '{bulkhead_name}' timeout after {timeout_ms}ms")


@dataclass
class BulkheadMetrics:
    name: str
    max_concurrent: int
    active: int
    waiting: int
    total_acquisitions: int
    timeouts: int
    max_wait_seconds: float

    @property
    def utilization(self) -> float:
        return (self.active / self.max_concurrent) * 100 if self.max_concurrent else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "max_concurrent": self.max_concurrent,
            "active": self.active,
            "waiting": self.waiting,
            "utilization_pct": round(self.utilization, 2),
            "total_acquisitions": self.total_acquisitions,
            "timeouts": self.timeouts,
            "max_wait_seconds": round(self.max_wait_seconds, 3),
        }


# =============================================================================
# BULKHEAD IMPLEMENTATION
# =============================================================================

class Bulkhead:
    """
    Process-local bulkhead.

    Usage:
        bulkhead = Bulkhead(BulkheadConfig(name="events", max_concurrent=100))

        # Waits for a slot, then runs the call in its own task which frees
        # the slot when done
        task = await bulkhead.submit(handle, msg)
    """

    def __init__(self, config: BulkheadConfig):
        self.name = config.name
        self.config = config
        self._semaphore = asyncio.Semaphore(config.max_concurrent)
        self._tasks: Set[asyncio.Task] = set()

        self._active_count = 0
        self._waiting_count = 0
        self._timeout_count = 0
        self._total_acquisitions = 0
        self._max_wait_seconds = 0.0

        logger.debug(
            f"Bulkhead '{self.name}' initialized: "
            f"max_concurrent={config.max_concurrent}, "
            f"timeout_ms={config.timeout_ms}"
        )

    @property
    def active_count(self) -> int:
        return self._active_count

    @property
    def in_flight(self) -> int:
        """Tasks started through submit() that have not finished yet."""
        return len(self._tasks)

    async def _acquire_slot(self, timeout_ms: Optional[int]) -> None:
        self._waiting_count += 1
        started = time.monotonic()
        try:
            if timeout_ms is None:
                await self._semaphore.acquire()
            else:
                try:
                    await asyncio.wait_for(self._semaphore.acquire(), timeout=timeout_ms / 1000)
                except asyncio.TimeoutError:
                    self._timeout_count += 1
                    raise BulkheadTimeoutError(self.name, timeout_ms)
        finally:
            self._waiting_count -= 1

        waited = time.monotonic() - started
        self._max_wait_seconds = max(self._max_wait_seconds, waited)
        if waited > 1.0:
            logger.debug(f"Bulkhead '{self.name}' full, waited {waited:.2f}s for a slot")

        self._active_count += 1
        self._total_acquisitions += 1

    def _release_slot(self) -> None:
        self._active_count -= 1
        self._semaphore.release()

    async def submit(
            self,
            func: Callable[..., Awaitable[Any]],
            *args,
            name: Optional[str] = None,
            **kwargs
    ) -> asyncio.Task:
        """
        Wait for a free slot, then run func in a new task.

        The caller is suspended while the bulkhead is full, which is what
        applies backpressure to the topic reader.
        """
        await self._acquire_slot(self.config.timeout_ms)

        async def run():
            try:
                return await func(*args, **kwargs)
            finally:
                self._release_slot()

        try:
            task = asyncio.create_task(run(), name=name)
        except BaseException:
            self._release_slot()
            raise

        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for submitted tasks to finish.

        Returns:
            True if every task finished, False if the timeout expired first
        """
        if not self._tasks:
            return True
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if pending:
            logger.warning(f"Bulkhead '{self.name}': {len(pending)} tasks still running after drain timeout")
            return False
        return True

    async def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def get_metrics(self) -> BulkheadMetrics:
        return BulkheadMetrics(
            name=self.name,
            max_concurrent=self.config.max_concurrent,
            active=self._active_count,
            waiting=self._waiting_count,
            total_acquisitions=self._total_acquisitions,
            timeouts=self._timeout_count,
            max_wait_seconds=self._max_wait_seconds,
        )


# =============================================================================
# EXPORTS
# =============================================================================

__all__ = [
    'Bulkhead',
    'BulkheadError',
    'BulkheadMetrics',
    'BulkheadTimeoutError',
]

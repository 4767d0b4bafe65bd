"""
Deduplicating, rate-limited work queue for reconcile keys.

Semantics follow the client-go work queue:
- a key queued several times before it is picked up is processed once
- a key being processed is never handed to a second worker; if it is
  re-added meanwhile it is queued again once ``done()`` is called
- ``add_rate_limited`` delays re-adds with per-key exponential backoff
  until ``forget`` resets it
"""
import asyncio
import logging
from collections import deque
from typing import Deque, Dict, Optional, Set


class RateLimitingQueue:

    def __init__(self, name: str = "queue", base_delay: float = 0.005, max_delay: float = 1000.0):
        self.name = name
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.logger = logging.getLogger(__name__)

        self._queue: Deque[str] = deque()
        self._dirty: Set[str] = set()
        self._processing: Set[str] = set()
        self._failures: Dict[str, int] = {}
        self._delayed: Dict[str, asyncio.TimerHandle] = {}
        self._ready = asyncio.Event()
        self._shutting_down = False

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def shutting_down(self) -> bool:
        return self._shutting_down

    def add(self, key: str):
        if self._shutting_down:
            return
        if key in self._dirty:
            return

        self._dirty.add(key)
        if key in self._processing:
            return

        self._queue.append(key)
        self._ready.set()

    async def get(self) -> Optional[str]:
        """Wait for the next key; None once the queue is shut down and drained"""
        while not self._queue:
            if self._shutting_down:
                return None
            self._ready.clear()
            await self._ready.wait()

        key = self._queue.popleft()
        self._processing.add(key)
        self._dirty.discard(key)
        return key

    def done(self, key: str):
        self._processing.discard(key)
        if key in self._dirty and not self._shutting_down:
            self._queue.append(key)
            self._ready.set()

    def add_after(self, key: str, delay: float):
        if self._shutting_down:
            return
        if delay <= 0:
            self.add(key)
            return

        existing = self._delayed.get(key)
        if existing is not None:
            existing.cancel()

        loop = asyncio.get_running_loop()
        self._delayed[key] = loop.call_later(delay, self._fire_delayed, key)

    def _fire_delayed(self, key: str):
        self._delayed.pop(key, None)
        self.add(key)

    def when(self, key: str) -> float:
        """Backoff delay for the next rate-limited add of ``key``"""
        failures = self._failures.get(key, 0)
        self._failures[key] = failures + 1
        return min(self.base_delay * (2 ** failures), self.max_delay)

    def add_rate_limited(self, key: str):
        delay = self.when(key)
        self.logger.debug(f"{self.name}: requeueing {key} in {delay:.3f}s")
        self.add_after(key, delay)

    def forget(self, key: str):
        self._failures.pop(key, None)

    def num_requeues(self, key: str) -> int:
        return self._failures.get(key, 0)

    def shut_down(self):
        self._shutting_down = True
        for handle in self._delayed.values():
            handle.cancel()
        self._delayed.clear()
        self._queue.clear()
        self._ready.set()

import asyncio
import logging
import time
from typing import Callable, Dict, List, Optional

from cachetools import TTLCache


class Tracker:
    """
    Registry of which objects depend on which referenced objects.

    An image calls ``track(builder_key, image_key)`` on every reconcile;
    each link is a lease that expires after ``lease_seconds`` unless
    renewed. When a referenced object changes, ``on_changed`` pushes every
    live dependent key into a bounded notification queue which ``run()``
    drains into ``callback`` (normally the image work queue's ``add``).
    """

    def __init__(self, callback: Callable[[str], None],
                 lease_seconds: float = 1800,
                 buffer_size: int = 1000,
                 max_dependents: int = 10000,
                 timer=time.monotonic):
        self.callback = callback
        self.lease_seconds = lease_seconds
        self.max_dependents = max_dependents
        self.timer = timer
        self.logger = logging.getLogger(__name__)

        self._links: Dict[str, TTLCache] = {}
        self._notifications: asyncio.Queue = asyncio.Queue(maxsize=buffer_size)
        self._task: Optional[asyncio.Task] = None
        self.stats = {
            'notified': 0,
            'dropped': 0
        }

    def track(self, ref_key: str, obj_key: str):
        dependents = self._links.get(ref_key)
        if dependents is None:
            dependents = TTLCache(maxsize=self.max_dependents, ttl=self.lease_seconds, timer=self.timer)
            self._links[ref_key] = dependents
        # Re-setting the entry renews the lease
        dependents[obj_key] = True

    def dependents(self, ref_key: str) -> List[str]:
        dependents = self._links.get(ref_key)
        if dependents is None:
            return []
        dependents.expire()
        if not dependents:
            del self._links[ref_key]
            return []
        return list(dependents.keys())

    def on_changed(self, obj):
        """Notify dependents of ``obj`` (anything with a ``tracking_key()``)"""
        for key in self.dependents(obj.tracking_key()):
            try:
                self._notifications.put_nowait(key)
                self.stats['notified'] += 1
            except asyncio.QueueFull:
                self.stats['dropped'] += 1
                self.logger.warning(f"Tracker notification buffer full, dropping {key}")

    async def run(self):
        while True:
            key = await self._notifications.get()
            try:
                self.callback(key)
            finally:
                self._notifications.task_done()

    def start(self):
        if self._task is None:
            self._task = asyncio.create_task(self.run())

    async def stop(self):
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

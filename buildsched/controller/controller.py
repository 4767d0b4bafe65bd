import asyncio
import logging
from typing import List, Optional, Protocol

from ..core.errors import PermanentError
from ..core.naming import object_key
from .workqueue import RateLimitingQueue


class Reconciler(Protocol):
    """Anything with ``async reconcile(key)``"""

    async def reconcile(self, key: str):
        ...


class Controller:
    """
    Runs ``workers`` tasks that pull keys from a rate-limited queue and
    hand them to ``reconciler.reconcile``.

    Error policy:
    - success: backoff for the key is reset
    - PermanentError: logged, key dropped
    - anything else: logged, key requeued with exponential backoff
    """

    def __init__(self, name: str, reconciler: Reconciler, workers: int = 2,
                 base_delay: float = 0.005, max_delay: float = 1000.0):
        self.name = name
        self.reconciler = reconciler
        self.workers = workers
        self.queue = RateLimitingQueue(name=name, base_delay=base_delay, max_delay=max_delay)
        self.logger = logging.getLogger(__name__)
        self._tasks: List[asyncio.Task] = []
        self.running = False

    def enqueue_key(self, key: str):
        self.queue.add(key)

    def enqueue(self, obj):
        self.queue.add(object_key(obj.namespace, obj.name))

    def enqueue_controller_of(self, obj, owner_kind: Optional[str] = None):
        """Enqueue the controlling owner of ``obj``, optionally only of one kind"""
        ref = obj.metadata.controller_ref()
        if ref is None:
            return
        if owner_kind is not None and ref.kind != owner_kind:
            return
        self.queue.add(object_key(obj.namespace, ref.name))

    async def start(self):
        self.running = True
        self.logger.info(f"Starting {self.name} controller with {self.workers} workers")
        self._tasks = [
            asyncio.create_task(self._worker(i)) for i in range(self.workers)
        ]

    async def stop(self):
        """Stop handing out keys; in-flight reconciles run to completion"""
        self.running = False
        self.logger.info(f"Stopping {self.name} controller")
        self.queue.shut_down()
        if self._tasks:
            await asyncio.gather(*self._tasks)
        self._tasks = []

    async def _worker(self, worker_id: int):
        while True:
            key = await self.queue.get()
            if key is None:
                self.logger.debug(f"{self.name} worker {worker_id} exiting")
                return
            try:
                await self.process(key)
            finally:
                self.queue.done(key)

    async def process(self, key: str):
        try:
            await self.reconciler.reconcile(key)
        except PermanentError as e:
            self.logger.error(f"{self.name}: permanent error reconciling {key}: {e}")
            self.queue.forget(key)
        except Exception as e:
            self.logger.warning(
                f"{self.name}: error reconciling {key} (retry {self.queue.num_requeues(key) + 1}): {e}",
                exc_info=True
            )
            self.queue.add_rate_limited(key)
        else:
            self.queue.forget(key)

import asyncio
import copy
from typing import Any, Dict, List, Optional, Tuple

from ..core.enums import WatchEventType
from ..core.errors import AlreadyExistsError, ConflictError, NotFoundError
from .base import BaseObjectStore, matches_labels


class InMemoryObjectStore(BaseObjectStore):
    """
    Process-local object store.

    Used by tests and single-process deployments. Writes are serialized
    with an asyncio.Lock; watchers are notified synchronously after the
    write is applied.
    """

    def __init__(self):
        super().__init__()
        self.lock = asyncio.Lock()
        self._objects: Dict[str, Dict[Tuple[str, str], Any]] = {}

    async def connect(self):
        pass

    async def disconnect(self):
        pass

    def _bucket(self, kind: str) -> Dict[Tuple[str, str], Any]:
        return self._objects.setdefault(kind, {})

    async def get(self, kind: str, namespace: str, name: str):
        obj = self._bucket(kind).get((namespace, name))
        if obj is None:
            raise NotFoundError(kind, namespace, name)
        return copy.deepcopy(obj)

    async def list(self, kind: str, namespace: Optional[str] = None,
                   labels: Optional[Dict[str, str]] = None) -> List[Any]:
        result = []
        for (ns, _), obj in self._bucket(kind).items():
            if namespace is not None and ns != namespace:
                continue
            if matches_labels(obj, labels):
                result.append(copy.deepcopy(obj))
        return result

    async def create(self, obj):
        async with self.lock:
            obj = self._prepare_create(obj)
            key = (obj.namespace, obj.name)
            bucket = self._bucket(obj.KIND)
            if key in bucket:
                raise AlreadyExistsError(obj.KIND, obj.namespace, obj.name)
            bucket[key] = obj
            self.stats['creates'] += 1

        self._notify(WatchEventType.ADDED, obj)
        return copy.deepcopy(obj)

    async def update(self, obj):
        async with self.lock:
            stored = await self.get(obj.KIND, obj.namespace, obj.name)
            updated = self._apply_update(stored, obj)
            self._bucket(obj.KIND)[(obj.namespace, obj.name)] = updated
            self.stats['updates'] += 1

        self._notify(WatchEventType.MODIFIED, updated)
        return copy.deepcopy(updated)

    async def update_status(self, obj):
        async with self.lock:
            stored = await self.get(obj.KIND, obj.namespace, obj.name)
            updated = self._apply_status(stored, obj)
            self._bucket(obj.KIND)[(obj.namespace, obj.name)] = updated
            self.stats['status_updates'] += 1

        self._notify(WatchEventType.MODIFIED, updated)
        return copy.deepcopy(updated)

    async def _delete_one(self, kind: str, namespace: str, name: str, uid: Optional[str] = None):
        async with self.lock:
            bucket = self._bucket(kind)
            stored = bucket.get((namespace, name))
            if stored is None:
                raise NotFoundError(kind, namespace, name)
            if uid is not None and stored.metadata.uid != uid:
                raise ConflictError(f"{kind} {namespace}/{name} uid precondition failed")
            del bucket[(namespace, name)]

        self._notify(WatchEventType.DELETED, stored)
        return stored

    def get_stats(self) -> Dict[str, Any]:
        return {
            **self.stats,
            'type': 'memory',
            'size': sum(len(bucket) for bucket in self._objects.values())
        }

import asyncio
import json
from typing import Any, Dict, List, Optional

from redis import asyncio as aioredis
from redis.exceptions import WatchError

from ..core.enums import WatchEventType
from ..core.errors import AlreadyExistsError, ConflictError, NotFoundError
from .base import BaseObjectStore, matches_labels, object_from_dict


class RedisObjectStore(BaseObjectStore):
    """
    Redis-backed object store shared by several controller processes.

    Layout:
    - one hash per kind (``<prefix>objects:<kind>``), field ``namespace/name``,
      value the object's JSON
    - one pub/sub channel (``<prefix>events``) carrying every write

    Writes use WATCH/MULTI so a concurrent write to the same kind turns
    into a ConflictError instead of a lost update. Watchers are fed from
    the pub/sub channel, so every process sees every write exactly once,
    its own included.
    """

    def __init__(self, url: str = 'redis://localhost:6379',
                 key_prefix: str = 'buildsched:',
                 max_connections: int = 10):
        """
        Initialize Redis object store.

        Args:
            url: Redis connection URL
            key_prefix: Prefix for all keys and channels (namespace isolation)
            max_connections: Max connections in pool
        """
        super().__init__()
        self.url = url
        self.key_prefix = key_prefix
        self.max_connections = max_connections
        self.redis: Optional[aioredis.Redis] = None
        self._pubsub = None
        self._listener: Optional[asyncio.Task] = None

    @property
    def events_channel(self) -> str:
        return f"{self.key_prefix}events"

    def _hash_key(self, kind: str) -> str:
        return f"{self.key_prefix}objects:{kind}"

    @staticmethod
    def _field(namespace: str, name: str) -> str:
        return f"{namespace}/{name}"

    def _require_connection(self):
        if not self.redis:
            raise RuntimeError("Redis not connected. Call connect() first.")

    async def connect(self):
        self.redis = aioredis.from_url(
            self.url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=self.max_connections
        )
        self._pubsub = self.redis.pubsub()
        await self._pubsub.subscribe(self.events_channel)
        self._listener = asyncio.create_task(self._listen())
        self.logger.info(f"Connected to Redis object store at {self.url}")

    async def disconnect(self):
        if self._listener:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None
        if self._pubsub:
            await self._pubsub.unsubscribe(self.events_channel)
            await self._pubsub.close()
            self._pubsub = None
        if self.redis:
            await self.redis.close()
            self.redis = None

    async def _listen(self):
        async for message in self._pubsub.listen():
            if message.get('type') != 'message':
                continue
            try:
                payload = json.loads(message['data'])
                event_type = WatchEventType(payload['type'])
                obj = object_from_dict(payload['object'])
            except (ValueError, KeyError) as e:
                self.logger.warning(f"Ignoring malformed store event: {e}")
                continue
            self._notify(event_type, obj)

    async def _publish(self, event_type: WatchEventType, obj):
        payload = json.dumps({'type': event_type.value, 'object': obj.to_dict()})
        await self.redis.publish(self.events_channel, payload)

    async def get(self, kind: str, namespace: str, name: str):
        self._require_connection()
        raw = await self.redis.hget(self._hash_key(kind), self._field(namespace, name))
        if raw is None:
            raise NotFoundError(kind, namespace, name)
        return object_from_dict(json.loads(raw))

    async def list(self, kind: str, namespace: Optional[str] = None,
                   labels: Optional[Dict[str, str]] = None) -> List[Any]:
        self._require_connection()
        raw_objects = await self.redis.hgetall(self._hash_key(kind))
        result = []
        for field, raw in raw_objects.items():
            ns = field.split("/", 1)[0]
            if namespace is not None and ns != namespace:
                continue
            obj = object_from_dict(json.loads(raw))
            if matches_labels(obj, labels):
                result.append(obj)
        return result

    async def create(self, obj):
        self._require_connection()
        obj = self._prepare_create(obj)
        added = await self.redis.hsetnx(
            self._hash_key(obj.KIND),
            self._field(obj.namespace, obj.name),
            json.dumps(obj.to_dict())
        )
        if not added:
            raise AlreadyExistsError(obj.KIND, obj.namespace, obj.name)
        self.stats['creates'] += 1
        await self._publish(WatchEventType.ADDED, obj)
        return obj

    async def _transact(self, kind: str, namespace: str, name: str, apply):
        """Read-modify-write one object under WATCH"""
        hash_key = self._hash_key(kind)
        field = self._field(namespace, name)
        async with self.redis.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(hash_key)
                raw = await pipe.hget(hash_key, field)
                if raw is None:
                    raise NotFoundError(kind, namespace, name)
                updated = apply(object_from_dict(json.loads(raw)))
                pipe.multi()
                if updated is None:
                    pipe.hdel(hash_key, field)
                else:
                    pipe.hset(hash_key, field, json.dumps(updated.to_dict()))
                await pipe.execute()
            except WatchError as e:
                self.stats['conflicts'] += 1
                raise ConflictError(f"{kind} {namespace}/{name} was modified concurrently") from e
        return updated

    async def update(self, obj):
        self._require_connection()
        updated = await self._transact(obj.KIND, obj.namespace, obj.name,
                                       lambda stored: self._apply_update(stored, obj))
        self.stats['updates'] += 1
        await self._publish(WatchEventType.MODIFIED, updated)
        return updated

    async def update_status(self, obj):
        self._require_connection()
        updated = await self._transact(obj.KIND, obj.namespace, obj.name,
                                       lambda stored: self._apply_status(stored, obj))
        self.stats['status_updates'] += 1
        await self._publish(WatchEventType.MODIFIED, updated)
        return updated

    async def _delete_one(self, kind: str, namespace: str, name: str, uid: Optional[str] = None):
        self._require_connection()
        deleted = []

        def apply(stored):
            if uid is not None and stored.metadata.uid != uid:
                raise ConflictError(f"{kind} {namespace}/{name} uid precondition failed")
            deleted.append(stored)
            return None

        await self._transact(kind, namespace, name, apply)
        await self._publish(WatchEventType.DELETED, deleted[0])
        return deleted[0]

    def get_stats(self) -> Dict[str, Any]:
        return {
            **self.stats,
            'type': 'redis',
            'url': self.url,
            'key_prefix': self.key_prefix
        }

import copy
import logging
import secrets
import string
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ..core.builder import Builder, ClusterBuilder
from ..core.enums import WatchEventType
from ..core.errors import ConflictError, InvalidObjectError
from ..core.models import (
    Build,
    BuildCacheClaim,
    Image,
    Pod,
    SourceResolver,
    now_iso,
)
from ..core.naming import GENERATED_SUFFIX_LENGTH, MAX_NAME_LENGTH

OBJECT_TYPES = {
    cls.KIND: cls
    for cls in (Image, Build, SourceResolver, BuildCacheClaim, Pod, Builder, ClusterBuilder)
}

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def object_from_dict(data: Dict[str, Any]):
    """Rebuild a stored object from its ``to_dict()`` form"""
    kind = data.get("kind")
    if kind not in OBJECT_TYPES:
        raise InvalidObjectError(f"unknown object kind: {kind!r}")
    return OBJECT_TYPES[kind].from_dict(data)


def matches_labels(obj, labels: Optional[Dict[str, str]]) -> bool:
    if not labels:
        return True
    return all(obj.metadata.labels.get(k) == v for k, v in labels.items())


@dataclass
class WatchEvent:
    """Change notification delivered to store watchers"""
    type: WatchEventType
    obj: Any


WatchCallback = Callable[[WatchEvent], None]


class BaseObjectStore(ABC):
    """
    Base class for object stores.

    The store is the source of truth for images, builds and their
    dependents. It provides:
    - optimistic concurrency through ``metadata.resource_version``
    - generation bumps when ``spec`` changes
    - status writes that never touch spec or metadata
    - watch notifications for every write
    - cascading deletion of dependents through owner references

    Objects passed in and handed out are copies; callers may mutate them
    freely.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._watchers: List[WatchCallback] = []
        self.stats = {
            'creates': 0,
            'updates': 0,
            'status_updates': 0,
            'deletes': 0,
            'conflicts': 0
        }

    @abstractmethod
    async def connect(self):
        """Initialize connection (for external stores like Redis)"""
        pass

    @abstractmethod
    async def disconnect(self):
        """Close connection and cleanup resources"""
        pass

    @abstractmethod
    async def get(self, kind: str, namespace: str, name: str):
        """
        Get one object.

        Raises:
            NotFoundError: object does not exist
        """
        pass

    @abstractmethod
    async def list(self, kind: str, namespace: Optional[str] = None,
                   labels: Optional[Dict[str, str]] = None) -> List[Any]:
        """
        List objects of ``kind``.

        Args:
            kind: Object kind
            namespace: Restrict to one namespace (None = all namespaces)
            labels: Only objects carrying all of these labels
        """
        pass

    @abstractmethod
    async def create(self, obj):
        """
        Persist a new object and return the stored copy.

        Raises:
            AlreadyExistsError: name is taken
        """
        pass

    @abstractmethod
    async def update(self, obj):
        """
        Replace metadata and spec of an existing object; status is kept.

        Raises:
            NotFoundError: object does not exist
            ConflictError: ``obj`` is based on a stale resource version
        """
        pass

    @abstractmethod
    async def update_status(self, obj):
        """
        Replace status of an existing object; metadata and spec are kept.

        Raises:
            NotFoundError: object does not exist
            ConflictError: ``obj`` is based on a stale resource version
        """
        pass

    @abstractmethod
    async def _delete_one(self, kind: str, namespace: str, name: str, uid: Optional[str] = None):
        """Remove a single object and return it"""
        pass

    async def delete(self, kind: str, namespace: str, name: str, uid: Optional[str] = None):
        """
        Delete an object and, transitively, everything it owns.

        Args:
            uid: Precondition; the delete fails with ConflictError when the
                stored object has a different uid

        Raises:
            NotFoundError: object does not exist
        """
        deleted = await self._delete_one(kind, namespace, name, uid)
        self.stats['deletes'] += 1
        self.logger.debug(f"Deleted {kind} {namespace}/{name}")
        await self._cascade(deleted)
        return deleted

    async def _cascade(self, owner):
        owner_uid = owner.metadata.uid
        for kind in OBJECT_TYPES:
            for obj in await self.list(kind, namespace=owner.metadata.namespace or None):
                if any(ref.uid == owner_uid for ref in obj.metadata.owner_references):
                    self.logger.debug(f"Cascading delete of {kind} {obj.namespace}/{obj.name}")
                    await self.delete(kind, obj.namespace, obj.name, obj.metadata.uid)

    def watch(self, callback: WatchCallback):
        """Register a synchronous callback for every write"""
        self._watchers.append(callback)

    def _notify(self, event_type: WatchEventType, obj):
        for callback in list(self._watchers):
            try:
                callback(WatchEvent(type=event_type, obj=copy.deepcopy(obj)))
            except Exception as e:
                self.logger.error(f"Watch callback failed for {obj.KIND} {obj.namespace}/{obj.name}: {e}",
                                  exc_info=True)

    # Helpers shared by implementations

    def _prepare_create(self, obj):
        obj = copy.deepcopy(obj)
        meta = obj.metadata
        if not meta.name:
            if not meta.generate_name:
                raise InvalidObjectError(f"{obj.KIND} needs a name or generate_name")
            prefix = meta.generate_name[:MAX_NAME_LENGTH - GENERATED_SUFFIX_LENGTH]
            suffix = ''.join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(GENERATED_SUFFIX_LENGTH))
            meta.name = prefix + suffix
        if len(meta.name) > MAX_NAME_LENGTH:
            raise InvalidObjectError(f"{obj.KIND} name {meta.name!r} is longer than {MAX_NAME_LENGTH} characters")
        meta.uid = str(uuid.uuid4())
        meta.resource_version = 1
        meta.generation = 1
        meta.creation_timestamp = meta.creation_timestamp or now_iso()
        return obj

    def _check_version(self, stored, obj):
        if obj.metadata.resource_version != stored.metadata.resource_version:
            self.stats['conflicts'] += 1
            raise ConflictError(
                f"{obj.KIND} {obj.namespace}/{obj.name} was modified: "
                f"resource version {obj.metadata.resource_version} != {stored.metadata.resource_version}"
            )

    def _apply_update(self, stored, obj):
        self._check_version(stored, obj)
        updated = copy.deepcopy(obj)
        updated.status = copy.deepcopy(stored.status)
        updated.metadata.uid = stored.metadata.uid
        updated.metadata.creation_timestamp = stored.metadata.creation_timestamp
        updated.metadata.generation = stored.metadata.generation
        if updated.spec != stored.spec:
            updated.metadata.generation += 1
        updated.metadata.resource_version = stored.metadata.resource_version + 1
        return updated

    def _apply_status(self, stored, obj):
        self._check_version(stored, obj)
        updated = copy.deepcopy(stored)
        updated.status = copy.deepcopy(obj.status)
        updated.metadata.resource_version = stored.metadata.resource_version + 1
        return updated

    def get_stats(self) -> Dict[str, Any]:
        return dict(self.stats)

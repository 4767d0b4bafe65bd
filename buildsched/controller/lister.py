"""
Watch-maintained local caches of store objects.

Reconcilers read through informers only; the store is hit for writes.
"""
import copy
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..core.builder import BuilderResource
from ..core.enums import BuilderKind, WatchEventType
from ..core.errors import NotFoundError
from ..core.models import BuilderRef
from ..store.base import BaseObjectStore, WatchEvent, matches_labels

EventHandler = Callable[[WatchEventType, Any], None]


class Informer:
    """Local cache of one object kind kept current by store watch events"""

    def __init__(self, store: BaseObjectStore, kind: str):
        self.store = store
        self.kind = kind
        self.logger = logging.getLogger(__name__)
        self._cache: Dict[Tuple[str, str], Any] = {}
        self._handlers: List[EventHandler] = []
        self._synced = False

    @property
    def has_synced(self) -> bool:
        return self._synced

    def add_event_handler(self, handler: EventHandler):
        self._handlers.append(handler)

    async def start(self):
        """Subscribe to the store and fill the cache with an initial list"""
        self.store.watch(self._on_event)
        for obj in await self.store.list(self.kind):
            key = (obj.namespace, obj.name)
            if key not in self._cache:
                self._apply(WatchEventType.ADDED, obj)
        self._synced = True
        self.logger.info(f"{self.kind} informer synced with {len(self._cache)} objects")

    def _on_event(self, event: WatchEvent):
        if event.obj.KIND != self.kind:
            return
        self._apply(event.type, event.obj)

    def _apply(self, event_type: WatchEventType, obj):
        key = (obj.namespace, obj.name)
        if event_type == WatchEventType.DELETED:
            self._cache.pop(key, None)
        else:
            cached = self._cache.get(key)
            # Pub/sub and the initial list can race; keep the newest version
            if cached is not None and cached.metadata.uid == obj.metadata.uid \
                    and cached.metadata.resource_version > obj.metadata.resource_version:
                return
            self._cache[key] = obj

        for handler in self._handlers:
            handler(event_type, obj)

    def get(self, namespace: str, name: str):
        obj = self._cache.get((namespace, name))
        if obj is None:
            raise NotFoundError(self.kind, namespace, name)
        return copy.deepcopy(obj)

    def list(self, namespace: Optional[str] = None, labels: Optional[Dict[str, str]] = None) -> List[Any]:
        return [
            copy.deepcopy(obj)
            for (ns, _), obj in self._cache.items()
            if (namespace is None or ns == namespace) and matches_labels(obj, labels)
        ]


class DuckBuilderLister:
    """Resolves an image's builder reference to whichever variant it names"""

    def __init__(self, builders: Informer, cluster_builders: Informer):
        self.builders = builders
        self.cluster_builders = cluster_builders

    def get(self, namespace: str, ref: BuilderRef) -> BuilderResource:
        """
        Raises:
            NotFoundError: builder does not exist
            ValueError: unknown builder kind
        """
        if ref.kind == BuilderKind.BUILDER.value:
            return self.builders.get(namespace, ref.name)
        if ref.kind == BuilderKind.CLUSTER_BUILDER.value:
            return self.cluster_builders.get("", ref.name)
        raise ValueError(f"unsupported builder kind: {ref.kind}")


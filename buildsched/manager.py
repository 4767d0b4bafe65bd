import asyncio
import logging
from typing import Dict, Optional

from .buildpod import BuildPodGenerator, BuildPodImages
from .config.global_config_loader import GlobalConfig
from .controller import Controller, DuckBuilderLister, Informer, Tracker
from .core.enums import ObjectKind, WatchEventType
from .reconciler.build import BuildReconciler, MetadataRetriever, PodGenerator, PodMetadataRetriever
from .reconciler.image import ImageReconciler
from .store import BaseObjectStore, get_object_store


class ControllerManager:
    """
    Wires the store, informers, dependency tracker and both control loops.

    Event routing:
    - Image events wake the image loop
    - Build, SourceResolver and BuildCacheClaim events wake the owning image
    - Builder and ClusterBuilder events wake every image tracking them
    - Build events wake the build loop; Pod events wake the owning build
    """

    def __init__(self,
                 config: Optional[GlobalConfig] = None,
                 store: Optional[BaseObjectStore] = None,
                 pod_generator: Optional[PodGenerator] = None,
                 metadata_retriever: Optional[MetadataRetriever] = None):
        self.config = config or GlobalConfig.default()
        self.store = store or get_object_store(self.config.store.type, vars(self.config.store))
        self.logger = logging.getLogger(__name__)
        self.running = False
        self._stopped = asyncio.Event()

        controller_cfg = self.config.controller
        defaults = self.config.image_defaults

        self.informers: Dict[str, Informer] = {
            kind.value: Informer(self.store, kind.value) for kind in ObjectKind
        }

        self.tracker = Tracker(
            callback=self._enqueue_image_key,
            lease_seconds=controller_cfg.tracker_lease_seconds,
            buffer_size=controller_cfg.notification_buffer,
        )

        self.image_reconciler = ImageReconciler(
            store=self.store,
            images=self.informers[ObjectKind.IMAGE.value],
            builds=self.informers[ObjectKind.BUILD.value],
            source_resolvers=self.informers[ObjectKind.SOURCE_RESOLVER.value],
            cache_claims=self.informers[ObjectKind.BUILD_CACHE_CLAIM.value],
            builders=DuckBuilderLister(
                self.informers[ObjectKind.BUILDER.value],
                self.informers[ObjectKind.CLUSTER_BUILDER.value],
            ),
            tracker=self.tracker,
            enable_priority_classes=controller_cfg.enable_priority_classes,
            failed_build_history_limit=defaults.failed_build_history_limit,
            success_build_history_limit=defaults.success_build_history_limit,
            service_account_name=defaults.service_account_name,
        )
        self.image_controller = Controller(
            "images", self.image_reconciler,
            workers=controller_cfg.image_workers,
            base_delay=controller_cfg.base_backoff,
            max_delay=controller_cfg.max_backoff,
        )

        images = BuildPodImages(
            build_init=self.config.build_pod.build_init_image,
            completion=self.config.build_pod.completion_image,
        )
        self.build_reconciler = BuildReconciler(
            store=self.store,
            builds=self.informers[ObjectKind.BUILD.value],
            pods=self.informers[ObjectKind.POD.value],
            pod_generator=pod_generator or BuildPodGenerator(images),
            metadata_retriever=metadata_retriever or PodMetadataRetriever(),
        )
        self.build_controller = Controller(
            "builds", self.build_reconciler,
            workers=controller_cfg.build_workers,
            base_delay=controller_cfg.base_backoff,
            max_delay=controller_cfg.max_backoff,
        )

        self._register_handlers()

    def _enqueue_image_key(self, key: str):
        self.image_controller.enqueue_key(key)

    def _register_handlers(self):
        image_kind = ObjectKind.IMAGE.value
        build_kind = ObjectKind.BUILD.value

        self.informers[image_kind].add_event_handler(
            lambda event_type, obj: self.image_controller.enqueue(obj)
        )
        for kind in (ObjectKind.BUILD, ObjectKind.SOURCE_RESOLVER, ObjectKind.BUILD_CACHE_CLAIM):
            self.informers[kind.value].add_event_handler(
                lambda event_type, obj: self.image_controller.enqueue_controller_of(obj, image_kind)
            )
        for kind in (ObjectKind.BUILDER, ObjectKind.CLUSTER_BUILDER):
            self.informers[kind.value].add_event_handler(self._on_builder_event)

        self.informers[build_kind].add_event_handler(
            lambda event_type, obj: self.build_controller.enqueue(obj)
        )
        self.informers[ObjectKind.POD.value].add_event_handler(
            lambda event_type, obj: self.build_controller.enqueue_controller_of(obj, build_kind)
        )

    def _on_builder_event(self, event_type: WatchEventType, builder):
        self.tracker.on_changed(builder)

    async def start(self):
        """Connect the store, sync every informer and start the control loops"""
        self.logger.info("Starting controller manager")
        await self.store.connect()
        for informer in self.informers.values():
            await informer.start()

        self.tracker.start()
        await self.image_controller.start()
        await self.build_controller.start()
        self.running = True
        self._stopped.clear()
        self.logger.info("Controller manager started")

    async def stop(self):
        """Stop the control loops; in-flight reconciles complete first"""
        if not self.running:
            return
        self.logger.info("Stopping controller manager")
        self.running = False
        await self.image_controller.stop()
        await self.build_controller.stop()
        await self.tracker.stop()
        await self.store.disconnect()
        self._stopped.set()
        self.logger.info("Controller manager stopped")

    async def wait(self):
        await self._stopped.wait()

    def get_stats(self) -> Dict[str, object]:
        return {
            'running': self.running,
            'image_queue': len(self.image_controller.queue),
            'build_queue': len(self.build_controller.queue),
            'tracker': dict(self.tracker.stats),
            'store': self.store.get_stats(),
        }

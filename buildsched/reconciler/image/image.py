import copy
import logging
from typing import Optional

from ...apis import image_builds
from ...controller.lister import DuckBuilderLister, Informer
from ...controller.tracker import Tracker
from ...core.builder import BuilderResource
from ...core.enums import ConditionStatus, ObjectKind
from ...core.errors import NotFoundError, PermanentError
from ...core.models import IMAGE_LABEL, Build, Image, SourceResolver
from ...core.naming import split_key
from ...store.base import BaseObjectStore
from . import status as conditions
from .build_list import BuildList
from .build_required import is_build_required


class ImageReconciler:
    """
    Drives one image towards its desired state.

    Per reconcile: resolve the builder, renew the builder->image tracking
    lease, stop while a build is in flight, reconcile the cache claim and
    source resolver, create the next build when one is required, trim
    build history and publish status if it changed.
    """

    def __init__(self,
                 store: BaseObjectStore,
                 images: Informer,
                 builds: Informer,
                 source_resolvers: Informer,
                 cache_claims: Informer,
                 builders: DuckBuilderLister,
                 tracker: Tracker,
                 enable_priority_classes: bool = False,
                 failed_build_history_limit: int = 10,
                 success_build_history_limit: int = 10,
                 service_account_name: str = "default"):
        self.store = store
        self.images = images
        self.builds = builds
        self.source_resolvers = source_resolvers
        self.cache_claims = cache_claims
        self.builders = builders
        self.tracker = tracker
        self.enable_priority_classes = enable_priority_classes
        self.failed_build_history_limit = failed_build_history_limit
        self.success_build_history_limit = success_build_history_limit
        self.service_account_name = service_account_name
        self.logger = logging.getLogger(__name__)

    async def reconcile(self, key: str):
        namespace, name = split_key(key)
        try:
            original = self.images.get(namespace, name)
        except NotFoundError:
            self.logger.debug(f"Image {key} no longer exists")
            return

        image = copy.deepcopy(original)
        image.set_defaults(self.failed_build_history_limit, self.success_build_history_limit,
                           self.service_account_name)

        image = await self.reconcile_image(image)
        if image is None:
            return

        await self.update_status(original, image)

    async def reconcile_image(self, image: Image) -> Optional[Image]:
        """Returns the image with its desired status, or None when no status write is due"""
        try:
            builder = self.builders.get(image.namespace, image.spec.builder)
        except NotFoundError:
            self.logger.info(f"Builder {image.spec.builder.kind}/{image.spec.builder.name} "
                             f"for image {image.key()} not found")
            image.status.conditions = conditions.builder_not_found(image)
            return image
        except ValueError as e:
            raise PermanentError(str(e), e) from e

        self.tracker.track(builder.tracking_key(), image.key())

        build_list = self.fetch_builds(image)
        last_build = build_list.last_build
        if last_build is not None and last_build.is_running():
            self.logger.debug(f"Image {image.key()} has {last_build.name} in flight")
            return None

        build_cache_name = await self.reconcile_build_cache(image)
        source_resolver = await self.reconcile_source_resolver(image)

        await self.reconcile_build(image, build_list, source_resolver, builder, build_cache_name)
        await self.delete_old_builds(image)
        return image

    def fetch_builds(self, image: Image) -> BuildList:
        return BuildList(self.builds.list(namespace=image.namespace, labels={IMAGE_LABEL: image.name}))

    async def reconcile_build_cache(self, image: Image) -> str:
        cache_name = image_builds.cache_name(image)
        try:
            existing = self.cache_claims.get(image.namespace, cache_name)
        except NotFoundError:
            existing = None

        if not image.need_volume_cache():
            if existing is not None:
                self.logger.info(f"Deleting build cache {cache_name} for image {image.key()}")
                await self.store.delete(ObjectKind.BUILD_CACHE_CLAIM.value, image.namespace, cache_name,
                                        uid=existing.metadata.uid)
            return ""

        desired = image_builds.build_cache(image)
        if existing is None:
            self.logger.info(f"Creating build cache {cache_name} for image {image.key()}")
            await self.store.create(desired)
            return cache_name

        if existing.spec.size == desired.spec.size and existing.metadata.labels == desired.metadata.labels:
            return cache_name

        existing.spec.size = desired.spec.size
        existing.metadata.labels = desired.metadata.labels
        self.logger.info(f"Updating build cache {cache_name} for image {image.key()}")
        await self.store.update(existing)
        return cache_name

    async def reconcile_source_resolver(self, image: Image) -> SourceResolver:
        desired = image_builds.source_resolver(image)
        try:
            existing = self.source_resolvers.get(image.namespace, desired.name)
        except NotFoundError:
            self.logger.info(f"Creating source resolver {desired.name} for image {image.key()}")
            return await self.store.create(desired)

        if existing.spec == desired.spec and existing.metadata.labels == desired.metadata.labels:
            return existing

        existing.spec = desired.spec
        existing.metadata.labels = desired.metadata.labels
        self.logger.info(f"Updating source resolver {desired.name} for image {image.key()}")
        return await self.store.update(existing)

    async def reconcile_build(self, image: Image, build_list: BuildList, source_resolver: SourceResolver,
                              builder: BuilderResource, build_cache_name: str):
        last_build = build_list.last_build
        current_build_number = build_list.highest_build_number()
        result = is_build_required(image, last_build, source_resolver, builder)

        image.status.build_cache_name = build_cache_name
        image.status.latest_image = self.latest_image(image, last_build)
        image.status.latest_stack = self.latest_stack(image, last_build)

        if result.status == ConditionStatus.TRUE:
            next_build = image_builds.build(
                image, source_resolver, builder, last_build, result.summary,
                build_cache_name, current_build_number + 1,
                enable_priority_classes=self.enable_priority_classes,
            )
            created = await self.store.create(next_build)
            self.logger.info(f"Created build {created.name} for image {image.key()} "
                             f"(reasons: {result.summary.reasons_str}, priority: {result.summary.priority.value})")

            image.status.conditions = conditions.scheduled_build(created)
            image.status.build_counter = current_build_number + 1
            image.status.latest_build_ref = created.name
            image.status.latest_build_reason = created.build_reason()
            image.status.latest_build_image_generation = created.image_generation()
            return

        image.status.conditions = conditions.no_scheduled_build(result.status, builder, last_build)
        image.status.build_counter = current_build_number
        if last_build is not None:
            image.status.latest_build_ref = last_build.name
            image.status.latest_build_reason = last_build.build_reason()
            image.status.latest_build_image_generation = last_build.image_generation()

    @staticmethod
    def latest_image(image: Image, last_build: Optional[Build]) -> str:
        if last_build is None:
            return image.status.latest_image
        return image_builds.latest_for_image(image, last_build)

    @staticmethod
    def latest_stack(image: Image, last_build: Optional[Build]) -> str:
        if last_build is None:
            return image.status.latest_stack
        return image_builds.latest_stack_for_image(image, last_build)

    async def delete_old_builds(self, image: Image):
        build_list = self.fetch_builds(image)

        if build_list.number_failed_builds() > image.spec.failed_build_history_limit:
            oldest = build_list.oldest_failure()
            self.logger.info(f"Deleting failed build {oldest.name} of image {image.key()}")
            await self.store.delete(ObjectKind.BUILD.value, image.namespace, oldest.name)

        if build_list.number_successful_builds() > image.spec.success_build_history_limit:
            oldest = build_list.oldest_success()
            self.logger.info(f"Deleting successful build {oldest.name} of image {image.key()}")
            await self.store.delete(ObjectKind.BUILD.value, image.namespace, oldest.name)

    async def update_status(self, original: Image, desired: Image):
        desired.status.observed_generation = desired.metadata.generation
        if desired.status == original.status:
            self.logger.debug(f"Image {desired.key()} status unchanged")
            return

        # Defaults are applied for this reconcile only; persist status alone
        original.status = desired.status
        await self.store.update_status(original)
        self.logger.debug(f"Updated status of image {desired.key()}")

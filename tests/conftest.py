"""Pytest configuration and fixtures for Buildsched tests."""

import sys
import logging
from pathlib import Path
from typing import List, Optional, Tuple
from unittest.mock import Mock

import pytest
import pytest_asyncio

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from buildsched.controller.lister import DuckBuilderLister, Informer
from buildsched.controller.tracker import Tracker
from buildsched.core.builder import Builder, BuilderStatus, ClusterBuilder
from buildsched.core.enums import ConditionStatus, ConditionType, ObjectKind
from buildsched.core.models import (
    BUILD_NUMBER_LABEL,
    IMAGE_GENERATION_LABEL,
    IMAGE_LABEL,
    Build,
    BuildBuilderSpec,
    BuildpackInfo,
    BuildSpec,
    BuildStack,
    BuilderRef,
    BuildStatus,
    Condition,
    Git,
    Image,
    ImageSpec,
    ObjectMeta,
    ResolvedGitSource,
    ResolvedSourceConfig,
    SourceConfig,
    SourceResolver,
    SourceResolverStatus,
    controller_ref_for,
)
from buildsched.reconciler.image import ImageReconciler
from buildsched.store.memory import InMemoryObjectStore

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

NAMESPACE = "team-a"
GIT_URL = "https://github.com/example/app"
BUILDER_IMAGE = "gcr.io/builders/base@sha256:" + "a" * 64
RUN_IMAGE = "gcr.io/stacks/run:full-cnb"


def ready(status: str = ConditionStatus.TRUE.value) -> List[Condition]:
    return [Condition(type=ConditionType.READY.value, status=status)]


def make_cluster_builder(name: str = "default-builder",
                         buildpacks: Tuple[Tuple[str, str], ...] = (("io.buildpacks.node", "1.0.0"),),
                         run_image: str = RUN_IMAGE,
                         is_ready: bool = True) -> ClusterBuilder:
    """ClusterBuilder whose status matches a freshly created object (generation 1)"""
    return ClusterBuilder(
        metadata=ObjectMeta(name=name, generation=1),
        status=BuilderStatus(
            observed_generation=1,
            conditions=ready() if is_ready else ready(ConditionStatus.FALSE.value),
            builder_metadata=[BuildpackInfo(id=i, version=v) for i, v in buildpacks],
            stack=BuildStack(run_image=run_image, id="io.buildpacks.stacks.bionic"),
            latest_image=BUILDER_IMAGE,
        ),
    )


def make_builder(name: str = "ns-builder", namespace: str = NAMESPACE) -> Builder:
    builder = Builder(
        metadata=ObjectMeta(name=name, namespace=namespace, generation=1),
        status=BuilderStatus(
            observed_generation=1,
            conditions=ready(),
            builder_metadata=[BuildpackInfo(id="io.buildpacks.node", version="1.0.0")],
            stack=BuildStack(run_image=RUN_IMAGE, id="io.buildpacks.stacks.bionic"),
            latest_image=BUILDER_IMAGE,
        ),
    )
    builder.spec.image_pull_secrets = ["regcred"]
    return builder


def make_image(name: str = "app",
               namespace: str = NAMESPACE,
               tag: str = "gcr.io/example/app",
               revision: str = "c1",
               builder: Optional[BuilderRef] = None,
               **spec_kwargs) -> Image:
    return Image(
        metadata=ObjectMeta(name=name, namespace=namespace, labels={"team": "a"}),
        spec=ImageSpec(
            tag=tag,
            builder=builder or BuilderRef(kind="ClusterBuilder", name="default-builder"),
            source=SourceConfig(git=Git(url=GIT_URL, revision=revision)),
            **spec_kwargs,
        ),
    )


def make_build(image: Image,
               number: int,
               succeeded: Optional[str] = None,
               created: str = "",
               revision: str = "c1",
               buildpacks: Tuple[Tuple[str, str], ...] = (("io.buildpacks.node", "1.0.0"),),
               run_image: str = RUN_IMAGE,
               latest_image: str = "") -> Build:
    """Build owned by ``image``; ``succeeded`` is the Succeeded condition status or None while running"""
    status = BuildStatus()
    if succeeded is not None:
        status.conditions = [Condition(type=ConditionType.SUCCEEDED.value, status=succeeded)]
    if succeeded == ConditionStatus.TRUE.value:
        status.build_metadata = [BuildpackInfo(id=i, version=v) for i, v in buildpacks]
        status.stack = BuildStack(run_image=run_image, id="io.buildpacks.stacks.bionic")
        status.latest_image = latest_image or f"{image.spec.tag}@sha256:{str(number) * 64}"

    return Build(
        metadata=ObjectMeta(
            name=f"{image.name}-build-{number}",
            namespace=image.namespace,
            labels={
                BUILD_NUMBER_LABEL: str(number),
                IMAGE_LABEL: image.name,
                IMAGE_GENERATION_LABEL: "1",
            },
            owner_references=[controller_ref_for(image)],
            creation_timestamp=created,
        ),
        spec=BuildSpec(
            tags=[image.spec.tag],
            builder=BuildBuilderSpec(image=BUILDER_IMAGE),
            service_account_name="default",
            source=SourceConfig(git=Git(url=GIT_URL, revision=revision)),
        ),
        status=status,
    )


def resolved_source(revision: str = "c1", git_type: str = "Commit") -> ResolvedSourceConfig:
    return ResolvedSourceConfig(git=ResolvedGitSource(url=GIT_URL, revision=revision, type=git_type))


def make_ready_resolver(image: Image, revision: str = "c1", generation: int = 1) -> SourceResolver:
    """Resolver that has observed its latest spec, without going through the store"""
    return SourceResolver(
        metadata=ObjectMeta(name=f"{image.name}-source", namespace=image.namespace, generation=generation),
        status=ready_resolver_status(revision, generation),
    )


def ready_resolver_status(revision: str, observed_generation: int) -> SourceResolverStatus:
    return SourceResolverStatus(
        observed_generation=observed_generation,
        conditions=ready(),
        source=resolved_source(revision),
    )


async def resolve_source(store, image: Image, revision: str = "c1") -> SourceResolver:
    """Mark the image's stored source resolver as resolved to ``revision``"""
    resolver = await store.get(ObjectKind.SOURCE_RESOLVER.value, image.namespace, f"{image.name}-source")
    resolver.status = ready_resolver_status(revision, resolver.metadata.generation)
    return await store.update_status(resolver)


@pytest.fixture
def store() -> InMemoryObjectStore:
    """Empty in-memory object store."""
    return InMemoryObjectStore()


@pytest.fixture
def cluster_builder() -> ClusterBuilder:
    return make_cluster_builder()


@pytest.fixture
def image() -> Image:
    return make_image()


@pytest_asyncio.fixture
async def informers(store):
    """Synced informers for every object kind."""
    result = {kind.value: Informer(store, kind.value) for kind in ObjectKind}
    for informer in result.values():
        await informer.start()
    return result


@pytest.fixture
def tracker() -> Tracker:
    return Tracker(callback=Mock())


@pytest.fixture
def image_reconciler(store, informers, tracker) -> ImageReconciler:
    """Image reconciler reading through the synced informers."""
    return ImageReconciler(
        store=store,
        images=informers[ObjectKind.IMAGE.value],
        builds=informers[ObjectKind.BUILD.value],
        source_resolvers=informers[ObjectKind.SOURCE_RESOLVER.value],
        cache_claims=informers[ObjectKind.BUILD_CACHE_CLAIM.value],
        builders=DuckBuilderLister(
            informers[ObjectKind.BUILDER.value],
            informers[ObjectKind.CLUSTER_BUILDER.value],
        ),
        tracker=tracker,
    )

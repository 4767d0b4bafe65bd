"""
Unit-of-work factory and the desired dependents of an image.

Everything here is a pure function of its inputs. Writing the returned
objects to the store is the image reconciler's job.
"""
import copy
from datetime import datetime, timezone
from typing import Dict, List, Optional

from ..buildchange.processor import ChangeSummary
from ..core.builder import BuilderResource
from ..core.enums import BuildPriority, ImageTaggingStrategy
from ..core.errors import InvalidReferenceError
from ..core.models import (
    BUILD_CHANGES_ANNOTATION,
    BUILD_NUMBER_LABEL,
    BUILD_PRIORITY_ANNOTATION,
    BUILD_REASON_ANNOTATION,
    IMAGE_GENERATION_LABEL,
    IMAGE_LABEL,
    Build,
    BuildCacheClaim,
    BuildCacheClaimSpec,
    BuildCacheConfig,
    BuildSpec,
    Image,
    LastBuild,
    ObjectMeta,
    SourceResolver,
    SourceResolverSpec,
    controller_ref_for,
)
from ..core.naming import MAX_NAME_LENGTH, GENERATED_SUFFIX_LENGTH, child_name
from ..core.reference import parse_reference

PRIORITY_CLASS_PREFIX = "buildsched-build-priority-"


def _combine(base: Dict[str, str], extra: Dict[str, str]) -> Dict[str, str]:
    combined = dict(base)
    combined.update(extra)
    return combined


def priority_class_name(priority: Optional[BuildPriority]) -> str:
    if priority is None:
        return ""
    return f"{PRIORITY_CLASS_PREFIX}{priority.value}"


def build_name(image_name: str, build_number: int):
    """
    Returns ``(name, generate_name)`` for build ``build_number``.

    ``<image>-build-<n>`` when it fits; otherwise a truncated prefix for
    the store to complete with a random suffix.
    """
    name = f"{image_name}-build-{build_number}"
    if len(name) <= MAX_NAME_LENGTH:
        return name, ""

    prefix = f"{image_name}-build-{build_number}-"
    max_prefix = MAX_NAME_LENGTH - GENERATED_SUFFIX_LENGTH
    if len(prefix) > max_prefix:
        suffix = f"-build-{build_number}-"
        prefix = image_name[:max_prefix - len(suffix)] + suffix
    return "", prefix


def generate_tags(image: Image, build_number: int, now: Optional[datetime] = None) -> List[str]:
    if image.spec.image_tagging_strategy == ImageTaggingStrategy.NONE.value:
        return [image.spec.tag]

    try:
        ref = parse_reference(image.spec.tag)
    except InvalidReferenceError:
        # Unparseable tags will fail the build anyway; skip the extra name
        return [image.spec.tag]

    now = now or datetime.now(timezone.utc)
    tag_name = ref.tag_str() + "-"
    if tag_name == "latest-":
        tag_name = ""
    stamp = f"b{build_number}.{now:%Y%m%d}.{now:%H%M%S}"
    return [image.spec.tag, f"{ref.registry}/{ref.repository}:{tag_name}{stamp}"]


def last_build(latest_build: Optional[Build]) -> Optional[LastBuild]:
    if latest_build is None:
        return None

    # Failed builds and builds still awaiting metadata produced nothing to point at
    if latest_build.is_failure() or not latest_build.metadata_retrieved():
        return copy.deepcopy(latest_build.spec.last_build)

    return LastBuild(image=latest_build.built_image(), stack_id=latest_build.stack_id())


def latest_for_image(image: Image, build: Build) -> str:
    """Image reference the owning image should publish after ``build``"""
    if build.is_success() and build.metadata_retrieved():
        return build.built_image()
    return image.status.latest_image


def latest_stack_for_image(image: Image, build: Build) -> str:
    if build.is_success() and build.metadata_retrieved():
        return build.stack_id()
    return image.status.latest_stack


def build_cache_config(image: Image, build_cache_name: str) -> Optional[BuildCacheConfig]:
    if not image.need_volume_cache() or not build_cache_name:
        return None
    return BuildCacheConfig(volume_claim_name=build_cache_name)


def build(image: Image,
          source_resolver: SourceResolver,
          builder: BuilderResource,
          latest_build: Optional[Build],
          summary: ChangeSummary,
          build_cache_name: str,
          next_build_number: int,
          enable_priority_classes: bool = False,
          now: Optional[datetime] = None) -> Build:
    """Construct the next Build for ``image``; not yet persisted"""
    name, generate_name = build_name(image.name, next_build_number)

    labels = _combine(image.metadata.labels, {
        BUILD_NUMBER_LABEL: str(next_build_number),
        IMAGE_LABEL: image.name,
        IMAGE_GENERATION_LABEL: str(image.metadata.generation),
    })
    annotations = _combine(image.metadata.annotations, {
        BUILD_REASON_ANNOTATION: summary.reasons_str,
        BUILD_CHANGES_ANNOTATION: summary.changes_str,
    })
    if summary.priority is not None:
        annotations[BUILD_PRIORITY_ANNOTATION] = summary.priority.value

    spec = BuildSpec(
        tags=generate_tags(image, next_build_number, now),
        builder=builder.build_builder_spec(),
        service_account_name=image.spec.service_account_name,
        source=source_resolver.source_config(),
        cache=build_cache_config(image, build_cache_name),
        services=list(image.services()),
        env=copy.deepcopy(image.env()),
        resources=copy.deepcopy(image.resources()),
        last_build=last_build(latest_build),
        priority_class_name=priority_class_name(summary.priority) if enable_priority_classes else "",
    )

    return Build(
        metadata=ObjectMeta(
            name=name,
            generate_name=generate_name,
            namespace=image.namespace,
            labels=labels,
            annotations=annotations,
            owner_references=[controller_ref_for(image)],
        ),
        spec=spec,
    )


def source_resolver_name(image: Image) -> str:
    return child_name(image.name, "-source")


def source_resolver(image: Image) -> SourceResolver:
    return SourceResolver(
        metadata=ObjectMeta(
            name=source_resolver_name(image),
            namespace=image.namespace,
            labels=dict(image.metadata.labels),
            owner_references=[controller_ref_for(image)],
        ),
        spec=SourceResolverSpec(
            service_account_name=image.spec.service_account_name,
            source=copy.deepcopy(image.spec.source),
        ),
    )


def cache_name(image: Image) -> str:
    return child_name(image.name, "-cache")


def build_cache(image: Image) -> BuildCacheClaim:
    return BuildCacheClaim(
        metadata=ObjectMeta(
            name=cache_name(image),
            namespace=image.namespace,
            labels=dict(image.metadata.labels),
            owner_references=[controller_ref_for(image)],
        ),
        spec=BuildCacheClaimSpec(size=image.spec.cache.volume_size),
    )

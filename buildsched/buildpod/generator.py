"""
Default translation of a Build into its execution pod.

The pod runs the lifecycle phases as ordered init containers and a
final ``completion`` container that reports the built image metadata in
its termination message.
"""
import logging
from dataclasses import dataclass
from typing import List

from ..core.errors import PermanentError
from ..core.models import (
    Build,
    Container,
    EnvVar,
    ObjectMeta,
    Pod,
    PodSpec,
    controller_ref_for,
)

PREPARE_STEP = "prepare"
ANALYZE_STEP = "analyze"
DETECT_STEP = "detect"
RESTORE_STEP = "restore"
BUILD_STEP = "build"
EXPORT_STEP = "export"
COMPLETION_STEP = "completion"

INIT_STEPS = [PREPARE_STEP, ANALYZE_STEP, DETECT_STEP, RESTORE_STEP, BUILD_STEP, EXPORT_STEP]
BUILD_STEPS = INIT_STEPS + [COMPLETION_STEP]

BUILD_LABEL = "image.buildsched.io/build"
CACHE_DIR = "/cache"
CACHE_VOLUME = "cache-dir"


@dataclass
class BuildPodImages:
    """Images for the steps that do not run inside the builder"""
    build_init: str = "buildsched/build-init:latest"
    completion: str = "buildsched/completion:latest"


def _args(*groups: List[str]) -> List[str]:
    result = []
    for group in groups:
        result.extend(group)
    return result


class BuildPodGenerator:

    def __init__(self, images: BuildPodImages = None):
        self.images = images or BuildPodImages()
        self.logger = logging.getLogger(__name__)

    async def generate(self, build: Build) -> Pod:
        """
        Raises:
            PermanentError: the build cannot be turned into a pod
        """
        builder_image = build.spec.builder.image
        if not builder_image:
            raise PermanentError(f"build {build.name} has no builder image")
        if not build.spec.tags:
            raise PermanentError(f"build {build.name} has no tags")

        source = build.spec.source
        if source.git is None and source.blob is None and source.registry is None:
            raise PermanentError(f"build {build.name} has no source")

        cache_args = []
        volumes = {}
        if build.spec.cache is not None and build.spec.cache.volume_claim_name:
            cache_args = [f"-cache-dir={CACHE_DIR}"]
            volumes[CACHE_VOLUME] = build.spec.cache.volume_claim_name

        previous_image = []
        if build.spec.last_build is not None and build.spec.last_build.image:
            previous_image = [f"-previous-image={build.spec.last_build.image}"]

        tag = build.tag()
        init_containers = [
            Container(
                name=PREPARE_STEP,
                image=self.images.build_init,
                args=self._source_args(build),
                env=[EnvVar(name="SOURCE_SUB_PATH", value=source.sub_path),
                     EnvVar(name="IMAGE_TAG", value=tag)] + list(build.spec.env),
            ),
            Container(
                name=ANALYZE_STEP,
                image=builder_image,
                args=_args(["-layers=/layers", "-analyzed=/layers/analyzed.toml"], cache_args, previous_image, [tag]),
            ),
            Container(
                name=DETECT_STEP,
                image=builder_image,
                args=["-app=/workspace", "-group=/layers/group.toml", "-plan=/layers/plan.toml"],
            ),
            Container(
                name=RESTORE_STEP,
                image=builder_image,
                args=_args(["-group=/layers/group.toml", "-layers=/layers"], cache_args),
            ),
            Container(
                name=BUILD_STEP,
                image=builder_image,
                args=["-layers=/layers", "-app=/workspace", "-group=/layers/group.toml", "-plan=/layers/plan.toml"],
                env=list(build.spec.env),
            ),
            Container(
                name=EXPORT_STEP,
                image=builder_image,
                args=_args(["-layers=/layers", "-app=/workspace", "-group=/layers/group.toml",
                            "-analyzed=/layers/analyzed.toml"], cache_args, list(build.spec.tags)),
            ),
        ]

        pod = Pod(
            metadata=ObjectMeta(
                name=build.pod_name(),
                namespace=build.namespace,
                labels={**build.metadata.labels, BUILD_LABEL: build.name},
                owner_references=[controller_ref_for(build)],
            ),
            spec=PodSpec(
                service_account_name=build.spec.service_account_name,
                init_containers=init_containers,
                containers=[Container(name=COMPLETION_STEP, image=self.images.completion)],
                image_pull_secrets=list(build.spec.builder.image_pull_secrets),
                priority_class_name=build.spec.priority_class_name,
                volumes=volumes,
            ),
        )
        self.logger.debug(f"Generated pod {pod.name} for build {build.namespace}/{build.name}")
        return pod

    @staticmethod
    def _source_args(build: Build) -> List[str]:
        source = build.spec.source
        if source.git is not None:
            return [f"-git-url={source.git.url}", f"-git-revision={source.git.revision}"]
        if source.blob is not None:
            return [f"-blob-url={source.blob.url}"]
        return [f"-registry-image={source.registry.image}"]

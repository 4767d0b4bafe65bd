import copy
import logging
from typing import List, Optional, Protocol

from ...buildpod.generator import BUILD_STEPS, COMPLETION_STEP
from ...controller.lister import Informer
from ...core.enums import ConditionStatus, ConditionType, PodPhase
from ...core.errors import (
    InvalidObjectError,
    MetadataRetrievalError,
    NotFoundError,
    PermanentError,
)
from ...core.models import Build, Condition, ContainerState, ContainerStatus, Pod
from ...core.naming import split_key
from ...store.base import BaseObjectStore
from .metadata import BuildStatusMetadata

REASON_COMPLETED = "Completed"
REASON_POD_FAILED = "PodFailed"
REASON_DEADLINE_EXCEEDED = "DeadlineExceeded"


class PodGenerator(Protocol):

    async def generate(self, build: Build) -> Pod:
        ...


class MetadataRetriever(Protocol):

    async def get_built_image(self, build: Build, pod: Pod) -> BuildStatusMetadata:
        ...


def is_build_step(name: str) -> bool:
    return name in BUILD_STEPS


def _step_statuses(pod: Pod) -> List[ContainerStatus]:
    return [
        s for s in pod.status.init_container_statuses + pod.status.container_statuses
        if is_build_step(s.name)
    ]


def step_states(pod: Pod) -> List[ContainerState]:
    return [copy.deepcopy(s.state) for s in _step_statuses(pod)]


def steps_completed(pod: Pod) -> List[str]:
    return [
        s.name for s in _step_statuses(pod)
        if s.state.terminated is not None and s.state.terminated.exit_code == 0
    ]


def condition_for_pod(pod: Pod, completed: List[str]) -> Condition:
    phase = pod.status.phase

    if phase == PodPhase.SUCCEEDED.value:
        return Condition(type=ConditionType.SUCCEEDED.value, status=ConditionStatus.TRUE.value,
                         reason=REASON_COMPLETED)

    if phase == PodPhase.FAILED.value:
        # A pod killed by its deadline after the completion step still produced the image
        if pod.status.reason == REASON_DEADLINE_EXCEEDED and COMPLETION_STEP in completed:
            return Condition(type=ConditionType.SUCCEEDED.value, status=ConditionStatus.TRUE.value,
                             reason=REASON_COMPLETED)
        for s in pod.status.init_container_statuses:
            terminated = s.state.terminated
            if terminated is not None and terminated.exit_code != 0 and terminated.message:
                return Condition(type=ConditionType.SUCCEEDED.value, status=ConditionStatus.FALSE.value,
                                 reason=REASON_POD_FAILED,
                                 message="Error: " + pod.status.message + terminated.message)
        return Condition(type=ConditionType.SUCCEEDED.value, status=ConditionStatus.FALSE.value,
                         reason=REASON_POD_FAILED, message=pod.status.message)

    if phase == PodPhase.PENDING.value:
        for s in pod.status.init_container_statuses:
            waiting = s.state.waiting
            if waiting is not None:
                return Condition(type=ConditionType.SUCCEEDED.value, status=ConditionStatus.UNKNOWN.value,
                                 reason=waiting.reason, message=waiting.message)

    return Condition(type=ConditionType.SUCCEEDED.value, status=ConditionStatus.UNKNOWN.value)


class BuildReconciler:
    """
    Drives one build through its pod.

    Creates the build pod once, projects its container states into the
    build status, and on success records the built image metadata. A
    finished build is never touched again except to retry a metadata read
    that failed.
    """

    def __init__(self,
                 store: BaseObjectStore,
                 builds: Informer,
                 pods: Informer,
                 pod_generator: PodGenerator,
                 metadata_retriever: MetadataRetriever):
        self.store = store
        self.builds = builds
        self.pods = pods
        self.pod_generator = pod_generator
        self.metadata_retriever = metadata_retriever
        self.logger = logging.getLogger(__name__)

    async def reconcile(self, key: str):
        namespace, name = split_key(key)
        try:
            original = self.builds.get(namespace, name)
        except NotFoundError:
            self.logger.debug(f"Build {key} no longer exists")
            return

        build = copy.deepcopy(original)
        metadata_error: Optional[MetadataRetrievalError] = None
        try:
            await self.reconcile_build(build)
        except PermanentError as e:
            self.logger.error(f"Build {key} failed permanently: {e}")
            build.status.error(e)
        except MetadataRetrievalError as e:
            metadata_error = e

        await self.update_status(original, build)

        if metadata_error is not None:
            raise metadata_error

    async def reconcile_build(self, build: Build):
        if build.finished():
            if build.is_success() and not build.metadata_retrieved():
                pod = self.pods.get(build.namespace, build.pod_name())
                await self.retrieve_metadata(build, pod)
            return

        pod = await self.reconcile_build_pod(build)

        build.status.pod_name = pod.name
        build.status.step_states = step_states(pod)
        build.status.steps_completed = steps_completed(pod)
        condition = condition_for_pod(pod, build.status.steps_completed)
        build.status.conditions = [condition]

        if condition.is_true():
            self.logger.info(f"Build {build.namespace}/{build.name} succeeded")
            await self.retrieve_metadata(build, pod)
        elif condition.is_false():
            self.logger.info(f"Build {build.namespace}/{build.name} failed: {condition.message}")

    async def reconcile_build_pod(self, build: Build) -> Pod:
        try:
            return self.pods.get(build.namespace, build.pod_name())
        except NotFoundError:
            pass

        try:
            pod = await self.pod_generator.generate(build)
        except PermanentError:
            raise
        except Exception as e:
            raise PermanentError(str(e), e) from e

        try:
            created = await self.store.create(pod)
        except InvalidObjectError as e:
            raise PermanentError(str(e), e) from e

        self.logger.info(f"Created pod {created.name} for build {build.namespace}/{build.name}")
        return created

    async def retrieve_metadata(self, build: Build, pod: Pod):
        """
        Raises:
            MetadataRetrievalError: retried on a later reconcile; the build
                stays succeeded meanwhile
        """
        if build.metadata_retrieved():
            return

        metadata = await self.metadata_retriever.get_built_image(build, pod)
        build.status.build_metadata = list(metadata.buildpack_metadata)
        build.status.latest_image = metadata.latest_image
        build.status.stack.run_image = metadata.stack_run_image
        build.status.stack.id = metadata.stack_id
        self.logger.info(f"Build {build.namespace}/{build.name} produced {metadata.latest_image}")

    async def update_status(self, original: Build, desired: Build):
        desired.status.observed_generation = desired.metadata.generation
        if desired.status == original.status:
            return

        await self.store.update_status(desired)
        self.logger.debug(f"Updated status of build {desired.namespace}/{desired.name}")

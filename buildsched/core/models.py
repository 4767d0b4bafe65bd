"""
Data model for images, builds and the objects the control loops own.

Every stored object has ``metadata``, ``spec`` and ``status`` and
serializes to a plain dict through ``to_dict()``/``from_dict()``.
"""
from dataclasses import dataclass, field, asdict, fields, is_dataclass
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, List, Optional, Union, get_args, get_origin, get_type_hints

from .enums import ConditionStatus, ConditionType, ObjectKind, PodPhase
from .naming import child_name


BUILD_NUMBER_LABEL = "image.buildsched.io/buildNumber"
IMAGE_LABEL = "image.buildsched.io/image"
IMAGE_GENERATION_LABEL = "image.buildsched.io/imageGeneration"

BUILD_REASON_ANNOTATION = "image.buildsched.io/reason"
BUILD_CHANGES_ANNOTATION = "image.buildsched.io/buildChanges"
BUILD_PRIORITY_ANNOTATION = "image.buildsched.io/buildPriority"
BUILD_NEEDED_ANNOTATION = "image.buildsched.io/additionalBuildNeeded"


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _decode(tp: Any, value: Any) -> Any:
    if value is None:
        return None

    origin = get_origin(tp)
    if origin is Union:
        args = [a for a in get_args(tp) if a is not type(None)]
        return _decode(args[0], value)
    if origin is list:
        args = get_args(tp)
        return [_decode(args[0] if args else Any, v) for v in value]
    if origin is dict:
        args = get_args(tp)
        return {k: _decode(args[1] if args else Any, v) for k, v in value.items()}
    if is_dataclass(tp):
        return from_dict(tp, value)
    return value


def from_dict(cls, data: Dict[str, Any]):
    """Build a (possibly nested) dataclass from a plain dict, ignoring unknown keys"""
    hints = get_type_hints(cls)
    kwargs = {}
    for f in fields(cls):
        if f.init and f.name in data:
            kwargs[f.name] = _decode(hints[f.name], data[f.name])
    return cls(**kwargs)


@dataclass
class OwnerReference:
    kind: str
    name: str
    uid: str
    controller: bool = True


@dataclass
class ObjectMeta:
    name: str = ""
    namespace: str = ""
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)
    owner_references: List[OwnerReference] = field(default_factory=list)
    generate_name: str = ""
    uid: str = ""
    generation: int = 0
    resource_version: int = 0
    creation_timestamp: str = ""

    def controller_ref(self) -> Optional[OwnerReference]:
        for ref in self.owner_references:
            if ref.controller:
                return ref
        return None


@dataclass
class Condition:
    type: str
    status: str = ConditionStatus.UNKNOWN.value
    reason: str = ""
    message: str = ""
    # Ignored by equality so a re-stamped time alone never causes a status write
    last_transition_time: str = field(default_factory=now_iso, compare=False)

    def is_true(self) -> bool:
        return self.status == ConditionStatus.TRUE.value

    def is_false(self) -> bool:
        return self.status == ConditionStatus.FALSE.value


def get_condition(conditions: List[Condition], condition_type: str) -> Optional[Condition]:
    for condition in conditions:
        if condition.type == condition_type:
            return condition
    return None


@dataclass
class EnvVar:
    name: str
    value: str = ""


@dataclass
class ResourceRequirements:
    limits: Dict[str, str] = field(default_factory=dict)
    requests: Dict[str, str] = field(default_factory=dict)


# Source

@dataclass
class Git:
    url: str
    revision: str = ""


@dataclass
class Blob:
    url: str


@dataclass
class Registry:
    image: str
    image_pull_secrets: List[str] = field(default_factory=list)


@dataclass
class SourceConfig:
    git: Optional[Git] = None
    blob: Optional[Blob] = None
    registry: Optional[Registry] = None
    sub_path: str = ""


@dataclass
class ResolvedGitSource:
    url: str
    revision: str
    # Branch, Tag, Commit or Unknown; Branch and Tag are moving references
    type: str = "Unknown"


@dataclass
class ResolvedBlobSource:
    url: str


@dataclass
class ResolvedRegistrySource:
    image: str
    image_pull_secrets: List[str] = field(default_factory=list)


@dataclass
class ResolvedSourceConfig:
    git: Optional[ResolvedGitSource] = None
    blob: Optional[ResolvedBlobSource] = None
    registry: Optional[ResolvedRegistrySource] = None
    sub_path: str = ""

    def source_config(self) -> SourceConfig:
        """Pinned source a build is created from"""
        if self.git is not None:
            return SourceConfig(git=Git(url=self.git.url, revision=self.git.revision), sub_path=self.sub_path)
        if self.blob is not None:
            return SourceConfig(blob=Blob(url=self.blob.url), sub_path=self.sub_path)
        if self.registry is not None:
            return SourceConfig(
                registry=Registry(image=self.registry.image,
                                  image_pull_secrets=list(self.registry.image_pull_secrets)),
                sub_path=self.sub_path
            )
        return SourceConfig(sub_path=self.sub_path)

    def is_pollable(self) -> bool:
        return self.git is not None and self.git.type in ("Branch", "Tag")


@dataclass
class BuildpackInfo:
    id: str
    version: str = ""


@dataclass
class BuildStack:
    run_image: str = ""
    id: str = ""


class _StoredObject:
    """Mixin shared by every object kind kept in the store"""
    KIND: ClassVar[str] = ""

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.KIND
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        return from_dict(cls, data)


# Source resolver

@dataclass
class SourceResolverSpec:
    service_account_name: str = "default"
    source: SourceConfig = field(default_factory=SourceConfig)


@dataclass
class SourceResolverStatus:
    observed_generation: int = 0
    conditions: List[Condition] = field(default_factory=list)
    source: ResolvedSourceConfig = field(default_factory=ResolvedSourceConfig)


@dataclass
class SourceResolver(_StoredObject):
    KIND: ClassVar[str] = ObjectKind.SOURCE_RESOLVER.value

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: SourceResolverSpec = field(default_factory=SourceResolverSpec)
    status: SourceResolverStatus = field(default_factory=SourceResolverStatus)

    def ready(self) -> bool:
        condition = get_condition(self.status.conditions, ConditionType.READY.value)
        return (
            condition is not None
            and condition.is_true()
            and self.status.observed_generation == self.metadata.generation
        )

    def source_config(self) -> SourceConfig:
        return self.status.source.source_config()


# Build cache

@dataclass
class BuildCacheClaimSpec:
    size: str = ""
    access_modes: List[str] = field(default_factory=lambda: ["ReadWriteOnce"])


@dataclass
class BuildCacheClaimStatus:
    phase: str = ""


@dataclass
class BuildCacheClaim(_StoredObject):
    KIND: ClassVar[str] = ObjectKind.BUILD_CACHE_CLAIM.value

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: BuildCacheClaimSpec = field(default_factory=BuildCacheClaimSpec)
    status: BuildCacheClaimStatus = field(default_factory=BuildCacheClaimStatus)


# Image

@dataclass
class BuilderRef:
    kind: str = "ClusterBuilder"
    name: str = ""


@dataclass
class ImageCacheConfig:
    volume_size: Optional[str] = None


@dataclass
class ImageBuild:
    env: List[EnvVar] = field(default_factory=list)
    resources: ResourceRequirements = field(default_factory=ResourceRequirements)
    services: List[str] = field(default_factory=list)


@dataclass
class ImageSpec:
    tag: str = ""
    builder: BuilderRef = field(default_factory=BuilderRef)
    service_account_name: str = ""
    source: SourceConfig = field(default_factory=SourceConfig)
    cache: Optional[ImageCacheConfig] = None
    build: Optional[ImageBuild] = None
    failed_build_history_limit: Optional[int] = None
    success_build_history_limit: Optional[int] = None
    image_tagging_strategy: str = "BuildNumber"


@dataclass
class ImageStatus:
    observed_generation: int = 0
    conditions: List[Condition] = field(default_factory=list)
    latest_build_ref: str = ""
    latest_build_reason: str = ""
    latest_build_image_generation: int = 0
    latest_image: str = ""
    latest_stack: str = ""
    build_counter: int = 0
    build_cache_name: str = ""


@dataclass
class Image(_StoredObject):
    KIND: ClassVar[str] = ObjectKind.IMAGE.value

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: ImageSpec = field(default_factory=ImageSpec)
    status: ImageStatus = field(default_factory=ImageStatus)

    def set_defaults(self, failed_build_history_limit: int = 10,
                     success_build_history_limit: int = 10,
                     service_account_name: str = "default"):
        if self.spec.failed_build_history_limit is None:
            self.spec.failed_build_history_limit = failed_build_history_limit
        if self.spec.success_build_history_limit is None:
            self.spec.success_build_history_limit = success_build_history_limit
        if not self.spec.service_account_name:
            self.spec.service_account_name = service_account_name

    def env(self) -> List[EnvVar]:
        if self.spec.build is None:
            return []
        return self.spec.build.env

    def resources(self) -> ResourceRequirements:
        if self.spec.build is None:
            return ResourceRequirements()
        return self.spec.build.resources

    def services(self) -> List[str]:
        if self.spec.build is None:
            return []
        return self.spec.build.services

    def need_volume_cache(self) -> bool:
        return self.spec.cache is not None and bool(self.spec.cache.volume_size)

    def key(self) -> str:
        return f"{self.namespace}/{self.name}"


# Build

@dataclass
class BuildBuilderSpec:
    image: str = ""
    image_pull_secrets: List[str] = field(default_factory=list)


@dataclass
class BuildCacheConfig:
    volume_claim_name: str = ""


@dataclass
class LastBuild:
    image: str = ""
    stack_id: str = ""


@dataclass
class BuildSpec:
    tags: List[str] = field(default_factory=list)
    builder: BuildBuilderSpec = field(default_factory=BuildBuilderSpec)
    service_account_name: str = ""
    source: SourceConfig = field(default_factory=SourceConfig)
    cache: Optional[BuildCacheConfig] = None
    services: List[str] = field(default_factory=list)
    env: List[EnvVar] = field(default_factory=list)
    resources: ResourceRequirements = field(default_factory=ResourceRequirements)
    last_build: Optional[LastBuild] = None
    priority_class_name: str = ""


@dataclass
class ContainerStateWaiting:
    reason: str = ""
    message: str = ""


@dataclass
class ContainerStateRunning:
    started_at: str = ""


@dataclass
class ContainerStateTerminated:
    exit_code: int = 0
    reason: str = ""
    message: str = ""


@dataclass
class ContainerState:
    waiting: Optional[ContainerStateWaiting] = None
    running: Optional[ContainerStateRunning] = None
    terminated: Optional[ContainerStateTerminated] = None


@dataclass
class BuildStatus:
    observed_generation: int = 0
    conditions: List[Condition] = field(default_factory=list)
    pod_name: str = ""
    step_states: List[ContainerState] = field(default_factory=list)
    steps_completed: List[str] = field(default_factory=list)
    build_metadata: List[BuildpackInfo] = field(default_factory=list)
    stack: BuildStack = field(default_factory=BuildStack)
    latest_image: str = ""

    def error(self, err: BaseException):
        self.conditions = [
            Condition(
                type=ConditionType.SUCCEEDED.value,
                status=ConditionStatus.FALSE.value,
                reason="Error",
                message=str(err),
            )
        ]


@dataclass
class Build(_StoredObject):
    KIND: ClassVar[str] = ObjectKind.BUILD.value

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: BuildSpec = field(default_factory=BuildSpec)
    status: BuildStatus = field(default_factory=BuildStatus)

    def succeeded_condition(self) -> Optional[Condition]:
        return get_condition(self.status.conditions, ConditionType.SUCCEEDED.value)

    def is_success(self) -> bool:
        condition = self.succeeded_condition()
        return condition is not None and condition.is_true()

    def is_failure(self) -> bool:
        condition = self.succeeded_condition()
        return condition is not None and condition.is_false()

    def finished(self) -> bool:
        return self.is_success() or self.is_failure()

    def is_running(self) -> bool:
        return not self.finished()

    def build_number(self) -> int:
        return int(self.metadata.labels.get(BUILD_NUMBER_LABEL, "0"))

    def build_reason(self) -> str:
        return self.metadata.annotations.get(BUILD_REASON_ANNOTATION, "")

    def build_changes(self) -> str:
        return self.metadata.annotations.get(BUILD_CHANGES_ANNOTATION, "")

    def image_generation(self) -> int:
        return int(self.metadata.labels.get(IMAGE_GENERATION_LABEL, "0"))

    def tag(self) -> str:
        return self.spec.tags[0] if self.spec.tags else ""

    def built_image(self) -> str:
        return self.status.latest_image

    def stack_id(self) -> str:
        return self.status.stack.id

    def metadata_retrieved(self) -> bool:
        return bool(self.status.latest_image)

    def pod_name(self) -> str:
        return child_name(self.name, "-build-pod")


# Pod

@dataclass
class Container:
    name: str
    image: str = ""
    args: List[str] = field(default_factory=list)
    env: List[EnvVar] = field(default_factory=list)


@dataclass
class ContainerStatus:
    name: str
    state: ContainerState = field(default_factory=ContainerState)


@dataclass
class PodSpec:
    service_account_name: str = ""
    init_containers: List[Container] = field(default_factory=list)
    containers: List[Container] = field(default_factory=list)
    image_pull_secrets: List[str] = field(default_factory=list)
    priority_class_name: str = ""
    volumes: Dict[str, str] = field(default_factory=dict)


@dataclass
class PodStatus:
    phase: str = PodPhase.PENDING.value
    reason: str = ""
    message: str = ""
    init_container_statuses: List[ContainerStatus] = field(default_factory=list)
    container_statuses: List[ContainerStatus] = field(default_factory=list)


@dataclass
class Pod(_StoredObject):
    KIND: ClassVar[str] = ObjectKind.POD.value

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: PodSpec = field(default_factory=PodSpec)
    status: PodStatus = field(default_factory=PodStatus)


def controller_ref_for(obj) -> OwnerReference:
    """Owner reference that makes ``obj`` the controlling owner of a dependent"""
    return OwnerReference(kind=obj.KIND, name=obj.metadata.name, uid=obj.metadata.uid, controller=True)

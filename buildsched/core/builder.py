"""
Builder capability set and its two concrete variants.

The image control loop depends only on ``BuilderResource``; which
variant backs an image is picked by ``ImageSpec.builder.kind``.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import ClassVar, List, Optional

from .enums import ConditionType, ObjectKind
from .models import (
    BuildBuilderSpec,
    BuildpackInfo,
    BuildStack,
    Condition,
    ObjectMeta,
    _StoredObject,
    get_condition,
)


class BuildpackMetadataList(list):
    """Buildpacks a builder currently contains"""

    def find(self, buildpack_id: str) -> Optional[BuildpackInfo]:
        for info in self:
            if info.id == buildpack_id:
                return info
        return None

    def include(self, buildpack: BuildpackInfo) -> bool:
        found = self.find(buildpack.id)
        return found is not None and found.version == buildpack.version


class BuilderResource(ABC):

    @abstractmethod
    def ready(self) -> bool:
        pass

    @abstractmethod
    def buildpack_metadata(self) -> BuildpackMetadataList:
        pass

    @abstractmethod
    def run_image(self) -> str:
        pass

    @abstractmethod
    def build_builder_spec(self) -> BuildBuilderSpec:
        pass

    @abstractmethod
    def get_name(self) -> str:
        pass

    @abstractmethod
    def get_kind(self) -> str:
        pass

    @abstractmethod
    def get_namespace(self) -> str:
        pass

    def tracking_key(self) -> str:
        """Identity used by the dependency tracker"""
        return f"{self.get_kind()}/{self.get_namespace()}/{self.get_name()}"


@dataclass
class ServiceAccountRef:
    namespace: str = ""
    name: str = ""


@dataclass
class BuilderSpec:
    tag: str = ""
    stack: str = ""
    store: str = ""
    service_account_name: str = "default"
    image_pull_secrets: List[str] = field(default_factory=list)


@dataclass
class ClusterBuilderSpec:
    tag: str = ""
    stack: str = ""
    store: str = ""
    service_account_ref: ServiceAccountRef = field(default_factory=ServiceAccountRef)


@dataclass
class BuilderStatus:
    observed_generation: int = 0
    conditions: List[Condition] = field(default_factory=list)
    builder_metadata: List[BuildpackInfo] = field(default_factory=list)
    stack: BuildStack = field(default_factory=BuildStack)
    latest_image: str = ""


class _BuilderMixin(BuilderResource):

    def ready(self) -> bool:
        condition = get_condition(self.status.conditions, ConditionType.READY.value)
        return (
            condition is not None
            and condition.is_true()
            and self.status.observed_generation == self.metadata.generation
        )

    def buildpack_metadata(self) -> BuildpackMetadataList:
        return BuildpackMetadataList(self.status.builder_metadata)

    def run_image(self) -> str:
        return self.status.stack.run_image

    def get_name(self) -> str:
        return self.metadata.name

    def get_kind(self) -> str:
        return self.KIND

    def get_namespace(self) -> str:
        return self.metadata.namespace


@dataclass
class Builder(_BuilderMixin, _StoredObject):
    """Namespace-scoped builder; only images in the same namespace may use it"""
    KIND: ClassVar[str] = ObjectKind.BUILDER.value

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: BuilderSpec = field(default_factory=BuilderSpec)
    status: BuilderStatus = field(default_factory=BuilderStatus)

    def build_builder_spec(self) -> BuildBuilderSpec:
        return BuildBuilderSpec(
            image=self.status.latest_image,
            image_pull_secrets=list(self.spec.image_pull_secrets),
        )


@dataclass
class ClusterBuilder(_BuilderMixin, _StoredObject):
    """Cluster-scoped builder shared by every namespace"""
    KIND: ClassVar[str] = ObjectKind.CLUSTER_BUILDER.value

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: ClusterBuilderSpec = field(default_factory=ClusterBuilderSpec)
    status: BuilderStatus = field(default_factory=BuilderStatus)

    def build_builder_spec(self) -> BuildBuilderSpec:
        return BuildBuilderSpec(image=self.status.latest_image)

from enum import Enum


class BuildReason(str, Enum):
    TRIGGER = "TRIGGER"
    COMMIT = "COMMIT"
    CONFIG = "CONFIG"
    BUILDPACK = "BUILDPACK"
    STACK = "STACK"


class BuildPriority(str, Enum):
    HIGH = "high"
    LOW = "low"


class ConditionStatus(str, Enum):
    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class ConditionType(str, Enum):
    READY = "Ready"
    BUILDER_READY = "BuilderReady"
    SUCCEEDED = "Succeeded"


class PodPhase(str, Enum):
    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"


class BuilderKind(str, Enum):
    """Discriminator for the builder an image points at"""
    BUILDER = "Builder"
    CLUSTER_BUILDER = "ClusterBuilder"


class ObjectKind(str, Enum):
    IMAGE = "Image"
    BUILD = "Build"
    SOURCE_RESOLVER = "SourceResolver"
    BUILD_CACHE_CLAIM = "BuildCacheClaim"
    POD = "Pod"
    BUILDER = "Builder"
    CLUSTER_BUILDER = "ClusterBuilder"


class WatchEventType(str, Enum):
    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"


class ImageTaggingStrategy(str, Enum):
    NONE = "None"
    BUILD_NUMBER = "BuildNumber"

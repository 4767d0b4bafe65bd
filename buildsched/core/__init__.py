from .enums import (
    BuildReason,
    BuildPriority,
    BuilderKind,
    ConditionStatus,
    ConditionType,
    ObjectKind,
    PodPhase,
    WatchEventType,
)
from .errors import (
    AlreadyExistsError,
    BuildSchedError,
    ConflictError,
    InvalidObjectError,
    MetadataRetrievalError,
    NotFoundError,
    PermanentError,
)
from .models import Build, BuildCacheClaim, Image, Pod, SourceResolver
from .builder import Builder, BuilderResource, ClusterBuilder

__all__ = [
    'BuildReason',
    'BuildPriority',
    'BuilderKind',
    'ConditionStatus',
    'ConditionType',
    'ObjectKind',
    'PodPhase',
    'WatchEventType',
    'AlreadyExistsError',
    'BuildSchedError',
    'ConflictError',
    'InvalidObjectError',
    'MetadataRetrievalError',
    'NotFoundError',
    'PermanentError',
    'Build',
    'BuildCacheClaim',
    'Image',
    'Pod',
    'SourceResolver',
    'Builder',
    'BuilderResource',
    'ClusterBuilder',
]

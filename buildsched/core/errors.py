"""
Exception taxonomy shared by the store, the control loops and the CLI.

Store errors (not found, already exists, conflict) are transient from a
control loop's point of view: the key is re-queued with backoff.
PermanentError is never retried.
"""
from typing import Optional


class BuildSchedError(Exception):
    """Base class for all buildsched errors"""
    pass


class NotFoundError(BuildSchedError):
    """Object does not exist in the store or the local cache"""

    def __init__(self, kind: str, namespace: str, name: str):
        self.kind = kind
        self.namespace = namespace
        self.name = name
        location = f"{namespace}/{name}" if namespace else name
        super().__init__(f"{kind} {location} not found")


class AlreadyExistsError(BuildSchedError):
    """Object with the same name already exists"""

    def __init__(self, kind: str, namespace: str, name: str):
        self.kind = kind
        self.namespace = namespace
        self.name = name
        location = f"{namespace}/{name}" if namespace else name
        super().__init__(f"{kind} {location} already exists")


class ConflictError(BuildSchedError):
    """Write was based on a stale resource version or failed a precondition"""
    pass


class InvalidObjectError(BuildSchedError):
    """Store rejected an object as malformed"""
    pass


class PermanentError(BuildSchedError):
    """Error that retrying will not fix"""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class MetadataRetrievalError(BuildSchedError):
    """Built image metadata is not available yet"""
    pass


class InvalidReferenceError(BuildSchedError, ValueError):
    """Image reference could not be parsed"""
    pass

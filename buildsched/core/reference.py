"""
Minimal container image reference parsing.

Only what the control loops need: registry/repository/tag split for
build tags and the identifier (tag or digest) for stack comparison.
"""
import re
from dataclasses import dataclass
from typing import Optional

from .errors import InvalidReferenceError

DEFAULT_REGISTRY = "index.docker.io"
DEFAULT_TAG = "latest"

_REPOSITORY_RE = re.compile(r"^[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*(?:/[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*)*$")
_TAG_RE = re.compile(r"^[\w][\w.-]{0,127}$")
_DIGEST_RE = re.compile(r"^[A-Za-z][A-Za-z0-9]*(?:[-_+.][A-Za-z][A-Za-z0-9]*)*:[0-9a-fA-F]{32,}$")


@dataclass(frozen=True)
class ImageReference:
    registry: str
    repository: str
    tag: Optional[str] = None
    digest: Optional[str] = None

    def identifier(self) -> str:
        """Digest when present, tag otherwise"""
        if self.digest:
            return self.digest
        return self.tag or DEFAULT_TAG

    def tag_str(self) -> str:
        return self.tag or DEFAULT_TAG


def _split_registry(name: str):
    parts = name.split("/", 1)
    if len(parts) == 2 and ("." in parts[0] or ":" in parts[0] or parts[0] == "localhost"):
        return parts[0], parts[1]
    return DEFAULT_REGISTRY, name


def parse_reference(ref: str) -> ImageReference:
    if not ref:
        raise InvalidReferenceError("could not parse reference: empty string")

    digest = None
    name = ref
    if "@" in ref:
        name, digest = ref.split("@", 1)
        if not _DIGEST_RE.match(digest):
            raise InvalidReferenceError(f"could not parse reference: {ref}")

    tag = None
    last = name.rsplit("/", 1)[-1]
    if ":" in last:
        name, tag = name.rsplit(":", 1)
        if not _TAG_RE.match(tag):
            raise InvalidReferenceError(f"could not parse reference: {ref}")

    registry, repository = _split_registry(name)
    if registry == DEFAULT_REGISTRY and "/" not in repository:
        repository = f"library/{repository}"
    if not _REPOSITORY_RE.match(repository):
        raise InvalidReferenceError(f"could not parse reference: {ref}")

    if digest is None and tag is None:
        tag = DEFAULT_TAG
    return ImageReference(registry=registry, repository=repository, tag=tag, digest=digest)

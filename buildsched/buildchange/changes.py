"""
Typed changes between the last build and the desired state of an image.

Each change knows its reason, its priority, whether it warrants a new
build, and how to render its before/after payload for the audit
annotation.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict, replace
from typing import Any, Dict, List

from ..core.enums import BuildPriority, BuildReason
from ..core.models import BuildpackInfo, EnvVar, Git, ResourceRequirements, SourceConfig


def omit_empty(value: Any) -> Any:
    """Drop None and empty values recursively so payloads stay compact"""
    if isinstance(value, dict):
        pruned = {}
        for key, item in value.items():
            item = omit_empty(item)
            if item is None or item == "" or item == [] or item == {}:
                continue
            pruned[key] = item
        return pruned
    if isinstance(value, list):
        return [omit_empty(item) for item in value]
    return value


class Change(ABC):
    reason: BuildReason
    priority: BuildPriority

    @abstractmethod
    def is_build_required(self) -> bool:
        pass

    @abstractmethod
    def old_value(self) -> Any:
        pass

    @abstractmethod
    def new_value(self) -> Any:
        pass

    def to_dict(self) -> Dict[str, Any]:
        return {
            'reason': self.reason.value,
            'old': omit_empty(self.old_value()),
            'new': omit_empty(self.new_value()),
        }


@dataclass
class TriggerChange(Change):
    """Manual rebuild request; ``new`` is the request timestamp"""
    new: str
    old: str = ""

    reason = BuildReason.TRIGGER
    priority = BuildPriority.HIGH

    def is_build_required(self) -> bool:
        return self.new != ""

    def old_value(self) -> Any:
        return self.old

    def new_value(self) -> Any:
        return self.new


@dataclass
class CommitChange(Change):
    old: str
    new: str

    reason = BuildReason.COMMIT
    priority = BuildPriority.HIGH

    def is_build_required(self) -> bool:
        return self.old != self.new

    def old_value(self) -> Any:
        return self.old

    def new_value(self) -> Any:
        return self.new


@dataclass
class Config:
    env: List[EnvVar] = field(default_factory=list)
    resources: ResourceRequirements = field(default_factory=ResourceRequirements)
    services: List[str] = field(default_factory=list)
    source: SourceConfig = field(default_factory=SourceConfig)

    def without_git_revision(self) -> 'Config':
        if self.source.git is None:
            return self
        git = Git(url=self.source.git.url, revision="")
        return replace(self, source=replace(self.source, git=git))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ConfigChange(Change):
    old: Config
    new: Config

    reason = BuildReason.CONFIG
    priority = BuildPriority.HIGH

    def is_build_required(self) -> bool:
        # Revision-only differences are reported by CommitChange
        return self.old.without_git_revision() != self.new.without_git_revision()

    def old_value(self) -> Any:
        return self.old.to_dict()

    def new_value(self) -> Any:
        return self.new.to_dict()


@dataclass
class BuildpackChange(Change):
    old: List[BuildpackInfo] = field(default_factory=list)
    new: List[BuildpackInfo] = field(default_factory=list)

    reason = BuildReason.BUILDPACK
    priority = BuildPriority.LOW

    def __post_init__(self):
        self.old = sorted(self.old, key=lambda bp: bp.id)
        self.new = sorted(self.new, key=lambda bp: bp.id)

    def is_build_required(self) -> bool:
        return len(self.old) > 0

    def old_value(self) -> Any:
        return [asdict(bp) for bp in self.old]

    def new_value(self) -> Any:
        return [asdict(bp) for bp in self.new]


@dataclass
class StackChange(Change):
    """Compares run image identifiers (tag or digest), not full references"""
    old: str
    new: str

    reason = BuildReason.STACK
    priority = BuildPriority.LOW

    def is_build_required(self) -> bool:
        return self.old != self.new

    def old_value(self) -> Any:
        return self.old

    def new_value(self) -> Any:
        return self.new

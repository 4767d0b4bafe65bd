"""
Aggregates individual changes into a single build-needed verdict.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..core.enums import BuildPriority, BuildReason
from .changes import Change

REASONS_SEPARATOR = ","


@dataclass(frozen=True)
class ChangeSummary:
    """Verdict of a change evaluation"""
    has_changes: bool
    reasons_str: str = ""
    changes_str: str = ""
    priority: Optional[BuildPriority] = None
    reasons: List[str] = field(default_factory=list)

    @classmethod
    def not_needed(cls) -> 'ChangeSummary':
        return cls(has_changes=False)


class ChangeProcessor:
    """
    Collects changes in the order they are processed.

    Changes that do not require a build are dropped. A reason seen twice
    keeps its first position and the latest payload.

    Usage:
        summary = (ChangeProcessor()
                   .process(trigger_change)
                   .process(commit_change)
                   .summarize())
    """

    def __init__(self):
        self.changes: Dict[BuildReason, Change] = {}
        self.logger = logging.getLogger(__name__)

    def process(self, change: Optional[Change]) -> 'ChangeProcessor':
        if change is None:
            return self
        if change.is_build_required():
            self.changes[change.reason] = change
            self.logger.debug(f"Build required by {change.reason.value} change")
        return self

    def has_changes(self) -> bool:
        return len(self.changes) > 0

    def reasons(self) -> List[str]:
        return [reason.value for reason in self.changes]

    def reasons_str(self) -> str:
        return REASONS_SEPARATOR.join(self.reasons())

    def changes_str(self) -> str:
        if not self.has_changes():
            return ""
        return json.dumps([change.to_dict() for change in self.changes.values()],
                          separators=(",", ":"))

    def priority(self) -> Optional[BuildPriority]:
        if not self.has_changes():
            return None
        if any(change.priority == BuildPriority.HIGH for change in self.changes.values()):
            return BuildPriority.HIGH
        return BuildPriority.LOW

    def summarize(self) -> ChangeSummary:
        if not self.has_changes():
            return ChangeSummary.not_needed()

        return ChangeSummary(
            has_changes=True,
            reasons_str=self.reasons_str(),
            changes_str=self.changes_str(),
            priority=self.priority(),
            reasons=self.reasons(),
        )

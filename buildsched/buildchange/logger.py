"""
Renders the persisted build-changes annotation as a readable explanation.
"""
import difflib
import json
import logging
from dataclasses import dataclass
from typing import Any, List, Optional

import yaml

from ..core.enums import BuildReason
from .processor import REASONS_SEPARATOR

DIFF_PREFIX = "\t"


@dataclass
class GenericChange:
    reason: str
    old: Any = None
    new: Any = None


def parse_changes(changes_str: str) -> List[GenericChange]:
    """Parse the JSON array written by ChangeProcessor.changes_str()"""
    if not changes_str:
        return []

    try:
        raw = json.loads(changes_str)
    except json.JSONDecodeError as e:
        raise ValueError(f"error parsing build changes JSON string '{changes_str}': {e}") from e

    if not isinstance(raw, list):
        raise ValueError(f"build changes must be a JSON array, got {type(raw).__name__}")

    changes = []
    for item in raw:
        reason = item.get('reason', '')
        if reason not in BuildReason._value2member_map_:
            raise ValueError(f"unsupported build reason '{reason}'")
        changes.append(GenericChange(reason=reason, old=item.get('old'), new=item.get('new')))
    return changes


def _as_lines(value: Any) -> List[str]:
    if value is None or value == "" or value == {} or value == []:
        return []
    if isinstance(value, str):
        return [value]
    return yaml.safe_dump(value, default_flow_style=False, sort_keys=False).splitlines()


def diff(old: Any, new: Any, prefix: str = DIFF_PREFIX) -> List[str]:
    lines = []
    for line in difflib.ndiff(_as_lines(old), _as_lines(new)):
        if line.startswith("?"):
            continue
        lines.append(f"{prefix}{line}")
    return lines


class ChangeLogger:
    """Explains why a build exists"""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def explain(self, changes_str: str) -> List[str]:
        changes = parse_changes(changes_str)
        if not changes:
            return []

        lines = [f"Build reason(s): {REASONS_SEPARATOR.join(c.reason for c in changes)}"]
        for change in changes:
            lines.append(f"{change.reason}:")
            if change.reason == BuildReason.TRIGGER.value:
                lines.append(f"{DIFF_PREFIX}A new build was manually triggered on {change.new}")
            else:
                lines.extend(diff(change.old, change.new))
        return lines

    def log(self, changes_str: str):
        for line in self.explain(changes_str):
            self.logger.info(line)

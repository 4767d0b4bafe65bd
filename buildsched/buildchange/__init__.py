from .changes import (
    BuildpackChange,
    Change,
    CommitChange,
    Config,
    ConfigChange,
    StackChange,
    TriggerChange,
)
from .processor import ChangeProcessor, ChangeSummary
from .logger import ChangeLogger, parse_changes

__all__ = [
    'BuildpackChange',
    'Change',
    'CommitChange',
    'Config',
    'ConfigChange',
    'StackChange',
    'TriggerChange',
    'ChangeProcessor',
    'ChangeSummary',
    'ChangeLogger',
    'parse_changes',
]

"""Rule strategies evaluated by the watcher and the scheduler."""
from .base import RuleStrategy, ScheduledStrategy
from .duplicates import DuplicateDetectionStrategy, select_survivor
from .seiri import AgeBasedMoveStrategy
from .seiso import TempFolderCleanupStrategy, deletion_order
from .seiton import ExtensionMoveStrategy, build_seiton_strategies

__all__ = [
    "AgeBasedMoveStrategy",
    "DuplicateDetectionStrategy",
    "ExtensionMoveStrategy",
    "RuleStrategy",
    "ScheduledStrategy",
    "TempFolderCleanupStrategy",
    "build_seiton_strategies",
    "deletion_order",
    "select_survivor",
]

"""Strategy interfaces shared by real-time and scheduled rules."""
from __future__ import annotations

from pathlib import Path

from ..models import ScanContext


class RuleStrategy:
    """A rule applied to a single newly created file."""

    name = "rule"

    def matches(self, path: Path) -> bool:
        """Whether this rule covers *path*; a failing rule that matches ends dispatch."""

        return False

    def apply(self, path: Path) -> bool:
        """Handle *path*; return ``True`` when the rule claimed the file."""

        raise NotImplementedError


class ScheduledStrategy:
    """A rule run over whole directory trees by the scheduler."""

    name = "scheduled"

    def execute(self, context: ScanContext) -> object:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


__all__ = ["RuleStrategy", "ScheduledStrategy"]

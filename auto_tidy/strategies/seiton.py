"""Real-time routing of new files by extension."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from ..config import SeitonRule
from ..file_mover import FileTransferResolver
from ..logger import log_event
from ..utils.fs import file_extension
from .base import RuleStrategy

LOGGER = logging.getLogger("auto_tidy.seiton")


class ExtensionMoveStrategy(RuleStrategy):
    """Move files whose extension belongs to one :class:`SeitonRule`."""

    def __init__(
        self,
        rule: SeitonRule,
        resolver: FileTransferResolver,
        logger: logging.Logger | None = None,
    ) -> None:
        if rule.destination is None:
            raise ValueError(f"Seiton rule '{rule.name}' has no destination")
        self.rule = rule
        self.name = rule.name
        self.resolver = resolver
        self.logger = logger or LOGGER

    def matches(self, path: Path) -> bool:
        extension = file_extension(path)
        return extension is not None and self.rule.matches(extension)

    def destination_for(self, path: Path) -> Path:
        assert self.rule.destination is not None
        if self.rule.group_by_extension:
            extension = file_extension(path)
            if extension:
                return self.rule.destination / extension.upper()
        return self.rule.destination

    def apply(self, path: Path) -> bool:
        if not self.matches(path):
            return False
        log_event(
            self.logger,
            level=logging.INFO,
            action="seiton.match",
            message=f"Rule '{self.name}' matches {path}",
            extra={"path": str(path), "rule": self.name},
        )
        self.resolver.move(path, self.destination_for(path))
        return True


def build_seiton_strategies(
    rules: Iterable[SeitonRule],
    resolver: FileTransferResolver,
) -> list[ExtensionMoveStrategy]:
    """One strategy per rule, preserving configuration order."""

    return [ExtensionMoveStrategy(rule, resolver) for rule in rules if rule.destination is not None]


__all__ = ["ExtensionMoveStrategy", "build_seiton_strategies"]

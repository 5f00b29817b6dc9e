"""Recognise operating-system artifacts that must never be organised."""
from __future__ import annotations

from pathlib import Path
from typing import Iterable

_DEFAULT_EXCLUDES = {
    ".ds_store",
    "thumbs.db",
    "ehthumbs.db",
    "desktop.ini",
    "icon\r",
}

_LOCK_PREFIXES = ("~$", "._")


class SystemFilter:
    """Decide whether a file is a system artifact based on its name."""

    def __init__(
        self,
        *,
        extra_names: Iterable[str] | None = None,
        skip_hidden: bool = True,
    ) -> None:
        self.excluded_names = {*_DEFAULT_EXCLUDES, *(name.lower() for name in extra_names or [])}
        self.skip_hidden = skip_hidden

    def is_artifact(self, path: Path) -> bool:
        name = path.name
        lowered = name.lower()
        if lowered in self.excluded_names:
            return True
        if self.skip_hidden and name.startswith("."):
            return True
        return name.startswith(_LOCK_PREFIXES)


__all__ = ["SystemFilter"]

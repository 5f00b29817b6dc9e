"""Configuration loading and validation for auto-tidy."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Mapping


@dataclass(slots=True)
class ConfigurationError(Exception):
    """Raised when a configuration file is unusable."""

    message: str
    path: tuple[str | int, ...] | None = None

    def __str__(self) -> str:
        pointer = ""
        if self.path:
            pointer = " at $" + ".".join(str(part) for part in self.path)
        return f"{self.message}{pointer}"


class TimeUnit(str, Enum):
    """Units accepted for ``initialDelay`` and ``period``."""

    NANOSECONDS = "NANOSECONDS"
    MICROSECONDS = "MICROSECONDS"
    MILLISECONDS = "MILLISECONDS"
    SECONDS = "SECONDS"
    MINUTES = "MINUTES"
    HOURS = "HOURS"
    DAYS = "DAYS"

    def to_seconds(self, value: float) -> float:
        return value * _UNIT_SECONDS[self]


_UNIT_SECONDS = {
    TimeUnit.NANOSECONDS: 1e-9,
    TimeUnit.MICROSECONDS: 1e-6,
    TimeUnit.MILLISECONDS: 1e-3,
    TimeUnit.SECONDS: 1.0,
    TimeUnit.MINUTES: 60.0,
    TimeUnit.HOURS: 3600.0,
    TimeUnit.DAYS: 86400.0,
}


class KeepStrategy(str, Enum):
    """Which member of a duplicate group survives automatic remediation."""

    NEWEST = "NEWEST"
    OLDEST = "OLDEST"
    MANUAL = "MANUAL"


@dataclass(frozen=True, slots=True)
class SeitonRule:
    """Route files with one of ``extensions`` to ``destination``."""

    name: str
    extensions: tuple[str, ...]
    destination: Path | None
    group_by_extension: bool = False

    def matches(self, extension: str) -> bool:
        return extension.lower() in self.extensions


@dataclass(frozen=True, slots=True)
class TaskSettings:
    enabled: bool = False
    initial_delay: float = 0
    period: float = 0
    time_unit: TimeUnit = TimeUnit.SECONDS

    @property
    def initial_delay_seconds(self) -> float:
        return self.time_unit.to_seconds(self.initial_delay)

    @property
    def period_seconds(self) -> float:
        return self.time_unit.to_seconds(self.period)


@dataclass(frozen=True, slots=True)
class MoveOldFilesRule:
    enabled: bool = False
    days: float = 0
    destination: Path | None = None


@dataclass(frozen=True, slots=True)
class CleanTempFoldersRule:
    enabled: bool = False
    folders: tuple[Path, ...] = ()


@dataclass(frozen=True, slots=True)
class DuplicateRules:
    min_file_size_bytes: int = 0
    max_file_size_bytes: int = 0
    auto_remove: bool = False
    keep_strategy: KeepStrategy = KeepStrategy.NEWEST
    duplicates_destination: Path | None = None
    report_destination: Path | None = None


@dataclass(frozen=True, slots=True)
class SeiriConfig:
    schedule: TaskSettings = field(default_factory=TaskSettings)
    move_old_files: MoveOldFilesRule | None = None


@dataclass(frozen=True, slots=True)
class SeisoConfig:
    schedule: TaskSettings = field(default_factory=TaskSettings)
    clean_temp_folders: CleanTempFoldersRule | None = None


@dataclass(frozen=True, slots=True)
class DuplicateDetectionConfig:
    schedule: TaskSettings = field(default_factory=TaskSettings)
    rules: DuplicateRules = field(default_factory=DuplicateRules)


@dataclass(frozen=True, slots=True)
class Configuration:
    """Immutable engine configuration, loaded once before start-up."""

    monitor_folders: tuple[Path, ...] = ()
    seiton_rules: tuple[SeitonRule, ...] = ()
    seiri: SeiriConfig = field(default_factory=SeiriConfig)
    seiso: SeisoConfig = field(default_factory=SeisoConfig)
    duplicate_detection: DuplicateDetectionConfig = field(default_factory=DuplicateDetectionConfig)


def load_config(path: str | Path) -> Configuration:
    """Read the JSON file at *path* and return a :class:`Configuration`."""

    file_path = Path(path).expanduser()
    try:
        content = file_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Configuration file not found: {file_path}") from exc
    except OSError as exc:
        raise ConfigurationError(f"Cannot read configuration file {file_path}: {exc}") from exc
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(
            f"Malformed JSON (line {exc.lineno}, column {exc.colno}): {exc.msg}"
        ) from exc
    return parse_config(data)


def parse_config(data: Any) -> Configuration:
    """Build a :class:`Configuration` from decoded JSON."""

    root = _mapping(data, ())
    folders = _list(root.get("monitorFolders", []), ("monitorFolders",))
    monitor_folders = tuple(
        _path(item, ("monitorFolders", index)) for index, item in enumerate(folders)
    )

    raw_rules = _list(root.get("seitonRules", []), ("seitonRules",))
    seiton_rules = tuple(
        _parse_seiton_rule(item, ("seitonRules", index)) for index, item in enumerate(raw_rules)
    )

    seiri_raw = _mapping(root.get("seiriConfig") or {}, ("seiriConfig",))
    seiri_rules = _mapping(seiri_raw.get("rules") or {}, ("seiriConfig", "rules"))
    move_raw = seiri_rules.get("moveFilesNotAccessedForDays")
    seiri = SeiriConfig(
        schedule=_parse_schedule(seiri_raw, ("seiriConfig",)),
        move_old_files=(
            _parse_move_rule(move_raw, ("seiriConfig", "rules", "moveFilesNotAccessedForDays"))
            if move_raw is not None
            else None
        ),
    )

    seiso_raw = _mapping(root.get("seisoConfig") or {}, ("seisoConfig",))
    seiso_rules = _mapping(seiso_raw.get("rules") or {}, ("seisoConfig", "rules"))
    clean_raw = seiso_rules.get("cleanTemporaryFolders")
    seiso = SeisoConfig(
        schedule=_parse_schedule(seiso_raw, ("seisoConfig",)),
        clean_temp_folders=(
            _parse_clean_rule(clean_raw, ("seisoConfig", "rules", "cleanTemporaryFolders"))
            if clean_raw is not None
            else None
        ),
    )

    dup_raw = _mapping(root.get("duplicateDetectionConfig") or {}, ("duplicateDetectionConfig",))
    duplicate_detection = DuplicateDetectionConfig(
        schedule=_parse_schedule(dup_raw, ("duplicateDetectionConfig",)),
        rules=_parse_duplicate_rules(
            dup_raw.get("rules") or {}, ("duplicateDetectionConfig", "rules")
        ),
    )

    return Configuration(
        monitor_folders=monitor_folders,
        seiton_rules=seiton_rules,
        seiri=seiri,
        seiso=seiso,
        duplicate_detection=duplicate_detection,
    )


def validate_config(config: Configuration) -> list[str]:
    """Check the logical consistency of *config*.

    Returns the list of warnings; the first hard error raises
    :class:`ConfigurationError`.
    """

    warnings: list[str] = []

    if not config.monitor_folders:
        raise ConfigurationError("'monitorFolders' must not be empty", ("monitorFolders",))
    for index, folder in enumerate(config.monitor_folders):
        if not folder.is_dir():
            raise ConfigurationError(
                f"Monitored folder does not exist or is not a directory: {folder}",
                ("monitorFolders", index),
            )

    if not config.seiton_rules:
        warnings.append("No 'seitonRules' defined; real-time organisation is disabled")
    for index, rule in enumerate(config.seiton_rules):
        if rule.destination is None:
            raise ConfigurationError(
                f"Seiton rule '{rule.name}' has an empty destination",
                ("seitonRules", index, "destination"),
            )
        if not rule.extensions:
            warnings.append(f"Seiton rule '{rule.name}' has no extensions and never matches")

    _validate_schedule(config.seiri.schedule, "seiriConfig")
    if config.seiri.schedule.enabled:
        move_rule = config.seiri.move_old_files
        if move_rule is None:
            raise ConfigurationError(
                "Seiri is enabled but no 'moveFilesNotAccessedForDays' rule is defined",
                ("seiriConfig", "rules"),
            )
        if move_rule.enabled and move_rule.destination is None:
            raise ConfigurationError(
                "'moveFilesNotAccessedForDays' is enabled but has no destination",
                ("seiriConfig", "rules", "moveFilesNotAccessedForDays", "destination"),
            )
        if move_rule.days < 0:
            raise ConfigurationError(
                "'days' must not be negative",
                ("seiriConfig", "rules", "moveFilesNotAccessedForDays", "days"),
            )

    _validate_schedule(config.seiso.schedule, "seisoConfig")
    if config.seiso.schedule.enabled and config.seiso.clean_temp_folders is None:
        warnings.append("Seiso is enabled but no 'cleanTemporaryFolders' rule is defined")

    _validate_schedule(config.duplicate_detection.schedule, "duplicateDetectionConfig")
    rules = config.duplicate_detection.rules
    if rules.max_file_size_bytes and rules.min_file_size_bytes > rules.max_file_size_bytes:
        raise ConfigurationError(
            "'minFileSizeBytes' is larger than 'maxFileSizeBytes'",
            ("duplicateDetectionConfig", "rules"),
        )

    return warnings


# -- helpers ------------------------------------------------------------

def _validate_schedule(settings: TaskSettings, key: str) -> None:
    if not settings.enabled:
        return
    if settings.period <= 0:
        raise ConfigurationError("'period' must be positive when enabled", (key, "period"))
    if settings.initial_delay < 0:
        raise ConfigurationError("'initialDelay' must not be negative", (key, "initialDelay"))


def _parse_seiton_rule(raw: Any, pointer: tuple[str | int, ...]) -> SeitonRule:
    data = _mapping(raw, pointer)
    extensions = _list(data.get("extensions", []), pointer + ("extensions",))
    destination = data.get("destination")
    return SeitonRule(
        name=str(data.get("name") or f"rule-{pointer[-1]}"),
        extensions=_normalize_extensions(extensions),
        destination=_optional_path(destination, pointer + ("destination",)),
        group_by_extension=_bool(data.get("groupByExtension", False), pointer + ("groupByExtension",)),
    )


def _parse_schedule(data: Mapping[str, Any], pointer: tuple[str | int, ...]) -> TaskSettings:
    raw_unit = data.get("timeUnit", TimeUnit.SECONDS.value)
    try:
        unit = TimeUnit(str(raw_unit).upper())
    except ValueError as exc:
        raise ConfigurationError(f"Unknown time unit: {raw_unit!r}", pointer + ("timeUnit",)) from exc
    return TaskSettings(
        enabled=_bool(data.get("enabled", False), pointer + ("enabled",)),
        initial_delay=_number(data.get("initialDelay", 0), pointer + ("initialDelay",)),
        period=_number(data.get("period", 0), pointer + ("period",)),
        time_unit=unit,
    )


def _parse_move_rule(raw: Any, pointer: tuple[str | int, ...]) -> MoveOldFilesRule:
    data = _mapping(raw, pointer)
    destination = data.get("destination")
    return MoveOldFilesRule(
        enabled=_bool(data.get("enabled", False), pointer + ("enabled",)),
        days=_number(data.get("days", 0), pointer + ("days",)),
        destination=_optional_path(destination, pointer + ("destination",)),
    )


def _parse_clean_rule(raw: Any, pointer: tuple[str | int, ...]) -> CleanTempFoldersRule:
    data = _mapping(raw, pointer)
    folders = _list(data.get("folders", []), pointer + ("folders",))
    return CleanTempFoldersRule(
        enabled=_bool(data.get("enabled", False), pointer + ("enabled",)),
        folders=tuple(_path(item, pointer + ("folders", index)) for index, item in enumerate(folders)),
    )


def _parse_duplicate_rules(raw: Any, pointer: tuple[str | int, ...]) -> DuplicateRules:
    data = _mapping(raw, pointer)
    raw_strategy = data.get("keepStrategy") or KeepStrategy.NEWEST.value
    try:
        keep_strategy = KeepStrategy(str(raw_strategy).upper())
    except ValueError:
        keep_strategy = KeepStrategy.NEWEST
    quarantine = data.get("duplicatesDestination")
    report = data.get("reportDestination")
    return DuplicateRules(
        min_file_size_bytes=int(_number(data.get("minFileSizeBytes", 0), pointer + ("minFileSizeBytes",))),
        max_file_size_bytes=int(_number(data.get("maxFileSizeBytes", 0), pointer + ("maxFileSizeBytes",))),
        auto_remove=_bool(data.get("autoRemove", False), pointer + ("autoRemove",)),
        keep_strategy=keep_strategy,
        duplicates_destination=_optional_path(quarantine, pointer + ("duplicatesDestination",)),
        report_destination=_optional_path(report, pointer + ("reportDestination",)),
    )


def _normalize_extensions(values: Iterable[Any]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for value in values:
        extension = str(value).strip().lower().lstrip(".")
        if extension:
            seen.setdefault(extension, None)
    return tuple(seen)


def _mapping(value: Any, pointer: tuple[str | int, ...]) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ConfigurationError("Expected an object", pointer or None)
    return value


def _list(value: Any, pointer: tuple[str | int, ...]) -> list[Any]:
    if not isinstance(value, list):
        raise ConfigurationError("Expected a list", pointer)
    return value


def _bool(value: Any, pointer: tuple[str | int, ...]) -> bool:
    if not isinstance(value, bool):
        raise ConfigurationError("Expected true or false", pointer)
    return value


def _number(value: Any, pointer: tuple[str | int, ...]) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError("Expected a number", pointer)
    return value


def _path(value: Any, pointer: tuple[str | int, ...]) -> Path:
    if not isinstance(value, str):
        raise ConfigurationError("Expected a path string", pointer)
    return Path(value).expanduser()


def _optional_path(value: Any, pointer: tuple[str | int, ...]) -> Path | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return _path(value, pointer)


__all__ = [
    "CleanTempFoldersRule",
    "Configuration",
    "ConfigurationError",
    "DuplicateDetectionConfig",
    "DuplicateRules",
    "KeepStrategy",
    "MoveOldFilesRule",
    "SeiriConfig",
    "SeisoConfig",
    "SeitonRule",
    "TaskSettings",
    "TimeUnit",
    "load_config",
    "parse_config",
    "validate_config",
]

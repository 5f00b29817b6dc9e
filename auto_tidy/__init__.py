"""auto-tidy package exports."""

from .cli import main as cli_main
from .config import Configuration, ConfigurationError, load_config, validate_config
from .engine import Engine
from .realtime_watcher import DirectoryWatcher
from .scheduler import TaskScheduler

__all__ = [
    "cli_main",
    "Configuration",
    "ConfigurationError",
    "DirectoryWatcher",
    "Engine",
    "TaskScheduler",
    "load_config",
    "validate_config",
]

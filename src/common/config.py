"""Shared configuration utilities."""

import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import TypeVar, Callable, Generic

import yaml

T = TypeVar('T')

CONFIG_DIR = Path(__file__).resolve().parents[2] / "configs"
CONFIG_ENV_VAR = "STORY_TRACKER_CONFIG"


def find_config_path(
    config_name: str | None,
    config_dir: Path,
    default_name: str = "prod",
    env_var: str | None = None,
) -> Path:
    """Find config file path, checking env var and defaults.

    Args:
        config_name: Name of config (without .yaml) or None for default
        config_dir: Directory containing config files
        default_name: Default config name if config_name is None
        env_var: Environment variable to check for config name

    Returns:
        Path to the config file

    Raises:
        FileNotFoundError: If config file doesn't exist
    """
    if config_name is None:
        config_name = os.environ.get(env_var, default_name) if env_var else default_name

    config_path = config_dir / f"{config_name}.yaml"
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    return config_path


def load_yaml(path: Path) -> dict:
    """Load YAML file and return dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


class ConfigSingleton(Generic[T]):
    """Generic config singleton manager.

    Provides get/set/reset pattern for managing a global config instance.

    Example:
        >>> def load_my_config() -> MyConfig:
        ...     return MyConfig(...)
        >>> _manager = ConfigSingleton(load_my_config)
        >>> get_config = _manager.get
        >>> set_config = _manager.set
        >>> reset_config = _manager.reset
    """

    def __init__(self, loader: Callable[[], T] | None = None):
        self._config: T | None = None
        self._loader = loader

    def get(self) -> T:
        """Get the config, loading it lazily if needed."""
        if self._config is None:
            if self._loader is None:
                raise RuntimeError("No config loaded and no loader set")
            self._config = self._loader()
        return self._config

    def set(self, config: T) -> None:
        """Set the config directly."""
        self._config = config

    def reset(self) -> None:
        """Reset the config, forcing reload on next get()."""
        self._config = None


@dataclass
class DatabaseConfig:
    url: str = "sqlite:///story_tracker.db"
    echo: bool = False


@dataclass
class SchedulerConfig:
    interval_hours: float = 2.0
    poll_seconds: float = 60.0
    initial_backoff_seconds: float = 30.0
    max_backoff_seconds: float = 3600.0
    require_battery_not_low: bool = True

    @property
    def interval(self) -> timedelta:
        return timedelta(hours=self.interval_hours)


@dataclass
class QuotaConfig:
    state_path: str = "state/quota.json"
    default_retry_after_seconds: int = 3600


@dataclass
class AppConfig:
    log_level: str = "INFO"
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    quota: QuotaConfig = field(default_factory=QuotaConfig)


def load_config(config_name: str | None = None, config_dir: Path = CONFIG_DIR) -> AppConfig:
    """Load configuration from YAML file.

    Args:
        config_name: Name of config file (without .yaml extension).
                    If None, uses STORY_TRACKER_CONFIG env var or "prod".
        config_dir: Directory holding the YAML files.

    Returns:
        Loaded AppConfig object. DATABASE_URL in the environment overrides
        the database url from the file.
    """
    path = find_config_path(config_name, config_dir, env_var=CONFIG_ENV_VAR)
    config = parse_config(load_yaml(path))

    database_url = os.environ.get("DATABASE_URL")
    if database_url:
        config.database.url = database_url

    return config


def parse_config(data: dict) -> AppConfig:
    """Parse config dictionary into AppConfig object."""
    database = data.get("database", {})
    scheduler = data.get("scheduler", {})
    quota = data.get("quota", {})

    return AppConfig(
        log_level=data.get("log_level", "INFO"),
        database=DatabaseConfig(
            url=database.get("url", "sqlite:///story_tracker.db"),
            echo=database.get("echo", False),
        ),
        scheduler=SchedulerConfig(
            interval_hours=scheduler.get("interval_hours", 2.0),
            poll_seconds=scheduler.get("poll_seconds", 60.0),
            initial_backoff_seconds=scheduler.get("initial_backoff_seconds", 30.0),
            max_backoff_seconds=scheduler.get("max_backoff_seconds", 3600.0),
            require_battery_not_low=scheduler.get("require_battery_not_low", True),
        ),
        quota=QuotaConfig(
            state_path=quota.get("state_path", "state/quota.json"),
            default_retry_after_seconds=quota.get("default_retry_after_seconds", 3600),
        ),
    )


_manager: ConfigSingleton[AppConfig] = ConfigSingleton(load_config)
get_config = _manager.get
set_config = _manager.set
reset_config = _manager.reset

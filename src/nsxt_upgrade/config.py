"""Configuration management."""

from pathlib import Path
from typing import Any, Dict, Optional

from nsxt_upgrade import constants
from nsxt_upgrade.models import WaitParameters
from nsxt_upgrade.utils.file_ops import atomic_write_json, ensure_directories, read_json


class Config:
    """Application configuration manager."""

    def __init__(self, config_file: Optional[Path] = None, work_dir: Optional[Path] = None):
        """
        Initialize configuration.

        Args:
            config_file: Path to config file (if not provided, uses work_dir/config/config.json)
            work_dir: Working directory (should be resolved via work_dir_resolver before calling)
        """
        self.work_dir = Path(work_dir) if work_dir else constants.DEFAULT_WORK_DIR

        if config_file:
            self.config_file = Path(config_file)
        else:
            self.config_file = self.work_dir / constants.CONFIG_SUBDIR / constants.CONFIG_FILE_NAME

        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from file, layered over the defaults."""
        defaults = self._get_default_config()
        loaded = read_json(self.config_file, default={})
        self._config = _merge(defaults, loaded)

        self._ensure_directories()

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration."""
        return {
            "nsx": {
                "host": "",
                "username": "",
                "password": "",
                "verify_ssl": True,
                "timeout": constants.DEFAULT_NSX_REQUEST_TIMEOUT
            },
            "upgrade": {
                "timeout": constants.DEFAULT_STATUS_CHECK_TIMEOUT,
                "interval": constants.DEFAULT_STATUS_CHECK_INTERVAL,
                "delay": constants.DEFAULT_STATUS_CHECK_DELAY
            },
            "logging": {
                "level": constants.DEFAULT_LOG_LEVEL
            },
            "paths": {
                "work_dir": str(self.work_dir)
            }
        }

    def _ensure_directories(self) -> None:
        """Ensure all required directories exist."""
        directories = [
            constants.DIR_CONFIG,
            constants.DIR_RUNS,
            constants.DIR_LOGS_STRUCTURED,
            constants.DIR_LOGS_TEXT,
            constants.DIR_COMMANDS_INCOMING,
            constants.DIR_COMMANDS_PROCESSED,
        ]
        ensure_directories(self.work_dir, directories)

    def save(self) -> None:
        """Save configuration to file."""
        atomic_write_json(self.config_file, self._config)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value by dot-notation key.

        Args:
            key: Configuration key (e.g., "nsx.host")
            default: Default value if key not found

        Returns:
            Configuration value
        """
        value = self._config

        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """
        Set configuration value by dot-notation key and save.

        Args:
            key: Configuration key (e.g., "nsx.host")
            value: Value to set
        """
        keys = key.split('.')
        config = self._config

        for k in keys[:-1]:
            if k not in config or not isinstance(config[k], dict):
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value
        self.save()

    def as_dict(self, mask_secrets: bool = True) -> Dict[str, Any]:
        """Return a copy of the configuration, with the NSX password masked."""
        data = _merge({}, self._config)
        if mask_secrets and data.get("nsx", {}).get("password"):
            data["nsx"]["password"] = "********"
        return data

    def get_path(self, relative_path: str) -> Path:
        """
        Get absolute path for a relative path within work directory.

        Args:
            relative_path: Relative path from work directory

        Returns:
            Absolute Path object
        """
        return self.work_dir / relative_path

    @property
    def nsx_host(self) -> str:
        """Get NSX manager host."""
        return self.get("nsx.host", "")

    @property
    def nsx_username(self) -> str:
        """Get NSX manager username."""
        return self.get("nsx.username", "")

    @property
    def nsx_password(self) -> str:
        """Get NSX manager password."""
        return self.get("nsx.password", "")

    @property
    def nsx_verify_ssl(self) -> bool:
        """Whether to verify the NSX manager TLS certificate."""
        return _as_bool(self.get("nsx.verify_ssl", True))

    @property
    def nsx_timeout(self) -> int:
        """Get per-request timeout for NSX API calls in seconds."""
        return int(self.get("nsx.timeout", constants.DEFAULT_NSX_REQUEST_TIMEOUT))

    @property
    def wait_parameters(self) -> WaitParameters:
        """Default status wait parameters for declarations that omit them."""
        return WaitParameters(
            timeout=int(self.get("upgrade.timeout", constants.DEFAULT_STATUS_CHECK_TIMEOUT)),
            interval=int(self.get("upgrade.interval", constants.DEFAULT_STATUS_CHECK_INTERVAL)),
            delay=int(self.get("upgrade.delay", constants.DEFAULT_STATUS_CHECK_DELAY)),
        )

    @property
    def log_level(self) -> str:
        """Get logging level."""
        return self.get("logging.level", constants.DEFAULT_LOG_LEVEL)


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into a copy of base."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        elif isinstance(value, dict):
            merged[key] = _merge({}, value)
        else:
            merged[key] = value
    return merged


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)

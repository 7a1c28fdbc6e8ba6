"""
Work directory resolution.

The work directory holds config, run records, logs and the command
queue. It is taken from the first source that names one:

1. the --work-dir CLI flag
2. the NSXT_UPGRADE_HOME environment variable
3. the user config file ~/.nsxt-upgrade.config.json written by ``init``
4. /opt/nsxt-upgrade
"""

import os
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional

from nsxt_upgrade import constants
from nsxt_upgrade.utils.file_ops import atomic_write_json, read_json

ENV_VAR_NAME = "NSXT_UPGRADE_HOME"
USER_CONFIG_FILE = ".nsxt-upgrade.config.json"


class ConfigSource(Enum):
    """Where the work directory came from."""
    CLI_FLAG = "from --work-dir flag"
    ENV_VAR = f"from {ENV_VAR_NAME} environment variable"
    USER_CONFIG = f"from ~/{USER_CONFIG_FILE}"
    DEFAULT = "default"


@dataclass
class WorkDirResolution:
    path: Path
    source: ConfigSource

    def log_message(self) -> str:
        return f"Work directory: {self.path} ({self.source.value})"


def get_user_config_path() -> Path:
    return Path.home() / USER_CONFIG_FILE


def read_user_config() -> Optional[dict]:
    """The user config, or None when it is missing or unreadable."""
    try:
        return read_json(get_user_config_path())
    except (OSError, ValueError):
        return None


def write_user_config(work_dir: Path) -> Path:
    """Remember ``work_dir`` for later runs of this user."""
    user_config_path = get_user_config_path()
    atomic_write_json(user_config_path, {
        "work_dir": str(work_dir),
        "created_at": datetime.now(timezone.utc).isoformat(),
        "created_by": "nsxt-upgrade init",
    })
    return user_config_path


def _from_user_config() -> Optional[str]:
    user_config = read_user_config() or {}
    return user_config.get("work_dir")


def resolve_work_dir(cli_work_dir: Optional[str] = None) -> WorkDirResolution:
    """
    Resolve the work directory and record which source supplied it.

    Args:
        cli_work_dir: Value of the --work-dir flag, if given

    Returns:
        Resolved path with its source, for logging
    """
    candidates = (
        (ConfigSource.CLI_FLAG, lambda: cli_work_dir),
        (ConfigSource.ENV_VAR, lambda: os.getenv(ENV_VAR_NAME)),
        (ConfigSource.USER_CONFIG, _from_user_config),
    )
    for source, lookup in candidates:
        value = lookup()
        if value:
            return WorkDirResolution(path=Path(value).expanduser().resolve(), source=source)

    return WorkDirResolution(path=constants.DEFAULT_WORK_DIR, source=ConfigSource.DEFAULT)

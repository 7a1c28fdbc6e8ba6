"""JSON record files shared by the config, run store and command queue."""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional


def atomic_write_json(file_path: Path, data: Dict[str, Any]) -> None:
    """
    Replace a JSON record in one step.

    Readers (and the command queue watch) only ever see the old record
    or the complete new one.
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    fd, temp_name = tempfile.mkstemp(dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, 'w') as f:
            json.dump(data, f, indent=2, sort_keys=True)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_name, file_path)
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise


def read_json(file_path: Path, default: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Read a JSON record.

    Args:
        file_path: Record to read
        default: Returned when the file is missing; if None a missing
            file raises FileNotFoundError

    Raises:
        FileNotFoundError: Missing file and no default
        ValueError: The file is not a JSON object
    """
    try:
        with open(file_path, 'r') as f:
            data = json.load(f)
    except FileNotFoundError:
        if default is None:
            raise
        return default
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {file_path}: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object in {file_path}")
    return data


def list_json_files(directory: Path) -> List[Path]:
    """Visible JSON files of a directory, sorted by name."""
    directory = Path(directory)
    if not directory.is_dir():
        return []
    return sorted(p for p in directory.glob("*.json") if not p.name.startswith('.'))


def ensure_directories(base_path: Path, directories: Iterable[str]) -> None:
    for directory in directories:
        (base_path / directory).mkdir(parents=True, exist_ok=True)

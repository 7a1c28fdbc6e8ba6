"""Command file channel used to cancel a running upgrade."""

import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from nsxt_upgrade import constants
from nsxt_upgrade.config import Config
from nsxt_upgrade.logging_config import get_logger, log_with_context
from nsxt_upgrade.utils.file_ops import atomic_write_json, list_json_files, read_json


class CommandQueueHandler(FileSystemEventHandler):
    """Handler for command directory monitoring."""

    def __init__(self, monitor: 'CommandMonitor'):
        self.monitor = monitor
        self.logger = get_logger("nsxt_upgrade.command_queue")

    def on_created(self, event: FileSystemEvent):
        """Handle file creation in the command directory."""
        if not event.is_directory:
            self._dispatch(Path(event.src_path))

    def on_moved(self, event: FileSystemEvent):
        """Handle files renamed into place (atomic writes)."""
        if not event.is_directory:
            self._dispatch(Path(event.dest_path))

    def _dispatch(self, file_path: Path):
        if file_path.suffix == '.json' and not file_path.name.startswith('.'):
            self.logger.info(f"New command file detected: {file_path.name}")
            self.monitor.process_command(file_path)


class CommandMonitor:
    """Watches the incoming command directory on behalf of one run."""

    def __init__(self, config: Config, run_id: str, on_cancel: Callable[[str], None]):
        """
        Initialize command monitor.

        Args:
            config: Configuration instance
            run_id: Run whose commands are handled; others are left in place
            on_cancel: Called with the reason when a cancel command arrives
        """
        self.run_id = run_id
        self.on_cancel = on_cancel
        self.incoming_dir = config.get_path(constants.DIR_COMMANDS_INCOMING)
        self.processed_dir = config.get_path(constants.DIR_COMMANDS_PROCESSED)
        self.logger = get_logger("nsxt_upgrade.command_monitor")
        self._observer: Optional[Observer] = None
        self._lock = threading.Lock()

    def start(self) -> None:
        """Start monitoring and process commands already waiting."""
        self.incoming_dir.mkdir(parents=True, exist_ok=True)
        self.processed_dir.mkdir(parents=True, exist_ok=True)
        self.logger.info(f"Starting command monitor: {self.incoming_dir}")

        self._observer = Observer()
        self._observer.schedule(CommandQueueHandler(self), str(self.incoming_dir), recursive=False)
        self._observer.start()

        for file_path in list_json_files(self.incoming_dir):
            self.process_command(file_path)

    def stop(self) -> None:
        """Stop monitoring."""
        if self._observer:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    def __enter__(self) -> 'CommandMonitor':
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def process_command(self, command_file: Path) -> bool:
        """
        Process one command file.

        Returns:
            True if the command was addressed to this run and handled
        """
        with self._lock:
            if not command_file.exists():
                return False
            try:
                command_data = read_json(command_file)
            except (OSError, ValueError) as e:
                self.logger.error(f"Error reading command {command_file}: {e}")
                return False

            if command_data.get("run_id") != self.run_id:
                return False

            command_type = command_data.get("command")
            if command_type == constants.COMMAND_CANCEL_RUN:
                reason = command_data.get("reason", "Admin requested")
                log_with_context(
                    self.logger, "info",
                    f"Cancellation requested: {reason}",
                    run_id=self.run_id,
                )
                self.on_cancel(reason)
            else:
                self.logger.warning(f"Unknown command type: {command_type}")

            command_file.replace(self.processed_dir / command_file.name)
            return True


def write_cancel_command(config: Config, run_id: str, reason: str = "Admin requested") -> Path:
    """
    Queue a cancel command for a running upgrade.

    Returns:
        Path of the command file
    """
    command = {
        "command": constants.COMMAND_CANCEL_RUN,
        "run_id": run_id,
        "reason": reason,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    command_file = config.get_path(constants.DIR_COMMANDS_INCOMING) / f"cancel-{run_id}-{uuid.uuid4().hex[:8]}.json"
    atomic_write_json(command_file, command)
    return command_file

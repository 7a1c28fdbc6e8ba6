"""Dual logging system - JSON structured and traditional text logs."""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

CONTEXT_FIELDS = ("run_id", "component", "group_id", "operation", "details")


class JSONFormatter(logging.Formatter):
    """Format log records as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON string."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


class TextFormatter(logging.Formatter):
    """Format log records as traditional text."""

    def __init__(self):
        super().__init__(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )


def setup_logging(
    log_dir: Path,
    log_level: str = "INFO",
    console_output: bool = True
) -> logging.Logger:
    """
    Set up dual logging system.

    Args:
        log_dir: Directory for log files
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        console_output: Whether to output to console

    Returns:
        Configured logger instance
    """
    structured_dir = log_dir / "structured"
    text_dir = log_dir / "text"
    structured_dir.mkdir(parents=True, exist_ok=True)
    text_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("nsxt_upgrade")
    logger.setLevel(getattr(logging, log_level.upper()))
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    today = datetime.now().strftime('%Y%m%d')

    json_handler = logging.FileHandler(structured_dir / f"nsxt-upgrade-{today}.json")
    json_handler.setFormatter(JSONFormatter())
    logger.addHandler(json_handler)

    text_handler = logging.FileHandler(text_dir / f"nsxt-upgrade-{today}.log")
    text_handler.setFormatter(TextFormatter())
    logger.addHandler(text_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(TextFormatter())
        logger.addHandler(console_handler)

    return logger


def get_logger(name: str = "nsxt_upgrade") -> logging.Logger:
    return logging.getLogger(name)


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    run_id: Optional[str] = None,
    component: Optional[str] = None,
    group_id: Optional[str] = None,
    operation: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    exc_info: bool = False
) -> None:
    """
    Log message with the run context as record attributes.

    Context left empty is not attached, so the JSON log only carries the
    fields that apply (e.g. group_id only for group operations).

    Args:
        logger: Logger instance
        level: Log level name (debug, info, warning, error, critical)
        message: Log message
        run_id: Upgrade run identity
        component: Upgrade component (EDGE, HOST, MP)
        group_id: Upgrade unit group ID
        operation: Remote operation name
        details: Additional details dictionary
        exc_info: Include exception information
    """
    context = dict(run_id=run_id, component=component, group_id=group_id, operation=operation, details=details)
    extra = {field: context[field] for field in CONTEXT_FIELDS if context[field]}
    getattr(logger, level.lower())(message, extra=extra, exc_info=exc_info)

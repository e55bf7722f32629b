# ============================================================================
# src/clinical_extraction/utils/logging.py
# ============================================================================
"""
Logging setup for clinical record extraction.

The library never configures logging on import; applications call
setup_logging() once at startup. Arguments left as None are read from
LoggingSettings (LOG_LEVEL, LOG_JSON in the environment or .env).

Extraction records carry the pipeline stage (and pass name for model
passes) as `extra=` attributes; both formatters surface them.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from ..config.logging_config import LoggingSettings
from .exceptions import ConfigurationError

CONTEXT_FIELDS = ("stage", "pass_name")

PLAIN_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def stage_extra(stage: str, pass_name: Optional[str] = None) -> Dict[str, Any]:
    """`extra=` mapping that tags a log record with its pipeline stage."""
    extra = {"stage": stage}
    if pass_name:
        extra["pass_name"] = pass_name
    return extra


def _resolve_level(level: str) -> int:
    resolved = logging.getLevelName(str(level).upper())
    if not isinstance(resolved, int):
        raise ConfigurationError(f"Unknown log level: {level}")
    return resolved


class PlainFormatter(logging.Formatter):
    """Text lines; the stage, when present, is prefixed to the message."""

    def __init__(self):
        super().__init__(PLAIN_FORMAT, datefmt=DATE_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        stage = getattr(record, "stage", None)
        if not stage:
            return line
        prefix = f"{record.levelname} - "
        return line.replace(prefix, f"{prefix}[{stage}] ", 1)


class JsonFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(
    level: Optional[str] = None,
    log_file: Optional[Path] = None,
    format_json: Optional[bool] = None,
) -> None:
    """
    Configure the root logger.

    Args:
        level: Level name; None reads LOG_LEVEL
        log_file: Optional file to log to as well as stdout
        format_json: JSON lines instead of text; None reads LOG_JSON

    Raises:
        ConfigurationError: unknown level name
    """
    if level is None or format_json is None:
        settings = LoggingSettings()
        level = settings.LOG_LEVEL if level is None else level
        format_json = settings.LOG_JSON if format_json is None else format_json

    log_level = _resolve_level(level)
    formatter = JsonFormatter() if format_json else PlainFormatter()

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)
    logging.getLogger(__name__).debug(
        f"Logging configured: level={logging.getLevelName(log_level)}, json={format_json}"
    )

"""
logger.py
JSON-lines logging for the bot-facing parts of the brain.
"""

import os
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Protocol

from loguru import logger as _loguru_logger

LOG_DIR_ENV_VAR = "LOG_DIR"


# Sinks
class BaseSink(Protocol):
    def write(self, message: str) -> None:
        ...

class JSONSink:
    def __init__(self, log_dir: Optional[str] = None, log_file_name: Optional[str] = None) -> None:
        """
        Initialize a JSONSink that appends serialized log records to a file.
        The directory comes from log_dir, then $LOG_DIR, then <project_root>/logs.
        Files are named YYYY-MM-DD.jsonl unless log_file_name is given.
        """
        if log_dir is None:
            log_dir = os.getenv(LOG_DIR_ENV_VAR)
        if log_dir is None:
            project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '../../'))
            log_dir = os.path.join(project_root, 'logs')
        self.log_dir = os.path.abspath(log_dir)
        Path(self.log_dir).mkdir(parents=True, exist_ok=True)
        if log_file_name is None:
            log_file_name = f"{datetime.now().date()}.jsonl"
        self.file_path = os.path.join(self.log_dir, log_file_name)
        self._file = open(self.file_path, "a", encoding="utf-8")

    def write(self, message: str) -> None:
        try:
            self._file.write(message)
            self._file.flush()
        except (OSError, ValueError):
            print(f"Failed to write log message: {message}")

    def close(self) -> None:
        if not self._file.closed:
            self._file.close()

    def __del__(self) -> None:
        try:
            self.close()
        except (AttributeError, OSError):
            pass

# Singleton logger
_logger_instance: Any = None


def get_logger(component: Optional[str] = None) -> Any:
    """Return the shared loguru logger, bound to component when one is given."""
    global _logger_instance
    if _logger_instance is None:
        json_sink = JSONSink()
        _loguru_logger.remove()
        _loguru_logger.add(json_sink.write, serialize=True, enqueue=True)
        _logger_instance = _loguru_logger

    if component:
        return _logger_instance.bind(component=component)
    return _logger_instance

#!/usr/bin/env python3
# -*-coding: utf-8-*-
"""
Logging setup for the duplicates index.

The engine itself only ever calls ``logging.getLogger(__name__)``; this module
is what an embedding scheduler or CLI calls once at startup.

Features:
- Level-aware compact console formatter (optionally colored)
- Structured JSON formatter (``DUPLICATES_INDEX_LOG_JSON=1``)
- Rotating file handler
- Lightweight timing of long-running phases
"""

import logging
import logging.handlers
import os
import sys
import threading
import time
import json
from collections import defaultdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Dict, Any

ROOT_LOGGER_NAME = "duplicates_index"
DEFAULT_MAX_LOG_SIZE = "10MB"
SLOW_OPERATION_SECONDS = 30.0

# =====================================================================================================
# Formatters
# =====================================================================================================

class FastFormatter(logging.Formatter):
    """Compact formatter with one pre-built format per level."""

    def __init__(self, enable_colors: bool = False):
        super().__init__()
        self.enable_colors = enable_colors

        self._formatters = {
            level: logging.Formatter(fmt, style='{', datefmt='%H:%M:%S')
            for level, fmt in {
                logging.ERROR: "[{asctime}] ERROR   [{name}] {message}",
                logging.WARNING: "[{asctime}] WARNING [{name}] {message}",
                logging.INFO: "[{asctime}] INFO    {message}",
                logging.DEBUG: "[{asctime}] DEBUG   {name}:{lineno} - {message}",
            }.items()
        }

        self.colors = {
            'ERROR': '\033[91m',     # Red
            'WARNING': '\033[93m',   # Yellow
            'INFO': '\033[92m',      # Green
            'DEBUG': '\033[94m',     # Blue
            'RESET': '\033[0m'       # Reset
        } if enable_colors else {}

    def format(self, record):
        formatter = self._formatters.get(record.levelno, self._formatters[logging.INFO])
        message = formatter.format(record)
        if self.enable_colors and record.levelname in self.colors:
            return f"{self.colors[record.levelname]}{message}{self.colors['RESET']}"
        return message


class JsonFormatter(logging.Formatter):
    """Structured JSON formatter."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "pathname": record.pathname,
            "lineno": record.lineno,
            "thread": record.threadName,
            "process": record.process,
        }
        error = getattr(record, "error", None)
        if isinstance(error, dict):
            payload["error"] = error
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)

# =====================================================================================================
# Performance Logger
# =====================================================================================================

class SimplePerformanceLogger:
    """Accumulates phase timings; warns about slow phases."""

    def __init__(self, name: str = f"{ROOT_LOGGER_NAME}.performance"):
        self.logger = logging.getLogger(name)
        self.metrics = defaultdict(float)
        self.counts = defaultdict(int)
        self._lock = threading.Lock()

    def log_timing(self, operation: str, duration: float):
        with self._lock:
            self.metrics[operation] += duration
            self.counts[operation] += 1

        if duration > SLOW_OPERATION_SECONDS:
            self.logger.warning("SLOW: %s took %.2fs", operation, duration)
        else:
            self.logger.debug("%s took %.3fs", operation, duration)

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            stats = {}
            for operation in self.metrics:
                count = self.counts[operation]
                total = self.metrics[operation]
                stats[operation] = {
                    'count': count,
                    'total_time': total,
                    'avg_time': total / count if count > 0 else 0
                }
            return stats

    def reset(self):
        with self._lock:
            self.metrics.clear()
            self.counts.clear()


_performance_logger = SimplePerformanceLogger()


class LoggingTimer:
    """Simple timing context manager."""

    def __init__(self, operation_name: str):
        self.operation_name = operation_name
        self.start_time = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time:
            duration = time.perf_counter() - self.start_time
            _performance_logger.log_timing(self.operation_name, duration)


def get_performance_stats() -> Dict[str, Any]:
    return _performance_logger.get_stats()

# =====================================================================================================
# Setup
# =====================================================================================================

def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_size_string(size_str: str) -> int:
    """Parse size string into bytes."""
    size_str = size_str.upper().strip()

    multipliers = {
        'KB': 1024,
        'MB': 1024 ** 2,
        'GB': 1024 ** 3,
        'B': 1,
    }

    for suffix, multiplier in multipliers.items():
        if size_str.endswith(suffix):
            try:
                return int(float(size_str[:-len(suffix)].strip()) * multiplier)
            except ValueError:
                continue

    try:
        return int(float(size_str))
    except ValueError:
        return 10 * 1024 * 1024


def setup_logging(
    log_level: str = "INFO",
    *,
    json_logs: Optional[bool] = None,
    log_file: Optional[str] = None,
    max_log_size: str = DEFAULT_MAX_LOG_SIZE,
    backup_count: int = 3,
) -> logging.Logger:
    """Configure the ``duplicates_index`` logger hierarchy.

    Calling it again replaces the handlers it installed earlier, so it is
    safe to call from tests and from long-running schedulers.
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)
    use_json = json_logs if json_logs is not None else _env_bool("DUPLICATES_INDEX_LOG_JSON")

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(numeric_level)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    enable_colors = (hasattr(sys.stdout, 'isatty') and
                     sys.stdout.isatty() and
                     os.environ.get('TERM') != 'dumb')
    console_handler.setFormatter(JsonFormatter() if use_json else FastFormatter(enable_colors=enable_colors))
    logger.addHandler(console_handler)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            str(path),
            maxBytes=_parse_size_string(max_log_size),
            backupCount=backup_count,
            encoding='utf-8',
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(JsonFormatter() if use_json else FastFormatter())
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger


"""
Logging setup for webtrawl.

Logs always go to stderr so that result lines on stdout stay machine readable.
"""

import logging
import logging.handlers
import json
import platform
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, Optional
from datetime import datetime, timezone

import psutil

from .config import LoggingConfig


LOG_FILE_MAX_BYTES = 50 * 1024 * 1024
LOG_FILE_BACKUPS = 5

# Libraries that are pinned to WARNING regardless of the configured level
QUIET_LIBRARIES = ('aiohttp', 'asyncio', 'charset_normalizer', 'bs4')

CONTEXT_FIELDS = ('worker', 'url')


class JSONFormatter(logging.Formatter):
    """One JSON object per record, carrying worker/url context when present."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: Dict[str, Any] = {
            'ts': created.isoformat(timespec='milliseconds'),
            'level': record.levelname,
            'logger': record.name,
            'msg': record.getMessage(),
            'where': f"{record.module}:{record.lineno}"
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value

        if record.exc_info:
            entry['exc'] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False)


class CrawlerLogAdapter(logging.LoggerAdapter):
    """Tags every message with the worker it came from."""

    def __init__(self, logger: logging.Logger, extra: Optional[Dict[str, Any]] = None):
        super().__init__(logger, extra or {})

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        merged = dict(self.extra)
        merged.update(kwargs.get('extra') or {})
        kwargs['extra'] = merged

        worker = merged.get('worker')
        return (f"[{worker}] {msg}" if worker else msg), kwargs


class PerformanceFilter(logging.Filter):
    """Drops records from chatty library loggers (per-request access logs and the like)."""

    def __init__(self, prefixes: Iterable[str] = ('aiohttp.access', 'aiohttp.internal')):
        super().__init__()
        self.prefixes = tuple(prefixes)

    def filter(self, record: logging.LogRecord) -> bool:
        return not record.name.startswith(self.prefixes)


def verbosity_to_level(verbosity: int) -> str:
    """Map a -v count to a log level name."""
    if verbosity <= 0:
        return 'WARNING'
    return 'INFO' if verbosity == 1 else 'DEBUG'


def _make_formatter(config: LoggingConfig) -> logging.Formatter:
    return JSONFormatter() if config.json else logging.Formatter(config.format)


def _install(root: logging.Logger, handler: logging.Handler, formatter: logging.Formatter,
             filtered: bool):
    handler.setFormatter(formatter)
    if filtered:
        handler.addFilter(PerformanceFilter())
    root.addHandler(handler)


def setup_logging(config: LoggingConfig,
                  enable_performance_filtering: bool = True) -> logging.Logger:
    """
    Configure the root logger from a LoggingConfig.

    Installs a stderr handler, plus a size-rotated file handler at DEBUG when
    `config.file` is set. Any previously installed root handlers are removed.
    """
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(getattr(logging, config.level.upper(), logging.WARNING))

    formatter = _make_formatter(config)
    _install(root, logging.StreamHandler(sys.stderr), formatter, enable_performance_filtering)

    if config.file:
        path = Path(config.file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            path, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUPS, encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        _install(root, file_handler, formatter, enable_performance_filtering)

    for name in QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)

    root.info(f"Logging at {config.level}" + (f", also to {config.file}" if config.file else ""))
    return root


def get_crawler_logger(name: str, **extra_context) -> CrawlerLogAdapter:
    """Logger for `name` that attaches extra_context (e.g. worker=...) to every record."""
    return CrawlerLogAdapter(logging.getLogger(name), extra_context)


def log_system_info():
    """Log host resources at startup; useful when tuning the thread count."""
    logger = logging.getLogger(__name__)
    memory = psutil.virtual_memory()

    logger.info(f"Host: {platform.node()} ({platform.system()} {platform.release()})")
    logger.info(f"Python {platform.python_version()} ({platform.python_implementation()})")
    logger.info(f"CPUs: {psutil.cpu_count(logical=False)} physical / {psutil.cpu_count()} logical")
    logger.info(f"Memory: {memory.available / 1024**3:.1f} of {memory.total / 1024**3:.1f} GB available")

"""
Logging setup for the word crawler.

Everything goes through the standard ``logging`` tree. ``setup_logging``
configures the root logger once at startup; modules keep using
``logging.getLogger(__name__)`` or ``get_crawler_logger`` when they want
structured fields (URL, component, statistic) attached to their records.
"""

import json
import logging
import logging.handlers
import os
import platform
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

import psutil

from .config import LoggingConfig

CRAWL_LOG_MAX_BYTES = 50 * 1024 * 1024
CRAWL_LOG_BACKUPS = 5
ERROR_LOG_MAX_BYTES = 10 * 1024 * 1024
ERROR_LOG_BACKUPS = 3

# Libraries that log per request; only their warnings are interesting.
QUIET_LOGGERS = ('aiohttp', 'asyncio', 'urllib3')


class JSONFormatter(logging.Formatter):
    """Renders each record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            'time': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'location': f"{record.module}:{record.funcName}:{record.lineno}",
            'message': record.getMessage(),
        }
        entry.update(getattr(record, 'extra_fields', None) or {})

        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class CrawlerLogAdapter(logging.LoggerAdapter):
    """
    Adapter that attaches its context, plus per-call fields, to every record
    under ``extra_fields`` so that ``JSONFormatter`` can emit them.
    """

    def __init__(self, logger: logging.Logger, extra: Optional[Dict[str, Any]] = None):
        super().__init__(logger, extra or {})

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = kwargs.setdefault('extra', {})
        fields = dict(self.extra)
        fields.update(extra.pop('extra_fields', {}))
        extra['extra_fields'] = fields
        return msg, kwargs

    def _log_with_fields(self, level: int, message: str, fields: Dict[str, Any], kwargs: Dict[str, Any]):
        extra = kwargs.setdefault('extra', {})
        extra.setdefault('extra_fields', {}).update(fields)
        self.log(level, message, **kwargs)

    def log_url_event(self, level: int, url: str, message: str, **kwargs):
        """Log something that happened to a single URL."""
        self._log_with_fields(level, message, {'url': url, 'event_type': 'url_event'}, kwargs)

    def log_crawler_stat(self, stat_name: str, value: Any, **kwargs):
        self._log_with_fields(
            logging.INFO,
            f"Stat: {stat_name} = {value}",
            {'stat_name': stat_name, 'stat_value': value, 'event_type': 'crawler_stat'},
            kwargs
        )


class NoisyLoggerFilter(logging.Filter):
    """Drops records coming from per-request library loggers."""

    DEFAULT_PREFIXES = ('aiohttp.access', 'aiohttp.client', 'urllib3.connectionpool')

    def __init__(self, prefixes: Optional[Iterable[str]] = None):
        super().__init__()
        self.prefixes = tuple(prefixes or self.DEFAULT_PREFIXES)

    def filter(self, record: logging.LogRecord) -> bool:
        return not record.name.startswith(self.prefixes)


def _rotating_handler(path: Path, level: int, max_bytes: int, backups: int,
                      formatter: logging.Formatter) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backups, encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(config: LoggingConfig, filter_noisy_loggers: bool = True) -> logging.Logger:
    """
    Configure the root logger from the ``logging`` configuration section.

    The console handler writes to stderr, since stdout may carry the crawl
    result. When ``config.file`` is set, a rotating crawl log and a separate
    ``errors.log`` next to it are added as well.

    Args:
        config: Logging configuration section
        filter_noisy_loggers: Drop per-request records from HTTP libraries

    Returns:
        The configured root logger
    """
    level = getattr(logging, config.level.upper(), logging.INFO)
    formatter = JSONFormatter() if config.json else logging.Formatter(config.format)
    handlers = []

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(formatter)
    handlers.append(console)

    if config.file:
        log_file = Path(config.file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(_rotating_handler(
            log_file, logging.DEBUG, CRAWL_LOG_MAX_BYTES, CRAWL_LOG_BACKUPS, formatter
        ))
        handlers.append(_rotating_handler(
            log_file.parent / 'errors.log', logging.ERROR,
            ERROR_LOG_MAX_BYTES, ERROR_LOG_BACKUPS, formatter
        ))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    for handler in handlers:
        if filter_noisy_loggers:
            handler.addFilter(NoisyLoggerFilter())
        root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.info(
        f"Logging initialized (level={config.level}, file={config.file or 'disabled'}, "
        f"json={config.json})"
    )
    return root_logger


def get_crawler_logger(name: str, **context) -> CrawlerLogAdapter:
    """Logger for ``name`` whose records all carry ``context`` as extra fields."""
    return CrawlerLogAdapter(logging.getLogger(name), context)


def log_system_info():
    """Log the host the crawl runs on; worker defaults depend on the CPU count."""
    logger = logging.getLogger(__name__)
    memory = psutil.virtual_memory()

    logger.info("=== SYSTEM INFORMATION ===")
    logger.info(f"Platform: {platform.platform()} (Python {platform.python_version()})")
    logger.info(f"CPU cores: {psutil.cpu_count(logical=True)} logical, "
                f"{psutil.cpu_count(logical=False) or 'unknown'} physical")
    logger.info(f"Memory: {memory.available / 1024**3:.1f} GB available "
                f"of {memory.total / 1024**3:.1f} GB")
    logger.debug(f"Process RSS: {psutil.Process(os.getpid()).memory_info().rss / 1024**2:.1f} MB")

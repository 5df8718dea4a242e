# migrator/core/logging.py
"""
Logging for the migrator.

Every logger lives under the ``migrator`` namespace. Call sites attach
keyword context (stage, phase, batch_index, offset, ...) which is kept on
the record as one dict and rendered after the message, either as
``key=value`` pairs or, in structured mode, as a single JSON line.
"""

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

DEBUG = logging.DEBUG
INFO = logging.INFO
WARNING = logging.WARNING
ERROR = logging.ERROR
CRITICAL = logging.CRITICAL

ROOT_LOGGER = 'migrator'
CONTEXT_FIELD = 'migration_context'

# Rendered first, in this order; anything else follows alphabetically
LEADING_KEYS = ('stage', 'phase', 'method', 'collection', 'page_index', 'batch_index', 'offset', 'count')


def _ordered_context(context: Dict[str, Any]) -> List[tuple]:
    leading = [(key, context[key]) for key in LEADING_KEYS if key in context]
    rest = sorted((key, value) for key, value in context.items() if key not in LEADING_KEYS)
    return leading + rest


class MigratorFormatter(logging.Formatter):
    def __init__(self, include_context: bool = True, structured: bool = False):
        super().__init__()
        self.include_context = include_context
        self.structured = structured

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created)
        context = getattr(record, CONTEXT_FIELD, None) or {}

        if self.structured:
            entry = {
                "time": created.isoformat(timespec='milliseconds'),
                "level": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
                **dict(_ordered_context(context)),
            }
            if record.exc_info:
                entry["exception"] = self.formatException(record.exc_info)
            return json.dumps(entry, default=str)

        line = f"{created:%Y-%m-%d %H:%M:%S}.{created.microsecond // 1000:03d} {record.levelname:<7} {record.name}: {record.getMessage()}"
        if self.include_context and context:
            line += " | " + " ".join(f"{key}={value}" for key, value in _ordered_context(context))
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class MigratorLogger:
    """Process-wide logging setup for the ``migrator`` logger tree"""

    _configured = False
    _log_level = logging.INFO

    @classmethod
    def configure(cls,
                  log_dir: Optional[Path] = None,
                  log_level: str = "INFO",
                  console_enabled: bool = True,
                  file_enabled: bool = False,
                  structured_format: bool = False,
                  force: bool = False) -> None:
        """
        Install the handlers once per process; ``force`` replaces them.

        Console output goes to stdout. With ``file_enabled`` two files are
        written under ``log_dir``: migrator.log (everything at the level)
        and migrator_errors.log (errors only).
        """
        if cls._configured and not force:
            return

        cls._log_level = getattr(logging, log_level.upper(), logging.INFO)

        root = logging.getLogger(ROOT_LOGGER)
        root.setLevel(cls._log_level)
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()

        for handler in cls._build_handlers(log_dir, console_enabled, file_enabled, structured_format):
            root.addHandler(handler)

        cls._configured = True

    @classmethod
    def _build_handlers(cls, log_dir: Optional[Path], console_enabled: bool,
                        file_enabled: bool, structured_format: bool) -> List[logging.Handler]:
        handlers: List[logging.Handler] = []

        if console_enabled:
            console = logging.StreamHandler(sys.stdout)
            console.setLevel(cls._log_level)
            console.setFormatter(MigratorFormatter(structured=structured_format))
            handlers.append(console)

        if file_enabled and log_dir:
            log_dir.mkdir(parents=True, exist_ok=True)
            file_formatter = MigratorFormatter(structured=structured_format)
            for filename, level in (('migrator.log', cls._log_level),
                                    ('migrator_errors.log', logging.ERROR)):
                file_handler = logging.FileHandler(log_dir / filename)
                file_handler.setLevel(level)
                file_handler.setFormatter(file_formatter)
                handlers.append(file_handler)

        return handlers

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        if not cls._configured:
            cls.configure()
        if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + '.'):
            name = f'{ROOT_LOGGER}.{name}'
        return logging.getLogger(name)


def get_class_logger(instance) -> logging.Logger:
    """migrator.pipeline.extractor.Extractor -> logger 'migrator.pipeline.extractor.Extractor'"""
    cls = type(instance)
    return MigratorLogger.get_logger(f"{cls.__module__}.{cls.__name__}")


def log_with_context(logger: logging.Logger, level: int, message: str, **context) -> None:
    logger.log(level, message, extra={CONTEXT_FIELD: context})


class LoggingMixin:
    """Per-class logger plus log_* helpers that take keyword context"""

    @property
    def logger(self) -> logging.Logger:
        if '_logger' not in self.__dict__:
            self._logger = get_class_logger(self)
        return self._logger

    def log_debug(self, message: str, **context) -> None:
        log_with_context(self.logger, DEBUG, message, **context)

    def log_info(self, message: str, **context) -> None:
        log_with_context(self.logger, INFO, message, **context)

    def log_warning(self, message: str, **context) -> None:
        log_with_context(self.logger, WARNING, message, **context)

    def log_error(self, message: str, **context) -> None:
        log_with_context(self.logger, ERROR, message, **context)

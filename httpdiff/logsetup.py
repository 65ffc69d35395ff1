"""Logging set-up: JSON lines to a rotating file, optionally text to stdout."""

import json
import logging
import os
import sys
import time
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOGGER_NAME = "httpdiff"
DEFAULT_PATH = "./"
DEFAULT_FILE_NAME = "server.log"
DEFAULT_LEVEL = logging.DEBUG
DEFAULT_MAX_SIZE = 100
DEFAULT_MAX_BACKUPS = 30
DEFAULT_MAX_AGE = 28

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}
_LEVEL_NAMES = {logging.WARNING: "WARN", logging.CRITICAL: "FATAL"}
_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "taskName",
}

_logger = None


class JsonFormatter(logging.Formatter):
    """Formats a record as one JSON object, with extra record attributes as fields."""

    def __init__(self, project_name=None):
        super().__init__()
        self.project_name = project_name

    def _entry(self, record):
        stamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")
        entry = {
            "time": f"{stamp}.{int(record.msecs):03d}",
            "level": _LEVEL_NAMES.get(record.levelno, record.levelname),
            "caller": f"{Path(record.pathname).parent.name}/{record.filename}:{record.lineno}",
            "message": record.getMessage(),
        }
        fields = {}
        if self.project_name is not None:
            fields["projectName"] = self.project_name
        fields.update(
            (key, value) for key, value in vars(record).items() if key not in _RESERVED
        )
        stack = None
        if record.exc_info:
            stack = self.formatException(record.exc_info)
        elif record.stack_info:
            stack = self.formatStack(record.stack_info)
        return entry, fields, stack

    def format(self, record):
        entry, fields, stack = self._entry(record)
        entry.update(fields)
        if stack:
            entry["stack"] = stack
        return json.dumps(entry, ensure_ascii=False, default=str)


class _ConsoleFormatter(JsonFormatter):
    def format(self, record):
        entry, fields, stack = self._entry(record)
        line = "\t".join(entry.values())
        if fields:
            line += "\t" + json.dumps(fields, ensure_ascii=False, default=str)
        if stack:
            line += "\n" + stack
        return line


class _RotatingFileHandler(RotatingFileHandler):
    """Size-based rotation that also removes backups older than ``max_age`` days."""

    def __init__(self, filename, max_bytes, backup_count, max_age_days):
        super().__init__(
            filename, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8", delay=True
        )
        self.max_age_days = max_age_days

    def doRollover(self):
        super().doRollover()
        cutoff = time.time() - self.max_age_days * 86400
        base = Path(self.baseFilename)
        for backup in base.parent.glob(base.name + ".*"):
            if backup.suffix[1:].isdigit() and backup.stat().st_mtime < cutoff:
                backup.unlink(missing_ok=True)


def init_logger(project_name, logger_config):
    """Configure the package logger from a ``LoggerConfig`` and return it."""
    global _logger

    file_path = logger_config.path or DEFAULT_PATH
    file_name = logger_config.file_name or DEFAULT_FILE_NAME
    log_file = os.path.join(file_path, file_name)
    print("log file:", log_file)

    level = _LEVELS.get(logger_config.level.upper(), DEFAULT_LEVEL)
    max_size = logger_config.max_size if logger_config.max_size > 0 else DEFAULT_MAX_SIZE
    max_backups = logger_config.max_backups if logger_config.max_backups > 0 else DEFAULT_MAX_BACKUPS
    max_age = logger_config.max_age if logger_config.max_age > 0 else DEFAULT_MAX_AGE

    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(level)
    logger.propagate = False

    os.makedirs(file_path, exist_ok=True)
    file_handler = _RotatingFileHandler(log_file, max_size * 1024 * 1024, max_backups, max_age)
    file_handler.setFormatter(JsonFormatter(project_name))
    logger.addHandler(file_handler)

    if logger_config.console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(_ConsoleFormatter(project_name))
        logger.addHandler(console_handler)

    _logger = logger
    return logger


def get_logger():
    """Return the configured package logger."""
    if _logger is None:
        raise RuntimeError("logger is not initialised, call init_logger first")
    return _logger
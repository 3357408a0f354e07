# src/taskpilot/logging_setup.py

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FILE_NAME = "taskpilot.log"

# Modules that log once or more per handled command. The REPL already prints
# the rendered Outcome, so their INFO lines only go to the file.
_PER_COMMAND_LOGGERS = ("taskpilot.tasks.", "taskpilot.intent.", "taskpilot.llm.")

_LEVEL_ALIASES = {"WARN": "WARNING", "FATAL": "CRITICAL"}


def resolve_level(raw: str | int | None, default: int = logging.INFO) -> int:
    """TASKPILOT_LOG_LEVEL value ("debug", "WARN", "10") -> logging level."""
    if isinstance(raw, int):
        return raw
    name = str(raw or "").strip().upper()
    if not name:
        return default
    if name.isdigit():
        return int(name)
    level = logging.getLevelName(_LEVEL_ALIASES.get(name, name))
    return level if isinstance(level, int) else default


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the interactive console readable:
    - per-command taskpilot logs (dispatcher, resolver, interpreter, LLM) only at WARNING+
    - other taskpilot logs (startup, bootstrap) as configured
    - third-party libraries and captured py.warnings only at ERROR+
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name

        if name.startswith(_PER_COMMAND_LOGGERS):
            return record.levelno >= logging.WARNING

        if name == "taskpilot" or name.startswith("taskpilot."):
            return True

        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/taskpilot",
    level: str | int | None = logging.INFO,
    file_level: int = logging.DEBUG,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
) -> Path:
    """
    Configure logging with:
    - Console handler (stderr): filtered for interactive use, at `level`
    - Rotating file handler: full logs for debugging, at `file_level`

    Call this ONCE, very early (before first logger.info). Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(resolve_level(level))
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    fh = RotatingFileHandler(str(log_file), maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    fh.setLevel(file_level)
    fh.setFormatter(fmt)
    root.addHandler(fh)

    # warnings.warn(...) -> 'py.warnings'
    logging.captureWarnings(True)

    # Request/response traces from the LLM stack are too verbose even for the file.
    for noisy in ("httpx", "httpcore", "openai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return log_file

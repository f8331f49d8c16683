"""structlog events rendered as JSON by stdlib handlers."""

from __future__ import annotations

import logging
import logging.config
import os
from collections import deque
from pathlib import Path

import structlog
from pythonjsonlogger import jsonlogger

APP_LOGGER = "tender_harvest"
_JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
_configured = False


def _log_dir() -> Path:
    home = os.environ.get("TENDER_HARVEST_HOME")
    root = Path(home).expanduser().resolve() if home else Path.cwd()
    return root / "logs"


def _file_handler(path: Path, level: str) -> dict:
    return {
        "class": "logging.FileHandler",
        "level": level,
        "filename": str(path),
        "formatter": "json",
        "encoding": "utf-8",
    }


def configure_logging(verbose: bool = False) -> structlog.BoundLogger:
    """Install the handlers once per process and return the application logger."""

    global _configured
    if _configured:
        return structlog.get_logger(APP_LOGGER)

    log_dir = _log_dir()
    (log_dir / "sources").mkdir(parents=True, exist_ok=True)
    level = "DEBUG" if verbose else "INFO"
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"json": {"()": jsonlogger.JsonFormatter, "fmt": _JSON_FORMAT}},
            "handlers": {
                "console": {"class": "logging.StreamHandler", "level": level, "formatter": "json"},
                "harvest_file": _file_handler(log_dir / "harvest.log", "INFO"),
                "error_file": _file_handler(log_dir / "error.log", "ERROR"),
            },
            "loggers": {
                APP_LOGGER: {
                    "handlers": ["console", "harvest_file", "error_file"],
                    "level": level,
                    "propagate": False,
                }
            },
        }
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.add_log_level,
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True
    return structlog.get_logger(APP_LOGGER)


def source_logger(source_id: str) -> structlog.BoundLogger:
    """Logger bound to ``source_id`` that also writes ``logs/sources/<id>.log``."""

    configure_logging()
    path = log_path(source_id)
    path.parent.mkdir(parents=True, exist_ok=True)
    name = f"{APP_LOGGER}.source.{source_id}"
    stdlib_logger = logging.getLogger(name)
    if not any(getattr(h, "baseFilename", None) == str(path) for h in stdlib_logger.handlers):
        handler = logging.FileHandler(path, encoding="utf-8")
        handler.setFormatter(jsonlogger.JsonFormatter(_JSON_FORMAT))
        handler.setLevel(logging.INFO)
        stdlib_logger.addHandler(handler)
    return structlog.get_logger(name).bind(source=source_id)


def log_path(source_id: str | None = None) -> Path:
    if source_id:
        return _log_dir() / "sources" / f"{source_id}.log"
    return _log_dir() / "harvest.log"


def available_source_logs() -> list[Path]:
    return sorted((_log_dir() / "sources").glob("*.log"))


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        return list(deque(stream, maxlen=line_count))


__all__ = [
    "available_source_logs",
    "configure_logging",
    "log_path",
    "source_logger",
    "tail_log",
]

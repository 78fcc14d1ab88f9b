"""
Logging configuration for the research MCP server.

stdout carries the MCP stdio stream, so every handler writes to stderr or
to a rotating file. Tool calls attach ``tool`` and ``request_id`` (and the
cache attaches ``tier``) through ``extra=``; the JSON formatter surfaces them.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from common.config import Settings, settings as default_settings

_EXTRA_FIELDS = ("tool", "tier", "request_id")
_NOISY_LOGGERS = ("httpx", "httpcore", "mcp")
_CONFIGURED_FLAG = "_research_configured"


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        payload.update(
            {name: getattr(record, name) for name in _EXTRA_FIELDS if hasattr(record, name)}
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def _formatter(settings: Settings) -> logging.Formatter:
    if settings.enable_json_logging:
        return JSONFormatter()
    return logging.Formatter(settings.log_format, datefmt="%Y-%m-%d %H:%M:%S")


def _handlers(settings: Settings) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if settings.enable_file_logging:
        Path(settings.log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                filename=settings.log_file,
                maxBytes=settings.log_max_bytes,
                backupCount=settings.log_backup_count,
                encoding="utf-8",
            )
        )
    return handlers


def setup_logging(settings: Optional[Settings] = None) -> logging.Logger:
    """
    Configure the root logger once per process.

    Sets up:
    - stderr console handler
    - rotating file handler when ``enable_file_logging`` is on
    - JSON or plain formatting
    """
    settings = settings or default_settings

    root_logger = logging.getLogger()
    if getattr(root_logger, _CONFIGURED_FLAG, False):
        return root_logger

    level_name = settings.log_level.upper()
    level = getattr(logging, level_name, logging.INFO)
    formatter = _formatter(settings)

    root_logger.setLevel(level)
    root_logger.handlers.clear()
    for handler in _handlers(settings):
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        f"Logging initialized - Level: {level_name} | "
        f"file: {settings.log_file if settings.enable_file_logging else 'disabled'} | "
        f"json: {'on' if settings.enable_json_logging else 'off'}"
    )

    setattr(root_logger, _CONFIGURED_FLAG, True)
    return root_logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)

import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import Optional

from app.core.context import get_operation, get_request_id
from app.core.settings import settings

CLEANUP_LOGGER_NAME = "app.asset_cleanup"


class RequestContextFilter(logging.Filter):
    """Inject request id and lifecycle operation into log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id()
        record.operation = get_operation()
        return True


class JsonFormatter(logging.Formatter):
    """Lightweight JSON formatter to keep logs structured."""

    def __init__(self, stream_label: str = "app") -> None:
        super().__init__()
        self.stream_label = stream_label

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - concise
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "stream": self.stream_label,
            "request_id": getattr(record, "request_id", "-"),
            "operation": getattr(record, "operation", "-"),
        }
        asset_id = getattr(record, "asset_id", None)
        if asset_id:
            payload["asset_id"] = asset_id
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(level: Optional[str] = None) -> None:
    log_level = (level or settings.log_level).upper()
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "request_context": {"()": RequestContextFilter},
            },
            "formatters": {
                "json": {"()": JsonFormatter, "stream_label": "app"},
                "cleanup_json": {"()": JsonFormatter, "stream_label": "asset_cleanup"},
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "level": log_level,
                    "formatter": "json",
                    "filters": ["request_context"],
                    "stream": "ext://sys.stdout",
                },
                "cleanup": {
                    "class": "logging.StreamHandler",
                    "level": log_level,
                    "formatter": "cleanup_json",
                    "filters": ["request_context"],
                    "stream": "ext://sys.stdout",
                },
            },
            "loggers": {
                "": {"handlers": ["default"], "level": log_level, "propagate": False},
                CLEANUP_LOGGER_NAME: {"handlers": ["cleanup"], "level": log_level, "propagate": False},
                "uvicorn": {"handlers": ["default"], "level": log_level, "propagate": False},
                "uvicorn.error": {"handlers": ["default"], "level": log_level, "propagate": False},
                "uvicorn.access": {"handlers": ["default"], "level": log_level, "propagate": False},
            },
        }
    )
    logging.getLogger(__name__).info(
        "Logging configured for environment=%s storage_provider=%s",
        settings.environment,
        settings.storage_provider,
    )


def get_cleanup_logger() -> logging.Logger:
    """Logger for best-effort asset discards; entries feed the orphan sweep."""
    return logging.getLogger(CLEANUP_LOGGER_NAME)

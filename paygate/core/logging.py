"""
Structured logging: one JSON object per line.

Modules log an event-style message plus `extra=`; only fields listed in
JsonFormatter.EXTRA_FIELDS reach the output. The request id of the HTTP
request being served is attached to every record by RequestIdFilter.
"""
import json
import logging
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler

from paygate.core.config import settings

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

# uvicorn's own access log duplicates the http_request line written by the app
QUIET_LOGGERS = ("uvicorn.access",)


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = request_id_var.get()
        return True


class JsonFormatter(logging.Formatter):
    """JSON log formatter with support for extra fields."""

    EXTRA_FIELDS = (
        # http
        "request_id", "path", "method", "status_code", "latency_ms", "error",
        # registry and events
        "event_name", "user", "caller", "token", "amount", "month_price", "year_price",
        "is_yearly", "expiry_ts", "previous_owner", "new_owner", "reason",
        # transfer backends and breakers
        "backend", "breaker_name", "old_state", "new_state",
    )

    def __init__(self, env: str | None = None) -> None:
        super().__init__()
        self.env = env

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.env:
            payload["env"] = self.env

        for field in self.EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def _handler(handler: logging.Handler, formatter: logging.Formatter) -> logging.Handler:
    handler.setFormatter(formatter)
    handler.addFilter(RequestIdFilter())
    return handler


def configure_logging() -> None:
    """Route the root logger through JSON handlers; level and file from settings."""
    formatter = JsonFormatter(env=settings.app_env)
    handlers = [_handler(logging.StreamHandler(), formatter)]
    if settings.log_file:
        handlers.append(
            _handler(
                RotatingFileHandler(
                    settings.log_file,
                    maxBytes=settings.log_max_bytes,
                    backupCount=settings.log_backup_count,
                ),
                formatter,
            )
        )
    root = logging.getLogger()
    root.setLevel(settings.log_level.upper())
    root.handlers = handlers
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

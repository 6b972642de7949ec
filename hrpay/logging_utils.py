from __future__ import annotations

import json
import logging
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

# Attributes every LogRecord carries; anything else arrived through ``extra=``.
_STANDARD_RECORD_FIELDS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime", "taskName"}

_REDACTED_KEYS = frozenset({"password", "new_password", "current_password", "password_hash", "token", "access_token"})

# uvicorn's access log duplicates request_complete
_QUIET_LOGGERS = ("uvicorn.access",)

request_id_var: ContextVar[str | None] = ContextVar("hrpay_request_id", default=None)


def _redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: "***" if key in _REDACTED_KEYS else _redact(item) for key, item in value.items()}
    return value


class RequestContextFilter(logging.Filter):
    """Stamp the current request id on records that did not pass one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            request_id = request_id_var.get()
            if request_id is not None:
                record.request_id = request_id
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            (key, "***" if key in _REDACTED_KEYS else _redact(value))
            for key, value in record.__dict__.items()
            if key not in _STANDARD_RECORD_FIELDS and not key.startswith("_")
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=True)


def setup_json_logging(level: str | int = logging.INFO) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    handler.addFilter(RequestContextFilter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

"""
Structured JSON logging.

Every record carries the service name, environment and, inside a
request, the correlation id. Money and dates passed through `extra`
are written as strings so amounts keep their exact cents.
"""
import logging
from contextvars import ContextVar
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional, Union

from pythonjsonlogger import jsonlogger

from payroll_app.core.config import settings

# Correlation id of the request being served, set by CorrelationIdMiddleware
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

LOG_FORMAT = "%(timestamp) %(level) %(name) %(message)"

QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "PyPDF2", "reportlab")


def json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    def __init__(self, *args, **kwargs):
        kwargs.setdefault("json_default", json_default)
        super().__init__(*args, **kwargs)

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)

        if not log_record.get("timestamp"):
            log_record["timestamp"] = datetime.fromtimestamp(record.created, timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.app_name
        log_record["environment"] = settings.environment

        req_id = request_id_var.get()
        if req_id:
            log_record["request_id"] = req_id


def resolve_level(level: Union[int, str, None]) -> int:
    """Numeric level from an int or a name like "debug"; unknown names fall back to INFO."""
    if level is None:
        level = settings.log_level
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(level: Optional[Union[int, str]] = None) -> None:
    root = logging.getLogger()
    root.setLevel(resolve_level(level))

    # Repeated app imports (tests, reloaders) must not stack handlers
    if not any(isinstance(h.formatter, CustomJsonFormatter) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(CustomJsonFormatter(LOG_FORMAT))
        root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

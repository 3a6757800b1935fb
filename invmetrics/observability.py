"""Logging setup for the metrics service.

Log lines carry the tenant, account and request being processed, taken from
context variables so concurrent requests never mix their fields.
"""
from __future__ import annotations
import logging
import sys
from contextvars import ContextVar
from typing import Optional
import orjson

_tenant_id: ContextVar[Optional[str]] = ContextVar("tenant_id", default=None)
_account_id: ContextVar[Optional[str]] = ContextVar("account_id", default=None)
_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

def set_log_context(tenant_id: Optional[str] = None, account_id: Optional[str] = None,
                    request_id: Optional[str] = None) -> None:
    if tenant_id is not None:
        _tenant_id.set(tenant_id)
    if account_id is not None:
        _account_id.set(account_id)
    if request_id is not None:
        _request_id.set(request_id)

def clear_log_context() -> None:
    _tenant_id.set(None)
    _account_id.set(None)
    _request_id.set(None)

def _context_fields() -> dict:
    fields = {}
    for name, var in (("tenant_id", _tenant_id), ("account_id", _account_id), ("request_id", _request_id)):
        value = var.get()
        if value:
            fields[name] = value
    return fields

class StructuredFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(_context_fields())
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return orjson.dumps(entry).decode("utf-8")

class HumanReadableFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        msg = f"[{self.formatTime(record, self.datefmt)}] {record.levelname:8s} {record.name}: {record.getMessage()}"
        ctx = _context_fields()
        if ctx:
            msg += " [" + ", ".join(f"{k}={v}" for k, v in ctx.items()) + "]"
        if record.exc_info and record.exc_info[1]:
            msg += "\n" + self.formatException(record.exc_info)
        return msg

def configure_logging(environment: str = "development", log_level: str = "INFO", stream=None) -> None:
    """JSON output in production, human-readable lines everywhere else."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stdout)
    if environment == "production":
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(HumanReadableFormatter(datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

"""Session event logging: one human line per event, optional rotating JSON file."""
from __future__ import annotations

import json
import logging
import logging.handlers
import os
import sys
import time
import uuid
from typing import Any, Callable

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
ENABLE_FILE_LOGS = os.getenv("ENABLE_FILE_LOGS", "0") in ("1", "true", "True")
LOG_FILE = os.getenv("LOG_FILE", "logs/session-events.log")
LOG_MAX_BYTES = int(os.getenv("LOG_MAX_BYTES", "5242880"))
LOG_BACKUP_COUNT = int(os.getenv("LOG_BACKUP_COUNT", "5"))

_logger = logging.getLogger("session_events")
_logger.setLevel(LOG_LEVEL)
_logger.propagate = False

_HUMAN_FORMAT = "[%(asctime)s] %(levelname)s %(name)s :: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_HUMAN_KEYS = ("from_state", "to_state", "epoch", "status", "error_kind", "operation", "questions", "overall", "ms")
_SECRET_MARKERS = ("api_key", "password", "token")
_WARNING_KINDS = {"failure", "stale_discarded", "configuration_required", "history_not_recorded"}


def _is_json(record: logging.LogRecord) -> bool:
    return getattr(record, "is_json", False) is True


def _attach(handler: logging.Handler, fmt: str, accept: Callable[[logging.LogRecord], bool]) -> None:
    handler.setLevel(LOG_LEVEL)
    handler.setFormatter(logging.Formatter(fmt, datefmt=_DATE_FORMAT))
    handler.addFilter(accept)
    _logger.addHandler(handler)


def _rotating(path: str) -> logging.Handler:
    return logging.handlers.RotatingFileHandler(path, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT)


def _ensure_handlers() -> None:
    if _logger.handlers:
        return
    _attach(logging.StreamHandler(stream=sys.stdout), _HUMAN_FORMAT, lambda record: not _is_json(record))
    if not ENABLE_FILE_LOGS:
        return

    log_dir = os.path.dirname(LOG_FILE)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    root, ext = os.path.splitext(LOG_FILE)
    _attach(_rotating(LOG_FILE), "%(message)s", _is_json)
    _attach(_rotating(f"{root}-human{ext or '.log'}"), _HUMAN_FORMAT, lambda record: not _is_json(record))


def _redact(fields: dict[str, Any]) -> dict[str, Any]:
    cleaned: dict[str, Any] = {}
    for key, value in fields.items():
        if any(marker in key.lower() for marker in _SECRET_MARKERS):
            cleaned[key] = "***"
        else:
            cleaned[key] = value
    return cleaned


def _format_human(evt: dict[str, Any]) -> str:
    parts = [f"session={evt.get('session_id')}", f"kind={evt.get('kind')}"]
    parts.extend(f"{key}={evt[key]}" for key in _HUMAN_KEYS if key in evt)
    return " ".join(parts)


def _emit(level: int, message: str, is_json: bool) -> None:
    record = _logger.makeRecord(_logger.name, level, "", 0, message, (), None)
    record.is_json = is_json  # type: ignore[attr-defined]
    _logger.handle(record)


def log_event(kind: str, session_id: str, **fields: Any) -> None:
    """Record one session event.

    Failures and discarded results log at WARNING, everything else at INFO.
    Field names that look like credentials are masked before anything is written.
    """

    _ensure_handlers()
    payload: dict[str, Any] = {
        "ts": time.time(),
        "trace": uuid.uuid4().hex,
        "kind": kind,
        "session_id": session_id,
    }
    payload.update(_redact(fields))
    level = logging.WARNING if kind in _WARNING_KINDS else logging.INFO

    _emit(level, _format_human(payload), is_json=False)
    if ENABLE_FILE_LOGS:
        _emit(level, json.dumps(payload, ensure_ascii=False, default=str), is_json=True)


__all__ = ["log_event"]

"""
Logging setup for the wedding photos service.

Levels:
- INFO: business events (sign-in, album created, batch finalized)
- WARNING: client errors, per-file transfer failures, adopted duplicate albums
- ERROR: system errors, upstream failures, orphaned albums

Guest email addresses, upload tokens and OAuth credentials never reach the
NDJSON context; see _SENSITIVE_FIELDS.

Outputs:
- stdout: human-readable text (stderr repeats ERROR and above)
- LOG_DIR/app.log, LOG_DIR/error.log: NDJSON, skipped when LOG_DIR is empty
"""
import contextvars
import json
import logging
import socket
import sys
import uuid
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

from wedding_photos.config import get_settings

_logger = logging.getLogger("wedding_photos")

_SENSITIVE_FIELDS = frozenset(
    {"email", "password", "token", "secret", "authorization", "access_token", "refresh_token"}
)

# Attributes every LogRecord has; anything else on a record came from `extra`.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}

_NOISY_LOGGERS = (
    "uvicorn", "uvicorn.access", "uvicorn.error",
    "httpx", "httpcore", "asyncio",
    "sqlalchemy", "sqlalchemy.engine", "sqlalchemy.pool",
)

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5

request_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "request_id", default=None
)

INSTANCE_IP = (get_settings().instance_ip or "").strip() or socket.gethostname()


def get_request_id() -> Optional[str]:
    return request_id_var.get()


def set_request_id(request_id: Optional[str] = None) -> str:
    """Bind a request id to the current context, minting a 12-char one when absent."""
    rid = request_id or uuid.uuid4().hex[:12]
    request_id_var.set(rid)
    return rid


class FlushingRotatingFileHandler(RotatingFileHandler):
    """Rotating file handler that flushes each record for log shippers tailing the file."""

    def emit(self, record: logging.LogRecord) -> None:
        super().emit(record)
        self.flush()


def _record_context(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _RECORD_ATTRS
        and key not in _SENSITIVE_FIELDS
        and key not in ("event", "instance")
        and value is not None
    }


class JsonLinesFormatter(logging.Formatter):
    """
    One JSON object per record:
    ts, level, instance, rid, event, msg, ctx (the `extra` fields), exc.

    Events used across the service: lifecycle, request, auth, upload, album,
    mirror, media_library, circuit_breaker, retry, db, health.
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        line: dict[str, Any] = {
            "ts": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "instance": INSTANCE_IP,
            "rid": get_request_id(),
            "event": getattr(record, "event", None),
            "msg": record.getMessage(),
            "ctx": _record_context(record) or None,
            "exc": self.formatException(record.exc_info) if record.exc_info else None,
        }
        return json.dumps(
            {k: v for k, v in line.items() if v is not None},
            ensure_ascii=False,
            default=str,
        )


def log_with_context(level: int, message: str, exc_info: bool = False, **context: Any) -> None:
    """
    Log on the service logger with keyword context as `extra`.

        log_info("Album created", event="album", album_id=album.id)

    Keys that collide with LogRecord attributes are dropped, as is request_id
    (the formatter already emits it as rid).
    """
    extra = {
        k: v for k, v in context.items()
        if k not in _RECORD_ATTRS and k != "request_id"
    }
    _logger.log(level, message, exc_info=exc_info, extra=extra)


def log_info(message: str, **context: Any) -> None:
    log_with_context(logging.INFO, message, **context)


def log_warning(message: str, **context: Any) -> None:
    log_with_context(logging.WARNING, message, **context)


def log_error(message: str, exc_info: bool = False, **context: Any) -> None:
    log_with_context(logging.ERROR, message, exc_info=exc_info, **context)


def _stream_handler(stream, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.StreamHandler(stream)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _json_file_handler(path: Path, level: int) -> logging.Handler:
    handler = FlushingRotatingFileHandler(
        path,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(JsonLinesFormatter())
    return handler


def setup_logging() -> None:
    """Install root handlers; DEBUG when settings.debug, INFO otherwise."""
    settings = get_settings()
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if settings.debug else logging.INFO)
    root.handlers.clear()

    text = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    root.addHandler(_stream_handler(sys.stdout, logging.INFO, text))
    root.addHandler(_stream_handler(sys.stderr, logging.ERROR, text))

    log_dir = (settings.log_dir or "").strip()
    if log_dir:
        try:
            directory = Path(log_dir)
            directory.mkdir(parents=True, exist_ok=True)
            root.addHandler(_json_file_handler(directory / "app.log", logging.INFO))
            root.addHandler(_json_file_handler(directory / "error.log", logging.ERROR))
        except OSError as e:
            root.warning("File logging disabled: %s", e)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

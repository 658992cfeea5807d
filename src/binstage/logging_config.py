"""Logging setup for the binstage CLIs.

Records emitted inside ``LogContext(platform=...)`` carry that platform: the
text format appends ``[platform=...]`` and the JSON format adds a
``platform`` key. Error fields passed as ``extra=exc.as_log_fields()`` are
emitted by the JSON format. Every rendered line goes through
``binstage.secrets`` redaction.
"""

from __future__ import annotations

import contextvars
import json
import logging
import time
from typing import Any

from binstage.secrets import redact_string, redact_structure

TEXT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
ERROR_FIELDS = ("error_code", "error_message", "error_context")

_CONFIGURED = False

_log_context: contextvars.ContextVar[dict[str, Any] | None] = contextvars.ContextVar(
    "binstage_log_context", default=None
)


def get_log_context() -> dict[str, Any]:
    ctx = _log_context.get()
    return dict(ctx) if ctx else {}


class LogContext:
    """Bind fields (e.g. ``platform``) to every record emitted inside the block."""

    def __init__(self, **fields: Any) -> None:
        self.fields = fields
        self._token: contextvars.Token | None = None

    def __enter__(self) -> LogContext:
        self._token = _log_context.set({**get_log_context(), **self.fields})
        return self

    def __exit__(self, *exc_info: Any) -> None:
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None


def _render_message(record: logging.LogRecord) -> str:
    msg = redact_structure(record.msg)
    args = redact_structure(record.args)
    if not args:
        return redact_string(str(msg))
    try:
        return redact_string(str(msg) % args)
    except (TypeError, ValueError):
        return redact_string(str(msg))


class TextFormatter(logging.Formatter):
    converter = time.gmtime

    def __init__(self) -> None:
        super().__init__(TEXT_FORMAT)

    def formatMessage(self, record: logging.LogRecord) -> str:
        record.message = _render_message(record)
        line = super().formatMessage(record)
        platform = get_log_context().get("platform")
        return f"{line} [platform={platform}]" if platform else line

    def formatException(self, ei: Any) -> str:
        return redact_string(super().formatException(ei))


class JsonFormatter(logging.Formatter):
    converter = time.gmtime

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%SZ"),
            "level": record.levelname,
            "logger": record.name,
            "message": _render_message(record),
        }
        context = get_log_context()
        if "platform" in context:
            payload["platform"] = context["platform"]
        if context:
            payload["context"] = redact_structure(context)
        for key in ERROR_FIELDS:
            if hasattr(record, key):
                payload[key] = redact_structure(getattr(record, key))
        if record.exc_info:
            payload["exc_info"] = redact_string(self.formatException(record.exc_info))
        return json.dumps(payload, ensure_ascii=False, default=str)


def _resolve_level(level: str | int | None) -> int:
    if isinstance(level, int):
        return level
    if level is None:
        return logging.INFO
    return logging._nameToLevel.get(str(level).upper(), logging.INFO)


def configure_logging(*, level: str | int | None = None, fmt: str = "text") -> None:
    """Install one stderr handler on the root logger; later calls are no-ops."""
    global _CONFIGURED
    if _CONFIGURED:
        return

    root = logging.getLogger()
    root.setLevel(_resolve_level(level))
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(JsonFormatter() if fmt.lower() == "json" else TextFormatter())
        root.addHandler(handler)

    _CONFIGURED = True


def add_logging_args(parser: Any) -> None:
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        default="text",
        choices=["text", "json"],
        help="Logging format (default: text)",
    )

"""
nextcloud-installer — per-run JSON-lines log

File: src/nextcloud_installer/observability/logging.py
Last updated: 2026-10-18

Purpose
- Write one JSON object per line to ``<log_dir>/<run_id>/installer.jsonl`` for each run.
- Records are queued on the calling thread and written by a listener thread, so the
  interactive session never waits on the disk.
- Every record carries ``run_id`` plus the ``attempt`` and ``step`` bound by
  ``correlation_scope``.
- Operator secrets never reach the file. Sensitive keys, ``key=value`` assignments
  and ``IDENTIFIED BY '...'`` clauses are masked.
"""

from __future__ import annotations

import contextvars
import json
import logging
import logging.handlers
import queue
import re
import sys
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from types import MappingProxyType
from typing import Final

import structlog

JSONValue = str | int | float | bool | None | list["JSONValue"] | dict[str, "JSONValue"]

REDACTED: Final[str] = "***REDACTED***"
LOG_FILENAME: Final[str] = "installer.jsonl"
ROOT_LOGGER_NAME: Final[str] = "nextcloud_installer"
DEFAULT_LOG_DIR: Final[Path] = Path("/var/log/nextcloud-installer")

_SECRET_KEY: Final[re.Pattern[str]] = re.compile(r"(?i)pass|pwd|secret|credential|token")
_SECRET_ASSIGNMENT: Final[re.Pattern[str]] = re.compile(
    r"(?i)\b(password|passwd|pass|secret|token|credential|mysql_pwd)\b\s*([:=])\s*([^\s,;]+)"
)
_IDENTIFIED_BY: Final[re.Pattern[str]] = re.compile(r"(?i)\b(identified\s+by)\s+'(?:[^'\\]|\\.)*'")

# Attributes every LogRecord has; anything else on a record is an event field.
_RECORD_ATTRIBUTES: Final[frozenset[str]] = frozenset(vars(logging.makeLogRecord({}))) | {
    "message",
    "asctime",
    "correlation",
}

_CORRELATION: contextvars.ContextVar[Mapping[str, str]] = contextvars.ContextVar(
    "nextcloud_installer_correlation", default=MappingProxyType({})
)

_active: RunLog | None = None


@dataclass(slots=True)
class RunLog:
    """The open log of one installer run."""

    run_id: str
    log_path: Path
    logger: logging.Logger
    queue_handler: logging.handlers.QueueHandler = field(repr=False)
    listener: logging.handlers.QueueListener = field(repr=False)
    sinks: tuple[logging.Handler, ...] = field(repr=False)
    closed: bool = False

    def close(self) -> None:
        if self.closed:
            return
        # Stopping the listener drains every queued record into the sinks first.
        self.listener.stop()
        self.logger.removeHandler(self.queue_handler)
        self.queue_handler.close()
        for sink in self.sinks:
            sink.close()
        self.closed = True


def setup_logging(
    observability_settings: Mapping[str, object] | None = None,
    *,
    run_id: str,
    log_dir: Path | str | None = None,
    logger_name: str = ROOT_LOGGER_NAME,
) -> RunLog:
    """Open the run log described by the ``[observability]`` settings section.

    ``log_dir`` (from ``--log-dir``) wins over the section's ``log_dir``. Any run log
    still open is closed first.
    """

    global _active
    shutdown_logging()

    settings = dict(observability_settings or {})
    run_id = run_id.strip()
    if not run_id:
        raise ValueError("run_id must not be empty")
    level = _parse_level(settings.get("log_level", "INFO"))
    base_dir = Path(str(settings.get("log_dir", DEFAULT_LOG_DIR) if log_dir is None else log_dir))

    log_path = base_dir / run_id / LOG_FILENAME
    log_path.parent.mkdir(parents=True, exist_ok=True)

    formatter = _JsonLineFormatter(redact=bool(settings.get("redact_secrets", True)))
    sinks: list[logging.Handler] = [logging.FileHandler(log_path, encoding="utf-8")]
    if settings.get("log_to_stdout", False):
        sinks.append(logging.StreamHandler(sys.stdout))
    for sink in sinks:
        sink.setFormatter(formatter)

    log_queue: queue.SimpleQueue[logging.LogRecord] = queue.SimpleQueue()
    queue_handler = logging.handlers.QueueHandler(log_queue)
    queue_handler.addFilter(_CorrelationStamp(run_id))
    listener = logging.handlers.QueueListener(log_queue, *sinks)

    logger = logging.getLogger(logger_name)
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()
    logger.setLevel(level)
    logger.propagate = False
    logger.addHandler(queue_handler)
    listener.start()

    _active = RunLog(
        run_id=run_id,
        log_path=log_path,
        logger=logger,
        queue_handler=queue_handler,
        listener=listener,
        sinks=tuple(sinks),
    )
    configure_structlog()
    return _active


def shutdown_logging(run_log: RunLog | None = None) -> None:
    """Close ``run_log`` (default: the active one). Safe to call twice."""

    global _active
    target = run_log if run_log is not None else _active
    if target is None:
        return
    target.close()
    if target is _active:
        _active = None


def configure_structlog() -> None:
    """Send ``structlog`` events through stdlib logging into the run log.

    Event keyword arguments become record attributes and land under ``fields``.
    """

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.stdlib.render_to_log_kwargs,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def current_correlation() -> dict[str, str]:
    return dict(_CORRELATION.get())


@contextmanager
def correlation_scope(**values: str | int | None) -> Iterator[None]:
    """Bind ``attempt``/``step`` for records logged inside the block; ``None`` unbinds."""

    merged = current_correlation()
    for key, value in values.items():
        if value is None:
            merged.pop(key, None)
        else:
            merged[key] = str(value)
    token = _CORRELATION.set(MappingProxyType(merged))
    try:
        yield
    finally:
        _CORRELATION.reset(token)


def redact_value(value: JSONValue, key: str | None = None) -> JSONValue:
    """Mask values under sensitive keys and secrets embedded in strings, recursively."""

    if key is not None and _SECRET_KEY.search(key):
        return REDACTED
    if isinstance(value, str):
        masked = _SECRET_ASSIGNMENT.sub(lambda m: f"{m.group(1)}{m.group(2)}{REDACTED}", value)
        return _IDENTIFIED_BY.sub(lambda m: f"{m.group(1)} '{REDACTED}'", masked)
    if isinstance(value, list):
        return [redact_value(item) for item in value]
    if isinstance(value, dict):
        return {name: redact_value(item, name) for name, item in value.items()}
    return value


class _CorrelationStamp(logging.Filter):
    """Copies the caller's correlation onto the record before it crosses the queue."""

    def __init__(self, run_id: str) -> None:
        super().__init__()
        self._run_id = run_id

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation = {"run_id": self._run_id, **current_correlation()}
        return True


class _JsonLineFormatter(logging.Formatter):
    def __init__(self, *, redact: bool) -> None:
        super().__init__()
        self._redact = redact

    def format(self, record: logging.LogRecord) -> str:
        event: dict[str, JSONValue] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        event.update(getattr(record, "correlation", {}))
        fields = {
            name: _jsonable(value)
            for name, value in vars(record).items()
            if name not in _RECORD_ATTRIBUTES and not name.startswith("_")
        }
        if fields:
            event["fields"] = fields
        payload = redact_value(event) if self._redact else event
        return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _jsonable(value: object) -> JSONValue:
    # Events carry scalars, names, paths and lists of names.
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Mapping):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return str(value)


def _parse_level(value: object) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    level = logging.getLevelNamesMapping().get(str(value).strip().upper())
    if level is None:
        raise ValueError(f"unsupported logging level {value!r}")
    return level


__all__ = [
    "JSONValue",
    "REDACTED",
    "RunLog",
    "configure_structlog",
    "correlation_scope",
    "current_correlation",
    "redact_value",
    "setup_logging",
    "shutdown_logging",
]

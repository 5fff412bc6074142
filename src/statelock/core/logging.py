"""Logging helpers for statelock."""

from __future__ import annotations

import contextlib
import json
import logging
import os
import re
import sys
from datetime import UTC, datetime
from typing import TextIO

from statelock.core.constants import LOG_LEVEL_ENV

_LOG_RECORD_RESERVED_FIELDS = set(logging.makeLogRecord({}).__dict__.keys()) | {"message", "asctime"}
_REDACTED_VALUE = "[REDACTED]"
_REDACTED_ATTR = "_statelock_redacted"
_VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Matched against normalized (snake_case) field names
_SENSITIVE_FIELD_PARTS = {"secret", "password", "passwd", "token", "credential", "authorization"}
_SENSITIVE_FIELD_SUFFIXES = (("access", "key"), ("account", "key"), ("api", "key"), ("private", "key"))

_SENSITIVE_KEY_REGEX = (
    r"arm[_-]?access[_-]?key|account[_-]?key|access[_-]?key|secret[_-]?access[_-]?key|"
    r"aws[_-]?secret[_-]?access[_-]?key|session[_-]?token|password|secret|token"
)
_SENSITIVE_KEY_VALUE_PATTERN = re.compile(
    rf"""(?ix)
    (?P<key>["']?(?<![A-Za-z0-9_])(?:{_SENSITIVE_KEY_REGEX})(?![A-Za-z0-9_])["']?)
    (?P<separator>\s*[:=]\s*)
    (?P<value>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*'|[^,\s;}}\]]+)
    """
)
# Azure storage connection strings embed the key as AccountKey=...;
_CONNECTION_STRING_KEY_PATTERN = re.compile(r"(?i)(AccountKey=)([^;\s]+)")


def _normalize_field_name(name: str) -> str:
    separated = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", name.strip())
    return re.sub(r"[^a-z0-9]+", "_", separated.lower()).strip("_")


def _is_sensitive_field(name: str) -> bool:
    parts = [p for p in _normalize_field_name(name).split("_") if p]
    if not parts:
        return False
    if _SENSITIVE_FIELD_PARTS.intersection(parts):
        return True
    return any(tuple(parts[-2:]) == suffix for suffix in _SENSITIVE_FIELD_SUFFIXES)


def _redact_value_match(match: re.Match[str]) -> str:
    value = match.group("value")
    if value.startswith(_REDACTED_VALUE[:-1]):
        return match.group(0)
    if len(value) >= 2 and value[0] in {"'", '"'} and value[-1] == value[0]:
        redacted = f"{value[0]}{_REDACTED_VALUE}{value[0]}"
    else:
        redacted = _REDACTED_VALUE
    return f"{match.group('key')}{match.group('separator')}{redacted}"


def redact_message(message: str) -> str:
    """Mask secrets that appear as key=value or key: value pairs in text."""
    redacted = _CONNECTION_STRING_KEY_PATTERN.sub(rf"\1{_REDACTED_VALUE}", message)
    return _SENSITIVE_KEY_VALUE_PATTERN.sub(_redact_value_match, redacted)


def _redact_value(value: object) -> object:
    if isinstance(value, dict):
        return {k: (_REDACTED_VALUE if _is_sensitive_field(str(k)) else _redact_value(v)) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(_redact_value(item) for item in value)
    if isinstance(value, str):
        return redact_message(value)
    return value


def _safe_record_message(record: logging.LogRecord) -> str:
    try:
        return record.getMessage()
    except Exception:
        # Bad placeholders must not take the caller down with them
        return f"{record.msg!s} [log-message-format-error]"


def _record_extras(record: logging.LogRecord) -> dict[str, object]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if isinstance(key, str) and key not in _LOG_RECORD_RESERVED_FIELDS and not key.startswith("_")
    }


class SensitiveDataFilter(logging.Filter):
    """Best-effort redaction of access keys and tokens in log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.__dict__.get(_REDACTED_ATTR):
            return True

        record.msg = redact_message(_safe_record_message(record))
        record.args = ()

        for key, value in _record_extras(record).items():
            if _is_sensitive_field(key):
                record.__dict__[key] = _REDACTED_VALUE
            else:
                with contextlib.suppress(Exception):
                    record.__dict__[key] = _redact_value(value)

        record.__dict__[_REDACTED_ATTR] = True
        return True


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging output.

    Each record becomes one JSON object on one line; fields attached with
    `extra=` or with_log_context() are merged into the object.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": _safe_record_message(record),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "process": record.process,
            "thread_name": record.threadName,
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        for key, value in _record_extras(record).items():
            log_entry.setdefault(key, value)

        return json.dumps(log_entry, default=str)


class ContextLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that merges contextual fields into record extras."""

    def process(self, msg, kwargs):
        merged_extra = dict(self.extra or {})
        extra = kwargs.get("extra")
        if isinstance(extra, dict):
            merged_extra.update(extra)
        kwargs["extra"] = merged_extra
        return msg, kwargs


def with_log_context(
    logger: logging.Logger | logging.LoggerAdapter, **context: object
) -> logging.LoggerAdapter:
    """Return a logger enriched with persistent contextual fields.

    Typical fields are backend and resource, so every line a lock emits
    can be attributed in aggregated logs.
    """
    base = logger
    existing: dict[str, object] = {}
    if isinstance(logger, logging.LoggerAdapter):
        existing = dict(logger.extra or {})
        base = logger.logger
    existing.update({k: v for k, v in context.items() if v is not None})
    return ContextLoggerAdapter(base, existing)


def setup_logging(
    log_level: str | None = None,
    log_format: str = "text",
    stream: TextIO | None = None,
) -> logging.Logger:
    """Configure root logging for the statelock CLI.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_format: "text" (default) or "json" for structured logging
        stream: Output stream (default: stderr, so stdout stays machine-readable)

    Returns:
        The "statelock" package logger

    Priority: 1) Passed parameter, 2) Environment variable LOG_LEVEL, 3) Default INFO
    """
    if log_level is None:
        log_level = os.environ.get(LOG_LEVEL_ENV, "INFO")

    if log_level.upper() not in _VALID_LEVELS:
        print(f"Warning: Invalid log level '{log_level}', using INFO", file=sys.stderr)
        log_level = "INFO"
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    for handler in logging.root.handlers[:]:
        handler.close()
        logging.root.removeHandler(handler)

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    if log_format.lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(name)s - %(message)s"))
    handler.setLevel(numeric_level)
    handler.addFilter(SensitiveDataFilter())

    logging.root.addHandler(handler)
    logging.root.setLevel(numeric_level)

    # The SDKs are chatty at INFO (every HTTP request); keep them at WARNING
    # unless the operator explicitly asked for DEBUG.
    sdk_level = logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
    for name in ("azure", "botocore", "boto3", "urllib3"):
        logging.getLogger(name).setLevel(sdk_level)

    logger = logging.getLogger("statelock")
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
    return logger

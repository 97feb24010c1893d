"""A structured-log writer that turns JSON log lines into telemetry log records."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1

_LEVELS = {"trace", "debug", "info", "warn", "error", "fatal", "panic", "", "disabled"}


class Severity(IntEnum):
    """Log record severities as numbered by OpenTelemetry."""

    TRACE = 1
    DEBUG = 5
    INFO = 9
    WARN = 13
    ERROR = 17
    FATAL = 21


@dataclass(frozen=True)
class Value:
    """A typed log attribute value."""

    kind: str
    data: Any

    @classmethod
    def of_bool(cls, value: bool) -> Value:
        return cls("bool", value)

    @classmethod
    def of_int(cls, value: int) -> Value:
        return cls("int64", value)

    @classmethod
    def of_float(cls, value: float) -> Value:
        return cls("float64", value)

    @classmethod
    def of_str(cls, value: str) -> Value:
        return cls("string", value)

    @classmethod
    def of_slice(cls, *values: Value) -> Value:
        return cls("slice", tuple(values))

    @classmethod
    def of_map(cls, *kvs: KeyValue) -> Value:
        return cls("map", tuple(kvs))


@dataclass(frozen=True)
class KeyValue:
    """A named log attribute."""

    key: str
    value: Value


@dataclass
class LogRecord:
    """A log record ready to be emitted."""

    severity: Severity | None = None
    severity_text: str = ""
    body: Value | None = None
    attributes: list[KeyValue] = field(default_factory=list)


_TO_LOGGING = {
    Severity.TRACE: logging.DEBUG,
    Severity.DEBUG: logging.DEBUG,
    Severity.INFO: logging.INFO,
    Severity.WARN: logging.WARNING,
    Severity.ERROR: logging.ERROR,
    Severity.FATAL: logging.CRITICAL,
}


def _emit_to_logging(record: LogRecord) -> None:
    logger = logging.getLogger("otel-zerolog")
    level = _TO_LOGGING.get(record.severity, logging.INFO)
    message = record.body.data if record.body is not None else ""
    logger.log(level, "%s", message, extra={"otel_attributes": record.attributes})


def convert_level(level: str) -> Severity:
    """Return the telemetry severity for a structured-log level name."""
    match level:
        case "trace":
            return Severity.TRACE
        case "debug":
            return Severity.DEBUG
        case "info":
            return Severity.INFO
        case "warn":
            return Severity.WARN
        case "error":
            return Severity.ERROR
        case "fatal" | "panic":
            return Severity.FATAL
        case _:
            return Severity.INFO


def _number_value(val: int | float) -> Value:
    if isinstance(val, int):
        if _INT64_MIN <= val <= _INT64_MAX:
            return Value.of_int(val)
        return Value.of_float(float(val))
    if val.is_integer() and _INT64_MIN <= val <= _INT64_MAX:
        return Value.of_int(int(val))
    return Value.of_float(val)


def _value_for(key: str, val: Any) -> Value:
    if isinstance(val, bool):
        return Value.of_bool(val)
    if isinstance(val, (int, float)):
        return _number_value(val)
    if isinstance(val, str):
        return Value.of_str(val)
    if isinstance(val, Mapping):
        return Value.of_map(*key_values_for_map(val))
    if isinstance(val, Sequence):
        return Value.of_slice(*values_for_slice(val))
    raise TypeError(f"type of {key!r} => {type(val).__name__}: not known")


def key_values_for_map(mapping: Mapping[str, Any]) -> list[KeyValue]:
    """Convert decoded JSON object members into typed attributes."""
    return [KeyValue(key, _value_for(key, val)) for key, val in mapping.items()]


def values_for_slice(values: Sequence[Any]) -> list[Value]:
    """Convert decoded JSON array items into typed values."""
    return [_value_for(repr(val), val) for val in values]


class OtelWriter:
    """Accepts JSON log lines and emits them as telemetry log records."""

    def __init__(self, emit: Callable[[LogRecord], None] | None = None) -> None:
        self._emit = emit if emit is not None else _emit_to_logging

    def write(self, data: bytes | str) -> int:
        """Decode one JSON log line, emit it, and return its length."""
        entry = json.loads(data)
        if not isinstance(entry, dict):
            raise ValueError("log entry is not a JSON object")

        record = LogRecord()

        level_name = entry.get("level")
        if isinstance(level_name, str):
            level = level_name if level_name in _LEVELS else "info"
            record.severity = convert_level(level)
            record.severity_text = level
            del entry["level"]

        message = entry.get("message")
        if isinstance(message, str):
            record.body = Value.of_str(message)
            del entry["message"]

        record.attributes.extend(key_values_for_map(entry))
        self._emit(record)
        return len(data)

    def write_level(self, level: str, data: bytes | str) -> int:
        """Write ``data``; the level is taken from the line itself."""
        return self.write(data)
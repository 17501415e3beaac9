"""Structured log content built from typed key/value fields."""

from __future__ import annotations

import contextvars
import base64
import dataclasses
import json
import math
import struct
import threading
from decimal import Decimal
from enum import Enum
from typing import Any

from . import logger


class FieldType(Enum):
    SKIP = 0
    BOOL = 1
    FLOAT = 2
    INT = 3
    UINT = 4
    STRING = 5
    OBJECT = 6


_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def _escape_html(text: str) -> str:
    for char, escaped in _HTML_ESCAPES.items():
        text = text.replace(char, escaped)
    return text


def _to_float32(value: float) -> float:
    try:
        return struct.unpack("f", struct.pack("f", value))[0]
    except OverflowError:
        return math.copysign(math.inf, value)


def _format_float32(value: float) -> str:
    """Shortest plain decimal that reads back as the same float32."""
    if math.isnan(value):
        return "NaN"
    f32 = _to_float32(value)
    if math.isinf(f32):
        return "+Inf" if f32 > 0 else "-Inf"
    candidate = repr(f32)
    for digits in range(1, 10):
        text = f"{f32:.{digits}g}"
        if _to_float32(float(text)) == f32:
            candidate = text
            break
    return format(Decimal(candidate), "f")


def _json_default(obj: Any) -> Any:
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    if isinstance(obj, (bytes, bytearray)):
        return base64.b64encode(bytes(obj)).decode("ascii")
    if isinstance(obj, (set, frozenset, tuple)):
        return list(obj)
    if hasattr(obj, "__dict__"):
        return {k: v for k, v in vars(obj).items() if not k.startswith("_")}
    raise TypeError(f"cannot encode {type(obj).__name__}")


def _json(value: Any) -> str:
    try:
        encoded = json.dumps(
            value, separators=(",", ":"), ensure_ascii=False, default=_json_default
        )
    except (TypeError, ValueError):
        return "null"
    return _escape_html(encoded)


@dataclasses.dataclass(frozen=True)
class Field:
    """One key/value pair of structured log output."""

    key: str
    ftype: FieldType
    value: Any = None

    def __str__(self) -> str:
        if self.ftype is FieldType.INT or self.ftype is FieldType.UINT:
            val = str(int(self.value))
        elif self.ftype is FieldType.BOOL:
            val = "true" if self.value else "false"
        elif self.ftype is FieldType.FLOAT:
            val = _format_float32(float(self.value))
        elif self.ftype is FieldType.STRING:
            val = _json(str(self.value))
        elif self.ftype is FieldType.OBJECT:
            val = _json(self.value)
        else:
            return ""
        return f'"{self.key}":{val}'


def skip() -> Field:
    return Field("", FieldType.SKIP)


def error_field(err: BaseException | None) -> Field:
    return named_error("error", err)


def named_error(key: str, err: BaseException | None) -> Field:
    if err is None:
        return skip()
    return Field(key, FieldType.STRING, str(err))


def integer(key: str, value: int) -> Field:
    return Field(key, FieldType.INT, int(value))


def unsigned(key: str, value: int) -> Field:
    return Field(key, FieldType.UINT, int(value))


def float64(key: str, value: float) -> Field:
    return Field(key, FieldType.FLOAT, float(value))


def float32(key: str, value: float) -> Field:
    return float64(key, _to_float32(float(value)))


def text(key: str, value: str) -> Field:
    return Field(key, FieldType.STRING, value)


def object_field(key: str, value: Any) -> Field:
    return Field(key, FieldType.OBJECT, value)


class LogContent:
    """An ordered set of fields, unique by key; thread safe."""

    def __init__(self, *fields: Field) -> None:
        self._lock = threading.Lock()
        self._fields: list[Field] = []
        self._index: dict[str, int] = {}
        self.append(*fields)

    @property
    def fields(self) -> tuple[Field, ...]:
        with self._lock:
            return tuple(self._fields)

    def __len__(self) -> int:
        with self._lock:
            return len(self._fields)

    def append(self, *args: Field) -> None:
        """Add fields; a field whose key is already present replaces it."""
        with self._lock:
            for field in args:
                if field.ftype is FieldType.SKIP:
                    continue
                position = self._index.get(field.key)
                if position is None:
                    self._index[field.key] = len(self._fields)
                    self._fields.append(field)
                else:
                    self._fields[position] = field

    def copy(self) -> LogContent:
        duplicate = LogContent()
        with self._lock:
            duplicate._fields = list(self._fields)
            duplicate._index = dict(self._index)
        return duplicate

    def __str__(self) -> str:
        with self._lock:
            return "{" + ",".join(str(f) for f in self._fields) + "}"

    def log(self, level: int) -> None:
        if level > logger.get_log_level():
            return
        logger.get_logger_func(level)(str(self))

    def log_format(self, level: int, fmt: str, *args: Any) -> None:
        if level > logger.get_log_level():
            return
        handle = logger.get_logger_func(level)
        message = fmt % args if args else fmt
        handle(f"{self} {message}")


_current_content: contextvars.ContextVar[LogContent | None] = contextvars.ContextVar(
    "annego_log_content", default=None
)


def from_context() -> LogContent | None:
    """Return the log content bound to the current context, if any."""
    return _current_content.get()


def to_context(content: LogContent) -> contextvars.Token:
    """Bind ``content`` to the current context; the token undoes it."""
    return _current_content.set(content)
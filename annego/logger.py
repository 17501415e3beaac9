"""Levelled logging to standard output or to syslog, with caller locations."""

from __future__ import annotations

import logging
import os
import re
import sys
import threading
import time
import traceback
from enum import IntEnum
from typing import Any, Callable, Protocol


class LogLevel(IntEnum):
    """Log severities, numbered as syslog numbers them."""

    EMERG = 0
    ERR = 3
    WARNING = 4
    NOTICE = 5
    INFO = 6
    DEBUG = 7


LogHandle = Callable[[str], None]


class _Logger(Protocol):
    def debug(self, message: str) -> None: ...

    def info(self, message: str) -> None: ...

    def notice(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def err(self, message: str) -> None: ...

    def emerg(self, message: str) -> None: ...


def get_program_name() -> str:
    """Return the file name of the running program."""
    if not sys.argv:
        return ""
    return os.path.basename(sys.argv[0])


_syslog_name = get_program_name()
_log_level = int(LogLevel.INFO)


class DefaultLogger:
    """Writes timestamped lines to standard output."""

    def log(self, level: str, message: str) -> None:
        stamp = time.strftime("%Y-%m-%d %H:%M:%S")
        print(stamp, level, f"{_syslog_name}:", message)

    def debug(self, message: str) -> None:
        self.log("debug", message)

    def info(self, message: str) -> None:
        self.log("info", message)

    def notice(self, message: str) -> None:
        self.log("notice", message)

    def warning(self, message: str) -> None:
        self.log("warning", message)

    def err(self, message: str) -> None:
        self.log("err", message)

    def emerg(self, message: str) -> None:
        self.log("emerg", message)


class _SyslogLogger:
    """Sends messages to the system log under the user facility."""

    def __init__(self, syslog_module: Any, ident: str) -> None:
        self._syslog = syslog_module
        syslog_module.openlog(ident, 0, syslog_module.LOG_USER)

    def _write(self, priority: int, message: str) -> None:
        self._syslog.syslog(priority, message)

    def debug(self, message: str) -> None:
        self._write(self._syslog.LOG_DEBUG, message)

    def info(self, message: str) -> None:
        self._write(self._syslog.LOG_INFO, message)

    def notice(self, message: str) -> None:
        self._write(self._syslog.LOG_NOTICE, message)

    def warning(self, message: str) -> None:
        self._write(self._syslog.LOG_WARNING, message)

    def err(self, message: str) -> None:
        self._write(self._syslog.LOG_ERR, message)

    def emerg(self, message: str) -> None:
        self._write(self._syslog.LOG_EMERG, message)


_logger: _Logger = DefaultLogger()
_init_lock = threading.Lock()
_init_done = False
_std_writer: LogWriter | None = None

_METHODS = {
    LogLevel.DEBUG: "debug",
    LogLevel.INFO: "info",
    LogLevel.NOTICE: "notice",
    LogLevel.WARNING: "warning",
    LogLevel.ERR: "err",
    LogLevel.EMERG: "emerg",
}


def init_log() -> None:
    """Send all further log output to syslog; only the first call has effect.

    Raises OSError when the platform has no syslog.
    """
    global _logger, _init_done
    with _init_lock:
        if _init_done:
            return
        _init_done = True
        try:
            import syslog
        except ImportError as exc:
            raise OSError("syslog is not available on this platform") from exc
        _logger = _SyslogLogger(syslog, _syslog_name)


def set_log_level(level: int) -> None:
    global _log_level
    _log_level = int(level)


def get_log_level() -> int:
    return _log_level


def get_logger() -> _Logger:
    return _logger


def _format(fmt: str, args: tuple[Any, ...]) -> str:
    if not args:
        return fmt
    try:
        return fmt % args
    except (TypeError, ValueError):
        return " ".join([fmt, *map(str, args)])


def _emit(level: LogLevel, fmt: str, args: tuple[Any, ...]) -> None:
    if level > _log_level:
        return
    frame = sys._getframe(2)
    prefix = f"[{os.path.basename(frame.f_code.co_filename)}:{frame.f_lineno}] "
    getattr(_logger, _METHODS[level])(prefix + _format(fmt, args))


def debug(fmt: str, *args: Any) -> None:
    _emit(LogLevel.DEBUG, fmt, args)


def info(fmt: str, *args: Any) -> None:
    _emit(LogLevel.INFO, fmt, args)


def notice(fmt: str, *args: Any) -> None:
    _emit(LogLevel.NOTICE, fmt, args)


def warning(fmt: str, *args: Any) -> None:
    _emit(LogLevel.WARNING, fmt, args)


def error(fmt: str, *args: Any) -> None:
    _emit(LogLevel.ERR, fmt, args)


def emerg(fmt: str, *args: Any) -> None:
    _emit(LogLevel.EMERG, fmt, args)


def get_logger_func(level: int) -> LogHandle:
    """Return the current logger's output function for ``level``."""
    try:
        name = _METHODS[LogLevel(level)]
    except ValueError:
        raise ValueError(f"invalid log level: {level}") from None
    return getattr(_logger, name)


class LogWriter:
    """A writable object that logs every complete line written to it."""

    def __init__(self, level: int, prefix: str = "") -> None:
        self.level = int(level)
        self.prefix = prefix
        self._handle = get_logger_func(level)

    def write(self, data: bytes | str) -> int:
        """Log each newline-terminated line of ``data``; return its length."""
        if self.level > _log_level:
            return len(data)
        text = data if isinstance(data, str) else bytes(data).decode("utf-8", errors="replace")
        *lines, _unterminated = text.split("\n")
        for line in lines:
            line = line.rstrip("\r\n")
            self._handle(f"[{self.prefix}] {line}" if self.prefix else line)
        return len(data)


class _StdlogHandler(logging.Handler):
    def __init__(self, writer: LogWriter) -> None:
        super().__init__()
        self._writer = writer

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._writer.write(self.format(record) + "\n")
        except Exception:
            self.handleError(record)


def init_redirect_stdlog(level: int) -> logging.Handler:
    """Route the standard ``logging`` module's output through this logger.

    Returns the handler installed on the root logger.
    """
    global _std_writer
    if _std_writer is not None:
        raise RuntimeError("standard logging is already redirected")
    _std_writer = LogWriter(level, "stdlog")
    handler = _StdlogHandler(_std_writer)
    handler.setFormatter(logging.Formatter("%(filename)s:%(lineno)d: %(message)s"))
    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(logging.DEBUG)
    return handler


def log_panic(level: int, exc: Any) -> None:
    """Log an unexpected error together with its stack trace."""
    if exc is None:
        return
    writer = LogWriter(level, "panic")
    if isinstance(exc, BaseException):
        stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    else:
        stack = "".join(traceback.format_stack())
    writer.write(f"recover message: {exc}\n{stack}")


def log_lines(level: int, text: str) -> None:
    """Log ``text`` one line at a time, skipping empty lines."""
    handle = get_logger_func(level)
    for part in re.split(r"[\r\n]", text):
        if part:
            handle(part)
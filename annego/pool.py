"""A pool of reusable connections with idle and active limits."""

from __future__ import annotations

import contextlib
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Protocol


class Closer(Protocol):
    def close(self) -> Any: ...


class PoolExhausted(Exception):
    """The pool already holds its maximum number of connections."""

    def __init__(self, message: str = "connection pool exhausted") -> None:
        super().__init__(message)


@dataclass
class _IdleConn:
    conn: Closer
    since: float


def _close_quietly(conn: Closer) -> None:
    with contextlib.suppress(Exception):
        conn.close()


class Pool:
    """Keeps idle connections for reuse; thread safe.

    ``dial`` creates a connection.  ``max_idle`` caps the idle connections
    kept, ``max_active`` caps all connections (0 means no limit) and idle
    connections older than ``idle_timeout`` seconds are closed (0 means
    never).
    """

    def __init__(
        self,
        dial: Callable[[], Closer] | None = None,
        max_idle: int = 0,
        max_active: int = 0,
        idle_timeout: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.dial = dial
        self.max_idle = max_idle
        self.max_active = max_active
        self.idle_timeout = idle_timeout
        self._clock = clock
        self._lock = threading.Lock()
        self._active = 0
        self._idle: deque[_IdleConn] = deque()

    def __enter__(self) -> Pool:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def get(self) -> Closer:
        """Return an idle connection, or dial a new one when none is left."""
        now = self._clock()
        stale: list[_IdleConn] = []
        try:
            with self._lock:
                if self.idle_timeout > 0:
                    while self._idle and self._idle[-1].since + self.idle_timeout <= now:
                        stale.append(self._idle.pop())
                        self._active -= 1
                if self._idle:
                    return self._idle.popleft().conn
        finally:
            for item in stale:
                _close_quietly(item.conn)
        return self.get_new()

    def get_new(self) -> Closer:
        """Always dial a new connection."""
        with self._lock:
            if self.max_active > 0 and self._active >= self.max_active:
                raise PoolExhausted()
            self._active += 1
        try:
            if self.dial is None:
                raise RuntimeError("pool has no dial function")
            return self.dial()
        except BaseException:
            with self._lock:
                self._active -= 1
            raise

    def put(self, conn: Closer, force_close: bool = False) -> None:
        """Return a connection; it is closed if forced or the pool is full."""
        to_close: Closer | None = conn
        with self._lock:
            if not force_close:
                self._idle.appendleft(_IdleConn(conn, self._clock()))
                if len(self._idle) > self.max_idle:
                    to_close = self._idle.pop().conn
                else:
                    to_close = None
            if to_close is not None:
                self._active -= 1
        if to_close is not None:
            _close_quietly(to_close)

    def close(self) -> None:
        """Close every idle connection and reset the count."""
        with self._lock:
            self._active = 0
            idle = self._idle
            self._idle = deque()
        while idle:
            _close_quietly(idle.pop().conn)

    def active_count(self) -> int:
        """Connections in the pool, idle and in use."""
        with self._lock:
            return self._active

    def idle_count(self) -> int:
        with self._lock:
            return len(self._idle)

    def filter_idle(self, check: Callable[[Closer], bool]) -> int:
        """Close the idle connections for which ``check`` is false; return how many."""
        with self._lock:
            kept: deque[_IdleConn] = deque()
            dropped: list[_IdleConn] = []
            for item in self._idle:
                (kept if check(item.conn) else dropped).append(item)
            self._idle = kept
            self._active -= len(dropped)
        for item in dropped:
            _close_quietly(item.conn)
        return len(dropped)
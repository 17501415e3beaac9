"""Calls handlers at whole-second intervals from one background thread."""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass
from datetime import datetime
from functools import reduce
from typing import Callable

TimerHandle = Callable[[datetime], None]


@dataclass
class _Entry:
    interval: int
    handle: TimerHandle
    last: int = 0


class Timer:
    """Runs each handler every ``sec`` seconds; seconds are the finest unit.

    The thread wakes at the greatest common divisor of all intervals.
    """

    def __init__(self) -> None:
        self._entries: list[_Entry] = []
        self._initialized = False
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def add_handle(self, sec: int, handle: TimerHandle) -> None:
        """Add a handler called every ``sec`` seconds (at least 1)."""
        if self._initialized:
            raise RuntimeError("add timer handle when timer running")
        self._entries.append(_Entry(max(1, int(sec)), handle))

    def tick(self, now: datetime | None = None) -> int:
        """Call the handlers that are due at ``now``; return how many ran.

        The first tick only records the start time.
        """
        if now is None:
            now = datetime.now()
        stamp = int(now.timestamp())
        if not self._initialized:
            for entry in self._entries:
                entry.last = stamp
            self._initialized = True
            return 0
        fired = 0
        for entry in self._entries:
            if entry.last + entry.interval <= stamp:
                entry.handle(now)
                entry.last = stamp
                fired += 1
        return fired

    def start(self) -> None:
        """Start the background thread; does nothing without handlers."""
        if not self._entries:
            return
        if self._thread is not None:
            raise RuntimeError("timer already started")
        self.tick()
        sleep = reduce(math.gcd, (entry.interval for entry in self._entries))
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, args=(sleep, self._stop), daemon=True)
        self._thread.start()

    def _run(self, sleep: int, stop: threading.Event) -> None:
        while True:
            self.tick()
            if stop.wait(sleep):
                break

    def stop(self) -> None:
        """Stop the background thread and wait for it."""
        thread = self._thread
        if thread is None:
            return
        self._stop.set()
        if thread is not threading.current_thread():
            thread.join()
        self._thread = None
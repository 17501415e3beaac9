"""Framed message connections: a growable read buffer and a packet socket."""

from __future__ import annotations

import select
import socket
import threading
import time
from typing import Any

from .packet import InputNotEnough, Marshallable, Registry, get_marshal_pack

DEFAULT_READ_SIZE = 4096
DEFAULT_MAX_SIZE = 1024 * 1024


def _read_into(reader: Any, view: memoryview) -> int:
    if hasattr(reader, "recv_into"):
        return reader.recv_into(view, len(view))
    if hasattr(reader, "readinto"):
        count = reader.readinto(view)
        if count is None:
            raise BlockingIOError("no data available")
        return count
    read = reader.recv if hasattr(reader, "recv") else reader.read
    data = read(len(view))
    view[: len(data)] = data
    return len(data)


class ReadBuffer:
    """Holds received bytes until whole packets can be taken from the front."""

    def __init__(self, read_size: int = DEFAULT_READ_SIZE, max_size: int = DEFAULT_MAX_SIZE) -> None:
        self.read_size = read_size
        self.max_size = max_size
        self._buf = bytearray(read_size)
        self._start = 0
        self._end = 0

    def __len__(self) -> int:
        return self._end - self._start

    def read_io(self, reader: Any) -> int:
        """Read at most ``read_size`` bytes from ``reader``; return how many.

        Raises EOFError when the reader has no more data and BufferError when
        the buffer would grow past ``max_size``.
        """
        self._grow()
        with memoryview(self._buf) as whole, whole[self._end : self._end + self.read_size] as view:
            count = _read_into(reader, view)
        if count == 0 and self.read_size > 0:
            raise EOFError("end of input")
        self._end += count
        return count

    def seek(self) -> bytes:
        """The unread bytes, without consuming them."""
        return bytes(self._buf[self._start : self._end])

    def has_read(self, size: int) -> None:
        """Mark ``size`` bytes at the front as consumed."""
        if size > len(self):
            raise ValueError(f"read buffer has_read {size} > {len(self)}")
        self._start += size

    def _grow(self) -> None:
        if self._start > 0:
            pending = self._end - self._start
            self._buf[0:pending] = self._buf[self._start : self._end]
            self._end = pending
            self._start = 0
        if self._end + self.read_size > self.max_size:
            raise BufferError(f"buffer reach max size: {self.max_size}")
        if self._end + self.read_size > len(self._buf):
            new_buf = bytearray(max(len(self._buf) * 2, self._end + self.read_size))
            new_buf[: self._end] = self._buf[: self._end]
            self._buf = new_buf


def _split_address(address: str | tuple[str, int]) -> tuple[str, int]:
    if isinstance(address, tuple):
        return address[0], int(address[1])
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"addr format error {address}")
    try:
        return host.strip("[]"), int(port)
    except ValueError:
        raise ValueError(f"addr format error {address}") from None


class YYConnect:
    """Sends and receives whole packets over a socket; thread safe."""

    def __init__(self, sock: socket.socket) -> None:
        self.user_data: Any = None
        self._sock = sock
        self._reader = ReadBuffer()
        self._read_lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._read_timeout = 0.0
        self._write_timeout = 0.0

    def __enter__(self) -> YYConnect:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def set_timeout(self, read_timeout: float, write_timeout: float) -> None:
        """Set read and write timeouts in seconds; allowed only once."""
        if self._read_timeout or self._write_timeout:
            raise RuntimeError("YYConnect: set_timeout again")
        self._read_timeout = read_timeout
        self._write_timeout = write_timeout

    def _decode(self, registry: Registry) -> Marshallable:
        msg, size = registry.unmarshal_bytes(self._reader.seek())
        self._reader.has_read(size)
        return msg

    def _fill(self, deadline: float | None) -> None:
        if deadline is None:
            select.select([self._sock], [], [])
        else:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise TimeoutError("read timeout")
            ready, _, _ = select.select([self._sock], [], [], remaining)
            if not ready:
                raise TimeoutError("read timeout")
        self._reader.read_io(self._sock)

    def recv(self, registry: Registry) -> Marshallable:
        """Receive the next message whose type is known to ``registry``.

        Raises EOFError when the peer closes and TimeoutError when the read
        timeout passes.
        """
        with self._read_lock:
            try:
                return self._decode(registry)
            except InputNotEnough:
                pass
            deadline = time.monotonic() + self._read_timeout if self._read_timeout else None
            while True:
                self._fill(deadline)
                try:
                    return self._decode(registry)
                except InputNotEnough:
                    continue

    def send(self, msg: Marshallable) -> None:
        """Encode ``msg`` with its header and send it whole."""
        data = get_marshal_pack(msg).data
        with self._write_lock:
            self._sock.settimeout(self._write_timeout or None)
            self._sock.sendall(data)

    def close(self) -> None:
        self._sock.close()

    def local_addr(self) -> Any:
        return self._sock.getsockname()

    def remote_addr(self) -> Any:
        return self._sock.getpeername()


def dial(address: str | tuple[str, int]) -> YYConnect:
    """Open a TCP connection to ``host:port``."""
    sock = socket.create_connection(_split_address(address))
    sock.settimeout(None)
    return YYConnect(sock)
"""A TCP server that decodes packets and dispatches them by URI."""

from __future__ import annotations

import socket
import threading
from typing import Any, Callable

from . import logger
from .connect import YYConnect
from .packet import Marshallable, Registry

ConnectHandle = Callable[[YYConnect], bool]
MessageHandle = Callable[[YYConnect, Marshallable], bool]
CloseHandle = Callable[[YYConnect, "BaseException | None"], None]

_ACCEPT_POLL = 0.2


def _listen(address: str) -> socket.socket:
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"addr format error {address}")
    try:
        port_number = int(port)
    except ValueError:
        raise ValueError(f"addr format error {address}") from None
    return socket.create_server((host.strip("[]"), port_number))


class YYServer:
    """Serves one listening port; each connection runs in its own thread.

    The connect handler may refuse a connection by returning False; a
    message handler returning False closes the connection.  The close
    handler receives None when a handler closed the connection, otherwise
    the error that ended it (EOFError when the peer closed).
    """

    def __init__(self) -> None:
        self._registry = Registry()
        self._handles: dict[int, MessageHandle] = {}
        self._connect_handle: ConnectHandle | None = None
        self._close_handle: CloseHandle | None = None
        self._listener: socket.socket | None = None
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def _ensure_idle(self) -> None:
        if self._listener is not None:
            raise RuntimeError("YYServer is running")

    def register_connect_func(self, handle: ConnectHandle) -> None:
        self._ensure_idle()
        self._connect_handle = handle

    def register_close_func(self, handle: CloseHandle) -> None:
        self._ensure_idle()
        self._close_handle = handle

    def register_handle(self, msg_type: type[Marshallable], handle: MessageHandle) -> None:
        """Dispatch messages of ``msg_type`` to ``handle``; each URI only once."""
        self._ensure_idle()
        if not self._registry.register(msg_type):
            raise ValueError(f"YYServer uri {msg_type.uri} has register")
        self._handles[msg_type.uri] = handle

    def start(self, address: str) -> None:
        """Listen on ``host:port`` and serve connections in the background."""
        self._ensure_idle()
        listener = _listen(address)
        listener.settimeout(_ACCEPT_POLL)
        self._listener = listener
        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._accept_loop, args=(listener, address, self._stop), daemon=True
        )
        self._thread.start()

    def start_range(self, address: str, tries: int) -> None:
        """Try ``tries`` consecutive ports starting at the one in ``address``."""
        self._ensure_idle()
        host, sep, port = address.rpartition(":")
        if not sep:
            raise ValueError(f"addr format error {address}")
        try:
            first = int(port)
        except ValueError:
            raise ValueError(f"addr format error {address}") from None
        for offset in range(tries):
            try:
                self.start(f"{host}:{first + offset}")
                return
            except OSError:
                continue
        raise OSError(f"try listen {address} range {tries} fail")

    def listen_address(self) -> tuple[Any, ...] | None:
        if self._listener is None:
            return None
        return self._listener.getsockname()[:2]

    def stop(self) -> None:
        """Stop accepting connections."""
        listener = self._listener
        if listener is None:
            return
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join()
        listener.close()
        self._listener = None
        self._thread = None

    def _accept_loop(self, listener: socket.socket, address: str, stop: threading.Event) -> None:
        while not stop.is_set():
            try:
                conn, _peer = listener.accept()
            except TimeoutError:
                continue
            except OSError as exc:
                if stop.is_set():
                    break
                logger.warning("accept %s error %s", address, exc)
                continue
            threading.Thread(target=self._serve, args=(conn,), daemon=True).start()

    def _serve(self, sock: socket.socket) -> None:
        conn = YYConnect(sock)
        error: BaseException | None = None
        try:
            if self._connect_handle is None or self._connect_handle(conn):
                while True:
                    try:
                        msg = conn.recv(self._registry)
                    except Exception as exc:
                        error = exc
                        break
                    if not self._handles[msg.uri](conn, msg):
                        break
            if self._close_handle is not None:
                self._close_handle(conn, error)
        finally:
            conn.close()
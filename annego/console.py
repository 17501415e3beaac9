"""A line-based TCP console that runs registered commands."""

from __future__ import annotations

import socket
import threading
from dataclasses import dataclass
from typing import Any, Callable

from . import logger

ConsoleHandle = Callable[[list[str]], str]

_ACCEPT_POLL = 0.2
_READ_TIMEOUT = 60.0
_SET_LEVEL_USAGE = "usage: setLogLevel [0 - 7]\n"


@dataclass(frozen=True)
class _Command:
    name: str
    help: str
    handle: ConsoleHandle


def _listen(address: str) -> socket.socket:
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"addr format error {address}")
    try:
        port_number = int(port)
    except ValueError:
        raise ValueError(f"addr format error {address}") from None
    return socket.create_server((host.strip("[]"), port_number))


class Console:
    """Accepts connections and answers each line with a command's result.

    A line is split on single spaces; the first word names the command and
    the handler receives all the words.
    """

    def __init__(self) -> None:
        self._commands: dict[str, _Command] = {}
        self._listener: socket.socket | None = None
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def add_command(self, command: str, help_text: str, handle: ConsoleHandle) -> None:
        """Register a command; must happen before the console starts."""
        if self._listener is not None:
            raise RuntimeError("console is running")
        if command in self._commands:
            raise ValueError(f"console add command {command} exist")
        self._commands[command] = _Command(command, help_text, handle)

    def add_default_commands(self) -> None:
        self.add_command(
            "setLogLevel", "set logger level, usage: setLogLevel [0 - 7]", cmd_set_log_level
        )
        self.add_command("getLogLevel", "get logger level, usage: getLogLevel", cmd_get_log_level)

    def execute(self, line: str) -> str:
        """Run one console line and return the reply to send back."""
        params = line.split(" ")
        command = self._commands.get(params[0])
        if command is None:
            return "invalid command\n"
        return command.handle(params) + "\n"

    def _help(self, params: list[str]) -> str:
        lines = ["print all command:\n"]
        lines.extend(f"{cmd.name}: {cmd.help}\n" for cmd in self._commands.values())
        return "".join(lines)

    def start(self, address: str) -> None:
        """Listen on ``host:port`` and serve connections in the background."""
        if self._listener is not None:
            raise RuntimeError("console is running")
        listener = _listen(address)
        if "help" not in self._commands:
            self.add_command("help", "print all command", self._help)
        listener.settimeout(_ACCEPT_POLL)
        self._listener = listener
        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._accept_loop, args=(listener, address, self._stop), daemon=True
        )
        self._thread.start()

    def start_range(self, address: str, tries: int) -> None:
        """Try ``tries`` consecutive ports starting at the one in ``address``."""
        if self._listener is not None:
            raise RuntimeError("console is running")
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

    def listen_port(self) -> int:
        if self._listener is None:
            return 0
        return self._listener.getsockname()[1]

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
                conn, peer = listener.accept()
            except TimeoutError:
                continue
            except OSError as exc:
                if stop.is_set():
                    break
                logger.warning("accept %s error %s", address, exc)
                continue
            threading.Thread(target=self._serve, args=(conn, peer), daemon=True).start()

    def _serve(self, conn: socket.socket, peer: Any) -> None:
        with conn:
            conn.settimeout(_READ_TIMEOUT)
            with conn.makefile("rb") as reader:
                while True:
                    try:
                        raw = reader.readline()
                    except OSError as exc:
                        logger.info("console %s read error %s", peer, exc)
                        break
                    if not raw:
                        logger.info("console %s read error EOF", peer)
                        break
                    line = raw.decode("utf-8", "surrogateescape").removesuffix("\n")
                    line = line.removesuffix("\r")
                    logger.info("addr %s command %s", peer, line.split(" ", 1)[0])
                    try:
                        conn.sendall(self.execute(line).encode("utf-8", "surrogateescape"))
                    except OSError as exc:
                        logger.info("console %s write error %s", peer, exc)
                        break


def cmd_set_log_level(params: list[str]) -> str:
    """Console command: set the log level to a value from 0 to 7."""
    if len(params) != 2:
        return _SET_LEVEL_USAGE
    try:
        level = int(params[1])
    except ValueError:
        return _SET_LEVEL_USAGE
    if not 0 <= level <= 7:
        return _SET_LEVEL_USAGE
    logger.set_log_level(level)
    return f"setLogLevel to {level}\n"


def cmd_get_log_level(params: list[str]) -> str:
    """Console command: report the log level."""
    return f"getLogLevel: {logger.get_log_level()}\n"


DEFAULT_CONSOLE = Console()
DEFAULT_CONSOLE.add_default_commands()
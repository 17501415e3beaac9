"""Binary packet encoding: little-endian fields behind a 10-byte header.

A packet is ``length:uint32 | uri:uint32 | res_code:uint16`` followed by the
message body.  Messages subclass :class:`Marshallable`; wire types are
described by schemas:

* the scalar names ``BOOL``, ``UINT8``, ``UINT16``, ``UINT32``, ``UINT64``,
  ``STR`` (uint16 length), ``STR32`` (uint32 length), ``BYTES`` and
  ``BYTES32``;
* ``[elem]`` for a list of ``elem`` (a list of ``UINT8`` is sent as
  ``BYTES``);
* ``{key: value}`` for a mapping;
* a :class:`Marshallable` subclass for a nested message.
"""

from __future__ import annotations

import dataclasses
import functools
import inspect
import struct
import typing
from dataclasses import dataclass
from typing import Any, ClassVar

HEADER_LENGTH = 10
MAX_PACKET_LENGTH = 64 * 1024 * 1024
RES_SUCCESS = 200

BOOL = "bool"
UINT8 = "uint8"
UINT16 = "uint16"
UINT32 = "uint32"
UINT64 = "uint64"
STR = "str"
STR32 = "str32"
BYTES = "bytes"
BYTES32 = "bytes32"
SKIP = "-"

_PUTTERS = {
    BOOL: "put_bool",
    UINT8: "put_uint8",
    UINT16: "put_uint16",
    UINT32: "put_uint32",
    UINT64: "put_uint64",
    STR: "put_short_str",
    STR32: "put_long_str",
    BYTES: "put_short_slice",
    BYTES32: "put_byte_slice",
}

_POPPERS = {
    BOOL: "pop_bool",
    UINT8: "pop_uint8",
    UINT16: "pop_uint16",
    UINT32: "pop_uint32",
    UINT64: "pop_uint64",
    STR: "pop_short_str",
    STR32: "pop_long_str",
    BYTES: "pop_short_slice",
    BYTES32: "pop_byte_slice",
}

_HEADER = struct.Struct("<IIH")
_U16 = struct.Struct("<H")
_U32 = struct.Struct("<I")
_U64 = struct.Struct("<Q")


class UnpackError(Exception):
    """The data does not hold what the message expects."""

    def __init__(self, uri: int, message: str) -> None:
        super().__init__(f"unpack error: uri {uri} {message}")
        self.uri = uri
        self.message = message


class InputNotEnough(Exception):
    """More data is needed before a whole packet can be decoded."""

    def __init__(self, message: str = "packet: input not enough") -> None:
        super().__init__(message)


class Marshallable:
    """Base of all messages; ``uri`` identifies the message type.

    The default ``marshal``/``unmarshal`` encode the fields of a dataclass
    subclass in declaration order; see :func:`default_marshal`.
    """

    uri: ClassVar[int] = 0

    def marshal(self, pack: Pack) -> None:
        default_marshal(self, pack)

    def unmarshal(self, unpack: Unpack) -> None:
        default_unmarshal(self, unpack)


@dataclass
class Header:
    length: int
    uri: int
    res_code: int = RES_SUCCESS


def _is_message_type(tp: Any) -> bool:
    return isinstance(tp, type) and issubclass(tp, Marshallable)


def _list_element(tp: list) -> Any:
    if len(tp) != 1:
        raise TypeError(f"list schema needs exactly one element type: {tp!r}")
    return tp[0]


def _map_types(tp: dict) -> tuple[Any, Any]:
    if len(tp) != 1:
        raise TypeError(f"map schema needs exactly one key/value pair: {tp!r}")
    ((key, value),) = tp.items()
    return key, value


def _map_schema(tp: Any) -> dict:
    if isinstance(tp, dict):
        return tp
    key, value = tp
    return {key: value}


class Pack:
    """Accumulates an encoded message behind room for its header."""

    def __init__(self) -> None:
        self._buf = bytearray(HEADER_LENGTH)

    def __len__(self) -> int:
        return len(self._buf)

    @property
    def data(self) -> bytes:
        """Header and body."""
        return bytes(self._buf)

    @property
    def body_bytes(self) -> bytes:
        """The body without the header, for nesting messages."""
        return bytes(self._buf[HEADER_LENGTH:])

    def clear(self) -> None:
        self._buf = bytearray(HEADER_LENGTH)

    def put_bool(self, value: bool) -> None:
        self._buf.append(1 if value else 0)

    def put_uint8(self, value: int) -> None:
        self._buf.append(value & 0xFF)

    def put_uint16(self, value: int) -> None:
        self._buf += _U16.pack(value & 0xFFFF)

    def put_uint32(self, value: int) -> None:
        self._buf += _U32.pack(value & 0xFFFFFFFF)

    def put_uint64(self, value: int) -> None:
        self._buf += _U64.pack(value & 0xFFFFFFFFFFFFFFFF)

    def put_byte_slice(self, value: bytes) -> None:
        self.put_uint32(len(value))
        self._buf += value

    def put_short_slice(self, value: bytes) -> None:
        self.put_uint16(len(value))
        self._buf += value

    def put_short_str(self, value: str) -> None:
        self.put_short_slice(value.encode("utf-8", "surrogateescape"))

    def put_long_str(self, value: str) -> None:
        self.put_byte_slice(value.encode("utf-8", "surrogateescape"))

    def put_marshallable(self, msg: Marshallable) -> None:
        msg.marshal(self)

    def put_value(self, value: Any, tp: Any) -> None:
        """Encode ``value`` according to the schema ``tp``."""
        if isinstance(tp, str):
            try:
                method = _PUTTERS[tp]
            except KeyError:
                raise ValueError(f"unknown wire type: {tp}") from None
            getattr(self, method)(value)
        elif isinstance(tp, list):
            elem = _list_element(tp)
            if elem == UINT8:
                self.put_short_slice(bytes(value))
                return
            self.put_uint32(len(value))
            for item in value:
                self.put_value(item, elem)
        elif isinstance(tp, dict):
            key_tp, value_tp = _map_types(tp)
            self.put_uint32(len(value))
            for key, item in value.items():
                self.put_value(key, key_tp)
                self.put_value(item, value_tp)
        elif _is_message_type(tp):
            value.marshal(self)
        else:
            raise TypeError(f"unsupported wire type: {tp!r}")

    def put_slice(self, values: Any, tp: Any) -> None:
        """Encode a sequence whose elements have the schema ``tp``."""
        self.put_value(values, [tp])

    def put_map(self, mapping: Any, tp: Any) -> None:
        """Encode a mapping; ``tp`` is a ``(key, value)`` pair of schemas."""
        self.put_value(mapping, _map_schema(tp))

    def put_header(self, uri: int) -> None:
        """Write the header; call after the body is complete."""
        _HEADER.pack_into(self._buf, 0, len(self._buf) & 0xFFFFFFFF, uri & 0xFFFFFFFF, RES_SUCCESS)


class Unpack:
    """Reads fields in order from encoded data."""

    def __init__(self, data: bytes) -> None:
        self._buf = bytes(data)
        self._offset = 0
        self._valid = len(self._buf)
        self._header = Header(0, 0, RES_SUCCESS)

    @property
    def header(self) -> Header | None:
        """The header read by :meth:`pop_header`, or None."""
        if self._header.length == 0:
            return None
        return self._header

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def length(self) -> int:
        return len(self._buf)

    def _take(self, size: int, what: str) -> bytes:
        if self._valid < self._offset + size:
            raise UnpackError(self._header.uri, what)
        chunk = self._buf[self._offset : self._offset + size]
        self._offset += size
        return chunk

    def pop_bool(self) -> bool:
        return self._take(1, "pop_bool")[0] != 0

    def pop_uint8(self) -> int:
        return self._take(1, "pop_uint8")[0]

    def pop_uint16(self) -> int:
        return _U16.unpack(self._take(2, "pop_uint16"))[0]

    def pop_uint32(self) -> int:
        return _U32.unpack(self._take(4, "pop_uint32"))[0]

    def pop_uint64(self) -> int:
        return _U64.unpack(self._take(8, "pop_uint64"))[0]

    def pop_short_str(self) -> str:
        length = self.pop_uint16()
        return self._take(length, f"pop_short_str {length}").decode("utf-8", "surrogateescape")

    def pop_long_str(self) -> str:
        length = self.pop_uint32()
        return self._take(length, f"pop_long_str {length}").decode("utf-8", "surrogateescape")

    def pop_byte_slice(self) -> bytes:
        length = self.pop_uint32()
        return self._take(length, f"pop_byte_slice {length}")

    def pop_short_slice(self) -> bytes:
        length = self.pop_uint16()
        return self._take(length, f"pop_short_slice {length}")

    def pop_marshallable(self, msg: Marshallable) -> Marshallable:
        msg.unmarshal(self)
        return msg

    def pop_value(self, tp: Any) -> Any:
        """Decode one value with the schema ``tp``."""
        if isinstance(tp, str):
            try:
                method = _POPPERS[tp]
            except KeyError:
                raise ValueError(f"unknown wire type: {tp}") from None
            return getattr(self, method)()
        if isinstance(tp, list):
            elem = _list_element(tp)
            if elem == UINT8:
                return self.pop_short_slice()
            count = self.pop_uint32()
            return [self.pop_value(elem) for _ in range(count)]
        if isinstance(tp, dict):
            key_tp, value_tp = _map_types(tp)
            count = self.pop_uint32()
            result = {}
            for _ in range(count):
                key = self.pop_value(key_tp)
                result[key] = self.pop_value(value_tp)
            return result
        if _is_message_type(tp):
            return self.pop_marshallable(tp())
        raise TypeError(f"unsupported wire type: {tp!r}")

    def pop_slice(self, tp: Any) -> Any:
        """Decode a list whose elements have the schema ``tp``."""
        return self.pop_value([tp])

    def pop_map(self, tp: Any) -> dict:
        """Decode a mapping; ``tp`` is a ``(key, value)`` pair of schemas."""
        return self.pop_value(_map_schema(tp))

    def pop_header(self) -> Header:
        """Read the header; data beyond its length is then out of reach."""
        length = self.pop_uint32()
        uri = self.pop_uint32()
        res_code = self.pop_uint16()
        self._header = Header(length, uri, res_code)
        if length < len(self._buf):
            self._valid = length
        return self._header


_BUILTIN_HINTS = {
    "bool": bool,
    "str": str,
    "bytes": bytes,
    "int": int,
    "float": float,
    "list": list,
    "dict": dict,
    "List": list,
    "Dict": dict,
}


def _split_args(text: str) -> list[str]:
    parts = []
    depth = 0
    start = 0
    for pos, ch in enumerate(text):
        if ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
        elif ch == "," and depth == 0:
            parts.append(text[start:pos].strip())
            start = pos + 1
    parts.append(text[start:].strip())
    return [part for part in parts if part]


def _resolve_hint(hint: Any, namespace: dict) -> Any:
    """Turn a string annotation into the object it names, where it can."""
    if not isinstance(hint, str):
        return hint
    text = hint.strip().strip("'\"")
    if text.startswith("typing."):
        text = text[len("typing.") :]
    if text.endswith("]") and "[" in text:
        name, _, inner = text.partition("[")
        origin = _resolve_hint(name, namespace)
        args = tuple(_resolve_hint(arg, namespace) for arg in _split_args(inner[:-1]))
        if origin is list and len(args) == 1:
            return list[args[0]]
        if origin is dict and len(args) == 2:
            return dict[args[0], args[1]]
        return hint
    if text in namespace:
        return namespace[text]
    return _BUILTIN_HINTS.get(text, hint)


def _namespace_of(cls: type) -> dict:
    module = inspect.getmodule(cls)
    namespace = dict(vars(module)) if module is not None else {}
    namespace[cls.__name__] = cls
    return namespace


def _infer(hint: Any, owner: type, name: str) -> Any:
    if hint is bool:
        return BOOL
    if hint is str:
        return STR
    if hint is bytes:
        return BYTES
    if _is_message_type(hint):
        return hint
    origin = typing.get_origin(hint)
    args = typing.get_args(hint)
    if origin is list and len(args) == 1:
        return [_infer(args[0], owner, name)]
    if origin is dict and len(args) == 2:
        return {_infer(args[0], owner, name): _infer(args[1], owner, name)}
    raise TypeError(
        f"{owner.__name__}.{name}: cannot infer wire type from {hint!r}; "
        "give it metadata={'yyp': ...}"
    )


@functools.lru_cache(maxsize=None)
def _wire_fields(cls: type) -> tuple[tuple[str, Any], ...]:
    if not dataclasses.is_dataclass(cls):
        raise TypeError(f"{cls.__name__} is not a dataclass")
    namespace = _namespace_of(cls)
    result = []
    for f in dataclasses.fields(cls):
        hint = _resolve_hint(f.type, namespace)
        tag = f.metadata.get("yyp")
        if tag is None:
            tp = _infer(hint, cls, f.name)
        elif tag == SKIP:
            tp = None
        elif isinstance(tag, str):
            if tag not in _PUTTERS:
                raise ValueError(f"{cls.__name__}.{f.name}: yyp tag unknown: {tag}")
            if hint is bytes and tag in (STR, STR32):
                tp = BYTES if tag == STR else BYTES32
            else:
                tp = tag
        else:
            tp = tag
        result.append((f.name, tp))
    return tuple(result)


def default_marshal(proto: Marshallable, pack: Pack) -> None:
    """Encode the fields of a dataclass message in declaration order.

    A field's schema comes from ``metadata={"yyp": schema}`` (``"-"`` skips
    it) or, failing that, from its annotation: ``bool``, ``str``, ``bytes``,
    message classes and lists or dicts of these.
    """
    for name, tp in _wire_fields(type(proto)):
        if tp is not None:
            pack.put_value(getattr(proto, name), tp)


def default_unmarshal(proto: Marshallable, unpack: Unpack) -> None:
    """Decode the fields written by :func:`default_marshal`."""
    for name, tp in _wire_fields(type(proto)):
        if tp is not None:
            setattr(proto, name, unpack.pop_value(tp))


def get_marshal_pack(msg: Marshallable) -> Pack:
    """Encode ``msg`` with its header."""
    pack = Pack()
    msg.marshal(pack)
    pack.put_header(msg.uri)
    return pack


def marshal_body(msg: Marshallable) -> bytes:
    """Encode ``msg`` without a header."""
    pack = Pack()
    msg.marshal(pack)
    return pack.body_bytes


def unmarshal_body(data: bytes, msg: Marshallable) -> Marshallable:
    """Decode a header-less body into ``msg`` and return it."""
    msg.unmarshal(Unpack(data))
    return msg


class Registry:
    """Maps URIs to message classes so packets can be decoded by type."""

    def __init__(self) -> None:
        self._types: dict[int, type[Marshallable]] = {}

    def __contains__(self, uri: object) -> bool:
        return uri in self._types

    def register(self, msg_type: type[Marshallable] | Marshallable) -> bool:
        """Register a message class; False if its URI is already taken."""
        if not isinstance(msg_type, type):
            msg_type = type(msg_type)
        if msg_type.uri in self._types:
            return False
        self._types[msg_type.uri] = msg_type
        return True

    def unmarshal(self, unpack: Unpack) -> Marshallable:
        """Decode the message in ``unpack``, reading its header if needed."""
        header = unpack.header
        if header is None:
            header = unpack.pop_header()
        msg_type = self._types.get(header.uri)
        if msg_type is None:
            raise UnpackError(header.uri, f"not register uri:{header.uri}")
        msg = msg_type()
        msg.unmarshal(unpack)
        return msg

    def unmarshal_bytes(self, data: bytes) -> tuple[Marshallable, int]:
        """Decode the first packet of ``data``; return it and its size.

        Raises InputNotEnough when ``data`` holds no whole packet yet.
        """
        unpack = Unpack(data)
        if unpack.length <= HEADER_LENGTH:
            raise InputNotEnough()
        header = unpack.pop_header()
        if header.length > MAX_PACKET_LENGTH:
            raise UnpackError(
                header.uri,
                f"unmarshal header length too long, length {header.length} uri {header.uri}",
            )
        if unpack.length < header.length:
            raise InputNotEnough()
        msg = self.unmarshal(unpack)
        if unpack.offset != header.length:
            raise UnpackError(
                header.uri, f"unmarshal error length: {unpack.offset} {header.length}"
            )
        return msg, header.length


DEFAULT_REGISTRY = Registry()
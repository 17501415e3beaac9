"""String maps in XML and JSON nodes kept as raw, unparsed text."""

from __future__ import annotations

import json
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

_WS = re.compile(r"[ \t\n\r]*")


def _local_name(tag: str) -> str:
    return tag.rpartition("}")[2]


def _chardata(element: ET.Element) -> str:
    return (element.text or "") + "".join(child.tail or "" for child in element)


def xml_to_string_map(data: str | bytes) -> dict[str, str]:
    """Read ``<map><k1>v1</k1><k2>v2</k2></map>`` into a dict.

    Raises ValueError when the data is not well-formed XML.
    """
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        raise ValueError(f"invalid XML: {exc}") from exc
    return {_local_name(child.tag): _chardata(child) for child in root}


def string_map_to_xml(mapping: Mapping[str, str], tag: str = "map") -> str:
    """Write a dict as child elements of ``tag``; empty for an empty dict."""
    if not mapping:
        return ""
    root = ET.Element(tag)
    for key, value in mapping.items():
        ET.SubElement(root, key).text = value
    return ET.tostring(root, encoding="unicode")


def _compact(raw: str) -> str:
    out: list[str] = []
    in_string = False
    escaped = False
    for ch in raw:
        if in_string:
            out.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
            out.append(ch)
        elif ch not in " \t\r\n":
            out.append(ch)
    return "".join(out)


@dataclass
class EncodedJSONNode:
    """Any JSON value kept as its raw text, parsed only on demand."""

    data: str | None = None

    def marshal(self, value: Any) -> None:
        """Store ``value`` encoded as JSON."""
        self.data = dumps(value)

    def unmarshal(self) -> Any:
        """Parse and return the stored JSON; ValueError if there is none."""
        if self.data is None:
            raise ValueError("unexpected end of JSON input")
        return json.loads(self.data)

    def to_json(self) -> str:
        """The raw text, or ``null`` when empty."""
        return "null" if self.data is None else self.data


def _key(key: Any) -> str:
    if isinstance(key, str):
        return key
    if isinstance(key, bool):
        return "true" if key else "false"
    if isinstance(key, (int, float)):
        return json.dumps(key)
    raise TypeError(f"unsupported JSON key type: {type(key).__name__}")


def _encode(value: Any) -> str:
    if isinstance(value, EncodedJSONNode):
        raw = value.to_json()
        json.loads(raw)
        return _compact(raw)
    if isinstance(value, Mapping):
        items = (
            json.dumps(_key(k), ensure_ascii=False) + ":" + _encode(v) for k, v in value.items()
        )
        return "{" + ",".join(items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_encode(v) for v in value) + "]"
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def dumps(value: Any) -> str:
    """Encode compact JSON, inserting EncodedJSONNode values as they are."""
    return _encode(value)


def _skip(text: str, pos: int) -> int:
    match = _WS.match(text, pos)
    return match.end() if match else pos


def extract_raw(text: str | bytes, keys: Iterable[str]) -> dict[str, Any]:
    """Decode a JSON object, keeping the values of ``keys`` as raw nodes.

    Raises ValueError when ``text`` is not a single JSON object.
    """
    if isinstance(text, (bytes, bytearray)):
        text = bytes(text).decode("utf-8")
    wanted = set(keys)
    decoder = json.JSONDecoder()
    result: dict[str, Any] = {}

    pos = _skip(text, 0)
    if not text.startswith("{", pos):
        raise ValueError("expected a JSON object")
    pos = _skip(text, pos + 1)
    if text.startswith("}", pos):
        pos += 1
    else:
        while True:
            key, pos = decoder.raw_decode(text, pos)
            if not isinstance(key, str):
                raise ValueError(f"object key must be a string at {pos}")
            pos = _skip(text, pos)
            if not text.startswith(":", pos):
                raise ValueError(f"expected ':' at {pos}")
            start = _skip(text, pos + 1)
            value, end = decoder.raw_decode(text, start)
            result[key] = EncodedJSONNode(text[start:end]) if key in wanted else value
            pos = _skip(text, end)
            if text.startswith(",", pos):
                pos = _skip(text, pos + 1)
                continue
            if text.startswith("}", pos):
                pos += 1
                break
            raise ValueError(f"expected ',' or '}}' at {pos}")
    if _skip(text, pos) != len(text):
        raise ValueError("extra data after JSON object")
    return result
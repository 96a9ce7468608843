"""Metadata serialization for external processes.

Formats:
- properties : one `key=value` line per value, repeated keys for multiple values.
  Backslash, CR and LF are escaped in keys and values, and `=` in keys.
- json       : `{"key": ["v1", "v2"], ...}`

New formats can be added with `register_metadata_format`.
"""

from __future__ import annotations
from typing import Callable, Dict, Tuple
import json

from ..pipeline.properties import Properties

FORMAT_PROPERTIES = "properties"
FORMAT_JSON = "json"

Writer = Callable[[Properties], str]
Reader = Callable[[str], Properties]


def _escape(text: str, key: bool = False) -> str:
    text = text.replace("\\", "\\\\").replace("\n", "\\n").replace("\r", "\\r")
    if key:
        text = text.replace("=", "\\=")
    return text


def _unescape(text: str) -> str:
    out = []
    i = 0
    while i < len(text):
        c = text[i]
        if c == "\\" and i + 1 < len(text):
            nxt = text[i + 1]
            out.append({"n": "\n", "r": "\r"}.get(nxt, nxt))
            i += 2
            continue
        out.append(c)
        i += 1
    return "".join(out)


def _split_key(line: str) -> Tuple[str, str]:
    i = 0
    while i < len(line):
        if line[i] == "\\":
            i += 2
            continue
        if line[i] == "=":
            return line[:i], line[i + 1:]
        i += 1
    return line, ""


def write_properties(metadata: Properties) -> str:
    lines = []
    for key, values in metadata.items():
        for v in values:
            lines.append(f"{_escape(key, key=True)}={_escape(v)}")
    return "\n".join(lines) + ("\n" if lines else "")


def read_properties(text: str) -> Properties:
    props = Properties()
    for line in text.splitlines():
        if not line.strip() or line.lstrip().startswith("#"):
            continue
        k, v = _split_key(line)
        props.add(_unescape(k.strip()), _unescape(v))
    return props


def write_json(metadata: Properties) -> str:
    return json.dumps(metadata.to_dict(), ensure_ascii=False, indent=2)


def read_json(text: str) -> Properties:
    data = json.loads(text) if text.strip() else {}
    if not isinstance(data, dict):
        raise ValueError("JSON metadata must be an object")
    return Properties(data)


_FORMATS: Dict[str, Tuple[Writer, Reader]] = {
    FORMAT_PROPERTIES: (write_properties, read_properties),
    FORMAT_JSON: (write_json, read_json),
}


def register_metadata_format(name: str, writer: Writer, reader: Reader) -> None:
    if name in _FORMATS:
        raise ValueError(f"Metadata format '{name}' already registered")
    _FORMATS[name] = (writer, reader)


def has_format(name: str) -> bool:
    return name in _FORMATS


def serialize(metadata: Properties, fmt: str = FORMAT_PROPERTIES) -> str:
    return _FORMATS[fmt][0](metadata)


def deserialize(text: str, fmt: str = FORMAT_PROPERTIES) -> Properties:
    return _FORMATS[fmt][1](text)

from __future__ import annotations
"""JSON and XML encoding of payloads stored as objects."""
from collections.abc import Mapping
from dataclasses import asdict, is_dataclass
from enum import Enum
import json
import re
from typing import Any, Callable, Optional
import xml.etree.ElementTree as ET


class SerializationFormat(str, Enum):
    JSON = "json"
    XML = "xml"

    @classmethod
    def parse(cls, value: "SerializationFormat | str | None") -> "SerializationFormat":
        if isinstance(value, SerializationFormat):
            return value
        if not value:
            return cls.JSON
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unsupported serialization format '{value}'") from None


class SerializationError(ValueError):
    """Raised when a value cannot be encoded to or decoded from XML."""


XML_ROOT = "document"
XML_ITEM = "item"
_XML_NAME = re.compile(r"^[A-Za-z_][\w.\-]*$")


def serialize(value: Any, format: SerializationFormat | str = SerializationFormat.JSON) -> str:
    """Return a pretty-printed text rendering of ``value``."""

    target_format = SerializationFormat.parse(format)
    root_name = type(value).__name__ if _is_dataclass_instance(value) else XML_ROOT
    data = _to_plain(value)
    if target_format is SerializationFormat.XML:
        root = ET.Element(root_name)
        _fill_element(root, data)
        ET.indent(root)
        return ET.tostring(root, encoding="unicode")
    return json.dumps(data, indent=2)


def deserialize(
    text: str,
    format: SerializationFormat | str = SerializationFormat.JSON,
    target: Optional[Callable[..., Any]] = None,
) -> Any:
    """Decode ``text`` and optionally build ``target`` from the result."""

    source_format = SerializationFormat.parse(format)
    if source_format is SerializationFormat.XML:
        try:
            root = ET.fromstring(text)
        except ET.ParseError as exc:
            raise SerializationError(f"Malformed XML document: {exc}") from exc
        data = _read_element(root)
    else:
        data = json.loads(text)
    if target is None:
        return data
    if isinstance(data, Mapping) and is_dataclass(target):
        return target(**data)
    return target(data)


def _is_dataclass_instance(value: Any) -> bool:
    return is_dataclass(value) and not isinstance(value, type)


def _to_plain(value: Any) -> Any:
    if _is_dataclass_instance(value):
        return asdict(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Mapping):
        return {str(key): _to_plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_to_plain(item) for item in value]
    return value


def _fill_element(element: ET.Element, data: Any) -> None:
    if data is None:
        element.set("type", "null")
    elif isinstance(data, bool):
        element.set("type", "bool")
        element.text = "true" if data else "false"
    elif isinstance(data, int):
        element.set("type", "int")
        element.text = str(data)
    elif isinstance(data, float):
        element.set("type", "float")
        element.text = repr(data)
    elif isinstance(data, Mapping):
        element.set("type", "dict")
        for key, item in data.items():
            if not _XML_NAME.match(key):
                raise SerializationError(f"'{key}' is not a valid XML element name")
            _fill_element(ET.SubElement(element, key), item)
    elif isinstance(data, list):
        element.set("type", "list")
        for item in data:
            _fill_element(ET.SubElement(element, XML_ITEM), item)
    else:
        element.set("type", "str")
        element.text = str(data)


def _read_element(element: ET.Element) -> Any:
    kind = element.get("type")
    text = element.text or ""
    if kind == "null":
        return None
    if kind == "bool":
        return text.strip().lower() == "true"
    if kind == "int":
        return int(text)
    if kind == "float":
        return float(text)
    if kind == "list":
        return [_read_element(child) for child in element]
    if kind == "dict" or (kind is None and len(element)):
        return {child.tag: _read_element(child) for child in element}
    if kind not in (None, "str"):
        raise SerializationError(f"Unknown XML value type '{kind}'")
    return text

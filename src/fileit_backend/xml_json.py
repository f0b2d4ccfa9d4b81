"""XML to JSON conversion for book metadata documents."""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from typing import Any, Dict

from .errors import ConversionError

CONTENT_KEY = "content"

_INT = re.compile(r"-?(0|[1-9]\d*)")
_FLOAT = re.compile(r"-?(0|[1-9]\d*)(\.\d+)?([eE][-+]?\d+)?")


def coerce(text: str) -> Any:
    """Turn scalar text into bool, None, int or float where it unambiguously is one."""
    if text == "true":
        return True
    if text == "false":
        return False
    if text == "null":
        return None
    if _INT.fullmatch(text):
        return int(text)
    if _FLOAT.fullmatch(text):
        return float(text)
    return text


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _accumulate(target: Dict[str, Any], key: str, value: Any) -> None:
    if key not in target:
        target[key] = value
    elif isinstance(target[key], list):
        target[key].append(value)
    else:
        target[key] = [target[key], value]


def _convert(element: ET.Element) -> Any:
    if not element.attrib and len(element) == 0:
        return coerce((element.text or "").strip())

    node: Dict[str, Any] = {}
    for name, value in element.attrib.items():
        _accumulate(node, _local_name(name), coerce(value))

    # Each text chunk between child elements is kept as its own content value.
    _add_text(node, element.text)
    for child in element:
        _accumulate(node, _local_name(child.tag), _convert(child))
        _add_text(node, child.tail)
    return node


def _add_text(node: Dict[str, Any], text: str | None) -> None:
    chunk = (text or "").strip()
    if chunk:
        _accumulate(node, CONTENT_KEY, coerce(chunk))


def xml_to_dict(xml_text: str | bytes) -> Dict[str, Any]:
    """
    Convert an XML document into a JSON-compatible dict.

    The root element becomes the single top-level key. Attributes and child
    elements become keys of their parent; repeated siblings collapse into a
    list; each chunk of mixed text is stored under ``content``; scalar
    text is coerced to numbers and booleans.

    Raises:
        ConversionError: If the document is not well-formed XML
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as exc:
        raise ConversionError(f"Book XML is not well-formed: {exc}") from exc
    return {_local_name(root.tag): _convert(root)}

"""XML rendering of results: declaration, two-space indent, ISO dates, '@key' attributes."""
from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from datetime import date, datetime
from typing import Any, Mapping

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'

_INVALID_NAME_CHARS = re.compile(r"[^\w.\-]")


def to_json(value: Any) -> Any:
    """Reduce domain objects through their to_json() hook; lists are reduced item by item."""
    if not value:
        return value
    to_json_hook = getattr(value, "to_json", None)
    if callable(to_json_hook):
        return to_json_hook()
    if isinstance(value, (list, tuple)):
        return [to_json(item) for item in value]
    return value


def _element_name(name: Any) -> str:
    text = _INVALID_NAME_CHARS.sub("_", str(name))
    if not text or not (text[0].isalpha() or text[0] == "_"):
        text = f"_{text}"
    return text


def _scalar_text(value: Any) -> str:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _fill(element: ET.Element, value: Any) -> None:
    if isinstance(value, Mapping):
        for key, child in value.items():
            key = str(key)
            if key.startswith("@"):
                element.set(_element_name(key[1:]), _scalar_text(child))
            elif key == "#":
                element.text = _scalar_text(child)
            elif isinstance(child, (list, tuple)):
                for item in child:
                    _fill(ET.SubElement(element, _element_name(key)), to_json(item))
            else:
                _fill(ET.SubElement(element, _element_name(key)), to_json(child))
    elif isinstance(value, (list, tuple)):
        for item in value:
            _fill(ET.SubElement(element, "item"), to_json(item))
    elif value is not None:
        element.text = _scalar_text(value)


def to_xml(value: Any, options: Mapping[str, Any] | None = None) -> str:
    """
    value.to_xml() is used as is. Anything else is reduced via to_json(), bare lists
    become {"result": [...]}, and the tree is rendered under the wrapper element
    ("response" unless options["wrapper_element"] says otherwise).
    """
    options = dict(options or {})
    to_xml_hook = getattr(value, "to_xml", None)
    if callable(to_xml_hook):
        return to_xml_hook()
    if isinstance(value, (Mapping, list, tuple)) or hasattr(value, "to_json"):
        value = to_json(value)
    if isinstance(value, (list, tuple)):
        value = {"result": value}
    root = ET.Element(_element_name(options.get("wrapper_element") or "response"))
    _fill(root, value)
    ET.indent(root, space="  ")
    body = ET.tostring(root, encoding="unicode", short_empty_elements=True)
    if options.get("declaration", True):
        return f"{XML_DECLARATION}\n{body}"
    return body

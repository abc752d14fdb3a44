"""
Content negotiation and response rendering.

The negotiated media type is what both the route handlers and the response
cache key on, so a JSON and an XML rendering of the same resource are always
distinct cache entries.
"""

import json
from typing import Any, Optional
from xml.etree import ElementTree

JSON = "application/json"
XML = "application/xml"

# Element names for members of list-valued fields.
MEMBER_TAGS = {
    "communities": "community",
    "collections": "collection",
    "items": "item",
    "bitstreams": "bitstream",
    "metadata": "metadataentry",
    "policies": "resourcepolicy",
    "expand": "expand",
}


def response_media_type(accept: Optional[str]) -> str:
    """Resolve the response media type from an Accept header; JSON unless XML is asked for."""
    if accept and XML in accept:
        return XML
    return JSON


def render(data: Any, media_type: str, root: str) -> str:
    """Serialize ``data`` as pretty-printed JSON, or XML under a ``root`` element."""
    if media_type == XML:
        return render_xml(data, root)
    return json.dumps(data, indent=2, default=str)


def render_xml(data: Any, root: str) -> str:
    element = ElementTree.Element(root)
    _fill(element, data, root)
    ElementTree.indent(element)
    body = ElementTree.tostring(element, encoding="unicode")
    return f'<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n{body}'


def _fill(element: ElementTree.Element, data: Any, tag: str) -> None:
    if isinstance(data, dict):
        for key, value in data.items():
            if value is None:
                continue
            child = ElementTree.SubElement(element, key)
            _fill(child, value, key)
    elif isinstance(data, (list, tuple)):
        member = MEMBER_TAGS.get(tag, "entry")
        for value in data:
            child = ElementTree.SubElement(element, member)
            _fill(child, value, member)
    elif isinstance(data, bool):
        element.text = "true" if data else "false"
    else:
        element.text = str(data)

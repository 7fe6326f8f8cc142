"""
Object layer shapes

An <object> is a rectangle unless its first child element says otherwise:

    <object id="1" x="16" y="0" width="16" height="32"/>          rect
    <object id="2" x="0" y="0" width="8" height="8">
        <ellipse/>                                                 ellipse
    </object>
    <object id="3" x="40" y="40">
        <polygon points="0,0 16,0 16,16"/>                         polygon
    </object>

Only the first shape child counts; Tiled never writes more than one.
The object's own <properties> block is not a shape and is skipped.
"""

from typing import Optional
import xml.etree.ElementTree as ET

from .errors import MalformedDocument, UnknownObjectKind
from .model import MapObject, ObjectKind, Rectangle
from .properties import parse_point_list, parse_properties


def _int_attr(elem: ET.Element, name: str, default: int = 0) -> int:
    value = elem.get(name)
    if value is None:
        return default
    try:
        # Tiled writes sub-pixel positions ("16.5"); bounds are whole pixels
        return int(float(value))
    except (ValueError, OverflowError):
        raise MalformedDocument(
            f"attribute '{name}' must be a number, got '{value}'", f"<{elem.tag}>"
        ) from None


def shape_child_of(obj_elem: ET.Element) -> Optional[ET.Element]:
    for child in obj_elem:
        # ElementTree only keeps comments/PIs when asked to; skip them anyway
        if not isinstance(child.tag, str) or child.tag == 'properties':
            continue
        return child
    return None


def decode_object(bounds: Rectangle, shape_child: Optional[ET.Element]) -> MapObject:
    """
    Build the MapObject for a shape element.

    Raises UnknownObjectKind when the shape element is not ellipse,
    polyline or polygon.
    """
    if shape_child is None:
        return MapObject(ObjectKind.RECT, bounds)

    kind = shape_child.tag.lower()
    if kind == 'ellipse':
        return MapObject(ObjectKind.ELLIPSE, bounds)
    if kind in ('polyline', 'polygon'):
        points = shape_child.get('points')
        if points is None:
            raise MalformedDocument(f"<{kind}> without a points attribute")
        return MapObject(ObjectKind(kind), bounds, tuple(parse_point_list(points)))
    raise UnknownObjectKind(kind)


def read_object(obj_elem: ET.Element, folder, options=None) -> MapObject:
    """Decode a full <object> element: bounds, shape and envelope."""
    bounds = Rectangle(
        _int_attr(obj_elem, 'x'),
        _int_attr(obj_elem, 'y'),
        _int_attr(obj_elem, 'width'),
        _int_attr(obj_elem, 'height'),
    )
    obj = decode_object(bounds, shape_child_of(obj_elem))
    obj.id = _int_attr(obj_elem, 'id')
    obj.name = obj_elem.get('name', '')
    # Tiled 1.9 renamed `type` to `class`
    obj.type = obj_elem.get('type', obj_elem.get('class', ''))
    obj.properties = parse_properties(obj_elem, folder, options)
    return obj

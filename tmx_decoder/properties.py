"""
Typed property values, colours and point lists

=============================================================================
PROPERTY XML
=============================================================================

    <properties>
        <property name="solid" type="bool" value="true"/>
        <property name="health" type="int" value="100"/>
        <property name="tint" type="color" value="#ff00ff00"/>
        <property name="script" type="file" value="scripts/door.lua"/>
        <property name="description" value="A wooden door"/>
        <property name="notes">multi-line
text lives in the element body</property>
    </properties>

The `type` attribute picks the conversion; it defaults to text. Numbers
are parsed best-effort: a malformed int becomes 0 and a malformed float
0.0, so a single bad property never stops a map from loading.

=============================================================================
COLOURS
=============================================================================

Colours are packed into a single ARGB integer (0xAARRGGBB):

    "#ff0000"     -> 0xFFFF0000   (6 digits: opaque)
    "#80ff0000"   -> 0x80FF0000   (8 digits: Tiled writes alpha FIRST)
    "red"         -> 0xFFFF0000   (any name Pillow's ImageColor knows)

=============================================================================
"""

import logging
import re
from typing import Dict, List, Optional
import xml.etree.ElementTree as ET

from PIL import ImageColor

from .config import DecoderOptions
from .errors import MalformedDocument, UnknownColorName
from .model import Point, Property, PropertyType

logger = logging.getLogger(__name__)

_HEX_DIGITS = re.compile(r"^[0-9a-fA-F]+$")
_COMMA_PADDING = re.compile(r"\s*,\s*")
_INT_LITERAL = re.compile(r"^\s*[+-]?[0-9]+\s*$")

_DEFAULT_OPTIONS = DecoderOptions()


def _to_int(raw: str) -> int:
    # int() also takes "1_000" and non-ASCII digits
    if not _INT_LITERAL.match(raw):
        return 0
    return int(raw)


def _to_float(raw: str) -> float:
    if not raw.isascii() or '_' in raw:
        return 0.0
    try:
        return float(raw)
    except ValueError:
        return 0.0


def pack_argb(r: int, g: int, b: int, a: int = 255) -> int:
    return (a << 24) | (r << 16) | (g << 8) | b


def parse_color(raw: str, options: Optional[DecoderOptions] = None) -> int:
    """
    Convert a colour string to a packed ARGB integer.

    Unresolvable strings give options.unknown_color (with a warning), or
    raise UnknownColorName when options.strict_colors is set.
    """
    options = options or _DEFAULT_OPTIONS
    text = raw.strip()
    digits = text[1:] if text.startswith('#') else text

    if _HEX_DIGITS.match(digits):
        if len(digits) == 6:
            return 0xFF000000 | int(digits, 16)
        if len(digits) == 8:
            return int(digits, 16)

    try:
        rgba = ImageColor.getrgb(text)
    except ValueError:
        if options.strict_colors:
            raise UnknownColorName(raw)
        logger.warning("Unknown color '%s', using 0x%08X", raw, options.unknown_color)
        return options.unknown_color

    if len(rgba) == 4:
        return pack_argb(rgba[0], rgba[1], rgba[2], rgba[3])
    return pack_argb(rgba[0], rgba[1], rgba[2])


def parse_point_list(raw: str) -> List[Point]:
    """
    Parse a Tiled `points` attribute: "x1,y1 x2,y2 ...".

    Coordinates that are not numbers become 0.0 independently per axis.

    Example:
        parse_point_list("0,0 10,0 10,10") -> [(0, 0), (10, 0), (10, 10)]
        parse_point_list("bad, 5")         -> [(0, 5)]
    """
    points = []
    for token in _COMMA_PADDING.sub(",", raw.strip()).split():
        parts = token.split(",")
        x = _to_float(parts[0].strip())
        y = _to_float(parts[1].strip()) if len(parts) > 1 else 0.0
        points.append(Point(x, y))
    return points


def parse_typed_property(name: str, raw_value: str, type_discriminator: str,
                         folder, options: Optional[DecoderOptions] = None) -> Property:
    """
    Build a Property from its raw text and `type` attribute.

    Parameters:
    -----------
    name : str
        Property name
    raw_value : str
        Value exactly as written in the document
    type_discriminator : str
        Content of the `type` attribute (bool, int, float, text, color, file)
    folder : JailedFolder
        Resolver used for `file` properties
    options : DecoderOptions, optional
        Colour strictness and the legacy `file` lookup switch
    """
    options = options or _DEFAULT_OPTIONS

    if type_discriminator == PropertyType.BOOL:
        return Property(name, PropertyType.BOOL, raw_value == "true")
    if type_discriminator == PropertyType.COLOR:
        return Property(name, PropertyType.COLOR, parse_color(raw_value, options))
    if type_discriminator == PropertyType.INT:
        return Property(name, PropertyType.INT, _to_int(raw_value))
    if type_discriminator == PropertyType.FLOAT:
        return Property(name, PropertyType.FLOAT, _to_float(raw_value))
    if type_discriminator == PropertyType.FILE:
        target = name if options.file_property_uses_name else raw_value
        logger.debug("Resolving file property '%s' from '%s'", name, target)
        # Tiled writes value="" for a file property that was never set
        path = folder.resolve(target) if target else None
        return Property(name, PropertyType.FILE, path)

    # text, string, and anything we don't know about
    return Property(name, PropertyType.TEXT, raw_value)


def parse_properties(element: ET.Element, folder,
                     options: Optional[DecoderOptions] = None) -> Dict[str, Property]:
    """Read the optional <properties> block under `element`."""
    properties = {}
    props_elem = element.find('properties')
    if props_elem is None:
        return properties

    for prop_elem in props_elem.findall('property'):
        name = prop_elem.get('name')
        if name is None:
            raise MalformedDocument("<property> without a name")

        raw_value = prop_elem.get('rawValue')
        if raw_value is None:
            raw_value = prop_elem.get('value')
        if raw_value is None:
            raw_value = prop_elem.text or ""

        prop = parse_typed_property(
            name, raw_value, prop_elem.get('type', 'text'), folder, options
        )
        properties[prop.name] = prop
    return properties

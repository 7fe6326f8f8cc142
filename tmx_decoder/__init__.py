"""
TMX Decoder - reads Tiled maps into a typed in-memory model

Requisitos:
    pip install pillow numpy
"""

from .assembler import load_tiled_map, read_tiled_map
from .config import DEFAULT_TINT, UNKNOWN_COLOR, DecoderOptions
from .errors import (
    AssetLoadFailure,
    InvalidTileData,
    LayerSizeMismatch,
    MalformedDocument,
    TmxError,
    UnknownColorName,
    UnknownObjectKind,
    UnsupportedCompression,
    UnsupportedEncoding,
)
from .model import (
    ImageLayer, Layer, LayerKind, MapObject, ObjectKind, ObjectLayer,
    PatternLayer, Point, Property, PropertyType, Rectangle, TiledMap,
    TileFlags, Tileset, split_gid,
)
from .objects import decode_object
from .payload import decode_tile_payload
from .properties import parse_color, parse_point_list, parse_typed_property
from .resources import ImageLoader, JailedFolder, PillowImageLoader, TextureData

__version__ = "1.0.0"
__all__ = [
    "load_tiled_map",
    "read_tiled_map",
    "DecoderOptions",
    "DEFAULT_TINT",
    "UNKNOWN_COLOR",
    "TmxError",
    "MalformedDocument",
    "UnsupportedEncoding",
    "UnsupportedCompression",
    "InvalidTileData",
    "LayerSizeMismatch",
    "UnknownObjectKind",
    "AssetLoadFailure",
    "UnknownColorName",
    "TiledMap",
    "Tileset",
    "Layer",
    "LayerKind",
    "PatternLayer",
    "ObjectLayer",
    "ImageLayer",
    "MapObject",
    "ObjectKind",
    "Property",
    "PropertyType",
    "Rectangle",
    "Point",
    "TileFlags",
    "split_gid",
    "decode_tile_payload",
    "decode_object",
    "parse_typed_property",
    "parse_color",
    "parse_point_list",
    "ImageLoader",
    "JailedFolder",
    "PillowImageLoader",
    "TextureData",
]

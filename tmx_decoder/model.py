"""
In-memory model of a decoded TMX map

=============================================================================
OVERVIEW
=============================================================================

    TiledMap
    ├── tilesets: [Tileset, Tileset, ...]       (declaration order)
    └── layers:   [PatternLayer | ObjectLayer | ImageLayer, ...]
                                                 (document order = draw order)

Layers form a closed set of three kinds. Every layer carries the same
shared attributes (name, visibility, tint, opacity, offset, properties)
plus a `kind` tag and its kind-specific payload:

    PatternLayer  -> tile_grid   (numpy uint32 array, height x width)
    ObjectLayer   -> objects     (list of MapObject)
    ImageLayer    -> image       (opaque bitmap handle from the loader)

Consumers are expected to dispatch on `layer.kind`.

=============================================================================
GLOBAL TILE IDs (GIDs)
=============================================================================

Tiles are referenced by Global IDs across all tilesets:

    Tileset A (firstgid=1):   tiles 1-100
    Tileset B (firstgid=101): tiles 101-200

    GID 0   = empty cell
    GID 150 = tile 49 of tileset B

The three high bits of a raw GID are flip flags set by Tiled; split_gid()
separates them from the tile reference. The decoder stores raw GIDs.

=============================================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional, Tuple, Union

import numpy as np

from .config import DEFAULT_TINT


# =============================================================================
# GEOMETRY
# =============================================================================

class Rectangle(NamedTuple):
    x: int
    y: int
    width: int
    height: int


class Point(NamedTuple):
    x: float
    y: float


# =============================================================================
# GID FLAGS
# =============================================================================

GID_FLIP_HORIZONTAL = 1 << 31
GID_FLIP_VERTICAL = 1 << 30
GID_FLIP_DIAGONAL = 1 << 29
GID_MASK = GID_FLIP_HORIZONTAL | GID_FLIP_VERTICAL | GID_FLIP_DIAGONAL


class TileFlags(NamedTuple):
    flipped_horizontally: bool
    flipped_vertically: bool
    flipped_diagonally: bool


NO_FLAGS = TileFlags(False, False, False)


def split_gid(raw_gid: int) -> Tuple[int, TileFlags]:
    """
    Split a raw GID into the tile reference and its flip flags.

    Example:
        split_gid(0x80000005) -> (5, TileFlags(True, False, False))
    """
    raw_gid = int(raw_gid)
    if raw_gid < GID_FLIP_DIAGONAL:
        return raw_gid, NO_FLAGS
    return raw_gid & ~GID_MASK, TileFlags(
        bool(raw_gid & GID_FLIP_HORIZONTAL),
        bool(raw_gid & GID_FLIP_VERTICAL),
        bool(raw_gid & GID_FLIP_DIAGONAL),
    )


# =============================================================================
# PROPERTY CLASS
# =============================================================================

class PropertyType(str, Enum):
    BOOL = "bool"
    INT = "int"
    FLOAT = "float"
    TEXT = "text"
    COLOR = "color"
    FILE = "file"


@dataclass
class Property:
    """
    Custom property attached to a map, layer or object.

    ==========================================================================
    VALUE TYPES
    ==========================================================================

    type    Python value
    ------  --------------------------------------------
    bool    bool
    int     int      (0 if the text was not a number)
    float   float    (0.0 if the text was not a number)
    text    str      (also used for unknown type names)
    color   int      packed ARGB, e.g. 0xFFFF0000 for opaque red
    file    Path     resolved against the map's folder

    ==========================================================================
    """
    name: str                                  # Property name (key)
    type: PropertyType = PropertyType.TEXT     # Value type
    value: Any = ""                            # Converted value


# =============================================================================
# TILESET CLASS
# =============================================================================

@dataclass
class Tileset:
    """
    Tileset declared by the map: one spritesheet image cut into a grid.

    `image` is whatever the image loader's load_texture() returned; the
    decoder never looks inside it. `image_width`/`image_height` are the
    pixel sizes reported by the loader.

    Layout inside the image (margin around the edge, spacing between tiles):

    +--+===+===+===+--+
    |  | 0 | 1 | 2 |  |  <- margin
    +--+===+===+===+--+
    |  | 3 | 4 | 5 |  |
    +--+===+===+===+--+
    """
    firstgid: int                             # First Global ID
    tile_width: int                           # Tile width in pixels
    tile_height: int                          # Tile height in pixels
    name: str = ""
    columns: int = 0                          # Tiles per row
    tile_count: int = 0                       # Total number of tiles
    spacing: int = 0                          # Pixels between tiles
    margin: int = 0                           # Pixels around edge
    source: Optional[str] = None              # TSX file (external tilesets)
    image_source: str = ""                    # Image path as written in the document
    image_width: int = 0
    image_height: int = 0
    image: Any = None                         # Opaque texture handle
    properties: Dict[str, Property] = field(default_factory=dict)

    def contains(self, gid: int) -> bool:
        gid, _ = split_gid(gid)
        return self.firstgid <= gid < self.firstgid + self.tile_count

    def local_id(self, gid: int) -> int:
        """Local tile id of a GID: gid - firstgid (flip flags removed)."""
        gid, _ = split_gid(gid)
        return gid - self.firstgid

    def tile_rect(self, local_id: int) -> Rectangle:
        """Pixel rectangle of a tile inside the tileset image."""
        if self.columns <= 0:
            raise ValueError(f"tileset '{self.name}' has no columns")
        col = local_id % self.columns
        row = local_id // self.columns
        return Rectangle(
            col * self.tile_width + self.margin + col * self.spacing,
            row * self.tile_height + self.margin + row * self.spacing,
            self.tile_width,
            self.tile_height,
        )


# =============================================================================
# LAYERS
# =============================================================================

class LayerKind(str, Enum):
    PATTERN = "layer"
    OBJECTS = "objectgroup"
    IMAGE = "imagelayer"


@dataclass(eq=False)
class _LayerAttributes:
    """Attributes shared by every layer kind."""
    name: str = ""                            # Layer name
    visible: bool = True                      # Is layer rendered?
    draw_order: str = ""                      # Object draw order (topdown/index)
    tint_color: int = DEFAULT_TINT            # Packed ARGB tint
    opacity: float = 1.0                      # Transparency
    offset_x: float = 0.0                     # X pixel offset
    offset_y: float = 0.0                     # Y pixel offset
    properties: Dict[str, Property] = field(default_factory=dict)


@dataclass(eq=False)
class PatternLayer(_LayerAttributes):
    """
    Tile layer: a width x height grid of GIDs.

    tile_grid is indexed [row, column], i.e. tile_grid[y, x].
    """
    kind: LayerKind = field(default=LayerKind.PATTERN, init=False)
    width: int = 0
    height: int = 0
    encoding: str = ""
    compression: str = ""
    tile_grid: np.ndarray = field(default_factory=lambda: np.zeros((0, 0), dtype=np.uint32))

    def get_tile_gid(self, x: int, y: int) -> int:
        """GID at column x, row y (0 when out of bounds)."""
        if 0 <= x < self.width and 0 <= y < self.height:
            return int(self.tile_grid[y, x])
        return 0


@dataclass(eq=False)
class ImageLayer(_LayerAttributes):
    kind: LayerKind = field(default=LayerKind.IMAGE, init=False)
    source: str = ""
    image_width: Optional[int] = None
    image_height: Optional[int] = None
    image: Any = None                         # Opaque bitmap handle


class ObjectKind(str, Enum):
    RECT = "rect"
    ELLIPSE = "ellipse"
    POLYLINE = "polyline"
    POLYGON = "polygon"


@dataclass
class MapObject:
    """
    Shape placed on an object layer.

    `bounds` is in map pixel coordinates. `points` is only filled for
    polylines and polygons, and is relative to the object's origin exactly
    as written by Tiled (not translated by bounds.x/bounds.y).
    """
    kind: ObjectKind
    bounds: Rectangle
    points: Tuple[Point, ...] = ()
    id: int = 0
    name: str = ""
    type: str = ""
    properties: Dict[str, Property] = field(default_factory=dict)


@dataclass(eq=False)
class ObjectLayer(_LayerAttributes):
    kind: LayerKind = field(default=LayerKind.OBJECTS, init=False)
    objects: List[MapObject] = field(default_factory=list)


Layer = Union[PatternLayer, ObjectLayer, ImageLayer]


# =============================================================================
# TILED MAP CLASS (Main Entry Point)
# =============================================================================

@dataclass
class TiledMap:
    """
    Decoded Tiled map.

    ==========================================================================
    USAGE
    ==========================================================================

    Loading:
        tiled_map = TiledMap.load("level1.tmx")

    Walking layers in draw order:
        for layer in tiled_map.layers:
            if layer.kind is LayerKind.PATTERN:
                ...
            elif layer.kind is LayerKind.OBJECTS:
                ...

    Finding the tileset of a tile:
        tileset = tiled_map.get_tileset_for_gid(gid)
        rect = tileset.tile_rect(tileset.local_id(gid))

    ==========================================================================
    """
    version: str = "1.0"                             # TMX format version
    tiled_version: str = ""                          # Tiled editor version
    orientation: str = "orthogonal"                  # Map orientation
    render_order: str = "right-down"                 # Render order
    width: int = 0                                   # Map width in tiles
    height: int = 0                                  # Map height in tiles
    tile_width: int = 0                              # Tile width in pixels
    tile_height: int = 0                             # Tile height in pixels
    properties: Dict[str, Property] = field(default_factory=dict)
    tilesets: List[Tileset] = field(default_factory=list)
    layers: List[Layer] = field(default_factory=list)

    @classmethod
    def load(cls, filepath, loader=None, options=None) -> 'TiledMap':
        """
        Load a TMX file from disk.

        Image paths are resolved relative to the file's directory and may
        not escape it. `loader` defaults to PillowImageLoader.
        """
        from .assembler import load_tiled_map
        return load_tiled_map(filepath, loader=loader, options=options)

    @classmethod
    def from_string(cls, text, folder, loader=None, options=None) -> 'TiledMap':
        """Decode a TMX document held in memory, resolving assets in `folder`."""
        from .assembler import read_tiled_map
        return read_tiled_map(text, folder, loader=loader, options=options)

    @property
    def pattern_layers(self) -> List[PatternLayer]:
        return [layer for layer in self.layers if layer.kind is LayerKind.PATTERN]

    @property
    def object_layers(self) -> List[ObjectLayer]:
        return [layer for layer in self.layers if layer.kind is LayerKind.OBJECTS]

    @property
    def image_layers(self) -> List[ImageLayer]:
        return [layer for layer in self.layers if layer.kind is LayerKind.IMAGE]

    def get_layer_by_name(self, name: str) -> Optional[Layer]:
        for layer in self.layers:
            if layer.name == name:
                return layer
        return None

    def get_tileset_for_gid(self, gid: int) -> Optional[Tileset]:
        """
        Find which tileset contains a given GID.

        A GID belongs to the tileset with the largest firstgid <= gid, so
        we walk backwards from the last declared tileset.
        """
        gid, _ = split_gid(gid)
        if gid == 0:
            return None
        for i in range(len(self.tilesets) - 1, -1, -1):
            if gid >= self.tilesets[i].firstgid:
                return self.tilesets[i]
        return None

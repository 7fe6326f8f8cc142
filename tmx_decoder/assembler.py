"""
TMX document assembler

=============================================================================
PROCESS
=============================================================================

The <map> element's children are visited ONCE, in document order:

    <map>
        <properties>  -> map properties
        <tileset>     -> Tileset (image loaded through the image loader)
        <layer>       -> PatternLayer  (tile payload decoded)
        <objectgroup> -> ObjectLayer   (shapes decoded)
        <imagelayer>  -> ImageLayer    (bitmap loaded through the image loader)
        <anything>    -> skipped
    </map>

Layers of every kind go into the same list, so `tiled_map.layers` is the
draw order exactly as authored. Image loads happen inline: each one is
finished before the next sibling is looked at.

Any error aborts the decode and the partially built map is dropped; the
error names the element it came from, e.g.

    <layer name='Ground'>: layer has 12 tiles, expected 16 (width * height)

=============================================================================
EXTERNAL TILESETS
=============================================================================

    <tileset firstgid="1" source="tilesets/terrain.tsx"/>

The firstgid comes from the TMX, everything else from the TSX file. The
TSX image path is relative to the TSX file, NOT to the TMX file.

=============================================================================
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Union
import xml.etree.ElementTree as ET

from .config import DEFAULT_TINT, DecoderOptions
from .errors import AssetLoadFailure, MalformedDocument, TmxError
from .model import ImageLayer, LayerKind, ObjectLayer, PatternLayer, TiledMap, Tileset
from .objects import read_object
from .payload import decode_tile_payload, extract_payload
from .properties import parse_color, parse_properties
from .resources import ImageLoader, JailedFolder, default_loader

logger = logging.getLogger(__name__)


@contextmanager
def _element_context(description: str):
    """Tag TmxErrors escaping the block with the element being decoded."""
    try:
        yield
    except TmxError as e:
        if e.element is None:
            e.element = description
        raise


# =============================================================================
# ATTRIBUTE HELPERS
# =============================================================================

def _required(elem: ET.Element, name: str) -> str:
    value = elem.get(name)
    if value is None:
        raise MalformedDocument(f"missing required attribute '{name}'")
    return value


def _to_int(elem: ET.Element, name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise MalformedDocument(
            f"attribute '{name}' of <{elem.tag}> must be an integer, got '{value}'"
        ) from None


def _required_int(elem: ET.Element, name: str) -> int:
    return _to_int(elem, name, _required(elem, name))


def _optional_int(elem: ET.Element, name: str, default: Optional[int]) -> Optional[int]:
    value = elem.get(name)
    if value is None:
        return default
    return _to_int(elem, name, value)


def _optional_float(elem: ET.Element, name: str, default: float) -> float:
    value = elem.get(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise MalformedDocument(
            f"attribute '{name}' of <{elem.tag}> must be a number, got '{value}'"
        ) from None


def _load_asset(load, path: Path):
    try:
        return load(path)
    except OSError as e:
        raise AssetLoadFailure(path, str(e)) from e


# =============================================================================
# TILESETS
# =============================================================================

def _read_tileset(elem: ET.Element, folder: JailedFolder, loader: ImageLoader,
                  options: DecoderOptions) -> Tileset:
    firstgid = _required_int(elem, 'firstgid')
    source = elem.get('source')

    # -----------------------------------------------------------------
    # EXTERNAL TILESET (TSX)
    # -----------------------------------------------------------------
    if source:
        try:
            definition = ET.fromstring(folder.read_bytes(source))
        except ET.ParseError as e:
            raise MalformedDocument(f"invalid TSX file '{source}': {e}") from e
        if definition.tag != 'tileset':
            raise MalformedDocument(f"'{source}' is not a TSX tileset")
        image_folder = folder.folder_of(source)
    else:
        definition = elem
        image_folder = folder

    tileset = Tileset(
        firstgid=firstgid,
        name=definition.get('name', ''),
        tile_width=_required_int(definition, 'tilewidth'),
        tile_height=_required_int(definition, 'tileheight'),
        columns=_optional_int(definition, 'columns', -1),
        tile_count=_optional_int(definition, 'tilecount', -1),
        spacing=_optional_int(definition, 'spacing', 0),
        margin=_optional_int(definition, 'margin', 0),
        source=source,
        properties=parse_properties(definition, image_folder, options),
    )

    img_elem = definition.find('image')
    if img_elem is None:
        raise MalformedDocument("tileset has no <image>")
    tileset.image_source = _required(img_elem, 'source')
    texture, width, height = _load_asset(
        loader.load_texture, image_folder.resolve(tileset.image_source)
    )
    tileset.image = texture
    tileset.image_width = width
    tileset.image_height = height

    # -----------------------------------------------------------------
    # DERIVE MISSING GRID SIZE FROM THE IMAGE
    # -----------------------------------------------------------------
    # Older Tiled versions omit columns/tilecount:
    #   columns = (image_width - 2 * margin + spacing) // (tilewidth + spacing)
    step_x = tileset.tile_width + tileset.spacing
    step_y = tileset.tile_height + tileset.spacing
    if tileset.columns < 0:
        tileset.columns = 0
        if step_x > 0:
            tileset.columns = max(0, (width - 2 * tileset.margin + tileset.spacing) // step_x)
    if tileset.tile_count < 0:
        rows = 0
        if step_y > 0:
            rows = max(0, (height - 2 * tileset.margin + tileset.spacing) // step_y)
        tileset.tile_count = tileset.columns * rows

    logger.debug(
        "Tileset '%s': firstgid=%d, %d tiles of %dx%d",
        tileset.name, tileset.firstgid, tileset.tile_count,
        tileset.tile_width, tileset.tile_height,
    )
    return tileset


# =============================================================================
# LAYERS
# =============================================================================

_LAYER_CLASSES = {
    'layer': PatternLayer,
    'objectgroup': ObjectLayer,
    'imagelayer': ImageLayer,
}


def _read_layer_attributes(layer, elem: ET.Element, folder: JailedFolder,
                           options: DecoderOptions):
    layer.name = elem.get('name', '')
    layer.visible = _optional_int(elem, 'visible', 1) != 0
    layer.draw_order = elem.get('draworder', '')

    color = elem.get('color', elem.get('tintcolor'))
    layer.tint_color = DEFAULT_TINT if color is None else parse_color(color, options)

    layer.opacity = _optional_float(elem, 'opacity', 1.0)
    layer.offset_x = _optional_float(elem, 'offsetx', 0.0)
    layer.offset_y = _optional_float(elem, 'offsety', 0.0)
    layer.properties = parse_properties(elem, folder, options)


def _read_pattern_layer(layer: PatternLayer, elem: ET.Element):
    layer.width = _required_int(elem, 'width')
    layer.height = _required_int(elem, 'height')
    if layer.width < 0 or layer.height < 0:
        raise MalformedDocument("layer width/height must be non-negative")

    data_elem = elem.find('data')
    if data_elem is None:
        raise MalformedDocument("tile layer has no <data>")
    layer.encoding = data_elem.get('encoding', '').lower()
    layer.compression = data_elem.get('compression', '').lower()

    gids = decode_tile_payload(
        layer.encoding, layer.compression, extract_payload(data_elem),
        layer.width * layer.height,
    )
    layer.tile_grid = gids.reshape(layer.height, layer.width)


def _read_image_layer(layer: ImageLayer, elem: ET.Element, folder: JailedFolder,
                      loader: ImageLoader):
    # Tiled writes a single <image>; if there are more, the last one wins
    for img_elem in elem.findall('image'):
        layer.source = _required(img_elem, 'source')
        layer.image_width = _optional_int(img_elem, 'width', None)
        layer.image_height = _optional_int(img_elem, 'height', None)
        layer.image = _load_asset(loader.load_bitmap, folder.resolve(layer.source))


def _read_object_layer(layer: ObjectLayer, elem: ET.Element, folder: JailedFolder,
                       options: DecoderOptions):
    for obj_elem in elem.findall('object'):
        with _element_context(f"<object id='{obj_elem.get('id', '?')}'>"):
            layer.objects.append(read_object(obj_elem, folder, options))


def _read_layer(elem: ET.Element, folder: JailedFolder, loader: ImageLoader,
                options: DecoderOptions):
    layer = _LAYER_CLASSES[elem.tag]()
    _read_layer_attributes(layer, elem, folder, options)

    if layer.kind is LayerKind.PATTERN:
        _read_pattern_layer(layer, elem)
    elif layer.kind is LayerKind.IMAGE:
        _read_image_layer(layer, elem, folder, loader)
    else:
        _read_object_layer(layer, elem, folder, options)

    logger.debug("Layer '%s' (%s)", layer.name, layer.kind.value)
    return layer


# =============================================================================
# DOCUMENT
# =============================================================================

def _parse_root(source) -> ET.Element:
    if isinstance(source, ET.Element):
        return source
    try:
        return ET.fromstring(source)
    except ET.ParseError as e:
        raise MalformedDocument(f"invalid XML: {e}") from e


def read_tiled_map(source: Union[str, bytes, ET.Element],
                   folder: Union[JailedFolder, str, Path],
                   loader: Optional[ImageLoader] = None,
                   options: Optional[DecoderOptions] = None) -> TiledMap:
    """
    Decode a TMX document.

    Parameters:
    -----------
    source : str, bytes or Element
        The document text, or an already parsed <map> element
    folder : JailedFolder, str or Path
        Where relative asset paths are resolved (the document's directory)
    loader : ImageLoader, optional
        Image loader for tilesets and image layers (default: Pillow)
    options : DecoderOptions, optional

    Returns:
    --------
    TiledMap : the decoded map; nothing is returned if decoding fails

    Raises:
    -------
    TmxError subclasses (see tmx_decoder.errors)
    """
    if not isinstance(folder, JailedFolder):
        folder = JailedFolder(folder)
    loader = default_loader(loader)
    options = options or DecoderOptions()

    root = _parse_root(source)
    if root.tag != 'map':
        raise MalformedDocument(f"root element is <{root.tag}>, expected <map>")

    # -----------------------------------------------------------------
    # PARSE MAP ATTRIBUTES
    # -----------------------------------------------------------------
    with _element_context("<map>"):
        tiled_map = TiledMap(
            version=root.get('version', '1.0'),
            tiled_version=root.get('tiledversion', ''),
            orientation=root.get('orientation', 'orthogonal'),
            render_order=root.get('renderorder', 'right-down'),
            width=_optional_int(root, 'width', 0),
            height=_optional_int(root, 'height', 0),
            tile_width=_optional_int(root, 'tilewidth', 0),
            tile_height=_optional_int(root, 'tileheight', 0),
            properties=parse_properties(root, folder, options),
        )

    # -----------------------------------------------------------------
    # WALK TOP-LEVEL ELEMENTS IN DOCUMENT ORDER
    # -----------------------------------------------------------------
    for elem in root:
        tag = elem.tag
        if tag == 'tileset':
            with _element_context(f"<tileset firstgid='{elem.get('firstgid', '?')}'>"):
                tiled_map.tilesets.append(_read_tileset(elem, folder, loader, options))
        elif tag in _LAYER_CLASSES:
            with _element_context(f"<{tag} name='{elem.get('name', '')}'>"):
                tiled_map.layers.append(_read_layer(elem, folder, loader, options))
        elif tag != 'properties':
            logger.debug("Skipping <%s>", tag)

    logger.info(
        "Decoded map %dx%d: %d tilesets, %d layers",
        tiled_map.width, tiled_map.height,
        len(tiled_map.tilesets), len(tiled_map.layers),
    )
    return tiled_map


def load_tiled_map(filepath: Union[str, Path], loader: Optional[ImageLoader] = None,
                   options: Optional[DecoderOptions] = None) -> TiledMap:
    """
    Load a TMX file from disk.

    Assets are resolved relative to the file's directory and may not
    escape it.

    Raises:
    -------
    FileNotFoundError : If the TMX file doesn't exist
    TmxError : If the document cannot be decoded
    """
    filepath = Path(filepath)
    data = filepath.read_bytes()
    return read_tiled_map(data, JailedFolder(filepath.parent), loader, options)

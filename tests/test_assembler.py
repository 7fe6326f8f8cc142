import base64
import zlib
import struct
import xml.etree.ElementTree as ET

import pytest
from PIL import Image

from conftest import RecordingLoader, tmx
from tmx_decoder import TiledMap, load_tiled_map, read_tiled_map
from tmx_decoder.config import DEFAULT_TINT, DecoderOptions
from tmx_decoder.errors import (
    AssetLoadFailure,
    LayerSizeMismatch,
    MalformedDocument,
    UnknownColorName,
    UnknownObjectKind,
    UnsupportedEncoding,
)
from tmx_decoder.model import LayerKind, ObjectKind, PropertyType, Rectangle
from tmx_decoder.resources import TextureData

TILESET = """
 <tileset firstgid="1" name="terrain" tilewidth="16" tileheight="16" tilecount="8" columns="4">
  <image source="terrain.png" width="64" height="32"/>
 </tileset>
"""

GROUND = """
 <layer id="1" name="A" width="4" height="3">
  <data encoding="csv">
1,1,0,0,
1,2,0,0,
0,0,0,3
  </data>
 </layer>
"""

OBJECTS = """
 <objectgroup id="2" name="B" draworder="index">
  <object id="1" x="16" y="0" width="16" height="32"/>
  <object id="2" x="1" y="2" width="3" height="4"><ellipse/></object>
  <object id="3" x="40" y="40"><polyline points="0,0 10,0 10,10"/></object>
 </objectgroup>
"""

BACKGROUND = """
 <imagelayer id="3" name="C">
  <image source="sky.png" width="320" height="240"/>
 </imagelayer>
"""


def decode(body, folder, loader, **kwargs):
    return read_tiled_map(tmx(body), folder, loader, **kwargs)


def test_layers_keep_document_order_across_kinds(folder, loader):
    tiled_map = decode(TILESET + GROUND + OBJECTS + BACKGROUND, folder, loader)

    assert [layer.name for layer in tiled_map.layers] == ["A", "B", "C"]
    assert [layer.kind for layer in tiled_map.layers] == [
        LayerKind.PATTERN, LayerKind.OBJECTS, LayerKind.IMAGE,
    ]


def test_map_attributes(folder, loader):
    body = """
     <properties>
      <property name="music" value="theme.ogg"/>
      <property name="gravity" type="float" value="9.8"/>
     </properties>
    """
    tiled_map = decode(body, folder, loader)
    assert (tiled_map.width, tiled_map.height) == (4, 3)
    assert (tiled_map.tile_width, tiled_map.tile_height) == (16, 16)
    assert tiled_map.version == "1.10"
    assert tiled_map.orientation == "orthogonal"
    assert tiled_map.properties["music"].value == "theme.ogg"
    assert tiled_map.properties["gravity"].value == 9.8
    assert tiled_map.layers == []


def test_tileset(folder, loader, tmp_path):
    tiled_map = decode(TILESET, folder, loader)

    tileset, = tiled_map.tilesets
    assert tileset.firstgid == 1
    assert tileset.name == "terrain"
    assert (tileset.tile_width, tileset.tile_height) == (16, 16)
    assert (tileset.columns, tileset.tile_count) == (4, 8)
    assert tileset.image == "texture:terrain.png"
    assert (tileset.image_width, tileset.image_height) == (64, 32)
    assert loader.calls == [("texture", tmp_path / "terrain.png")]


def test_tileset_grid_size_derived_from_image(folder):
    body = """
     <tileset firstgid="1" tilewidth="16" tileheight="16" spacing="1" margin="1">
      <image source="terrain.png"/>
     </tileset>
    """
    # (67 - 2 + 1) // 17 = 3 columns, (50 - 2 + 1) // 17 = 2 rows
    tiled_map = decode(body, folder, RecordingLoader(size=(67, 50)))
    tileset, = tiled_map.tilesets
    assert tileset.columns == 3
    assert tileset.tile_count == 6


def test_tilesets_are_not_deduplicated(folder, loader):
    tiled_map = decode(TILESET + TILESET, folder, loader)
    assert [t.firstgid for t in tiled_map.tilesets] == [1, 1]
    assert len(loader.calls) == 2


def test_tileset_requires_firstgid(folder, loader):
    body = '<tileset tilewidth="16" tileheight="16"><image source="a.png"/></tileset>'
    with pytest.raises(MalformedDocument) as info:
        decode(body, folder, loader)
    assert "firstgid" in str(info.value)


def test_tileset_requires_image(folder, loader):
    body = '<tileset firstgid="1" tilewidth="16" tileheight="16"/>'
    with pytest.raises(MalformedDocument) as info:
        decode(body, folder, loader)
    assert "<tileset firstgid='1'>" in str(info.value)


def test_external_tileset(folder, loader, tmp_path):
    (tmp_path / "tilesets").mkdir()
    (tmp_path / "tilesets" / "terrain.tsx").write_text("""<?xml version="1.0" encoding="UTF-8"?>
<tileset version="1.10" name="outdoor" tilewidth="32" tileheight="32" tilecount="2" columns="2">
 <properties>
  <property name="biome" value="forest"/>
 </properties>
 <image source="outdoor.png" width="64" height="32"/>
</tileset>
""", encoding="utf-8")
    body = '<tileset firstgid="101" source="tilesets/terrain.tsx"/>'

    tileset, = decode(body, folder, loader).tilesets
    assert tileset.firstgid == 101
    assert tileset.name == "outdoor"
    assert tileset.source == "tilesets/terrain.tsx"
    assert tileset.tile_width == 32
    assert tileset.properties["biome"].value == "forest"
    assert loader.calls == [("texture", tmp_path / "tilesets" / "outdoor.png")]


def test_missing_external_tileset(folder, loader):
    with pytest.raises(AssetLoadFailure):
        decode('<tileset firstgid="1" source="nope.tsx"/>', folder, loader)


def test_pattern_layer_grid(folder, loader):
    layer, = decode(GROUND, folder, loader).layers
    assert layer.tile_grid.shape == (3, 4)
    assert layer.tile_grid.tolist() == [[1, 1, 0, 0], [1, 2, 0, 0], [0, 0, 0, 3]]
    assert layer.get_tile_gid(1, 1) == 2
    assert layer.get_tile_gid(3, 2) == 3
    assert layer.encoding == "csv"


def test_pattern_layer_encodings_agree(folder, loader):
    gids = [1, 1, 0, 0, 1, 2, 0, 0, 0, 0, 0, 3]
    packed = base64.b64encode(zlib.compress(struct.pack("<12I", *gids))).decode()
    xml_tiles = "".join(f'<tile gid="{g}"/>' for g in gids)
    body = f"""
     <layer name="csv" width="4" height="3"><data encoding="csv">{",".join(map(str, gids))}</data></layer>
     <layer name="b64" width="4" height="3">
      <data encoding="base64" compression="zlib">
       {packed}
      </data>
     </layer>
     <layer name="xml" width="4" height="3"><data>{xml_tiles}</data></layer>
    """
    layers = decode(body, folder, loader).layers
    assert [layer.tile_grid.ravel().tolist() for layer in layers] == [gids, gids, gids]


def test_unknown_encoding_fails_the_whole_map(folder, loader):
    body = TILESET + '<layer name="Ground" width="2" height="1"><data encoding="foo">1,2</data></layer>'
    with pytest.raises(UnsupportedEncoding) as info:
        decode(body, folder, loader)
    assert "foo" in str(info.value)
    assert "<layer name='Ground'>" in str(info.value)


def test_layer_size_mismatch(folder, loader):
    body = '<layer name="Ground" width="4" height="4"><data encoding="csv">1,2,3</data></layer>'
    with pytest.raises(LayerSizeMismatch) as info:
        decode(body, folder, loader)
    assert (info.value.expected, info.value.actual) == (16, 3)


def test_layer_requires_size_and_data(folder, loader):
    with pytest.raises(MalformedDocument):
        decode('<layer name="x" height="1"><data encoding="csv">1</data></layer>', folder, loader)
    with pytest.raises(MalformedDocument):
        decode('<layer name="x" width="1" height="1"/>', folder, loader)


@pytest.mark.parametrize("width, height", [(-2, -2), (0, -1), (-1, -1)])
def test_layer_negative_size(folder, loader, width, height):
    tiles = '<tile gid="1"/>' * 4
    body = f'<layer name="x" width="{width}" height="{height}"><data>{tiles}</data></layer>'
    with pytest.raises(MalformedDocument) as info:
        decode(body, folder, loader)
    assert "non-negative" in str(info.value)


def test_shared_layer_attributes_defaults(folder, loader):
    layer, = decode(OBJECTS, folder, loader).layers
    assert layer.visible is True
    assert layer.draw_order == "index"
    assert layer.tint_color == DEFAULT_TINT
    assert layer.opacity == 1.0
    assert (layer.offset_x, layer.offset_y) == (0.0, 0.0)


def test_shared_layer_attributes(folder, loader):
    body = """
     <objectgroup name="hidden" visible="0" color="#ff0000" opacity="0.5"
                  offsetx="3.5" offsety="-2">
      <properties>
       <property name="z" type="int" value="2"/>
       <property name="tint" type="color" value="#80112233"/>
      </properties>
     </objectgroup>
    """
    layer, = decode(body, folder, loader).layers
    assert layer.visible is False
    assert layer.tint_color == 0xFFFF0000
    assert layer.opacity == 0.5
    assert (layer.offset_x, layer.offset_y) == (3.5, -2.0)
    assert layer.properties["z"].value == 2
    assert layer.properties["tint"].type is PropertyType.COLOR
    assert layer.properties["tint"].value == 0x80112233


def test_tintcolor_attribute(folder, loader):
    layer, = decode('<objectgroup name="o" tintcolor="#00ff00"/>', folder, loader).layers
    assert layer.tint_color == 0xFF00FF00


def test_unknown_layer_color_is_recoverable_by_default(folder, loader):
    layer, = decode('<objectgroup name="o" color="mystery"/>', folder, loader).layers
    assert layer.tint_color == 0


def test_unknown_layer_color_strict(folder, loader):
    with pytest.raises(UnknownColorName) as info:
        decode('<objectgroup name="o" color="mystery"/>', folder, loader,
               options=DecoderOptions(strict_colors=True))
    assert "<objectgroup name='o'>" in str(info.value)


def test_bad_opacity(folder, loader):
    with pytest.raises(MalformedDocument):
        decode('<objectgroup name="o" opacity="half"/>', folder, loader)


def test_objects(folder, loader):
    layer, = decode(OBJECTS, folder, loader).layers
    rect, ellipse, polyline = layer.objects
    assert rect.kind is ObjectKind.RECT
    assert rect.bounds == Rectangle(16, 0, 16, 32)
    assert ellipse.kind is ObjectKind.ELLIPSE
    assert ellipse.bounds == Rectangle(1, 2, 3, 4)
    assert polyline.kind is ObjectKind.POLYLINE
    assert polyline.points == ((0, 0), (10, 0), (10, 10))
    assert [o.id for o in layer.objects] == [1, 2, 3]


def test_unknown_object_kind(folder, loader):
    body = '<objectgroup name="o"><object id="5"><star/></object></objectgroup>'
    with pytest.raises(UnknownObjectKind) as info:
        decode(body, folder, loader)
    assert info.value.kind == "star"
    assert "<object id='5'>" in str(info.value)


def test_image_layer(folder, loader, tmp_path):
    layer, = decode(BACKGROUND, folder, loader).layers
    assert layer.image == "bitmap:sky.png"
    assert layer.source == "sky.png"
    assert (layer.image_width, layer.image_height) == (320, 240)
    assert loader.calls == [("bitmap", tmp_path / "sky.png")]


def test_image_layer_last_image_wins(folder, loader):
    body = """
     <imagelayer name="bg">
      <image source="first.png"/>
      <image source="second.png"/>
     </imagelayer>
    """
    layer, = decode(body, folder, loader).layers
    assert layer.image == "bitmap:second.png"
    assert [path.name for _, path in loader.calls] == ["first.png", "second.png"]


def test_image_layer_without_image(folder, loader):
    layer, = decode('<imagelayer name="empty"/>', folder, loader).layers
    assert layer.image is None


def test_loader_failure_is_fatal(folder):
    loader = RecordingLoader(fail_on="sky.png")
    with pytest.raises(AssetLoadFailure) as info:
        decode(TILESET + BACKGROUND, folder, loader)
    assert "sky.png" in str(info.value)


def test_image_outside_map_folder(folder, loader):
    body = '<imagelayer name="bg"><image source="../../secret.png"/></imagelayer>'
    with pytest.raises(AssetLoadFailure):
        decode(body, folder, loader)
    assert loader.calls == []


def test_unknown_top_level_elements_are_skipped(folder, loader):
    body = """
     <editorsettings><export target="x.json"/></editorsettings>
     <group name="g"><layer name="inner" width="1" height="1"><data encoding="csv">1</data></layer></group>
    """ + GROUND
    tiled_map = decode(body, folder, loader)
    assert [layer.name for layer in tiled_map.layers] == ["A"]


def test_invalid_xml(folder, loader):
    with pytest.raises(MalformedDocument):
        read_tiled_map("<map><layer></map>", folder, loader)


def test_root_must_be_map(folder, loader):
    with pytest.raises(MalformedDocument):
        read_tiled_map('<tileset firstgid="1"/>', folder, loader)


def test_accepts_parsed_element_and_plain_path(tmp_path, loader):
    root = ET.fromstring(tmx(GROUND))
    tiled_map = read_tiled_map(root, tmp_path, loader)
    assert tiled_map.layers[0].name == "A"


def write_png(path, size):
    Image.new("RGBA", size, (10, 20, 30, 255)).save(path)


def test_load_from_disk_with_pillow(tmp_path):
    write_png(tmp_path / "terrain.png", (64, 32))
    write_png(tmp_path / "sky.png", (8, 4))
    path = tmp_path / "level.tmx"
    path.write_text(tmx(TILESET + GROUND + OBJECTS + BACKGROUND), encoding="utf-8")

    tiled_map = load_tiled_map(path)

    tileset, = tiled_map.tilesets
    assert isinstance(tileset.image, TextureData)
    assert (tileset.image.width, tileset.image.height) == (64, 32)
    assert len(tileset.image.data) == 64 * 32 * 4
    background = tiled_map.image_layers[0]
    assert background.image.size == (8, 4)
    assert [layer.name for layer in tiled_map.layers] == ["A", "B", "C"]


def test_tiled_map_load(tmp_path, loader):
    path = tmp_path / "level.tmx"
    path.write_text(tmx(TILESET + GROUND), encoding="utf-8")
    tiled_map = TiledMap.load(path, loader=loader)
    assert tiled_map.get_tileset_for_gid(3).name == "terrain"
    assert tiled_map.pattern_layers[0].get_tile_gid(3, 2) == 3


def test_tiled_map_from_string(folder, loader):
    tiled_map = TiledMap.from_string(tmx(GROUND), folder, loader)
    assert tiled_map.layers[0].name == "A"


def test_load_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_tiled_map(tmp_path / "missing.tmx")

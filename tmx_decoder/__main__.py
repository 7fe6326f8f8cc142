#!/usr/bin/env python3

"""
TMX Decoder - print a summary of a Tiled map

Usage:
    python -m tmx_decoder [-v] <map.tmx>

Options:
    -v, --verbose   Log every tileset and layer as it is decoded
"""

import logging
import sys
from pathlib import Path

from .errors import TmxError
from .model import LayerKind, TiledMap


def print_summary(tiled_map: TiledMap):
    print(f"Map: {tiled_map.width}x{tiled_map.height} tiles of "
          f"{tiled_map.tile_width}x{tiled_map.tile_height} ({tiled_map.orientation})")

    print(f"\nTilesets: {len(tiled_map.tilesets)}")
    for tileset in tiled_map.tilesets:
        print(f"  - {tileset.name or '(unnamed)'}: firstgid={tileset.firstgid}, "
              f"{tileset.tile_count} tiles, image {tileset.image_source} "
              f"({tileset.image_width}x{tileset.image_height})")

    print(f"\nLayers: {len(tiled_map.layers)}")
    for layer in tiled_map.layers:
        hidden = "" if layer.visible else " [hidden]"
        if layer.kind is LayerKind.PATTERN:
            used = int((layer.tile_grid != 0).sum())
            detail = f"{layer.width}x{layer.height}, {used} tiles set"
        elif layer.kind is LayerKind.OBJECTS:
            detail = f"{len(layer.objects)} objects"
        else:
            detail = f"image {layer.source}"
        print(f"  - {layer.kind.value} '{layer.name}': {detail}{hidden}")


def main():
    args = sys.argv[1:]
    verbose = False
    for flag in ("-v", "--verbose"):
        if flag in args:
            verbose = True
            args.remove(flag)

    if len(args) != 1:
        print(__doc__)
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="[%(levelname)s] %(name)s: %(message)s",
    )

    source_path = args[0]
    if not Path(source_path).exists():
        print(f"Error: File '{source_path}' not found")
        sys.exit(1)

    try:
        tiled_map = TiledMap.load(source_path)
    except TmxError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print_summary(tiled_map)


if __name__ == "__main__":
    main()

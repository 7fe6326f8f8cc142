"""
Tile layer payload decoding

=============================================================================
DATA ENCODINGS
=============================================================================

A <layer> stores its grid of GIDs in a <data> element, in one of:

1. XML (encoding absent or "xml"):
   <data>
       <tile gid="1"/><tile gid="2"/><tile gid="3"/>...
   </data>

2. CSV:
   <data encoding="csv">
       1,2,3,4,5,
       6,7,8,9,10
   </data>

3. Base64, optionally compressed:
   <data encoding="base64" compression="zlib">
       eJxjZGBgYGQAAAAMAAM=
   </data>

   After Base64 decoding (and gzip/zlib decompression) the bytes are the
   grid as consecutive little-endian uint32 values:

       01 00 00 00 | 02 00 00 00 | ...
       gid 1         gid 2

All of them decode to the same canonical representation, a flat numpy
uint32 array in row-major order (index = y * width + x), so nothing
downstream ever has to care which encoding an author picked.

=============================================================================
"""

import base64
import binascii
import gzip
import logging
import re
import zlib
from typing import List, Sequence, Union
import xml.etree.ElementTree as ET

import numpy as np

from .errors import (
    InvalidTileData,
    LayerSizeMismatch,
    MalformedDocument,
    UnsupportedCompression,
    UnsupportedEncoding,
)

logger = logging.getLogger(__name__)

_UINT32_MAX = 0xFFFFFFFF

# ASCII base-10 only; int() alone also takes "1_0" and non-ASCII digits
_GID_TOKEN = re.compile(r"[+-]?[0-9]+")


def _decode_csv(text: str) -> List[int]:
    # Rows are separated by newlines and usually indented: drop all whitespace
    compact = "".join(text.split())
    gids = []
    for token in compact.split(','):
        if not token:
            continue  # trailing comma
        if not _GID_TOKEN.fullmatch(token):
            raise InvalidTileData(f"invalid CSV tile value '{token}'")
        gid = int(token, 10)
        if not 0 <= gid <= _UINT32_MAX:
            raise InvalidTileData(f"CSV tile value {gid} is not a 32-bit GID")
        gids.append(gid)
    return gids


def _decompress(raw_data: bytes, compression: str) -> bytes:
    if compression == '':
        return raw_data
    try:
        if compression == 'gzip':
            return gzip.decompress(raw_data)
        if compression == 'zlib':
            return zlib.decompress(raw_data)
    except (OSError, EOFError, zlib.error) as e:
        raise InvalidTileData(f"corrupt {compression} tile data: {e}") from e
    raise UnsupportedCompression(compression)


def _decode_base64(text: str, compression: str, expected_count: int) -> np.ndarray:
    try:
        raw_data = base64.b64decode(text.strip(), validate=False)
    except (binascii.Error, ValueError) as e:
        raise InvalidTileData(f"invalid Base64 tile data: {e}") from e

    content = _decompress(raw_data, compression)

    # Each tile is 4 bytes (little-endian uint32)
    available = len(content) // 4
    if available < expected_count:
        raise LayerSizeMismatch(expected_count, available)
    if expected_count == 0:
        return np.zeros(0, dtype=np.uint32)
    return np.frombuffer(content, dtype='<u4', count=expected_count).astype(np.uint32)


def decode_tile_payload(encoding: str, compression: str,
                        raw: Union[str, Sequence[int]],
                        expected_count: int) -> np.ndarray:
    """
    Decode a tile layer payload into a flat uint32 array.

    Parameters:
    -----------
    encoding : str
        "" or "xml", "csv", "base64"
    compression : str
        "", "gzip" or "zlib" (only meaningful for base64)
    raw : str or sequence of int
        Element text for csv/base64; the already extracted gids for xml
    expected_count : int
        width * height of the owning layer

    Returns:
    --------
    numpy.ndarray : uint32 array of exactly `expected_count` GIDs

    Raises:
    -------
    UnsupportedEncoding, UnsupportedCompression, InvalidTileData,
    LayerSizeMismatch
    """
    if encoding in ('', 'xml'):
        gids = np.array(list(raw), dtype=np.uint32)
    elif encoding == 'csv':
        gids = np.array(_decode_csv(raw), dtype=np.uint32)
    elif encoding == 'base64':
        gids = _decode_base64(raw, compression, expected_count)
    else:
        raise UnsupportedEncoding(encoding)

    if len(gids) != expected_count:
        raise LayerSizeMismatch(expected_count, len(gids))
    return gids


def extract_payload(data_elem: ET.Element) -> Union[str, List[int]]:
    """
    Raw payload of a <data> element in the form decode_tile_payload expects:
    the list of <tile gid> values for XML encoding, the text otherwise.
    """
    encoding = data_elem.get('encoding', '').lower()
    if encoding in ('', 'xml'):
        gids = []
        for tile_elem in data_elem.findall('tile'):
            value = tile_elem.get('gid', '0')
            if not _GID_TOKEN.fullmatch(value):
                raise MalformedDocument(f"<tile> has a non-integer gid '{value}'")
            gid = int(value)
            if not 0 <= gid <= _UINT32_MAX:
                raise MalformedDocument(f"<tile> gid {gid} is not a 32-bit GID")
            gids.append(gid)
        return gids
    return data_elem.text or ""

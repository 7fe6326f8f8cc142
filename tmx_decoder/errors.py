"""
Exceptions raised while decoding TMX documents

=============================================================================
ERROR POLICY
=============================================================================

Every error below aborts the whole decode: no partially built map is ever
returned to the caller. The only lenient spots are the best-effort numeric
coercions of property values and point lists (bad numbers become 0 / 0.0)
and, unless strict mode is on, unknown colour names.

Errors can be annotated with the element they were raised for, so that a
failure deep inside the payload decoder still reads like:

    <layer name='Ground'>: unsupported tile data encoding 'foo'

=============================================================================
"""

from typing import Optional


class TmxError(Exception):
    """Base class for every decoding failure."""

    def __init__(self, message: str, element: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.element = element

    def __str__(self):
        if self.element:
            return f"{self.element}: {self.message}"
        return self.message


class MalformedDocument(TmxError):
    """A required attribute or child element is missing or unreadable."""


class UnsupportedEncoding(TmxError):
    def __init__(self, encoding: str, element: Optional[str] = None):
        super().__init__(f"unsupported tile data encoding '{encoding}'", element)
        self.encoding = encoding


class UnsupportedCompression(TmxError):
    def __init__(self, compression: str, element: Optional[str] = None):
        super().__init__(f"unsupported tile data compression '{compression}'", element)
        self.compression = compression


class InvalidTileData(TmxError):
    """Tile data in a known encoding that cannot be read (bad CSV token, bad Base64...)."""


class LayerSizeMismatch(TmxError):
    def __init__(self, expected: int, actual: int, element: Optional[str] = None):
        super().__init__(
            f"layer has {actual} tiles, expected {expected} (width * height)", element
        )
        self.expected = expected
        self.actual = actual


class UnknownObjectKind(TmxError):
    def __init__(self, kind: str, element: Optional[str] = None):
        super().__init__(f"invalid object kind '{kind}'", element)
        self.kind = kind


class AssetLoadFailure(TmxError):
    def __init__(self, path, reason: str, element: Optional[str] = None):
        super().__init__(f"could not load '{path}': {reason}", element)
        self.path = path


class UnknownColorName(TmxError):
    def __init__(self, value: str, element: Optional[str] = None):
        super().__init__(f"unknown color '{value}'", element)
        self.value = value

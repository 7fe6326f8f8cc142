"""Decoder configuration"""

from dataclasses import dataclass

# Packed ARGB value used when a colour string cannot be resolved
UNKNOWN_COLOR = 0x00000000

# Opaque white, the default layer tint
DEFAULT_TINT = 0xFFFFFFFF


@dataclass
class DecoderOptions:
    """
    Knobs controlling the lenient parts of the decoder.

    strict_colors : bool
        Raise UnknownColorName for unresolvable colour strings instead of
        falling back to `unknown_color`.
    unknown_color : int
        Packed ARGB value substituted for unresolvable colours.
    file_property_uses_name : bool
        Resolve `file` properties from the property *name* rather than its
        value. Only useful to reproduce maps decoded by older loaders that
        had this behaviour; Tiled stores the path in the value.
    """
    strict_colors: bool = False
    unknown_color: int = UNKNOWN_COLOR
    file_property_uses_name: bool = False

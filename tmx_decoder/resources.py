"""
Asset access for the decoder: path resolution and image loading

=============================================================================
PATH HANDLING
=============================================================================

TMX files reference images (and external TSX tilesets) with RELATIVE paths.
JailedFolder resolves them against the directory of the document and
refuses anything that would land outside that directory:

    root = "assets/maps"
    "tiles/grass.png"      -> assets/maps/tiles/grass.png
    "../secret.png"        -> AssetLoadFailure
    "/etc/passwd"          -> AssetLoadFailure

External tilesets resolve their own images relative to the TSX file, so
folder_of() hands out a folder with a different base but the same jail.

=============================================================================
IMAGE LOADING
=============================================================================

The decoder never interprets pixels. It asks an ImageLoader for:

- load_texture(path) -> (handle, width, height)   for tileset images
- load_bitmap(path)  -> handle                    for image layers

PillowImageLoader is the default. It produces CPU-side RGBA data
(TextureData) ready to be uploaded by whatever renderer the caller uses;
creating GPU textures is left to the caller.

=============================================================================
"""

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Tuple, Union

import numpy as np
from PIL import Image

from .errors import AssetLoadFailure

logger = logging.getLogger(__name__)


# =============================================================================
# FOLDER RESOLVER
# =============================================================================

class JailedFolder:
    """Resolves relative asset paths inside a root directory."""

    def __init__(self, root: Union[str, Path], base: Union[str, Path, None] = None):
        self.root = Path(os.path.normpath(os.path.abspath(root)))
        if base is None:
            self.base = self.root
        else:
            self.base = Path(os.path.normpath(os.path.abspath(base)))

    def __repr__(self):
        return f"JailedFolder(root='{self.root}', base='{self.base}')"

    def resolve(self, relative: str) -> Path:
        """
        Resolve `relative` against this folder.

        Raises AssetLoadFailure for empty, absolute or escaping paths.
        Symlinks are followed before the containment check, so a link
        inside the folder that points outside it is rejected too.
        """
        if not relative:
            raise AssetLoadFailure(relative, "empty path")
        if os.path.isabs(relative) or Path(relative).drive:
            raise AssetLoadFailure(relative, "absolute paths are not allowed")

        candidate = os.path.normpath(os.path.join(self.base, relative))
        real_root = os.path.realpath(self.root)
        if (os.path.commonpath([str(self.root), candidate]) != str(self.root)
                or os.path.commonpath([real_root, os.path.realpath(candidate)]) != real_root):
            raise AssetLoadFailure(relative, f"path escapes folder '{self.root}'")
        return Path(candidate)

    def folder_of(self, relative: str) -> 'JailedFolder':
        """Folder containing `relative`, jailed to the same root."""
        return JailedFolder(self.root, self.resolve(relative).parent)

    def read_bytes(self, relative: str) -> bytes:
        path = self.resolve(relative)
        try:
            return path.read_bytes()
        except OSError as e:
            raise AssetLoadFailure(relative, e.strerror or str(e)) from e


# =============================================================================
# IMAGE LOADERS
# =============================================================================

class ImageLoader(ABC):
    """
    Interface used by the decoder to load images.

    Both methods must raise AssetLoadFailure (or let an OSError escape,
    which the decoder converts) when the image cannot be read.
    """

    @abstractmethod
    def load_texture(self, path: Path) -> Tuple[Any, int, int]:
        raise NotImplementedError

    @abstractmethod
    def load_bitmap(self, path: Path) -> Any:
        raise NotImplementedError


@dataclass
class TextureData:
    """
    Raw RGBA pixels ready for upload to the GPU.

    data holds width * height * 4 bytes, row by row. When `flipped` is True
    the rows are stored bottom-to-top (OpenGL convention).
    """
    width: int
    height: int
    data: bytes
    flipped: bool = False

    @classmethod
    def from_pil(cls, image: Image.Image, flip: bool = False) -> 'TextureData':
        # OpenGL expects RGBA (4 channels), whatever the source mode was
        if image.mode != 'RGBA':
            image = image.convert('RGBA')

        # PIL has its origin at the top-left, OpenGL at the bottom-left
        if flip:
            image = image.transpose(Image.Transpose.FLIP_TOP_BOTTOM)

        return cls(image.width, image.height, image.tobytes(), flipped=flip)

    def as_array(self) -> np.ndarray:
        """Pixels as a (height, width, 4) uint8 array."""
        return np.frombuffer(self.data, dtype=np.uint8).reshape(self.height, self.width, 4)


class PillowImageLoader(ImageLoader):
    """
    Default loader backed by Pillow.

    Parameters:
    -----------
    flip : bool
        Store texture rows bottom-to-top, for direct OpenGL upload.
    """

    def __init__(self, flip: bool = False):
        self.flip = flip

    def _open(self, path: Path) -> Image.Image:
        try:
            with Image.open(str(path)) as image:
                image.load()
                return image.convert('RGBA')
        except (OSError, ValueError) as e:
            raise AssetLoadFailure(path, str(e)) from e

    def load_texture(self, path: Path) -> Tuple[TextureData, int, int]:
        image = self._open(path)
        logger.debug("Loaded texture %s (%dx%d)", path, image.width, image.height)
        return TextureData.from_pil(image, flip=self.flip), image.width, image.height

    def load_bitmap(self, path: Path) -> Image.Image:
        image = self._open(path)
        logger.debug("Loaded bitmap %s (%dx%d)", path, image.width, image.height)
        return image


def default_loader(loader: Optional[ImageLoader] = None) -> ImageLoader:
    return loader if loader is not None else PillowImageLoader()

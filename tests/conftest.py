import sys
from pathlib import Path

import pytest

# Ensure the repo root is on sys.path for test imports without installing the package
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from tmx_decoder.resources import ImageLoader, JailedFolder  # noqa: E402


class RecordingLoader(ImageLoader):
    """Image loader that never touches the disk and remembers what it was asked."""

    def __init__(self, size=(64, 32), fail_on=None):
        self.size = size
        self.fail_on = fail_on
        self.calls = []

    def load_texture(self, path):
        self.calls.append(("texture", path))
        if self.fail_on and path.name == self.fail_on:
            raise OSError(f"cannot read {path.name}")
        return f"texture:{path.name}", self.size[0], self.size[1]

    def load_bitmap(self, path):
        self.calls.append(("bitmap", path))
        if self.fail_on and path.name == self.fail_on:
            raise OSError(f"cannot read {path.name}")
        return f"bitmap:{path.name}"


@pytest.fixture
def loader():
    return RecordingLoader()


@pytest.fixture
def folder(tmp_path):
    return JailedFolder(tmp_path)


def tmx(body: str, width: int = 4, height: int = 3) -> str:
    """Wrap `body` in a <map> element."""
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<map version="1.10" tiledversion="1.10.2" orientation="orthogonal" renderorder="right-down"
     width="{width}" height="{height}" tilewidth="16" tileheight="16" infinite="0">
{body}
</map>
"""

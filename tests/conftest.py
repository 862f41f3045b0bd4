from __future__ import annotations

import dataclasses

import pytest

from builders import dels, delx, palb, palettes_with, palx, patch_entry, ppal, sprb, sprg, sprx, style_bytes
from gbstyle.records import SpriteRecord
from gbstyle.style import decode_style

BLACK = 0x000000
RED = 0xFF0000
BLUE = 0x0000FF


@pytest.fixture
def delta_style():
    """One 256x1 black sprite with a single-entry delta painting red, blue at x=10."""
    data = style_bytes(
        palx(),
        ppal(palettes_with({0: BLACK, 5: RED, 6: BLUE})),
        palb([0, 1, 0, 0, 0, 0, 0, 0]),
        sprb([1, 0, 0, 0, 0, 0]),
        sprg(bytes(256)),
        sprx([(0, 255, 1)]),
        dels(patch_entry(10, bytes([5, 6]))),
        delx([(0, [5])]),
    )
    style = decode_style(data)
    # SPRX widths are one byte; widen in place to cover the whole page row.
    return dataclasses.replace(style, sprites=(SpriteRecord(offset=0, width=256, height=1),))

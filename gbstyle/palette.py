from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from .errors import InvalidIndexError
from .records import COLORS_PER_PALETTE, NUM_VIRTUAL_PALETTES, CategoryBaseTable

Rgba = Tuple[int, int, int, int]


def convert_color(value: int) -> Rgba:
    # Source words carry no alpha; everything is opaque, index 0 included.
    return (value >> 16) & 0xFF, (value >> 8) & 0xFF, value & 0xFF, 0xFF


def convert_colors(raw: np.ndarray) -> np.ndarray:
    """Vectorised ``convert_color``: the result gains a trailing RGBA axis."""
    raw = raw.astype(np.uint32, copy=False)
    out = np.empty(raw.shape + (4,), dtype=np.uint8)
    out[..., 0] = (raw >> 16) & 0xFF
    out[..., 1] = (raw >> 8) & 0xFF
    out[..., 2] = raw & 0xFF
    out[..., 3] = 0xFF
    return out


def pack_color(rgba: Tuple[int, ...]) -> int:
    return (int(rgba[0]) << 16) | (int(rgba[1]) << 8) | int(rgba[2])


class PaletteResolver:
    """Two-level palette lookup: virtual index -> physical palette -> RGBA."""

    def __init__(
        self,
        palette_index: Optional[np.ndarray],
        physical_palettes: np.ndarray,
        palette_bases: Optional[CategoryBaseTable] = None,
    ):
        self.palette_index = palette_index
        self.physical_palettes = physical_palettes
        self.palette_bases = palette_bases

    @classmethod
    def for_style(cls, style) -> "PaletteResolver":
        return cls(style.palette_index, style.physical_palettes, style.palette_bases)

    @property
    def palette_count(self) -> int:
        return int(self.physical_palettes.shape[0])

    def physical_index(self, virtual_index: int) -> int:
        if self.palette_index is None:
            raise InvalidIndexError("style has no PALX palette index")
        if not 0 <= virtual_index < NUM_VIRTUAL_PALETTES:
            raise InvalidIndexError(f"virtual palette {virtual_index} outside 0..{NUM_VIRTUAL_PALETTES - 1}")
        return int(self.palette_index[virtual_index])

    def palette(self, physical_index: int) -> np.ndarray:
        if not 0 <= physical_index < self.palette_count:
            raise InvalidIndexError(f"physical palette {physical_index} outside 0..{self.palette_count - 1}")
        return self.physical_palettes[physical_index]

    def color(self, physical_index: int, color_index: int) -> Rgba:
        pal = self.palette(physical_index)
        if not 0 <= color_index < COLORS_PER_PALETTE:
            raise InvalidIndexError(f"color {color_index} outside 0..{COLORS_PER_PALETTE - 1}")
        r, g, b, a = (int(c) for c in pal[color_index])
        return r, g, b, a

    def palette_for(self, virtual_index: int) -> np.ndarray:
        return self.palette(self.physical_index(virtual_index))

    def virtual_index(self, category: str, relative: int) -> int:
        """Virtual palette for the ``relative``-th asset of a palette category."""
        if self.palette_bases is None:
            raise InvalidIndexError("style has no PALB palette bases")
        return self.palette_bases.offset(category) + relative

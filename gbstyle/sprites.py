from __future__ import annotations

import dataclasses
from typing import Iterator, Optional, Tuple

import numpy as np

from .errors import InvalidIndexError
from .palette import PaletteResolver
from .records import PAGE_WIDTH, CarInfo


@dataclasses.dataclass(frozen=True)
class RgbaImage:
    width: int
    height: int
    pixels: np.ndarray  # (height, width, 4) uint8

    @property
    def stride(self) -> int:
        return self.width * 4

    def tobytes(self) -> bytes:
        return np.ascontiguousarray(self.pixels, dtype=np.uint8).tobytes()

    def pixel(self, x: int, y: int) -> Tuple[int, int, int, int]:
        r, g, b, a = (int(c) for c in self.pixels[y, x])
        return r, g, b, a

    def clone(self) -> "RgbaImage":
        return RgbaImage(self.width, self.height, self.pixels.copy())


def colorize(indices: np.ndarray, palette: np.ndarray) -> RgbaImage:
    h, w = indices.shape
    return RgbaImage(width=w, height=h, pixels=palette[indices])


class SpriteAssembler:
    """Turns indexed tiles and sprites into RGBA through the palette chain.

    Tile ``i`` uses virtual palette ``tile base + i``; sprite ``i`` uses
    ``sprite base + i``. Sprite pixels are read from the graphics store as a
    256-wide page grid starting at ``(offset % 256, offset // 256)``.
    """

    def __init__(self, style, resolver: Optional[PaletteResolver] = None):
        self.style = style
        self.resolver = resolver or PaletteResolver.for_style(style)

    def tile_palette(self, index: int) -> np.ndarray:
        return self.resolver.palette_for(self.resolver.virtual_index("tile", index))

    def sprite_palette(self, index: int) -> np.ndarray:
        return self.resolver.palette_for(self.resolver.virtual_index("sprite", index))

    def tile(self, index: int) -> RgbaImage:
        if not 0 <= index < self.style.tiles.shape[0]:
            raise InvalidIndexError(f"tile {index} outside 0..{self.style.tiles.shape[0] - 1}")
        return colorize(self.style.tiles[index], self.tile_palette(index))

    def indexed_sprite(self, index: int) -> np.ndarray:
        sprites = self.style.sprites
        if not 0 <= index < len(sprites):
            raise InvalidIndexError(f"sprite {index} outside 0..{len(sprites) - 1}")
        rec = sprites[index]
        # Widths past 256 would wrap into the next page row; stored sprites never do.
        ys = rec.page_y + np.arange(rec.height)
        xs = rec.page_x + np.arange(rec.width)
        idx = ys[:, None] * PAGE_WIDTH + xs[None, :]
        store = self.style.sprite_graphics
        if idx.size and int(idx.max()) >= store.shape[0]:
            raise InvalidIndexError(
                f"sprite {index} ({rec.width}x{rec.height} at {rec.offset}) reads past the {store.shape[0]}-byte graphics store"
            )
        return store[idx]

    def sprite(self, index: int, palette: Optional[np.ndarray] = None) -> RgbaImage:
        indices = self.indexed_sprite(index)
        return colorize(indices, self.sprite_palette(index) if palette is None else palette)

    def sprite_in(self, category: str, relative: int) -> RgbaImage:
        return self.sprite(self.style.sprite_bases.offset(category) + relative)

    def car_sprite(self, car: CarInfo, remap: Optional[int] = None) -> RgbaImage:
        """Render a car, optionally through its ``remap``-th alternative palette."""
        index = self.style.sprite_bases.offset("car") + car.sprite
        if remap is None:
            return self.sprite(index)
        if not 0 <= remap < len(car.remaps):
            raise InvalidIndexError(f"car model {car.model} has {len(car.remaps)} remaps, not {remap}")
        palette = self.resolver.palette_for(self.resolver.virtual_index("car_remap", car.remaps[remap]))
        return self.sprite(index, palette=palette)

    def tiles(self) -> Iterator[Tuple[int, RgbaImage]]:
        for i in range(self.style.tiles.shape[0]):
            yield i, self.tile(i)

    def sprites(self) -> Iterator[Tuple[int, RgbaImage]]:
        for i in range(len(self.style.sprites)):
            yield i, self.sprite(i)

"""
Typed records decoded from style chunks.

A ``CategoryBaseTable`` splits a flat index space (virtual palettes, sprites,
font characters) into contiguous per-category ranges: category ``k`` owns
``[sum(counts[:k]), sum(counts[:k]) + counts[k])``.
"""

from __future__ import annotations

import dataclasses
from typing import Dict, Iterable, List, Sequence, Tuple

from .errors import InvalidIndexError

NUM_VIRTUAL_PALETTES = 16384
COLORS_PER_PALETTE = 256
PALETTES_PER_PAGE = 64
TILE_SIZE = 64
PAGE_WIDTH = 256
TILES_PER_PAGE_ROW = PAGE_WIDTH // TILE_SIZE
RECYCLE_MAX = 64
RECYCLE_SENTINEL = 255

PALETTE_CATEGORIES: Tuple[str, ...] = (
    "tile",
    "sprite",
    "car_remap",
    "ped_remap",
    "code_obj_remap",
    "map_obj_remap",
    "user_remap",
    "font_remap",
)

SPRITE_CATEGORIES: Tuple[str, ...] = (
    "car",
    "ped",
    "code_obj",
    "map_obj",
    "user",
    "font",
)

SURFACE_TYPES: Tuple[str, ...] = (
    "grass",
    "road_special",
    "water",
    "electrified",
    "electrified_platform",
    "wood_floor",
    "metal_floor",
    "metal_wall",
    "grass_wall",
)


@dataclasses.dataclass(frozen=True)
class CategoryBaseTable:
    categories: Tuple[str, ...]
    counts: Tuple[int, ...]

    def __post_init__(self) -> None:
        if len(self.categories) != len(self.counts):
            raise ValueError("categories and counts differ in length")

    @classmethod
    def empty(cls, categories: Sequence[str]) -> "CategoryBaseTable":
        return cls(tuple(categories), tuple(0 for _ in categories))

    @property
    def total(self) -> int:
        return sum(self.counts)

    @property
    def offsets(self) -> Tuple[int, ...]:
        out: List[int] = []
        running = 0
        for c in self.counts:
            out.append(running)
            running += c
        return tuple(out)

    def _pos(self, category: str) -> int:
        try:
            return self.categories.index(category)
        except ValueError:
            raise KeyError(f"unknown category: {category}") from None

    def offset(self, category: str) -> int:
        return self.offsets[self._pos(category)]

    def count(self, category: str) -> int:
        return self.counts[self._pos(category)]

    def range(self, category: str) -> range:
        start = self.offset(category)
        return range(start, start + self.count(category))

    def locate(self, index: int) -> Tuple[str, int]:
        for name, start, n in zip(self.categories, self.offsets, self.counts):
            if start <= index < start + n:
                return name, index - start
        raise InvalidIndexError(f"index {index} outside base table total {self.total}")

    def as_dict(self) -> Dict[str, Dict[str, int]]:
        return {
            name: {"offset": start, "count": n}
            for name, start, n in zip(self.categories, self.offsets, self.counts)
        }


def font_base_table(char_counts: Iterable[int]) -> CategoryBaseTable:
    counts = tuple(int(c) for c in char_counts)
    return CategoryBaseTable(tuple(f"font_{i}" for i in range(len(counts))), counts)


@dataclasses.dataclass(frozen=True)
class SpriteRecord:
    offset: int  # into the sprite graphics store
    width: int
    height: int

    @property
    def page_x(self) -> int:
        return self.offset % PAGE_WIDTH

    @property
    def page_y(self) -> int:
        return self.offset // PAGE_WIDTH


@dataclasses.dataclass(frozen=True)
class DeltaPatchSet:
    sprite: int
    sizes: Tuple[int, ...]  # patch bytes per variant frame

    @property
    def total_bytes(self) -> int:
        return sum(self.sizes)


@dataclasses.dataclass(frozen=True)
class Door:
    rel_x: int
    rel_y: int


@dataclasses.dataclass(frozen=True)
class CarInfo:
    model: int
    sprite: int  # relative to the car sprite base
    width: int
    height: int
    passengers: int
    wreck: int
    rating: int
    front_wheel_offset: int
    rear_wheel_offset: int
    front_window_offset: int
    rear_window_offset: int
    info_flags: int
    info_flags2: int
    remaps: Tuple[int, ...]  # relative to the car remap palette base
    doors: Tuple[Door, ...]

    @property
    def record_size(self) -> int:
        return 15 + len(self.remaps) + 2 * len(self.doors)


@dataclasses.dataclass(frozen=True)
class MapObjectInfo:
    model: int
    sprites: int

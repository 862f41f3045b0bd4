"""
GBST style file decoding.

File layout:
- magic[4] = "GBST"
- u16le version
- chunks until end of buffer (see chunks.py)

``decode_style`` makes one pass over the buffer and returns an immutable
``Style``; any failure aborts the whole decode with a ``StyleError``.
"""

from __future__ import annotations

import dataclasses
import logging
import pathlib
import types
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import numpy as np

from .chunks import CHUNK_HEADER_SIZE, ChunkAction, ChunkRecord, dispatch_chunks
from .cursor import Buffer, ByteCursor
from .errors import MalformedHeaderError
from .export import read_style_file
from .records import (
    COLORS_PER_PALETTE,
    PALETTE_CATEGORIES,
    SPRITE_CATEGORIES,
    SURFACE_TYPES,
    TILE_SIZE,
    CarInfo,
    CategoryBaseTable,
    DeltaPatchSet,
    MapObjectInfo,
    SpriteRecord,
)

logger = logging.getLogger(__name__)

MAGIC = b"GBST"
SUPPORTED_VERSION = 1
FILE_HEADER_SIZE = 6


@dataclasses.dataclass(frozen=True)
class Style:
    version: int
    palette_index: Optional[np.ndarray]
    physical_palettes: np.ndarray
    palette_bases: CategoryBaseTable
    sprite_bases: CategoryBaseTable
    font_bases: CategoryBaseTable
    tiles: np.ndarray
    sprite_graphics: np.ndarray
    sprites: Tuple[SpriteRecord, ...]
    delta_store: bytes
    deltas: Tuple[DeltaPatchSet, ...]
    cars: Tuple[CarInfo, ...]
    map_objects: Tuple[MapObjectInfo, ...]
    recyclable_cars: Tuple[int, ...]
    surfaces: Mapping[str, Tuple[int, ...]]
    chunks: Tuple[ChunkRecord, ...]

    @property
    def skipped_chunks(self) -> Tuple[ChunkRecord, ...]:
        return tuple(c for c in self.chunks if c.action is ChunkAction.SKIP)

    def payload_offset(self, tag: str) -> Optional[int]:
        # The last decoded chunk of a tag is the one whose table was kept.
        for c in reversed(self.chunks):
            if c.tag == tag and c.action is ChunkAction.DECODE:
                return c.offset + CHUNK_HEADER_SIZE
        return None

    def summary(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "chunks": [{"tag": c.tag, "offset": c.offset, "length": c.length, "action": c.action.value} for c in self.chunks],
            "counts": {
                "physical_palettes": int(self.physical_palettes.shape[0]),
                "tiles": int(self.tiles.shape[0]),
                "sprite_graphics_bytes": int(self.sprite_graphics.shape[0]),
                "sprites": len(self.sprites),
                "delta_sets": len(self.deltas),
                "delta_frames": sum(len(d.sizes) for d in self.deltas),
                "delta_store_bytes": len(self.delta_store),
                "cars": len(self.cars),
                "map_objects": len(self.map_objects),
                "recyclable_cars": len(self.recyclable_cars),
                "fonts": len(self.font_bases.counts),
            },
            "has_palette_index": self.palette_index is not None,
        }


def _frozen(arr: np.ndarray) -> np.ndarray:
    arr.setflags(write=False)
    return arr


def _defaults() -> Dict[str, Any]:
    return {
        "palette_index": None,
        "physical_palettes": np.zeros((0, COLORS_PER_PALETTE, 4), dtype=np.uint8),
        "palette_bases": CategoryBaseTable.empty(PALETTE_CATEGORIES),
        "sprite_bases": CategoryBaseTable.empty(SPRITE_CATEGORIES),
        "font_bases": CategoryBaseTable((), ()),
        "tiles": np.zeros((0, TILE_SIZE, TILE_SIZE), dtype=np.uint8),
        "sprite_graphics": np.zeros(0, dtype=np.uint8),
        "sprites": (),
        "delta_store": b"",
        "deltas": (),
        "cars": (),
        "map_objects": (),
        "recyclable_cars": (),
        "surfaces": types.MappingProxyType({name: () for name in SURFACE_TYPES}),
    }


def read_file_header(cur: ByteCursor) -> int:
    if cur.remaining < FILE_HEADER_SIZE:
        raise MalformedHeaderError(f"{cur.remaining} bytes is too short for a style header", offset=0)
    magic = cur.read_bytes(4)
    if magic != MAGIC:
        raise MalformedHeaderError(f"bad magic {magic!r}, expected {MAGIC!r}", offset=0)
    version = cur.read_u16()
    if version != SUPPORTED_VERSION:
        logger.warning("style version %d is not %d; decoding anyway", version, SUPPORTED_VERSION)
    return version


def decode_style(data: Buffer) -> Style:
    cur = ByteCursor(data)
    version = read_file_header(cur)
    tables, records = dispatch_chunks(cur)

    fields = _defaults()
    fields.update(tables)
    for name in ("palette_index", "physical_palettes", "tiles", "sprite_graphics"):
        if fields[name] is not None:
            fields[name] = _frozen(fields[name])
    return Style(version=version, chunks=tuple(records), **fields)


def load_style(path: Union[str, pathlib.Path]) -> Style:
    return decode_style(read_style_file(path))

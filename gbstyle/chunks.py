"""
Chunk decoders and the tag dispatch loop for GBST style files.

Chunk layout: tag[4] + u32le length + payload[length], back to back until the
buffer ends. Each known tag maps to one decoder that gets a cursor bounded to
its payload and must consume all of it. Unknown tags are skipped by length;
PSXT is recognised but unsupported.
"""

from __future__ import annotations

import dataclasses
import enum
import logging
import types
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import numpy as np

from .cursor import ByteCursor
from .errors import (
    SizeMismatchError,
    StyleError,
    TruncatedChunkError,
    TruncatedReadError,
    UnsupportedChunkError,
)
from .records import (
    COLORS_PER_PALETTE,
    NUM_VIRTUAL_PALETTES,
    PALETTE_CATEGORIES,
    PALETTES_PER_PAGE,
    RECYCLE_MAX,
    RECYCLE_SENTINEL,
    SPRITE_CATEGORIES,
    SURFACE_TYPES,
    TILE_SIZE,
    TILES_PER_PAGE_ROW,
    CarInfo,
    CategoryBaseTable,
    DeltaPatchSet,
    Door,
    MapObjectInfo,
    SpriteRecord,
    font_base_table,
)
from .palette import convert_colors

logger = logging.getLogger(__name__)

CHUNK_HEADER_SIZE = 8
PALETTE_BYTES = COLORS_PER_PALETTE * 4
TILE_BYTES = TILE_SIZE * TILE_SIZE
SPRITE_RECORD_SIZE = 8


class ChunkAction(enum.Enum):
    DECODE = "decode"
    SKIP = "skip"
    FAIL = "fail"


@dataclasses.dataclass(frozen=True)
class ChunkHandler:
    tag: str
    action: ChunkAction
    field: Optional[str] = None
    decode: Optional[Callable[[ByteCursor], Any]] = None
    description: str = ""


@dataclasses.dataclass(frozen=True)
class ChunkRecord:
    tag: str
    offset: int  # absolute offset of the chunk header
    length: int
    action: ChunkAction


def _expect_length(cur: ByteCursor, expected: int, tag: str) -> None:
    if cur.remaining != expected:
        raise SizeMismatchError(f"{tag} payload is {cur.remaining} bytes, expected {expected}")


def _expect_multiple(cur: ByteCursor, unit: int, tag: str) -> int:
    if cur.remaining % unit != 0:
        raise SizeMismatchError(f"{tag} payload of {cur.remaining} bytes is not a multiple of {unit}")
    return cur.remaining // unit


def decode_palx(cur: ByteCursor) -> np.ndarray:
    _expect_length(cur, NUM_VIRTUAL_PALETTES * 2, "PALX")
    return cur.read_array("<u2", NUM_VIRTUAL_PALETTES)


def decode_ppal(cur: ByteCursor) -> np.ndarray:
    count = _expect_multiple(cur, PALETTE_BYTES, "PPAL")
    if count % PALETTES_PER_PAGE != 0:
        raise SizeMismatchError(f"PPAL holds {count} palettes, not whole pages of {PALETTES_PER_PAGE}")
    pages = count // PALETTES_PER_PAGE
    # Stream order inside a page is color-major: C0P0 C0P1 .. C0P63 C1P0 ..
    raw = cur.read_array("<u4", count * COLORS_PER_PALETTE)
    raw = raw.reshape(pages, COLORS_PER_PALETTE, PALETTES_PER_PAGE).transpose(0, 2, 1)
    return convert_colors(raw.reshape(count, COLORS_PER_PALETTE))


def _decode_counts(cur: ByteCursor, categories: Tuple[str, ...], tag: str) -> CategoryBaseTable:
    _expect_length(cur, 2 * len(categories), tag)
    counts = cur.read_struct(f"<{len(categories)}H")
    return CategoryBaseTable(categories, tuple(counts))


def decode_palb(cur: ByteCursor) -> CategoryBaseTable:
    return _decode_counts(cur, PALETTE_CATEGORIES, "PALB")


def decode_sprb(cur: ByteCursor) -> CategoryBaseTable:
    return _decode_counts(cur, SPRITE_CATEGORIES, "SPRB")


def unswizzle_tiles(pages: np.ndarray) -> np.ndarray:
    """Cut a flat 256-wide page buffer into 64x64 tiles, four per page row."""
    # [tile_row, y, tile_col, x] -> [tile_row, tile_col, y, x]
    grid = pages.reshape(-1, TILE_SIZE, TILES_PER_PAGE_ROW, TILE_SIZE)
    return np.ascontiguousarray(grid.transpose(0, 2, 1, 3)).reshape(-1, TILE_SIZE, TILE_SIZE)


def decode_tile(cur: ByteCursor) -> np.ndarray:
    count = _expect_multiple(cur, TILE_BYTES, "TILE")
    if count % TILES_PER_PAGE_ROW != 0:
        raise TruncatedChunkError(
            f"TILE holds {count} tiles; a partial row of {count % TILES_PER_PAGE_ROW} would read past the payload"
        )
    block = np.frombuffer(cur.peek(count * TILE_BYTES), dtype=np.uint8)
    tiles = unswizzle_tiles(block)
    cur.skip(count * TILE_BYTES)
    return tiles


def decode_raw_store(cur: ByteCursor) -> np.ndarray:
    return cur.read_array("u1", cur.remaining)


def decode_dels(cur: ByteCursor) -> bytes:
    return cur.read_bytes(cur.remaining)


def decode_sprx(cur: ByteCursor) -> Tuple[SpriteRecord, ...]:
    count = _expect_multiple(cur, SPRITE_RECORD_SIZE, "SPRX")
    sprites: List[SpriteRecord] = []
    for _ in range(count):
        offset, width, height, _pad = cur.read_struct("<IBBH")
        sprites.append(SpriteRecord(offset=offset, width=width, height=height))
    return tuple(sprites)


def _read_records(cur: ByteCursor, tag: str, read_one: Callable[[ByteCursor], Any]) -> Tuple[Any, ...]:
    out: List[Any] = []
    while not cur.exhausted():
        start = cur.offset
        try:
            out.append(read_one(cur))
        except TruncatedReadError as e:
            raise SizeMismatchError(
                f"{tag} record {len(out)} overruns the chunk ({e.message})",
                offset=start,
            ) from e
    return tuple(out)


def _read_delta_set(cur: ByteCursor) -> DeltaPatchSet:
    sprite, count, _pad = cur.read_struct("<HBB")
    sizes = cur.read_struct(f"<{count}H") if count else ()
    return DeltaPatchSet(sprite=sprite, sizes=tuple(sizes))


def decode_delx(cur: ByteCursor) -> Tuple[DeltaPatchSet, ...]:
    return _read_records(cur, "DELX", _read_delta_set)


def decode_fonb(cur: ByteCursor) -> CategoryBaseTable:
    count = cur.read_u16()
    chars = cur.read_struct(f"<{count}H") if count else ()
    return font_base_table(chars)


def _read_car(cur: ByteCursor) -> CarInfo:
    model, sprite, width, height, num_remaps, passengers, wreck, rating = cur.read_struct("<8B")
    fw, rw, fwin, rwin = cur.read_struct("<4b")
    flags, flags2 = cur.read_struct("<2B")
    remaps = cur.read_struct(f"<{num_remaps}B") if num_remaps else ()
    num_doors = cur.read_u8()
    doors = tuple(Door(*cur.read_struct("<2b")) for _ in range(num_doors))
    return CarInfo(
        model=model,
        sprite=sprite,
        width=width,
        height=height,
        passengers=passengers,
        wreck=wreck,
        rating=rating,
        front_wheel_offset=fw,
        rear_wheel_offset=rw,
        front_window_offset=fwin,
        rear_window_offset=rwin,
        info_flags=flags,
        info_flags2=flags2,
        remaps=tuple(remaps),
        doors=doors,
    )


def decode_cari(cur: ByteCursor) -> Tuple[CarInfo, ...]:
    return _read_records(cur, "CARI", _read_car)


def decode_obji(cur: ByteCursor) -> Tuple[MapObjectInfo, ...]:
    count = _expect_multiple(cur, 2, "OBJI")
    return tuple(MapObjectInfo(*cur.read_struct("<2B")) for _ in range(count))


def decode_recy(cur: ByteCursor) -> Tuple[int, ...]:
    if cur.remaining > RECYCLE_MAX:
        raise SizeMismatchError(f"RECY payload is {cur.remaining} bytes, at most {RECYCLE_MAX} allowed")
    raw = cur.read_bytes(cur.remaining)
    cut = raw.find(bytes([RECYCLE_SENTINEL]))
    return tuple(raw if cut < 0 else raw[:cut])


def decode_spec(cur: ByteCursor) -> Mapping[str, Tuple[int, ...]]:
    surfaces: Dict[str, Tuple[int, ...]] = {name: () for name in SURFACE_TYPES}
    for name in SURFACE_TYPES:
        if cur.exhausted():
            break
        tiles: List[int] = []
        while not cur.exhausted():
            value = cur.read_u16()
            if value == 0:
                break
            tiles.append(value)
        surfaces[name] = tuple(tiles)
    return types.MappingProxyType(surfaces)


CHUNK_TABLE: Dict[str, ChunkHandler] = {
    h.tag: h
    for h in (
        ChunkHandler("PALX", ChunkAction.DECODE, "palette_index", decode_palx, "virtual palette index"),
        ChunkHandler("PPAL", ChunkAction.DECODE, "physical_palettes", decode_ppal, "physical palettes"),
        ChunkHandler("PALB", ChunkAction.DECODE, "palette_bases", decode_palb, "palette bases"),
        ChunkHandler("SPRB", ChunkAction.DECODE, "sprite_bases", decode_sprb, "sprite bases"),
        ChunkHandler("TILE", ChunkAction.DECODE, "tiles", decode_tile, "tiles"),
        ChunkHandler("SPRG", ChunkAction.DECODE, "sprite_graphics", decode_raw_store, "sprite graphics"),
        ChunkHandler("SPRX", ChunkAction.DECODE, "sprites", decode_sprx, "sprite index"),
        ChunkHandler("DELS", ChunkAction.DECODE, "delta_store", decode_dels, "delta store"),
        ChunkHandler("DELX", ChunkAction.DECODE, "deltas", decode_delx, "delta index"),
        ChunkHandler("FONB", ChunkAction.DECODE, "font_bases", decode_fonb, "font bases"),
        ChunkHandler("CARI", ChunkAction.DECODE, "cars", decode_cari, "car info"),
        ChunkHandler("OBJI", ChunkAction.DECODE, "map_objects", decode_obji, "map object info"),
        ChunkHandler("RECY", ChunkAction.DECODE, "recyclable_cars", decode_recy, "car recycling info"),
        ChunkHandler("SPEC", ChunkAction.DECODE, "surfaces", decode_spec, "surface behaviour"),
        ChunkHandler("PSXT", ChunkAction.FAIL, description="PSX tiles"),
    )
}

UNKNOWN_CHUNK = ChunkHandler("????", ChunkAction.SKIP, description="unknown")


def lookup_chunk(tag: str) -> ChunkHandler:
    return CHUNK_TABLE.get(tag, UNKNOWN_CHUNK)


def _read_chunk_header(cur: ByteCursor) -> Tuple[str, int]:
    if cur.remaining < CHUNK_HEADER_SIZE:
        raise TruncatedChunkError(f"{cur.remaining} trailing bytes cannot hold a chunk header", offset=cur.offset)
    raw_tag = cur.read_bytes(4)
    length = cur.read_u32()
    return raw_tag.decode("latin-1"), length


def dispatch_chunks(cur: ByteCursor) -> Tuple[Dict[str, Any], List[ChunkRecord]]:
    """Decode every chunk until ``cur`` is exhausted.

    Returns the decoded tables keyed by field name plus one ``ChunkRecord`` per
    chunk visited, in file order.
    """
    tables: Dict[str, Any] = {}
    records: List[ChunkRecord] = []
    while not cur.exhausted():
        header_off = cur.offset
        tag, length = _read_chunk_header(cur)
        if length > cur.remaining:
            raise TruncatedChunkError(
                f"payload of {length} bytes with only {cur.remaining} remaining",
                chunk=tag,
                offset=header_off,
            )
        handler = lookup_chunk(tag)
        records.append(ChunkRecord(tag, header_off, length, handler.action))

        if handler.action is ChunkAction.SKIP:
            logger.warning("skipping unknown chunk %r (%d bytes) at 0x%X", tag, length, header_off)
            cur.skip(length)
            continue
        if handler.action is ChunkAction.FAIL:
            raise UnsupportedChunkError(f"{handler.description} chunk is not supported", chunk=tag, offset=header_off)

        payload = cur.sub(length)
        logger.debug("decoding %s (%s, %d bytes) at 0x%X", tag, handler.description, length, header_off)
        try:
            value = handler.decode(payload)
            if not payload.exhausted():
                raise SizeMismatchError(f"decoder left {payload.remaining} payload bytes unread", offset=payload.offset)
        except StyleError as e:
            raise e.attach(tag, header_off)
        if handler.field in tables:
            logger.warning("chunk %s repeated at 0x%X, replacing earlier table", tag, header_off)
        tables[handler.field] = value
    return tables, records

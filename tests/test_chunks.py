import struct

import numpy as np
import pytest

from builders import car_record, delx_payload, page_with_tiles, ppal_payload
from gbstyle.chunks import (
    CHUNK_TABLE,
    ChunkAction,
    decode_cari,
    decode_delx,
    decode_fonb,
    decode_obji,
    decode_palb,
    decode_palx,
    decode_ppal,
    decode_recy,
    decode_sprb,
    decode_spec,
    decode_sprx,
    decode_tile,
    lookup_chunk,
)
from gbstyle.cursor import ByteCursor
from gbstyle.errors import SizeMismatchError, TruncatedChunkError
from gbstyle.palette import pack_color
from gbstyle.records import PALETTE_CATEGORIES, SPRITE_CATEGORIES, SURFACE_TYPES

KNOWN_TAGS = {
    "PALX", "PPAL", "PALB", "SPRB", "TILE", "SPRG", "SPRX",
    "DELS", "DELX", "FONB", "CARI", "OBJI", "RECY", "SPEC", "PSXT",
}


def test_chunk_table_matches_known_tags():
    assert set(CHUNK_TABLE) == KNOWN_TAGS
    for tag, handler in CHUNK_TABLE.items():
        assert handler.tag == tag
        if tag == "PSXT":
            assert handler.action is ChunkAction.FAIL
            assert handler.decode is None
        else:
            assert handler.action is ChunkAction.DECODE
            assert callable(handler.decode)
            assert handler.field
    fields = [h.field for h in CHUNK_TABLE.values() if h.field]
    assert len(fields) == len(set(fields))


def test_unknown_tags_are_skipped():
    assert lookup_chunk("XXXX").action is ChunkAction.SKIP
    assert lookup_chunk("palx").action is ChunkAction.SKIP


def test_palx_requires_exact_size():
    table = decode_palx(ByteCursor(struct.pack("<16384H", *range(16384))))
    assert table.shape == (16384,)
    assert int(table[12345]) == 12345
    with pytest.raises(SizeMismatchError):
        decode_palx(ByteCursor(bytes(32766)))


def test_ppal_transposes_page_stream():
    pals = (np.arange(128 * 256, dtype=np.uint32) * 2654435761) & 0xFFFFFF
    pals = pals.reshape(128, 256)
    decoded = decode_ppal(ByteCursor(ppal_payload(pals)))
    assert decoded.shape == (128, 256, 4)
    assert (decoded[..., 3] == 255).all()
    # Inverse mapping reproduces the source words.
    repacked = (
        (decoded[..., 0].astype(np.uint32) << 16)
        | (decoded[..., 1].astype(np.uint32) << 8)
        | decoded[..., 2].astype(np.uint32)
    )
    assert (repacked == pals).all()
    assert ppal_payload(repacked) == ppal_payload(pals)
    assert pack_color(decoded[70, 3]) == int(pals[70, 3])


def test_ppal_stream_order_first_and_last_word():
    words = np.arange(1, 64 * 256 + 1, dtype=np.uint32) * 0x010101 & 0xFFFFFF
    payload = words.astype("<u4").tobytes()
    decoded = decode_ppal(ByteCursor(payload))
    first = int(words[0])
    last = int(words[-1])
    assert tuple(decoded[0, 0]) == ((first >> 16) & 0xFF, (first >> 8) & 0xFF, first & 0xFF, 255)
    assert tuple(decoded[63, 255]) == ((last >> 16) & 0xFF, (last >> 8) & 0xFF, last & 0xFF, 255)
    # Second word of the stream is color 0 of palette 1.
    assert pack_color(decoded[1, 0]) == int(words[1])


def test_ppal_rejects_partial_pages():
    with pytest.raises(SizeMismatchError):
        decode_ppal(ByteCursor(bytes(1024 * 3)))
    with pytest.raises(SizeMismatchError):
        decode_ppal(ByteCursor(bytes(1000)))


def test_base_tables_are_contiguous_running_sums():
    counts = [992, 100, 30, 20, 5, 7, 0, 11]
    palb = decode_palb(ByteCursor(struct.pack("<8H", *counts)))
    assert palb.categories == PALETTE_CATEGORIES
    assert palb.total == sum(counts)
    running = 0
    for name, n in zip(PALETTE_CATEGORIES, counts):
        assert palb.range(name) == range(running, running + n)
        running += n
    assert palb.locate(992) == ("sprite", 0)
    assert palb.locate(1091) == ("sprite", 99)
    assert palb.locate(1092) == ("car_remap", 0)

    sprb = decode_sprb(ByteCursor(struct.pack("<6H", 3, 4, 0, 2, 0, 1)))
    assert sprb.categories == SPRITE_CATEGORIES
    assert sprb.offset("map_obj") == 7
    assert sprb.total == 10


def test_base_tables_require_exact_size():
    with pytest.raises(SizeMismatchError):
        decode_palb(ByteCursor(bytes(14)))
    with pytest.raises(SizeMismatchError):
        decode_sprb(ByteCursor(bytes(14)))


def test_tile_unswizzle_round_trips():
    payload, expected = page_with_tiles(20)
    tiles = decode_tile(ByteCursor(payload))
    assert tiles.shape == (20, 64, 64)
    assert (tiles == expected).all()
    # Re-pack with tile_row = i // 4, tile_col = i % 4.
    flat = np.zeros((5 * 64, 256), dtype=np.uint8)
    for i in range(20):
        r, c = divmod(i, 4)
        flat[r * 64 : (r + 1) * 64, c * 64 : (c + 1) * 64] = tiles[i]
    assert flat.tobytes() == payload


def test_tile_pixel_formula():
    payload, _ = page_with_tiles(8)
    tiles = decode_tile(ByteCursor(payload))
    i, x, y = 6, 13, 41
    row, col = i // 4, i % 4
    assert tiles[i, y, x] == payload[x + col * 64 + (y + row * 64) * 256]


def test_tile_validation():
    with pytest.raises(SizeMismatchError):
        decode_tile(ByteCursor(bytes(4095)))
    with pytest.raises(TruncatedChunkError):
        decode_tile(ByteCursor(bytes(4096 * 3)))


def test_sprx_records():
    payload = struct.pack("<IBBH", 0x1234, 24, 48, 0) + struct.pack("<IBBH", 513, 1, 2, 0xFFFF)
    sprites = decode_sprx(ByteCursor(payload))
    assert [(s.offset, s.width, s.height) for s in sprites] == [(0x1234, 24, 48), (513, 1, 2)]
    assert (sprites[1].page_x, sprites[1].page_y) == (1, 2)
    with pytest.raises(SizeMismatchError):
        decode_sprx(ByteCursor(bytes(12)))


def test_delx_variable_records():
    payload = delx_payload([(3, [10, 20]), (7, []), (9, [5])])
    sets = decode_delx(ByteCursor(payload))
    assert [(d.sprite, d.sizes) for d in sets] == [(3, (10, 20)), (7, ()), (9, (5,))]
    assert sets[0].total_bytes == 30


def test_delx_record_overrunning_chunk_is_size_mismatch():
    payload = delx_payload([(3, [10, 20])])[:-1]
    with pytest.raises(SizeMismatchError):
        decode_delx(ByteCursor(payload))


def test_fonb_running_offsets():
    fonts = decode_fonb(ByteCursor(struct.pack("<4H", 3, 40, 20, 60)))
    assert fonts.categories == ("font_0", "font_1", "font_2")
    assert [fonts.offset(c) for c in fonts.categories] == [0, 40, 60]
    assert fonts.total == 120


def test_cari_variable_records():
    payload = car_record(5, sprite=2, remaps=[1, 2, 3], doors=[(-4, 8)]) + car_record(9)
    cars = decode_cari(ByteCursor(payload))
    assert len(cars) == 2
    car = cars[0]
    assert (car.model, car.sprite, car.width, car.height) == (5, 2, 20, 40)
    assert (car.passengers, car.wreck, car.rating) == (2, 3, 4)
    assert (car.front_wheel_offset, car.rear_wheel_offset) == (10, -10)
    assert (car.front_window_offset, car.rear_window_offset) == (5, -5)
    assert (car.info_flags, car.info_flags2) == (0x81, 0x02)
    assert car.remaps == (1, 2, 3)
    assert [(d.rel_x, d.rel_y) for d in car.doors] == [(-4, 8)]
    assert car.record_size == 15 + 3 + 2
    assert cars[1].remaps == () and cars[1].doors == ()


def test_cari_record_overrunning_chunk_is_size_mismatch():
    payload = car_record(5, remaps=[1, 2], doors=[(1, 1)])[:-1]
    with pytest.raises(SizeMismatchError):
        decode_cari(ByteCursor(payload))


def test_obji_records():
    objs = decode_obji(ByteCursor(bytes([1, 2, 3, 4])))
    assert [(o.model, o.sprites) for o in objs] == [(1, 2), (3, 4)]
    with pytest.raises(SizeMismatchError):
        decode_obji(ByteCursor(bytes(3)))


def test_recy_stops_at_sentinel_and_consumes_payload():
    cur = ByteCursor(bytes([3, 7, 255, 9]))
    assert decode_recy(cur) == (3, 7)
    assert cur.exhausted()


def test_recy_without_sentinel_caps_at_64():
    assert decode_recy(ByteCursor(bytes(range(64)))) == tuple(range(64))
    with pytest.raises(SizeMismatchError):
        decode_recy(ByteCursor(bytes(65)))


def test_spec_surface_lists():
    payload = struct.pack("<7H", 1, 2, 0, 0, 5, 6, 0)
    surfaces = decode_spec(ByteCursor(payload))
    assert tuple(surfaces) == SURFACE_TYPES
    assert surfaces["grass"] == (1, 2)
    assert surfaces["road_special"] == ()
    assert surfaces["water"] == (5, 6)
    assert surfaces["grass_wall"] == ()


def test_spec_stops_after_nine_lists():
    payload = struct.pack("<18H", *([7, 0] * 9))
    cur = ByteCursor(payload + struct.pack("<H", 1))
    surfaces = decode_spec(cur)
    assert all(v == (7,) for v in surfaces.values())
    assert cur.remaining == 2

"""Helpers that assemble synthetic style files in memory."""

from __future__ import annotations

import struct
from typing import Iterable, Sequence, Tuple

import numpy as np


def chunk(tag: str, payload: bytes) -> bytes:
    return tag.encode("latin-1") + struct.pack("<I", len(payload)) + payload


def style_bytes(*chunks: bytes, version: int = 1, magic: bytes = b"GBST") -> bytes:
    return magic + struct.pack("<H", version) + b"".join(chunks)


def palx(mapping: Sequence[int] = ()) -> bytes:
    table = np.zeros(16384, dtype="<u2")
    table[: len(mapping)] = mapping
    return chunk("PALX", table.tobytes())


def ppal_payload(palettes: np.ndarray) -> bytes:
    """``palettes`` is (N, 256) 0xRRGGBB words, palette-major; N % 64 == 0."""
    count = palettes.shape[0]
    stream = palettes.reshape(count // 64, 64, 256).transpose(0, 2, 1)
    return np.ascontiguousarray(stream).astype("<u4").tobytes()


def ppal(palettes: np.ndarray) -> bytes:
    return chunk("PPAL", ppal_payload(palettes))


def palettes_with(colors: dict, count: int = 64) -> np.ndarray:
    """Palette page(s) where palette 0 has ``{color_index: 0xRRGGBB}`` set."""
    pals = np.zeros((count, 256), dtype=np.uint32)
    for idx, value in colors.items():
        pals[0, idx] = value
    return pals


def palb(counts: Sequence[int]) -> bytes:
    return chunk("PALB", struct.pack("<8H", *counts))


def sprb(counts: Sequence[int]) -> bytes:
    return chunk("SPRB", struct.pack("<6H", *counts))


def sprg(data: bytes) -> bytes:
    return chunk("SPRG", data)


def sprx(records: Iterable[Tuple[int, int, int]]) -> bytes:
    return chunk("SPRX", b"".join(struct.pack("<IBBH", off, w, h, 0) for off, w, h in records))


def dels(data: bytes) -> bytes:
    return chunk("DELS", data)


def delx_payload(sets: Iterable[Tuple[int, Sequence[int]]]) -> bytes:
    out = b""
    for sprite, sizes in sets:
        out += struct.pack("<HBB", sprite, len(sizes), 0)
        out += struct.pack(f"<{len(sizes)}H", *sizes)
    return out


def delx(sets: Iterable[Tuple[int, Sequence[int]]]) -> bytes:
    return chunk("DELX", delx_payload(sets))


def patch_entry(advance: int, data: bytes) -> bytes:
    return struct.pack("<HB", advance, len(data)) + data


def car_record(
    model: int,
    sprite: int = 0,
    remaps: Sequence[int] = (),
    doors: Sequence[Tuple[int, int]] = (),
) -> bytes:
    out = struct.pack("<8B", model, sprite, 20, 40, len(remaps), 2, 3, 4)
    out += struct.pack("<4b", 10, -10, 5, -5)
    out += struct.pack("<2B", 0x81, 0x02)
    out += bytes(remaps)
    out += struct.pack("<B", len(doors))
    out += b"".join(struct.pack("<2b", x, y) for x, y in doors)
    return out


def page_with_tiles(count: int) -> Tuple[bytes, np.ndarray]:
    """Build a TILE payload where tile ``i`` is filled with pattern ``(i*7 + x + y) & 0xFF``.

    Returns the raw payload and the expected (count, 64, 64) tiles.
    """
    tiles = np.zeros((count, 64, 64), dtype=np.uint8)
    ys, xs = np.mgrid[0:64, 0:64]
    for i in range(count):
        tiles[i] = (i * 7 + xs + ys * 3) & 0xFF
    rows = count // 4
    flat = np.zeros((rows * 64, 256), dtype=np.uint8)
    for i in range(count):
        r, c = divmod(i, 4)
        flat[r * 64 : (r + 1) * 64, c * 64 : (c + 1) * 64] = tiles[i]
    return flat.tobytes(), tiles

"""
Sprite delta (damage / animation) reconstruction.

DELX lists, per sprite, the byte length of each variant's patch; DELS holds
the patches back to back in that same order. A patch is a run of entries:

- u16le advance   (added to the running pixel position)
- u8 length
- length color indices

Positions are in 256-wide page space, so pixel ``p`` is ``(p % 256, p // 256)``
inside the sprite. There is no per-set offset table: the store can only be
walked front to back, which is why a single ``DeltaCursor`` is threaded
through every patch set in declared order. ``read_patch`` consumes whole
entries until exactly the declared size is used up.

``reconstruct(sprites=...)`` renders only the listed sprites; the other sets
are still walked so the cursor stays aligned. Every variant starts from the
clean base sprite, never from the previous frame.

Failures while walking the store are reported against the DELS chunk, with
file offsets (``base`` is where the DELS payload starts in the file).
"""

from __future__ import annotations

import dataclasses
from typing import Dict, Iterable, List, Optional, Set, Tuple

import numpy as np

from .cursor import ByteCursor
from .errors import InvalidIndexError, SizeMismatchError, StyleError
from .records import PAGE_WIDTH, DeltaPatchSet
from .sprites import RgbaImage, SpriteAssembler

PATCH_ENTRY_HEADER = 3
DELTA_STORE_TAG = "DELS"


@dataclasses.dataclass(frozen=True)
class PatchEntry:
    advance: int
    data: bytes

    @property
    def size(self) -> int:
        return PATCH_ENTRY_HEADER + len(self.data)


@dataclasses.dataclass(frozen=True)
class DeltaFrame:
    sprite: int
    frame: int
    image: RgbaImage


class DeltaCursor:
    def __init__(self, store: bytes, base: int = 0):
        self._cur = ByteCursor(store)
        self.base = base

    @property
    def offset(self) -> int:
        return self.base + self._cur.offset

    def exhausted(self) -> bool:
        return self._cur.exhausted()

    def _relocate(self, e: StyleError) -> None:
        if e.chunk is None and e.offset is not None:
            e.offset += self.base
        e.attach(DELTA_STORE_TAG, self.offset)

    def _read_entry(self) -> PatchEntry:
        advance = self._cur.read_u16()
        length = self._cur.read_u8()
        return PatchEntry(advance=advance, data=self._cur.read_bytes(length))

    def read_entry(self) -> PatchEntry:
        try:
            return self._read_entry()
        except StyleError as e:
            self._relocate(e)
            raise

    def read_patch(self, size: int) -> List[PatchEntry]:
        start = self.offset
        entries: List[PatchEntry] = []
        consumed = 0
        while consumed < size:
            entry = self.read_entry()
            entries.append(entry)
            consumed += entry.size
        if consumed != size:
            raise SizeMismatchError(
                f"patch declared {size} bytes but its last entry ends at {consumed}",
                chunk=DELTA_STORE_TAG,
                offset=start,
            )
        return entries

    def skip_patch(self, size: int) -> None:
        try:
            self._cur.skip(size)
        except StyleError as e:
            self._relocate(e)
            raise


def apply_patch(image: RgbaImage, entries: Iterable[PatchEntry], palette: np.ndarray) -> RgbaImage:
    out = image.clone()
    position = 0
    for entry in entries:
        position += entry.advance
        run = len(entry.data)
        if run:
            p = position + np.arange(run)
            xs = p % PAGE_WIDTH
            ys = p // PAGE_WIDTH
            if int(xs.max()) >= out.width or int(ys.max()) >= out.height:
                raise InvalidIndexError(
                    f"patch run at position {position} (+{run}) leaves the {out.width}x{out.height} sprite"
                )
            out.pixels[ys, xs] = palette[np.frombuffer(entry.data, dtype=np.uint8)]
        position += run
    return out


class DeltaReconstructor:
    def __init__(self, style, assembler: Optional[SpriteAssembler] = None):
        self.style = style
        self.assembler = assembler or SpriteAssembler(style)

    def _apply_set(
        self,
        cursor: DeltaCursor,
        patch_set: DeltaPatchSet,
        bases: Dict[int, RgbaImage],
        first_frame: int = 0,
    ) -> List[DeltaFrame]:
        s = patch_set.sprite
        if s not in bases:
            bases[s] = self.assembler.sprite(s)
        # Deltas reuse the sprite's own palette, not a delta-specific base.
        palette = self.assembler.sprite_palette(s)
        frames: List[DeltaFrame] = []
        for frame, size in enumerate(patch_set.sizes, start=first_frame):
            start = cursor.offset
            entries = cursor.read_patch(size)
            try:
                image = apply_patch(bases[s], entries, palette)
            except InvalidIndexError as e:
                raise e.attach(DELTA_STORE_TAG, start)
            frames.append(DeltaFrame(sprite=s, frame=frame, image=image))
        return frames

    def reconstruct(self, sprites: Optional[Iterable[int]] = None) -> List[DeltaFrame]:
        wanted: Optional[Set[int]] = None if sprites is None else set(sprites)
        cursor = DeltaCursor(self.style.delta_store, base=self.style.payload_offset(DELTA_STORE_TAG) or 0)
        bases: Dict[int, RgbaImage] = {}
        seen: Dict[int, int] = {}
        out: List[DeltaFrame] = []
        for patch_set in self.style.deltas:
            if wanted is not None and patch_set.sprite not in wanted:
                cursor.skip_patch(patch_set.total_bytes)
                continue
            frames = self._apply_set(cursor, patch_set, bases, seen.get(patch_set.sprite, 0))
            seen[patch_set.sprite] = seen.get(patch_set.sprite, 0) + len(frames)
            out.extend(frames)
        return out

    def frame_table(self, sprites: Optional[Iterable[int]] = None) -> Dict[Tuple[int, int], RgbaImage]:
        return {(f.sprite, f.frame): f.image for f in self.reconstruct(sprites)}

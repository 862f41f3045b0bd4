"""
File-system side of extraction: reading the style file, writing PNGs and
manifests. Nothing in the decoder depends on this module.
"""

from __future__ import annotations

import json
import logging
import pathlib
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

import numpy as np
from PIL import Image

from .deltas import DeltaReconstructor
from .records import COLORS_PER_PALETTE
from .sprites import RgbaImage, SpriteAssembler

if TYPE_CHECKING:
    from .style import Style

logger = logging.getLogger(__name__)

PathLike = Union[str, pathlib.Path]
SWATCH_SIDE = 16


def read_style_file(path: PathLike) -> bytes:
    p = pathlib.Path(path)
    if not p.is_file():
        raise FileNotFoundError(f"Style file not found: {p}")
    return p.read_bytes()


def ensure_dir(path: PathLike) -> pathlib.Path:
    p = pathlib.Path(path)
    p.mkdir(parents=True, exist_ok=True)
    return p


def write_image(path: PathLike, image: RgbaImage) -> pathlib.Path:
    p = pathlib.Path(path)
    ensure_dir(p.parent)
    img = Image.frombytes("RGBA", (image.width, image.height), image.tobytes(), "raw", "RGBA", image.stride)
    img.save(p)
    return p


def write_manifest(out_dir: pathlib.Path, manifest: Dict[str, Any]) -> pathlib.Path:
    out_manifest = out_dir / "manifest.json"
    out_manifest.write_text(json.dumps(manifest, indent=2), encoding="utf-8")
    return out_manifest


def _entry(path: pathlib.Path, image: RgbaImage, **extra: Any) -> Dict[str, Any]:
    return {"png": str(path), "width": image.width, "height": image.height, **extra}


def export_tiles(style: "Style", out_dir: pathlib.Path, name: str) -> List[Dict[str, Any]]:
    asm = SpriteAssembler(style)
    entries: List[Dict[str, Any]] = []
    for i, img in asm.tiles():
        p = write_image(out_dir / name.format(index=i), img)
        entries.append(_entry(p, img, index=i))
    logger.info("wrote %d tiles under %s", len(entries), out_dir)
    return entries


def export_sprites(
    style: "Style",
    out_dir: pathlib.Path,
    name: str,
    category: Optional[str] = None,
) -> List[Dict[str, Any]]:
    asm = SpriteAssembler(style)
    bases = style.sprite_bases
    if category is not None:
        indices = list(bases.range(category))
    else:
        indices = list(range(len(style.sprites)))
    entries: List[Dict[str, Any]] = []
    for i in indices:
        if i < bases.total:
            cat, rel = bases.locate(i)
        else:
            cat, rel = "unassigned", i - bases.total
        img = asm.sprite(i)
        p = write_image(out_dir / name.format(index=i, category=cat, relative=rel), img)
        entries.append(_entry(p, img, index=i, category=cat, relative=rel))
    logger.info("wrote %d sprites under %s", len(entries), out_dir)
    return entries


def export_deltas(style: "Style", out_dir: pathlib.Path, name: str) -> List[Dict[str, Any]]:
    entries: List[Dict[str, Any]] = []
    for f in DeltaReconstructor(style).reconstruct():
        p = write_image(out_dir / name.format(sprite=f.sprite, frame=f.frame), f.image)
        entries.append(_entry(p, f.image, sprite=f.sprite, frame=f.frame))
    logger.info("wrote %d delta frames under %s", len(entries), out_dir)
    return entries


def palette_swatch(colors: np.ndarray) -> RgbaImage:
    side = SWATCH_SIDE
    return RgbaImage(side, side, np.ascontiguousarray(colors[:COLORS_PER_PALETTE]).reshape(side, side, 4))


def export_palettes(style: "Style", out_dir: pathlib.Path, name: str) -> List[Dict[str, Any]]:
    entries: List[Dict[str, Any]] = []
    for i in range(style.physical_palettes.shape[0]):
        img = palette_swatch(style.physical_palettes[i])
        p = write_image(out_dir / name.format(index=i), img)
        entries.append(_entry(p, img, index=i))
    return entries


def export_car_remaps(style: "Style", out_dir: pathlib.Path, name: str) -> List[Dict[str, Any]]:
    asm = SpriteAssembler(style)
    entries: List[Dict[str, Any]] = []
    for car in style.cars:
        for r in range(len(car.remaps)):
            img = asm.car_sprite(car, remap=r)
            p = write_image(out_dir / name.format(model=car.model, remap=r, sprite=car.sprite), img)
            entries.append(_entry(p, img, model=car.model, remap=r, palette=car.remaps[r]))
    return entries


def records_dump(style: "Style") -> Dict[str, Any]:
    return {
        "version": style.version,
        "palette_bases": style.palette_bases.as_dict(),
        "sprite_bases": style.sprite_bases.as_dict(),
        "font_bases": style.font_bases.as_dict(),
        "sprites": [{"offset": s.offset, "width": s.width, "height": s.height} for s in style.sprites],
        "deltas": [{"sprite": d.sprite, "sizes": list(d.sizes)} for d in style.deltas],
        "cars": [
            {
                "model": c.model,
                "sprite": c.sprite,
                "width": c.width,
                "height": c.height,
                "passengers": c.passengers,
                "wreck": c.wreck,
                "rating": c.rating,
                "front_wheel_offset": c.front_wheel_offset,
                "rear_wheel_offset": c.rear_wheel_offset,
                "front_window_offset": c.front_window_offset,
                "rear_window_offset": c.rear_window_offset,
                "info_flags": c.info_flags,
                "info_flags2": c.info_flags2,
                "remaps": list(c.remaps),
                "doors": [[d.rel_x, d.rel_y] for d in c.doors],
            }
            for c in style.cars
        ],
        "map_objects": [{"model": o.model, "sprites": o.sprites} for o in style.map_objects],
        "recyclable_cars": list(style.recyclable_cars),
        "surfaces": {k: list(v) for k, v in style.surfaces.items()},
    }

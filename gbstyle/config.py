from __future__ import annotations

import dataclasses
import json
import pathlib
from typing import Any, Dict, Optional

import yaml


@dataclasses.dataclass(frozen=True)
class ExportConfig:
    outdir: Optional[str] = None
    tiles: bool = True
    sprites: bool = True
    deltas: bool = True
    palettes: bool = False
    records: bool = True
    car_remaps: bool = False
    tile_name: str = "tiles/tile_{index:04d}.png"
    sprite_name: str = "sprites/{category}/{category}_{relative:04d}.png"
    delta_name: str = "deltas/{sprite}_{frame}.png"
    palette_name: str = "palettes/palette_{index:05d}.png"
    car_remap_name: str = "cars/car_{model:03d}_remap_{remap:02d}.png"

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "ExportConfig":
        known = {f.name: f for f in dataclasses.fields(cls)}
        unknown = sorted(set(data) - set(known))
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(unknown)}")
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            default = known[key].default
            if isinstance(default, bool):
                if not isinstance(value, bool):
                    raise ValueError(f"Config key '{key}' must be true/false, got: {value!r}")
            elif value is not None and not isinstance(value, str):
                raise ValueError(f"Config key '{key}' must be a string, got: {type(value).__name__}")
            kwargs[key] = value
        return cls(**kwargs)

    def with_outdir(self, outdir: Optional[str]) -> "ExportConfig":
        if outdir is None:
            return self
        return dataclasses.replace(self, outdir=outdir)


def _load_config(path: pathlib.Path) -> Dict[str, Any]:
    ext = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if ext == ".json":
        data = json.loads(text)
    else:
        data = yaml.safe_load(text)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("Config root must be a mapping/object")
    return data


def load_config(path: Any) -> ExportConfig:
    return ExportConfig.from_mapping(_load_config(pathlib.Path(path)))

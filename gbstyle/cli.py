#!/usr/bin/env python3
"""
GBST style file extraction commands.

Current capabilities:
- List chunks and table sizes of a style file.
- Export tiles, sprites, delta frames, palettes and car remaps as PNG.
- Dump non-image records (bases, cars, objects, surfaces) as JSON.

Every command prints a JSON summary; export commands also write a
manifest.json into their output folder.
"""

from __future__ import annotations

import argparse
import json
import logging
import pathlib
from typing import Any, Dict, List, Optional

from .config import ExportConfig, load_config
from .errors import StyleError
from .export import (
    ensure_dir,
    export_car_remaps,
    export_deltas,
    export_palettes,
    export_sprites,
    export_tiles,
    records_dump,
    write_manifest,
)
from .records import SPRITE_CATEGORIES
from .style import Style, load_style

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULTS = ExportConfig()


def _finish(out_dir: pathlib.Path, style_path: str, kind: str, entries: List[Dict[str, Any]]) -> int:
    manifest = {
        "style": style_path,
        "kind": kind,
        "counts": {kind: len(entries)},
        "entries": entries,
    }
    out_manifest = write_manifest(out_dir, manifest)
    print(json.dumps({"outdir": str(out_dir), "manifest": str(out_manifest), **manifest["counts"]}, indent=2))
    return 0


def cmd_info(args: argparse.Namespace) -> int:
    style = load_style(args.style)
    report = {"style": args.style, **style.summary()}
    if args.json:
        pathlib.Path(args.json).write_text(json.dumps(report, indent=2), encoding="utf-8")
    print(json.dumps(report, indent=2))
    return 0


def cmd_export_tiles(args: argparse.Namespace) -> int:
    style = load_style(args.style)
    out_dir = ensure_dir(args.outdir)
    return _finish(out_dir, args.style, "tiles", export_tiles(style, out_dir, args.name))


def cmd_export_sprites(args: argparse.Namespace) -> int:
    style = load_style(args.style)
    out_dir = ensure_dir(args.outdir)
    return _finish(out_dir, args.style, "sprites", export_sprites(style, out_dir, args.name, args.category))


def cmd_export_deltas(args: argparse.Namespace) -> int:
    style = load_style(args.style)
    out_dir = ensure_dir(args.outdir)
    return _finish(out_dir, args.style, "deltas", export_deltas(style, out_dir, args.name))


def cmd_export_palettes(args: argparse.Namespace) -> int:
    style = load_style(args.style)
    out_dir = ensure_dir(args.outdir)
    return _finish(out_dir, args.style, "palettes", export_palettes(style, out_dir, args.name))


def cmd_dump_records(args: argparse.Namespace) -> int:
    style = load_style(args.style)
    out_path = pathlib.Path(args.out)
    ensure_dir(out_path.parent)
    records = records_dump(style)
    out_path.write_text(json.dumps(records, indent=2), encoding="utf-8")
    print(
        json.dumps(
            {
                "out": str(out_path),
                "sprites": len(records["sprites"]),
                "cars": len(records["cars"]),
                "map_objects": len(records["map_objects"]),
            },
            indent=2,
        )
    )
    return 0


def run_export(style: Style, cfg: ExportConfig, style_path: str) -> Dict[str, Any]:
    if not cfg.outdir:
        raise ValueError("No output folder: set 'outdir' in the config or pass --outdir")
    out_dir = ensure_dir(cfg.outdir)
    entries: Dict[str, List[Dict[str, Any]]] = {}
    if cfg.tiles:
        entries["tiles"] = export_tiles(style, out_dir, cfg.tile_name)
    if cfg.sprites:
        entries["sprites"] = export_sprites(style, out_dir, cfg.sprite_name)
    if cfg.deltas:
        entries["deltas"] = export_deltas(style, out_dir, cfg.delta_name)
    if cfg.palettes:
        entries["palettes"] = export_palettes(style, out_dir, cfg.palette_name)
    if cfg.car_remaps:
        entries["car_remaps"] = export_car_remaps(style, out_dir, cfg.car_remap_name)
    manifest: Dict[str, Any] = {
        "style": style_path,
        "version": style.version,
        "counts": {k: len(v) for k, v in entries.items()},
        "entries": entries,
    }
    if cfg.records:
        records_path = out_dir / "records.json"
        records_path.write_text(json.dumps(records_dump(style), indent=2), encoding="utf-8")
        manifest["records"] = str(records_path)
    manifest["manifest"] = str(write_manifest(out_dir, manifest))
    return manifest


def cmd_export_all(args: argparse.Namespace) -> int:
    cfg = load_config(args.config) if args.config else ExportConfig()
    cfg = cfg.with_outdir(args.outdir)
    style = load_style(args.style)
    manifest = run_export(style, cfg, args.style)
    print(json.dumps({"outdir": cfg.outdir, "manifest": manifest["manifest"], **manifest["counts"]}, indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="GBST style file extraction tools")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="cmd", required=True)

    pi = sub.add_parser("info", help="List chunks and decoded table sizes")
    pi.add_argument("--style", required=True, help="Path to .sty file")
    pi.add_argument("--json", help="Optional JSON report output path")
    pi.set_defaults(func=cmd_info)

    pt = sub.add_parser("export-tiles", help="Export every tile as a 64x64 PNG")
    pt.add_argument("--style", required=True, help="Path to .sty file")
    pt.add_argument("--outdir", required=True, help="Output folder for tile PNGs and manifest")
    pt.add_argument("--name", default=DEFAULTS.tile_name, help=f"File name pattern (default: {DEFAULTS.tile_name})")
    pt.set_defaults(func=cmd_export_tiles)

    ps = sub.add_parser("export-sprites", help="Export sprites as PNG")
    ps.add_argument("--style", required=True, help="Path to .sty file")
    ps.add_argument("--outdir", required=True, help="Output folder for sprite PNGs and manifest")
    ps.add_argument("--category", choices=SPRITE_CATEGORIES, help="Only export one sprite category")
    ps.add_argument("--name", default=DEFAULTS.sprite_name, help=f"File name pattern (default: {DEFAULTS.sprite_name})")
    ps.set_defaults(func=cmd_export_sprites)

    pd = sub.add_parser("export-deltas", help="Rebuild and export sprite delta frames")
    pd.add_argument("--style", required=True, help="Path to .sty file")
    pd.add_argument("--outdir", required=True, help="Output folder for delta PNGs and manifest")
    pd.add_argument("--name", default=DEFAULTS.delta_name, help=f"File name pattern (default: {DEFAULTS.delta_name})")
    pd.set_defaults(func=cmd_export_deltas)

    pp = sub.add_parser("export-palettes", help="Export each physical palette as a 16x16 swatch")
    pp.add_argument("--style", required=True, help="Path to .sty file")
    pp.add_argument("--outdir", required=True, help="Output folder for swatch PNGs and manifest")
    pp.add_argument("--name", default=DEFAULTS.palette_name, help=f"File name pattern (default: {DEFAULTS.palette_name})")
    pp.set_defaults(func=cmd_export_palettes)

    pr = sub.add_parser("dump-records", help="Write bases, cars, objects and surfaces as JSON")
    pr.add_argument("--style", required=True, help="Path to .sty file")
    pr.add_argument("--out", required=True, help="Output JSON path")
    pr.set_defaults(func=cmd_dump_records)

    pa = sub.add_parser("export-all", help="Config-driven export of everything")
    pa.add_argument("--style", required=True, help="Path to .sty file")
    pa.add_argument("--config", help="Config file (.json/.yaml/.yml)")
    pa.add_argument("--outdir", help="Output folder (overrides config outdir)")
    pa.set_defaults(func=cmd_export_all)

    return p


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING, format=LOG_FORMAT)
    try:
        return int(args.func(args))
    except StyleError as e:
        logger.error("decode failed: %s", e)
        print(json.dumps(e.to_dict(), indent=2))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())

#!/usr/bin/env python3
"""
Render an items.json catalog to items.lua without running the web server.

Usage:
  python scripts/export_items_lua.py --items data/items.json --base-url https://items.example.com
  python scripts/export_items_lua.py --items data/items.json --base-url https://cdn.example --out items.lua --skip-invalid
"""
import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from item_schema import ItemValidationError  # noqa: E402
from item_store import ItemStore, PersistenceError  # noqa: E402
from lua_emitter import emit_items_lua  # noqa: E402


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Export the item catalog as a Lua table.")
    parser.add_argument("--items", type=Path, required=True, help="path to items.json")
    parser.add_argument("--base-url", required=True, help="scheme + host that image URLs should point at")
    parser.add_argument("--out", type=Path, default=None, help="output file (default: stdout)")
    parser.add_argument("--skip-invalid", action="store_true", help="drop malformed items instead of failing")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s: %(message)s")

    try:
        items = ItemStore(args.items).list_items()
        lua_text = emit_items_lua(items, args.base_url, on_invalid="skip" if args.skip_invalid else "abort")
    except PersistenceError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    except ItemValidationError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    if args.out is None:
        sys.stdout.write(lua_text)
    else:
        args.out.write_text(lua_text, encoding="utf-8")
        print(f"Wrote {args.out}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

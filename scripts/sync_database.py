#!/usr/bin/env python3
"""
Copy the most recently modified readable database.json to the primary path and every mirror.

The server starts this in the background after each write when SYNC_AFTER_WRITE=true; it can also
be run by hand after editing one of the copies.

Usage (from project root, with venv activated):
  python scripts/sync_database.py [--database PATH] [--mirror PATH ...]

Defaults come from DATABASE_PATH and DATABASE_MIRRORS in .env or environment.
"""
from __future__ import annotations

import sys
from pathlib import Path

_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT / "src") not in sys.path:
    sys.path.insert(0, str(_ROOT / "src"))

from content_store import ContentStore
from env_manager import DATABASE_MIRRORS, DATABASE_PATH


def main(argv: list[str] | None = None) -> int:
    import argparse
    ap = argparse.ArgumentParser(description="Sync database.json copies from the newest one")
    ap.add_argument("--database", default=None, help=f"Primary database file (default {DATABASE_PATH})")
    ap.add_argument("--mirror", action="append", default=None, help="Mirror file; repeat for several")
    args = ap.parse_args(argv)

    primary = Path(args.database) if args.database else DATABASE_PATH
    mirrors = [Path(m) for m in args.mirror] if args.mirror else DATABASE_MIRRORS
    store = ContentStore(primary, mirrors)

    source = store.newest_path()
    if source is None:
        print(f"No readable database found in: {', '.join(str(p) for p in store.locations())}", file=sys.stderr)
        return 1
    print(f"Newest database: {source}", file=sys.stderr)
    if not store.sync_from_newest():
        print("Sync finished with errors", file=sys.stderr)
        return 1
    print(f"Synced {len(store.locations())} location(s)", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())

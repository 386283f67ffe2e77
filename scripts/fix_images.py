#!/usr/bin/env python3
"""
Make sure every image directory exists and holds the default placeholder images
(default.jpg, placeholder.jpg, default-image.jpg), so the fallback chain finds a real file.

Usage (from project root, with venv activated):
  python scripts/fix_images.py [--dir PATH ...]

Without --dir, the server's image search directories are used.
"""
from __future__ import annotations

import sys
from pathlib import Path

_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT / "src") not in sys.path:
    sys.path.insert(0, str(_ROOT / "src"))

from assets import DEFAULT_IMAGE_NAMES, write_placeholders
from env_manager import ROOT, UPLOADS_DIR, image_search_dirs


def main(argv: list[str] | None = None) -> int:
    import argparse
    ap = argparse.ArgumentParser(description="Create image dirs and placeholder images")
    ap.add_argument("--dir", action="append", default=None, help="Directory to provision; repeat for several")
    args = ap.parse_args(argv)

    dirs = [Path(d) for d in args.dir] if args.dir else image_search_dirs(ROOT, UPLOADS_DIR)
    try:
        written = write_placeholders(dirs, DEFAULT_IMAGE_NAMES)
    except OSError as e:
        print(f"Could not write placeholders: {e}", file=sys.stderr)
        return 1
    for path in written:
        print(f"  wrote {path}", file=sys.stderr)
    print(f"Checked {len(dirs)} dir(s), wrote {len(written)} placeholder file(s)", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())

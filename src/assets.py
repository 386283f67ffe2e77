"""
Static image resolver with a fallback chain: the requested file, then a default image, then an
embedded PNG placeholder. Image requests therefore never end in a broken image.
"""
from __future__ import annotations

import base64
import enum
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from werkzeug.security import safe_join

from env_manager import get_logger

log = get_logger("assets")

# 1x1 transparent PNG
PLACEHOLDER_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)
DEFAULT_IMAGE_NAMES = ("default.jpg", "placeholder.jpg", "default-image.jpg")
IMAGE_RE = re.compile(r"\.(jpe?g|png|gif|webp|ico)$", re.IGNORECASE)

_CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".ico": "image/x-icon",
}


class AssetState(str, enum.Enum):
    FOUND_PRIMARY = "found-primary"
    FOUND_FALLBACK = "found-fallback"
    PLACEHOLDER = "placeholder"


@dataclass
class ResolvedAsset:
    state: AssetState
    path: Optional[Path] = None

    @property
    def content_type(self) -> str:
        if self.path is None:
            return "image/png"
        return content_type_for(self.path.name)


def is_image_request(filename: str) -> bool:
    return bool(IMAGE_RE.search(filename or ""))


def content_type_for(filename: str) -> str:
    return _CONTENT_TYPES.get(os.path.splitext(filename)[1].lower(), "application/octet-stream")


class AssetResolver:
    def __init__(self, search_dirs: Iterable[Path]):
        self.search_dirs = [Path(d) for d in search_dirs]

    def candidates(self, filename: str) -> Iterator[Path]:
        """Requested relative path in each dir, then its basename. Unsafe joins are skipped."""
        names = [filename]
        base = os.path.basename(filename)
        if base and base != filename:
            names.append(base)
        for name in names:
            for d in self.search_dirs:
                joined = safe_join(str(d), name)
                if joined is not None:
                    yield Path(joined)

    def _first_file(self, filename: str) -> Optional[Path]:
        for p in self.candidates(filename):
            if p.is_file():
                return p
        return None

    def resolve(self, filename: str) -> Optional[ResolvedAsset]:
        """None means a missing non-image file (the caller answers 404)."""
        found = self._first_file(filename)
        if found is not None:
            return ResolvedAsset(AssetState.FOUND_PRIMARY, found)
        if not is_image_request(filename):
            return None
        for name in DEFAULT_IMAGE_NAMES:
            fallback = self._first_file(name)
            if fallback is not None:
                log.info("Image %s not found; serving fallback %s", filename, fallback)
                return ResolvedAsset(AssetState.FOUND_FALLBACK, fallback)
        log.info("Image %s not found; serving placeholder", filename)
        return ResolvedAsset(AssetState.PLACEHOLDER)

    def diagnostics(self) -> List[dict]:
        out = []
        for d in self.search_dirs:
            exists = d.is_dir()
            images = sorted(p.name for p in d.iterdir() if p.is_file() and is_image_request(p.name)) if exists else []
            out.append({"path": str(d), "exists": exists, "imageCount": len(images), "sample": images[:5]})
        return out


def write_placeholders(dirs: Iterable[Path], names: Iterable[str] = DEFAULT_IMAGE_NAMES) -> List[Path]:
    """Create each dir and write the placeholder under every missing name. Returns files written."""
    written: List[Path] = []
    names = list(names)
    for d in dirs:
        d = Path(d)
        d.mkdir(parents=True, exist_ok=True)
        for name in names:
            target = d / name
            if target.exists():
                continue
            target.write_bytes(PLACEHOLDER_PNG)
            written.append(target)
    return written

"""
Image uploads: extension allow-list, unique on-disk names, and cleanup of files a deleted record referenced.
"""
from __future__ import annotations

import os
import random
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from werkzeug.datastructures import FileStorage
from werkzeug.security import safe_join

from api_errors import ValidationError
from env_manager import get_logger

log = get_logger("uploads")

ALLOWED_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".webp"})
PUBLIC_PREFIX = "/images/uploads"
UPLOADS_DIR_NAME = "uploads"


@dataclass
class StoredUpload:
    filename: str
    originalname: str
    path: Path
    url: str
    size: int
    mimetype: str

    def describe(self, public_base_url: str) -> dict:
        return {
            "url": self.url,
            "absoluteUrl": f"{public_base_url.rstrip('/')}{self.url}",
            "filename": self.filename,
            "originalname": self.originalname,
            "size": self.size,
            "mimetype": self.mimetype,
        }


def is_allowed(filename: str) -> bool:
    return os.path.splitext(filename or "")[1].lower() in ALLOWED_EXTENSIONS


def unique_name(original: str) -> str:
    """{epoch millis}-{random}{ext}, e.g. 1747193559802-784322977.jpg."""
    ext = os.path.splitext(original)[1].lower()
    return f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}{ext}"


class UploadHandler:
    def __init__(self, uploads_dir: Path):
        self.uploads_dir = Path(uploads_dir)

    def save(self, file: FileStorage) -> StoredUpload:
        if not is_allowed(file.filename or ""):
            raise ValidationError("Only image files are allowed!")
        self.uploads_dir.mkdir(parents=True, exist_ok=True)
        name = unique_name(file.filename or "")
        dest = self.uploads_dir / name
        file.save(str(dest))
        stored = StoredUpload(
            filename=name,
            originalname=file.filename or "",
            path=dest,
            url=f"{PUBLIC_PREFIX}/{name}",
            size=dest.stat().st_size,
            mimetype=file.mimetype or "application/octet-stream",
        )
        log.info("Stored upload %s (%d bytes) from %r", dest, stored.size, stored.originalname)
        return stored

    def save_all(self, files: Iterable[FileStorage]) -> List[StoredUpload]:
        """Validate every file first so a rejected batch writes nothing."""
        accepted = [f for f in files if f is not None and f.filename]
        for f in accepted:
            if not is_allowed(f.filename):
                raise ValidationError("Only image files are allowed!")
        return [self.save(f) for f in accepted]

    def delete_referenced(self, public_paths: Iterable[str], search_dirs: Optional[Iterable[Path]] = None) -> int:
        """
        Best-effort removal of uploaded files by public path. Each basename is looked up in the
        upload dir and in those search dirs named "uploads"; fallback image dirs are never touched.
        Failures are logged, never raised.
        """
        dirs = [self.uploads_dir, *(Path(d) for d in (search_dirs or []) if Path(d).name == UPLOADS_DIR_NAME)]
        removed = 0
        for public_path in public_paths:
            name = os.path.basename(public_path)
            if not name:
                continue
            for d in dirs:
                candidate = safe_join(str(d), name)
                if candidate is None or not os.path.isfile(candidate):
                    continue
                try:
                    os.remove(candidate)
                    removed += 1
                    log.info("Deleted image file: %s", candidate)
                except OSError as e:
                    log.warning("Error deleting image file %s: %s", candidate, e)
        return removed

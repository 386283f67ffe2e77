"""
JSON-file content store.

The whole site lives in one document (database.json) holding named collections. load() never
raises: missing or broken data is repaired with empty collections (or a small seed for navigation
and team) and written back. save() rewrites the full document, so concurrent writers race and the
last snapshot wins.

Optional mirrors are extra copies of the same file. save() writes them best-effort; sync_from_newest()
copies the most recently modified readable copy to every location.
"""
from __future__ import annotations

import copy
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, List, Optional, Tuple

from env_manager import get_logger

log = get_logger("content_store")

COLLECTIONS = (
    "products",
    "services",
    "experiences",
    "team",
    "news",
    "images",
    "videos",
    "contacts",
    "categories",
    "users",
    "navigation",
)

DEFAULT_NAVIGATION = [
    {"id": 1, "title": "Trang chủ", "slug": "trang-chu", "position": 1, "children": []},
    {"id": 2, "title": "Sản phẩm", "slug": "san-pham", "position": 2, "children": []},
    {"id": 3, "title": "Dịch vụ", "slug": "dich-vu", "position": 3, "children": []},
    {"id": 4, "title": "Trải nghiệm", "slug": "trai-nghiem", "position": 4, "children": []},
    {"id": 5, "title": "Tin tức", "slug": "tin-tuc", "position": 5, "children": []},
    {"id": 6, "title": "Liên hệ", "slug": "lien-he", "position": 6, "children": []},
]

DEFAULT_TEAM = [
    {
        "id": 1,
        "name": "Nguyễn Hữu Quyền",
        "position": "Giám đốc HTX",
        "avatar": "/images/placeholder.jpg",
        "image": "/images/placeholder.jpg",
        "description": "Giám đốc HTX",
    },
    {
        "id": 2,
        "name": "Võ Tá Quỳnh",
        "position": "Quản Lý",
        "avatar": "/images/placeholder.jpg",
        "image": "/images/placeholder.jpg",
        "description": "Quản lý HTX",
    },
]

_SEEDS = {"navigation": DEFAULT_NAVIGATION, "team": DEFAULT_TEAM}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def repair_document(raw: Any) -> Tuple[dict, bool]:
    """
    Return (document, changed). Every collection exists and is a list; navigation items all
    have a children list. Non-list navigation/team get their seed, the rest become [].
    """
    changed = False
    if not isinstance(raw, dict):
        raw = {}
        changed = True
    doc = dict(raw)
    for name in COLLECTIONS:
        if isinstance(doc.get(name), list):
            continue
        doc[name] = copy.deepcopy(_SEEDS.get(name, []))
        changed = True
    for item in doc["navigation"]:
        if isinstance(item, dict) and not isinstance(item.get("children"), list):
            item["children"] = []
            changed = True
    return doc, changed


def next_id(records: Iterable[dict]) -> int:
    """max(existing ids) + 1, or 1 for an empty collection. Non-numeric ids count as 0."""
    ids = []
    for r in records:
        try:
            ids.append(int(r.get("id") or 0))
        except (TypeError, ValueError, OverflowError):
            ids.append(0)
    return max(ids) + 1 if ids else 1


def find_index(records: List[dict], record_id: int) -> int:
    """Linear scan for id; -1 when absent."""
    for idx, r in enumerate(records):
        try:
            if int(r.get("id")) == record_id:
                return idx
        except (TypeError, ValueError, OverflowError):
            continue
    return -1


def _read_json(path: Path) -> Optional[dict]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return None
    except (OSError, ValueError) as e:
        log.warning("Could not read database %s: %s", path, e)
        return None
    return data if isinstance(data, dict) else None


def _write_text_atomic(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with open(tmp_path, "w", encoding="utf-8") as f:
        f.write(text)
    tmp_path.replace(path)


class ContentStore:
    """Accessor for database.json; one instance is handed to every handler."""

    def __init__(self, path: Path, mirrors: Iterable[Path] = ()):
        self.path = Path(path)
        self.mirrors = [Path(m) for m in mirrors if Path(m) != Path(path)]

    def locations(self) -> List[Path]:
        return [self.path, *self.mirrors]

    def load(self) -> dict:
        raw = _read_json(self.path)
        if raw is None:
            log.info("Database at %s missing or unreadable; using defaults", self.path)
        doc, changed = repair_document(raw)
        if changed:
            try:
                _write_text_atomic(self.path, self._dumps(doc))
            except OSError as e:
                log.warning("Could not persist repaired database to %s: %s", self.path, e)
        return doc

    def save(self, document: Any) -> bool:
        if not isinstance(document, dict):
            log.error("Refusing to save non-object database: %r", type(document))
            return False
        doc, _ = repair_document(document)
        try:
            text = self._dumps(doc)
            _write_text_atomic(self.path, text)
        except (OSError, TypeError, ValueError) as e:
            log.error("Error writing database %s: %s", self.path, e)
            return False
        self._write_mirrors(text)
        return True

    def import_document(self, document: Any) -> bool:
        """Replace the whole document (admin upload). Experience images are normalized to lists."""
        if not isinstance(document, dict):
            return False
        doc = dict(document)
        experiences = doc.get("experiences")
        if isinstance(experiences, list):
            for exp in experiences:
                if not isinstance(exp, dict):
                    continue
                images = exp.get("images")
                if isinstance(images, str):
                    exp["images"] = [images]
                elif not isinstance(images, list):
                    exp["images"] = []
        return self.save(doc)

    def newest_path(self) -> Optional[Path]:
        """Most recently modified location that holds a readable JSON object."""
        best: Optional[Tuple[int, Path]] = None
        for p in self.locations():
            try:
                mtime = p.stat().st_mtime_ns
            except OSError:
                continue
            if _read_json(p) is None:
                continue
            if best is None or mtime > best[0]:
                best = (mtime, p)
        return best[1] if best else None

    def sync_from_newest(self) -> bool:
        source = self.newest_path()
        if source is None:
            log.warning("No readable database copy found in %s", [str(p) for p in self.locations()])
            return False
        doc, _ = repair_document(_read_json(source))
        text = self._dumps(doc)
        ok = True
        for p in self.locations():
            try:
                _write_text_atomic(p, text)
                log.info("Synced database %s -> %s", source, p)
            except OSError as e:
                log.error("Error syncing database to %s: %s", p, e)
                ok = False
        return ok

    def _write_mirrors(self, text: str) -> None:
        for mirror in self.mirrors:
            if not mirror.parent.is_dir():
                continue
            try:
                _write_text_atomic(mirror, text)
            except OSError as e:
                log.warning("Error writing database mirror %s: %s", mirror, e)

    @staticmethod
    def _dumps(doc: dict) -> str:
        return json.dumps(doc, indent=2, ensure_ascii=False)

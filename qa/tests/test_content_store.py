"""
Tests for src/content_store.py: load/repair, atomic save, mirrors, sync-from-newest.
"""
import json
import os
from unittest.mock import patch

import pytest

import content_store as cs
from content_store import COLLECTIONS, ContentStore, find_index, next_id, repair_document


# ---------- load / repair ----------
@pytest.mark.unit
def test_load_missing_file_seeds_navigation_and_team(store, settings):
    doc = store.load()
    for name in COLLECTIONS:
        assert isinstance(doc[name], list)
        if name in ("navigation", "team"):
            assert doc[name]
        else:
            assert doc[name] == []
    # Repaired document is written back
    assert settings.database_path.exists()
    on_disk = json.loads(settings.database_path.read_text(encoding="utf-8"))
    assert on_disk["navigation"][0]["title"] == "Trang chủ"


@pytest.mark.unit
def test_load_malformed_json(store, settings):
    settings.database_path.write_text("{not json", encoding="utf-8")
    doc = store.load()
    assert doc["products"] == []
    assert len(doc["team"]) == 2


@pytest.mark.unit
def test_load_non_object_top_level(store, write_db):
    write_db([1, 2, 3])
    doc = store.load()
    assert doc["news"] == []
    assert doc["navigation"]


@pytest.mark.unit
def test_load_repairs_single_collection_and_children(store, write_db, settings):
    write_db({
        "products": [{"id": 1, "name": "Gạo"}],
        "services": "oops",
        "navigation": [{"id": 1, "title": "Home"}],
    })
    doc = store.load()
    assert doc["products"] == [{"id": 1, "name": "Gạo"}]
    assert doc["services"] == []
    assert doc["navigation"] == [{"id": 1, "title": "Home", "children": []}]
    assert doc["team"]  # missing -> seed
    # Non-ASCII kept as-is in the file
    assert "Gạo" in settings.database_path.read_text(encoding="utf-8")


@pytest.mark.unit
def test_load_does_not_rewrite_healthy_file(store, write_db):
    path = write_db({name: [] for name in COLLECTIONS})
    before = path.stat().st_mtime_ns
    with patch.object(cs, "_write_text_atomic") as m:
        store.load()
    m.assert_not_called()
    assert path.stat().st_mtime_ns == before


@pytest.mark.unit
def test_repair_document_reports_change():
    doc, changed = repair_document({name: [] for name in COLLECTIONS})
    assert changed is False
    doc, changed = repair_document(None)
    assert changed is True
    assert set(COLLECTIONS) <= set(doc)


# ---------- ids ----------
@pytest.mark.unit
def test_next_id():
    assert next_id([]) == 1
    assert next_id([{"id": 1}, {"id": 7}, {"id": 3}]) == 8
    assert next_id([{"id": "4"}, {"id": "abc"}]) == 5
    assert next_id([{"id": float("inf")}, {"id": 2}]) == 3


@pytest.mark.unit
def test_find_index():
    records = [{"id": 2}, {"id": "5"}, {"id": None}, {"id": float("inf")}]
    assert find_index(records, 5) == 1
    assert find_index(records, 9) == -1


# ---------- save ----------
@pytest.mark.unit
def test_save_round_trip(store):
    doc = store.load()
    doc["products"].append({"id": 1, "name": "Trà sen"})
    assert store.save(doc) is True
    assert store.load()["products"] == [{"id": 1, "name": "Trà sen"}]


@pytest.mark.unit
def test_save_rejects_non_mapping(store, settings):
    assert store.save(["not", "a", "dict"]) is False
    assert not settings.database_path.exists()


@pytest.mark.unit
def test_save_write_failure_returns_false(store):
    doc = store.load()
    with patch.object(cs, "_write_text_atomic", side_effect=OSError("disk full")):
        assert store.save(doc) is False


@pytest.mark.unit
def test_save_leaves_no_tmp_file(store, settings):
    store.save(store.load())
    leftovers = [p.name for p in settings.database_path.parent.iterdir() if p.name.endswith(".tmp")]
    assert leftovers == []


@pytest.mark.unit
def test_save_writes_mirrors_best_effort(tmp_path):
    primary = tmp_path / "a" / "database.json"
    mirror_ok = tmp_path / "b" / "database.json"
    mirror_missing_dir = tmp_path / "nope" / "database.json"
    mirror_ok.parent.mkdir()
    store = ContentStore(primary, [mirror_ok, mirror_missing_dir])
    doc = store.load()
    doc["news"].append({"id": 1, "title": "Hello"})
    assert store.save(doc) is True
    assert json.loads(mirror_ok.read_text(encoding="utf-8"))["news"][0]["title"] == "Hello"
    assert not mirror_missing_dir.exists()


@pytest.mark.unit
def test_save_mirror_error_is_swallowed(tmp_path):
    primary = tmp_path / "database.json"
    mirror = tmp_path / "m" / "database.json"
    mirror.parent.mkdir()
    store = ContentStore(primary, [mirror])
    real_write = cs._write_text_atomic

    def _fail_on_mirror(path, text):
        if path == mirror:
            raise OSError("read-only")
        return real_write(path, text)

    with patch.object(cs, "_write_text_atomic", side_effect=_fail_on_mirror):
        assert store.save({"products": []}) is True
    assert primary.exists()


@pytest.mark.unit
def test_stale_snapshot_last_write_wins(store):
    store.save(store.load())
    first = store.load()
    second = store.load()
    first["products"].append({"id": 1, "name": "A"})
    second["products"].append({"id": 1, "name": "B"})
    store.save(first)
    store.save(second)
    assert store.load()["products"] == [{"id": 1, "name": "B"}]


# ---------- import / sync ----------
@pytest.mark.unit
def test_import_document_normalizes_experience_images(store):
    assert store.import_document({
        "experiences": [
            {"id": 1, "images": "/images/uploads/a.jpg"},
            {"id": 2},
            {"id": 3, "images": ["/x.jpg"]},
        ],
    }) is True
    exps = store.load()["experiences"]
    assert [e["images"] for e in exps] == [["/images/uploads/a.jpg"], [], ["/x.jpg"]]


@pytest.mark.unit
def test_import_document_rejects_non_mapping(store):
    assert store.import_document("nope") is False


@pytest.mark.unit
def test_newest_path_and_sync(tmp_path):
    primary = tmp_path / "database.json"
    mirror = tmp_path / "mirror" / "database.json"
    mirror.parent.mkdir()
    primary.write_text(json.dumps({"products": [{"id": 1, "name": "old"}]}), encoding="utf-8")
    mirror.write_text(json.dumps({"products": [{"id": 1, "name": "new"}]}), encoding="utf-8")
    st = primary.stat()
    os.utime(primary, ns=(st.st_atime_ns, st.st_mtime_ns - 10_000_000_000))

    store = ContentStore(primary, [mirror])
    assert store.newest_path() == mirror
    assert store.sync_from_newest() is True
    assert json.loads(primary.read_text(encoding="utf-8"))["products"][0]["name"] == "new"


@pytest.mark.unit
def test_newest_path_skips_unreadable(tmp_path):
    primary = tmp_path / "database.json"
    mirror = tmp_path / "mirror.json"
    primary.write_text(json.dumps({"products": []}), encoding="utf-8")
    mirror.write_text("garbage", encoding="utf-8")
    store = ContentStore(primary, [mirror])
    assert store.newest_path() == primary


@pytest.mark.unit
def test_sync_without_any_copy(tmp_path):
    store = ContentStore(tmp_path / "database.json", [tmp_path / "m.json"])
    assert store.newest_path() is None
    assert store.sync_from_newest() is False

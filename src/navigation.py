"""
Two-level navigation tree stored in the navigation collection: parents carry a children list,
children carry parentId. Child ids are unique across all parents.
"""
from __future__ import annotations

from typing import Callable, Iterator, List, Optional, Tuple

from flask import Blueprint

from api_errors import NotFoundError, StorageError, envelope
from content_api import request_body
from content_store import ContentStore, find_index, next_id
from env_manager import get_logger
from records import CHILD_NAV, PARENT_NAV, build_record, merge_record, to_int

log = get_logger("navigation")


def _position(item: dict) -> int:
    return to_int(item.get("position")) or 0


def sorted_parents(navigation: List[dict]) -> List[dict]:
    return sorted((p for p in navigation if isinstance(p, dict)), key=_position)


def without_children(parent: dict) -> dict:
    return {k: v for k, v in parent.items() if k != "children"}


def iter_children(navigation: List[dict]) -> Iterator[Tuple[dict, dict]]:
    """(parent, child) pairs in storage order."""
    for parent in navigation:
        if not isinstance(parent, dict):
            continue
        for child in parent.get("children") or []:
            if isinstance(child, dict):
                yield parent, child


def flatten_children(navigation: List[dict]) -> List[dict]:
    return [dict(child, parentId=parent.get("id")) for parent, child in iter_children(navigation)]


def find_child(navigation: List[dict], child_id: int) -> Optional[Tuple[dict, int]]:
    """(parent, index in parent's children) for a child id, or None."""
    for parent in navigation:
        if not isinstance(parent, dict):
            continue
        idx = find_index(parent.get("children") or [], child_id)
        if idx >= 0:
            return parent, idx
    return None


def next_child_id(navigation: List[dict]) -> int:
    return next_id(child for _, child in iter_children(navigation))


def create_navigation_blueprint(store: ContentStore, on_write: Optional[Callable[[], None]] = None) -> Blueprint:
    bp = Blueprint("navigation", __name__)

    def _save(doc: dict) -> None:
        if not store.save(doc):
            raise StorageError()
        if on_write is not None:
            on_write()

    def _parent_index(navigation: List[dict], parent_id: Optional[int]) -> int:
        idx = find_index(navigation, parent_id) if parent_id is not None else -1
        if idx < 0:
            raise NotFoundError("Parent navigation not found")
        return idx

    def _child(navigation: List[dict], child_id: int) -> Tuple[dict, int]:
        found = find_child(navigation, child_id)
        if found is None:
            raise NotFoundError("Child navigation not found")
        return found

    # --- Parents ---------------------------------------------------------

    @bp.get("/api/parent-navs")
    def list_parent_navs():
        return envelope([without_children(p) for p in sorted_parents(store.load()["navigation"])])

    @bp.get("/api/parent-navs/all-with-child")
    def list_parent_navs_with_children():
        parents = []
        for p in sorted_parents(store.load()["navigation"]):
            parents.append(dict(p, children=sorted(p.get("children") or [], key=_position)))
        return envelope(parents)

    @bp.get("/api/parent-navs/slug/<slug>")
    def children_by_parent_slug(slug: str):
        for parent in store.load()["navigation"]:
            if isinstance(parent, dict) and parent.get("slug") == slug:
                children = [dict(c, parentId=parent.get("id")) for c in parent.get("children") or []]
                return envelope(sorted(children, key=_position))
        raise NotFoundError("Parent navigation not found")

    @bp.get("/api/parent-navs/<int:parent_id>")
    def get_parent_nav(parent_id: int):
        navigation = store.load()["navigation"]
        return envelope(navigation[_parent_index(navigation, parent_id)])

    @bp.post("/api/parent-navs")
    def create_parent_nav():
        doc = store.load()
        navigation = doc["navigation"]
        record = build_record(PARENT_NAV, request_body(), next_id(navigation))
        record["children"] = []
        navigation.append(record)
        _save(doc)
        log.info("Created parent navigation %s", record["id"])
        return envelope(record, "Parent navigation created successfully", 201)

    @bp.route("/api/parent-navs/<int:parent_id>", methods=["PATCH", "PUT", "POST"])
    def update_parent_nav(parent_id: int):
        doc = store.load()
        navigation = doc["navigation"]
        idx = _parent_index(navigation, parent_id)
        body = {k: v for k, v in request_body().items() if k != "children"}
        navigation[idx] = merge_record(PARENT_NAV, navigation[idx], body)
        _save(doc)
        return envelope(navigation[idx], "Parent navigation updated successfully")

    @bp.delete("/api/parent-navs/<int:parent_id>")
    def delete_parent_nav(parent_id: int):
        doc = store.load()
        navigation = doc["navigation"]
        removed = navigation.pop(_parent_index(navigation, parent_id))
        _save(doc)
        log.info("Deleted parent navigation %s with %d children", parent_id, len(removed.get("children") or []))
        return envelope(removed, "Parent navigation deleted successfully")

    # --- Children --------------------------------------------------------

    @bp.get("/api/child-navs")
    def list_child_navs():
        return envelope(flatten_children(store.load()["navigation"]))

    @bp.get("/api/child-navs/<int:child_id>")
    def get_child_nav(child_id: int):
        parent, idx = _child(store.load()["navigation"], child_id)
        return envelope(dict(parent["children"][idx], parentId=parent.get("id")))

    @bp.post("/api/child-navs")
    def create_child_nav():
        body = request_body()
        doc = store.load()
        navigation = doc["navigation"]
        parent = navigation[_parent_index(navigation, to_int(body.get("parentId")))]
        record = build_record(CHILD_NAV, body, next_child_id(navigation))
        record["parentId"] = parent.get("id")
        parent.setdefault("children", []).append(record)
        _save(doc)
        log.info("Created child navigation %s under %s", record["id"], record["parentId"])
        return envelope(record, "Child navigation created successfully", 201)

    @bp.route("/api/child-navs/<int:child_id>", methods=["PATCH", "PUT", "POST"])
    def update_child_nav(child_id: int):
        body = request_body()
        doc = store.load()
        navigation = doc["navigation"]
        parent, idx = _child(navigation, child_id)
        updated = merge_record(CHILD_NAV, parent["children"][idx], body)
        new_parent_id = to_int(body.get("parentId"))
        if new_parent_id is not None and new_parent_id != to_int(parent.get("id")):
            # Moving a child under another parent.
            target = navigation[_parent_index(navigation, new_parent_id)]
            parent["children"].pop(idx)
            target.setdefault("children", []).append(updated)
        else:
            updated["parentId"] = parent.get("id")
            parent["children"][idx] = updated
        _save(doc)
        return envelope(updated, "Child navigation updated successfully")

    @bp.delete("/api/child-navs/<int:child_id>")
    def delete_child_nav(child_id: int):
        doc = store.load()
        parent, idx = _child(doc["navigation"], child_id)
        removed = parent["children"].pop(idx)
        _save(doc)
        return envelope(dict(removed, parentId=parent.get("id")), "Child navigation deleted successfully")

    @bp.get("/api/navigation-links")
    def navigation_links():
        return store.load()["navigation"]

    return bp

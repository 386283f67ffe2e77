"""
CRUD routes for the content collections (products, services, experiences, news, team, contacts,
images) plus the read-only users/categories/videos lists.

Every handler loads the whole document, edits one collection and saves the whole document back.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional

from flask import Blueprint, request
from werkzeug.datastructures import FileStorage

from api_errors import NotFoundError, StorageError, ValidationError, envelope
from content_store import ContentStore, find_index, next_id
from env_manager import get_logger
from records import (
    CONTACTS,
    EXPERIENCES,
    IMAGES,
    NEWS,
    PRODUCTS,
    SERVICES,
    TEAM,
    RecordSchema,
    as_image_list,
    build_record,
    merge_record,
    public_user,
    referenced_upload_paths,
    to_bool,
    to_int,
)
from uploads import UploadHandler

log = get_logger("content_api")

# Collections written through the generic routes: (schema, url names, multipart file fields).
RESOURCES = (
    (PRODUCTS, ("products",), ("images[]", "images")),
    (SERVICES, ("services",), ("images[]", "images")),
    (EXPERIENCES, ("experiences",), ("images[]", "images")),
    (NEWS, ("news",), ("images[]", "images")),
    (TEAM, ("team", "teams"), ("image", "avatar")),
    (CONTACTS, ("contacts", "contact"), ()),
    (IMAGES, ("images",), ("image",)),
)

DEFAULT_LIMITS = {"contacts": 10}
FEATURED_EXPERIENCES_LIMIT = 6


def request_body() -> Dict[str, Any]:
    """JSON object or form fields. Repeated images[] form fields collapse into an images list."""
    if request.is_json:
        data = request.get_json(silent=True)
        return dict(data) if isinstance(data, dict) else {}
    body: Dict[str, Any] = {}
    for key in request.form:
        values = request.form.getlist(key)
        if key in ("images[]", "images"):
            body["images"] = values if len(values) > 1 else values[0]
        else:
            body[key] = values[0]
    return body


def uploaded_files(fields: Iterable[str]) -> List[FileStorage]:
    files: List[FileStorage] = []
    for name in fields:
        files.extend(f for f in request.files.getlist(name) if f and f.filename)
    return files


def present(schema: RecordSchema, record: dict) -> dict:
    """Record as served: a legacy single-string images value reads as a one-element list."""
    if schema.image_list_field and not isinstance(record.get(schema.image_list_field), list):
        record = dict(record)
        record[schema.image_list_field] = as_image_list(record.get(schema.image_list_field))
    return record


def filter_records(records: List[dict], args, default_limit: Optional[int] = None) -> List[dict]:
    out = list(records)
    category = args.get("category")
    if category:
        out = [
            r for r in out
            if str(r.get("categoryId")) == category or str(r.get("child_nav_id")) == category
        ]
    if to_bool(args.get("featured", "")):
        out = [r for r in out if to_bool(r.get("isFeatured", False))]
    if args.get("sort") == "newest":
        out.sort(key=lambda r: str(r.get("createdAt") or ""), reverse=True)
    limit = to_int(args.get("limit"))
    if limit is None:
        limit = default_limit
    if limit is not None and limit > 0:
        out = out[:limit]
    return out


def create_content_blueprint(
    store: ContentStore,
    uploader: UploadHandler,
    image_dirs: Iterable,
    on_write: Optional[Callable[[], None]] = None,
) -> Blueprint:
    bp = Blueprint("content", __name__)
    image_dirs = list(image_dirs)

    # --- Helpers ---------------------------------------------------------

    def _save(doc: dict) -> None:
        if not store.save(doc):
            raise StorageError()
        if on_write is not None:
            on_write()

    def _store_uploads(fields: Iterable[str]) -> List[str]:
        return [u.url for u in uploader.save_all(uploaded_files(fields))]

    def _find(doc: dict, schema: RecordSchema, record_id: int) -> int:
        idx = find_index(doc[schema.collection], record_id)
        if idx < 0:
            raise NotFoundError(f"{schema.label} not found")
        return idx

    def _register(schema: RecordSchema, url_name: str, file_fields: tuple) -> None:
        base = f"/api/{url_name}"

        def list_records():
            records = store.load()[schema.collection]
            rows = filter_records(records, request.args, DEFAULT_LIMITS.get(schema.collection))
            return envelope([present(schema, r) for r in rows])

        def get_record(record_id: int):
            doc = store.load()
            record = doc[schema.collection][_find(doc, schema, record_id)]
            return envelope(present(schema, record))

        def create_record():
            body = request_body()
            paths = _store_uploads(file_fields)
            doc = store.load()
            records = doc[schema.collection]
            record = build_record(schema, body, next_id(records), image_paths=paths)
            records.append(record)
            try:
                _save(doc)
            except StorageError:
                uploader.delete_referenced(paths)
                raise
            log.info("Created %s %s", schema.collection, record["id"])
            return envelope(record, f"{schema.label} created successfully", 201)

        def update_record(record_id: int):
            body = request_body()
            doc = store.load()
            idx = _find(doc, schema, record_id)
            paths = _store_uploads(file_fields)
            updated = merge_record(schema, doc[schema.collection][idx], body, uploaded=paths)
            doc[schema.collection][idx] = updated
            _save(doc)
            log.info("Updated %s %s", schema.collection, record_id)
            return envelope(updated, f"{schema.label} updated successfully")

        def delete_record(record_id: int):
            doc = store.load()
            idx = _find(doc, schema, record_id)
            removed = doc[schema.collection].pop(idx)
            _save(doc)
            uploader.delete_referenced(referenced_upload_paths(removed), image_dirs)
            log.info("Deleted %s %s", schema.collection, record_id)
            return envelope(removed, f"{schema.label} deleted successfully")

        ep = url_name.replace("-", "_")
        bp.add_url_rule(base, f"{ep}_list", list_records, methods=["GET"])
        bp.add_url_rule(base, f"{ep}_create", create_record, methods=["POST"])
        bp.add_url_rule(f"{base}/<int:record_id>", f"{ep}_get", get_record, methods=["GET"])
        bp.add_url_rule(f"{base}/<int:record_id>", f"{ep}_update", update_record, methods=["POST", "PATCH", "PUT"])
        bp.add_url_rule(f"{base}/<int:record_id>", f"{ep}_delete", delete_record, methods=["DELETE"])

    for schema, url_names, file_fields in RESOURCES:
        for url_name in url_names:
            _register(schema, url_name, file_fields)

    # --- Extra routes ------------------------------------------------------

    @bp.get("/api/experiences/featured")
    def featured_experiences():
        featured = [r for r in store.load()["experiences"] if to_bool(r.get("isFeatured", False))]
        limit = to_int(request.args.get("limit")) or FEATURED_EXPERIENCES_LIMIT
        return envelope([present(EXPERIENCES, r) for r in featured[:limit]])

    @bp.post("/api/news/<int:record_id>/upload")
    def upload_news_images(record_id: int):
        """Attach uploaded images to an existing news item."""
        doc = store.load()
        idx = _find(doc, NEWS, record_id)
        files = uploaded_files(("images[]", "images", "image"))
        if not files:
            raise ValidationError("No file uploaded")
        paths = [u.url for u in uploader.save_all(files)]
        updated = merge_record(NEWS, doc["news"][idx], {}, uploaded=paths)
        doc["news"][idx] = updated
        _save(doc)
        return envelope(updated, "Images uploaded successfully")

    @bp.get("/api/users")
    def list_users():
        return envelope([public_user(u) for u in store.load()["users"]])

    @bp.get("/api/categories")
    def list_categories():
        return envelope(store.load()["categories"])

    @bp.get("/api/videos")
    def list_videos():
        return envelope(filter_records(store.load()["videos"], request.args))

    @bp.get("/api/videos/<int:record_id>")
    def get_video(record_id: int):
        videos = store.load()["videos"]
        idx = find_index(videos, record_id)
        if idx < 0:
            raise NotFoundError("Video not found")
        return envelope(videos[idx])

    return bp

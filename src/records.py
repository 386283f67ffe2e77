"""
Per-collection record schemas.

Each collection declares the fields its records carry, their defaults and the coercions applied to
request values. Creation never rejects a request: omitted fields take their default (a missing
name is ""). Updates shallow-merge request fields that are present and non-empty.
"""
from __future__ import annotations

import copy
import json
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from slugify import slugify

from content_store import utc_now_iso


@dataclass(frozen=True)
class RecordSchema:
    collection: str
    label: str
    defaults: Dict[str, Any]
    slug_prefix: Optional[str] = None
    int_fields: Tuple[str, ...] = ()
    float_fields: Tuple[str, ...] = ()
    bool_fields: Tuple[str, ...] = ()
    # Fields copied from another field when the request leaves them empty, e.g. title <- name.
    mirrored: Dict[str, str] = field(default_factory=dict)
    image_list_field: Optional[str] = None


_CATALOG_DEFAULTS = {
    "name": "",
    "title": "",
    "slug": "",
    "summary": "",
    "content": "",
    "description": "",
    "images": [],
    "child_nav_id": None,
    "categoryId": None,
    "price": 0,
    "discountPrice": 0,
    "isFeatured": False,
    "features": "[]",
    "phone_number": "",
    "type": "",
    "views": 0,
}
_CATALOG_INTS = ("child_nav_id", "categoryId", "views")
_CATALOG_FLOATS = ("price", "discountPrice")


def _catalog(collection: str, label: str, type_: str) -> RecordSchema:
    defaults = dict(_CATALOG_DEFAULTS, type=type_)
    return RecordSchema(
        collection=collection,
        label=label,
        defaults=defaults,
        slug_prefix=type_,
        int_fields=_CATALOG_INTS,
        float_fields=_CATALOG_FLOATS,
        bool_fields=("isFeatured",),
        mirrored={"title": "name", "name": "title", "description": "content"},
        image_list_field="images",
    )


PRODUCTS = _catalog("products", "Product", "san-pham")
SERVICES = _catalog("services", "Service", "dich-vu")
EXPERIENCES = _catalog("experiences", "Experience", "trai-nghiem")

NEWS = RecordSchema(
    collection="news",
    label="News",
    defaults={
        "title": "",
        "slug": "",
        "summary": "",
        "content": "",
        "images": [],
        "categoryId": None,
        "authorId": 1,
        "status": "published",
        "isFeatured": False,
    },
    slug_prefix="tin-tuc",
    int_fields=("categoryId", "authorId"),
    bool_fields=("isFeatured",),
    image_list_field="images",
)

TEAM = RecordSchema(
    collection="team",
    label="Team member",
    defaults={"name": "", "position": "", "avatar": "", "image": "", "description": ""},
    mirrored={"avatar": "image", "image": "avatar"},
)

CONTACTS = RecordSchema(
    collection="contacts",
    label="Contact",
    defaults={"name": "", "email": "", "phone": "", "title": "", "content": ""},
)

IMAGES = RecordSchema(
    collection="images",
    label="Image",
    defaults={"url": "", "name": "", "description": ""},
)

PARENT_NAV = RecordSchema(
    collection="navigation",
    label="Parent navigation",
    defaults={"title": "", "slug": "", "position": 0, "children": []},
    slug_prefix="nav",
    int_fields=("position",),
)

CHILD_NAV = RecordSchema(
    collection="navigation",
    label="Child navigation",
    defaults={"title": "", "slug": "", "parentId": None, "position": 0},
    slug_prefix="danh-muc",
    int_fields=("parentId", "position"),
)


# --- Coercion ---------------------------------------------------------------


def to_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return int(number) if math.isfinite(number) else None


def to_number(value: Any) -> float | int:
    """Integral values stay ints (35000, not 35000.0); junk, inf and nan become 0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number):
        return 0
    return int(number) if number.is_integer() else number


def to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    return str(value).strip().lower() in ("true", "1", "yes", "on")


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def coerce(schema: RecordSchema, key: str, value: Any) -> Any:
    if key in schema.int_fields:
        return to_int(value)
    if key in schema.float_fields:
        return to_number(value)
    if key in schema.bool_fields:
        return to_bool(value)
    return value


def make_slug(text: Any) -> str:
    """Lowercase ASCII slug, e.g. 'Gạo hữu cơ' -> 'gao-huu-co'."""
    return slugify(str(text or ""), lowercase=True)


def as_image_list(value: Any) -> List[str]:
    """Normalize an images value (list, JSON-encoded list, single path, None) to a list of paths."""
    if value is None:
        return []
    if isinstance(value, list):
        return [str(v) for v in value if not is_empty(v)]
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return []
        if text.startswith("["):
            try:
                parsed = json.loads(text)
            except ValueError:
                return [text]
            return as_image_list(parsed)
        return [text]
    return []


def _derive_slug(schema: RecordSchema, record: dict, record_id: int) -> str:
    source = record.get("name") or record.get("title") or ""
    slug = make_slug(source) if source else ""
    if not slug and schema.slug_prefix:
        slug = f"{schema.slug_prefix}-{record_id}"
    return slug


# --- Create / merge ---------------------------------------------------------


def build_record(
    schema: RecordSchema,
    body: Mapping[str, Any],
    record_id: int,
    image_paths: Iterable[str] = (),
    now: Optional[str] = None,
) -> dict:
    """New record: schema defaults overlaid with the non-empty request fields the schema knows."""
    now = now or utc_now_iso()
    record: Dict[str, Any] = {"id": record_id}
    for key, default in schema.defaults.items():
        value = body.get(key)
        record[key] = copy.deepcopy(default) if is_empty(value) else coerce(schema, key, value)
    for target, source in schema.mirrored.items():
        if is_empty(record.get(target)) and not is_empty(record.get(source)):
            record[target] = record[source]
    if "slug" in schema.defaults and is_empty(record.get("slug")):
        record["slug"] = _derive_slug(schema, record, record_id)

    uploaded = list(image_paths)
    if schema.image_list_field:
        field_name = schema.image_list_field
        record[field_name] = uploaded or as_image_list(body.get(field_name) or body.get("image"))
    elif uploaded and "image" in schema.defaults:
        record["image"] = uploaded[0]
        record["avatar"] = uploaded[0]

    record["createdAt"] = now
    record["updatedAt"] = now
    return record


def merge_images(existing: Any, uploaded: List[str], body: Mapping[str, Any]) -> List[str]:
    """
    An images value in the body (list, JSON list or single path) replaces the stored list;
    otherwise the stored list is kept. Uploaded files are appended to that, or replace it
    outright with replaceImages=true.
    """
    kept = as_image_list(existing)
    for key in ("images", "image"):
        if key in body and not is_empty(body.get(key)):
            kept = as_image_list(body.get(key))
            break
    if uploaded:
        if to_bool(body.get("replaceImages", False)):
            return list(uploaded)
        return kept + [p for p in uploaded if p not in kept]
    return kept


def merge_record(
    schema: RecordSchema,
    existing: Mapping[str, Any],
    body: Mapping[str, Any],
    uploaded: Iterable[str] = (),
    now: Optional[str] = None,
) -> dict:
    """Shallow merge: present, non-empty request fields win; everything else keeps its prior value."""
    updated = dict(existing)
    for key, value in body.items():
        if key in ("id", "createdAt", "replaceImages", "images", "images[]") or is_empty(value):
            continue
        if key == "image" and schema.image_list_field:
            continue
        updated[key] = coerce(schema, key, value)
    if "name" in body and not is_empty(body.get("name")) and "slug" in schema.defaults and is_empty(body.get("slug")):
        # Keep an existing slug; only derive one for records that never had it.
        if is_empty(existing.get("slug")):
            updated["slug"] = _derive_slug(schema, updated, int(existing.get("id") or 0))

    uploaded = list(uploaded)
    if schema.image_list_field:
        updated[schema.image_list_field] = merge_images(existing.get(schema.image_list_field), uploaded, body)
    elif uploaded and "image" in schema.defaults:
        updated["image"] = uploaded[0]
        updated["avatar"] = uploaded[0]

    updated["id"] = existing.get("id")
    updated["updatedAt"] = now or utc_now_iso()
    return updated


def public_user(user: Mapping[str, Any]) -> dict:
    return {k: v for k, v in user.items() if k not in ("password", "passwordHash")}


def referenced_upload_paths(record: Mapping[str, Any]) -> List[str]:
    """Upload paths (containing /uploads/) referenced by a record's image fields."""
    paths: List[str] = []
    for key in ("images", "image", "avatar", "url"):
        for p in as_image_list(record.get(key)):
            if "/uploads/" in p and p not in paths:
                paths.append(p)
    return paths

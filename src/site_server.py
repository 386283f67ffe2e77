#!/usr/bin/env python3
"""
Content API backend for the village website.

- Serves products, services, experiences, news, team, contacts, the image gallery and the
  navigation tree from a single database.json.
- Accepts image uploads and serves images through a fallback chain (file, default image,
  embedded placeholder).
- Admin endpoints replace the whole database or resync it across mirror copies.

Run (from project root, with venv activated):

    python src/site_server.py

Then point the frontend at http://localhost:3000 (default).
"""
from __future__ import annotations

import os
import subprocess
import sys
import threading
import traceback
from typing import Optional

from flask import Flask, Response, request, send_file
from flask_cors import CORS

from api_errors import NotFoundError, StorageError, ValidationError, envelope, register_error_handlers
from assets import PLACEHOLDER_PNG, AssetResolver, AssetState
from content_api import create_content_blueprint
from content_store import ContentStore, utc_now_iso
from env_manager import ROOT, Settings, get_logger, load_settings
from navigation import create_navigation_blueprint
from uploads import UploadHandler

log = get_logger("site_server")

SERVICE_NAME = "Thôn Trang Liên Nhất API"
SYNC_SCRIPT = ROOT / "scripts" / "sync_database.py"
ASSET_CACHE_SECONDS = 86400

ENDPOINTS = [
    "/api/products",
    "/api/services",
    "/api/news",
    "/api/teams",
    "/api/images",
    "/api/experiences",
    "/api/parent-navs",
    "/api/child-navs",
    "/api/contact",
    "/api/navigation-links",
    "/diagnostics/images",
]


def _run_sync_script(settings: Settings) -> None:
    """Run scripts/sync_database.py once against the configured database and mirrors."""
    env = dict(os.environ)
    env["DATABASE_PATH"] = str(settings.database_path)
    env["DATABASE_MIRRORS"] = os.pathsep.join(str(m) for m in settings.database_mirrors)
    try:
        proc = subprocess.run(
            [sys.executable, str(SYNC_SCRIPT)],
            cwd=str(ROOT),
            env=env,
            capture_output=True,
            text=True,
            timeout=120,
        )
        if proc.returncode != 0:
            sys.stderr.write(
                f"[site_server] sync_database exited with {proc.returncode}:\n"
                f"STDOUT:\n{proc.stdout}\nSTDERR:\n{proc.stderr}\n"
            )
    except Exception:
        sys.stderr.write("[site_server] Exception while running sync_database.py:\n")
        traceback.print_exc()


def start_background_sync(settings: Settings) -> threading.Thread:
    """Fire-and-forget: the request never waits for the sync script."""
    t = threading.Thread(target=_run_sync_script, args=(settings,), name="sync_database", daemon=True)
    t.start()
    return t


def create_app(settings: Optional[Settings] = None, store: Optional[ContentStore] = None) -> Flask:
    settings = settings or load_settings()
    store = store or ContentStore(settings.database_path, settings.database_mirrors)

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = settings.max_upload_bytes
    app.json.ensure_ascii = False
    app.extensions["content_store"] = store
    app.extensions["site_settings"] = settings

    CORS(app, resources={r"/*": {"origins": "*"}}, send_wildcard=True, max_age=ASSET_CACHE_SECONDS)
    register_error_handlers(app)

    uploader = UploadHandler(settings.uploads_dir)
    resolver = AssetResolver(settings.image_dirs)

    def _after_write() -> None:
        if settings.sync_after_write:
            start_background_sync(settings)

    app.register_blueprint(create_content_blueprint(store, uploader, settings.image_dirs, _after_write))
    app.register_blueprint(create_navigation_blueprint(store, _after_write))

    # --- Middleware --------------------------------------------------------

    @app.before_request
    def _log_request() -> None:
        log.info("%s %s", request.method, request.path)

    @app.after_request
    def _envelope_api_json(response: Response) -> Response:
        """Wrap bare JSON under /api/ as {statusCode, message, data}."""
        if not request.path.startswith("/api/") or not response.is_json:
            return response
        payload = response.get_json(silent=True)
        if isinstance(payload, dict) and "statusCode" in payload:
            return response
        body = {
            "statusCode": response.status_code,
            "message": "Success",
            "data": [] if payload is None else payload,
        }
        response.set_data(app.json.dumps(body))
        return response

    # --- Static images -----------------------------------------------------

    def _serve_asset(filename: str) -> Response:
        resolved = resolver.resolve(filename)
        if resolved is None:
            raise NotFoundError(f"File not found: {filename}")
        if resolved.path is None:
            response = Response(PLACEHOLDER_PNG, mimetype="image/png")
        else:
            response = send_file(resolved.path, mimetype=resolved.content_type, max_age=ASSET_CACHE_SECONDS)
        response.headers["Cache-Control"] = f"public, max-age={ASSET_CACHE_SECONDS}"
        response.headers["X-Asset-Source"] = resolved.state.value
        return response

    @app.get("/images/<path:filename>")
    def serve_images(filename: str) -> Response:
        return _serve_asset(filename)

    @app.get("/uploads/<path:filename>")
    def serve_uploads(filename: str) -> Response:
        return _serve_asset(filename)

    @app.get("/public/images/<path:filename>")
    def serve_public_images(filename: str) -> Response:
        return _serve_asset(filename)

    @app.get("/diagnostics/images")
    def image_diagnostics() -> tuple[dict, int]:
        return envelope({
            "uploadsDir": str(settings.uploads_dir),
            "searchDirs": resolver.diagnostics(),
            "timestamp": utc_now_iso(),
        })

    # --- Service routes ------------------------------------------------------

    @app.get("/")
    def service_info() -> tuple[dict, int]:
        return {
            "name": SERVICE_NAME,
            "status": "running",
            "timestamp": utc_now_iso(),
            "endpoints": ENDPOINTS,
        }, 200

    @app.get("/api/health")
    def health() -> tuple[dict, int]:
        return {"status": "ok"}, 200

    @app.get("/favicon.ico")
    def favicon() -> Response:
        resolved = resolver.resolve("favicon.ico")
        if resolved is not None and resolved.state is AssetState.FOUND_PRIMARY:
            return send_file(resolved.path, mimetype="image/x-icon", max_age=ASSET_CACHE_SECONDS)
        return Response(status=204)

    @app.post("/api/upload/image")
    def upload_image() -> tuple[dict, int]:
        file = request.files.get("image")
        if file is None or not file.filename:
            raise ValidationError("No file uploaded")
        stored = uploader.save(file)
        return envelope(stored.describe(settings.public_base_url), "File uploaded successfully")

    # --- Admin ---------------------------------------------------------------

    @app.post("/api/admin/sync-database")
    def admin_sync_database() -> tuple[dict, int]:
        """Copy the newest readable database copy to the primary and every mirror."""
        source = store.newest_path()
        if not store.sync_from_newest():
            raise StorageError("Database sync failed")
        return envelope({
            "source": str(source),
            "locations": [str(p) for p in store.locations()],
        }, "Database synchronized successfully")

    @app.post("/api/admin/update-database")
    def admin_update_database() -> tuple[dict, int]:
        """Replace the whole database with the posted {"database": {...}} document."""
        payload = request.get_json(silent=True) or {}
        document = payload.get("database") if isinstance(payload, dict) else None
        if not isinstance(document, dict):
            raise ValidationError("Invalid database format")
        if not store.import_document(document):
            raise StorageError()
        _after_write()
        counts = {name: len(value) for name, value in store.load().items() if isinstance(value, list)}
        return envelope({"collections": counts}, "Database updated successfully")

    return app


def main() -> int:
    """Entry point for local runs (python src/site_server.py)."""
    settings = load_settings()
    app = create_app(settings)
    sys.stderr.write(f"[site_server] Database: {settings.database_path}\n")
    if settings.database_mirrors:
        sys.stderr.write(f"[site_server] Mirrors: {', '.join(str(m) for m in settings.database_mirrors)}\n")
    sys.stderr.write(f"[site_server] Uploads: {settings.uploads_dir}\n")
    sys.stderr.write(f"[site_server] Listening on http://0.0.0.0:{settings.port}\n")
    app.run(host="0.0.0.0", port=settings.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())

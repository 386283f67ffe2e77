"""
Pytest fixtures for QA tests.
Every test gets its own temporary site root (database.json, image dirs), so nothing touches the
real project data.
"""
import json
import sys
from pathlib import Path

import pytest

# Project root and modules under test
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
SRC = PROJECT_ROOT / "src"
SCRIPTS = PROJECT_ROOT / "scripts"
for _p in (SRC, SCRIPTS):
    if str(_p) not in sys.path:
        sys.path.insert(0, str(_p))

from content_store import ContentStore
from env_manager import Settings, image_search_dirs


@pytest.fixture
def settings(tmp_path):
    """Settings rooted in tmp_path; the temp-dir uploads dir also points inside tmp_path."""
    uploads = tmp_path / "images" / "uploads"
    return Settings(
        root=tmp_path,
        database_path=tmp_path / "database.json",
        uploads_dir=uploads,
        image_dirs=image_search_dirs(tmp_path, uploads, tmp_root=tmp_path / "tmp"),
        public_base_url="http://localhost:3000",
    )


@pytest.fixture
def store(settings):
    return ContentStore(settings.database_path, settings.database_mirrors)


@pytest.fixture
def write_db(settings):
    """Write a raw document to the primary database file."""
    def _write(doc):
        settings.database_path.write_text(json.dumps(doc, ensure_ascii=False), encoding="utf-8")
        return settings.database_path
    return _write


@pytest.fixture
def app(settings, store):
    from site_server import create_app
    flask_app = create_app(settings, store)
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def png_bytes():
    from assets import PLACEHOLDER_PNG
    return PLACEHOLDER_PNG

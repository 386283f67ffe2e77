"""
Tests for src/uploads.py: allow-list, unique names, batch validation, referenced-file cleanup.
"""
import io
import re
from unittest.mock import patch

import pytest
from werkzeug.datastructures import FileStorage

from api_errors import ValidationError
from uploads import UploadHandler, is_allowed, unique_name


def _file(name, data=b"img", mimetype="image/jpeg"):
    return FileStorage(stream=io.BytesIO(data), filename=name, content_type=mimetype)


@pytest.mark.unit
@pytest.mark.parametrize("name,ok", [
    ("a.jpg", True), ("a.JPEG", True), ("a.png", True), ("a.gif", True), ("a.webp", True),
    ("a.svg", False), ("a.exe", False), ("noext", False), ("", False),
])
def test_is_allowed(name, ok):
    assert is_allowed(name) is ok


@pytest.mark.unit
def test_unique_name_shape():
    with patch("uploads.time.time", return_value=1747193559.5), patch("uploads.random.randint", return_value=784322977):
        assert unique_name("Photo.JPG") == "1747193559500-784322977.jpg"
    assert re.fullmatch(r"\d+-\d+\.png", unique_name("x.png"))


@pytest.mark.unit
def test_save_writes_file_and_describes(tmp_path):
    handler = UploadHandler(tmp_path / "uploads")
    stored = handler.save(_file("photo.png", b"12345", "image/png"))
    assert stored.path.read_bytes() == b"12345"
    assert stored.url == f"/images/uploads/{stored.filename}"
    info = stored.describe("https://api.example.com/")
    assert info["absoluteUrl"] == f"https://api.example.com/images/uploads/{stored.filename}"
    assert info["originalname"] == "photo.png"
    assert info["size"] == 5
    assert info["mimetype"] == "image/png"


@pytest.mark.unit
def test_save_all_rejects_batch_with_bad_file(tmp_path):
    handler = UploadHandler(tmp_path / "uploads")
    with pytest.raises(ValidationError, match="Only image files are allowed!"):
        handler.save_all([_file("ok.jpg"), _file("evil.exe")])
    assert not (tmp_path / "uploads").exists() or list((tmp_path / "uploads").iterdir()) == []


@pytest.mark.unit
def test_save_all_skips_empty_parts(tmp_path):
    handler = UploadHandler(tmp_path / "uploads")
    stored = handler.save_all([_file("a.jpg"), _file("")])
    assert len(stored) == 1


@pytest.mark.unit
def test_delete_referenced(tmp_path):
    uploads = tmp_path / "uploads"
    other = tmp_path / "public" / "uploads"
    uploads.mkdir()
    other.mkdir(parents=True)
    (uploads / "a.jpg").write_bytes(b"a")
    (other / "b.jpg").write_bytes(b"b")
    handler = UploadHandler(uploads)
    removed = handler.delete_referenced(
        ["/images/uploads/a.jpg", "/images/uploads/b.jpg", "/images/uploads/missing.jpg"],
        [other],
    )
    assert removed == 2
    assert not (uploads / "a.jpg").exists()
    assert not (other / "b.jpg").exists()


@pytest.mark.unit
def test_delete_referenced_logs_and_continues(tmp_path):
    uploads = tmp_path / "uploads"
    uploads.mkdir()
    (uploads / "a.jpg").write_bytes(b"a")
    handler = UploadHandler(uploads)
    with patch("uploads.os.remove", side_effect=PermissionError("locked")):
        assert handler.delete_referenced(["/images/uploads/a.jpg"]) == 0
    assert (uploads / "a.jpg").exists()


@pytest.mark.unit
def test_delete_referenced_leaves_fallback_images(tmp_path):
    uploads = tmp_path / "images" / "uploads"
    fallback = tmp_path / "images"
    uploads.mkdir(parents=True)
    (fallback / "default.jpg").write_bytes(b"default")
    handler = UploadHandler(uploads)
    removed = handler.delete_referenced(["/images/uploads/default.jpg"], [uploads, fallback])
    assert removed == 0
    assert (fallback / "default.jpg").read_bytes() == b"default"

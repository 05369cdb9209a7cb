"""Tests for asset format detection, naming and the local asset store."""

from datetime import datetime, timezone

import pytest

from falgraph.assets import (
    LocalAssetStore,
    content_type_for,
    detect_image_format,
    generate_asset_filename,
    get_asset_extension,
)


class TestDetectImageFormat:
    def test_png(self, png_bytes):
        assert detect_image_format(png_bytes()) == "png"

    def test_jpeg(self):
        assert detect_image_format(b"\xff\xd8\xff\xe0" + b"\x00" * 16) == "jpeg"

    def test_webp(self):
        assert detect_image_format(b"RIFF\x00\x00\x00\x00WEBPVP8 " + b"\x00" * 8) == "webp"

    def test_unknown_defaults_to_jpeg(self):
        assert detect_image_format(b"GIF89a") == "jpeg"
        assert detect_image_format(b"") == "jpeg"


class TestAssetExtension:
    def test_url_suffix_wins(self):
        assert get_asset_extension("https://fal.media/files/x/out.webm?sig=1", "video/mp4", "video") == "webm"

    def test_content_type_subtype(self):
        assert get_asset_extension("https://fal.media/files/x", "video/quicktime", "video") == "mov"
        assert get_asset_extension("https://fal.media/files/x", "image/jpeg", "image") == "jpg"
        assert get_asset_extension("https://fal.media/files/x", "model/gltf-binary", "mesh") == "glb"

    def test_type_defaults(self):
        assert get_asset_extension("", None, "image") == "png"
        assert get_asset_extension("", None, "video") == "mp4"
        assert get_asset_extension("", None, "mesh") == "glb"
        assert get_asset_extension("", None, "file") == "bin"

    def test_generated_filename(self):
        now = datetime(2025, 3, 4, 5, 6, 7, tzinfo=timezone.utc)
        name = generate_asset_filename("https://fal.media/a.png", None, "image", now=now)
        assert name == "upload-2025-03-04T05-06-07.png"

    def test_content_type_for(self):
        assert content_type_for(".glb") == "model/gltf-binary"
        assert content_type_for("xyz") == "application/octet-stream"


class TestLocalAssetStore:
    def test_upload_and_resolve(self, store):
        uri = store.upload(b"data", "image", "a.png")
        assert uri.startswith("asset://")
        assert store.resolve(uri) == b"data"
        record = store.get(uri)
        assert record.filename == "a.png"
        assert record.mime_type == "image/png"
        assert record.size == 4

    def test_index_persists(self, store):
        uri = store.upload(b"video", "video", "clip.mp4")
        reopened = LocalAssetStore(store.root)
        assert reopened.resolve(uri) == b"video"

    def test_filename_is_sanitized(self, store):
        uri = store.upload(b"x", "file", "../../evil.bin")
        assert store.path_for(uri).parent.parent == store.root

    def test_resolve_local_path(self, store, tmp_path):
        path = tmp_path / "in.png"
        path.write_bytes(b"png")
        assert store.resolve(str(path)) == b"png"

    def test_resolve_unknown_asset(self, store):
        with pytest.raises(FileNotFoundError):
            store.resolve("asset://missing")

    def test_resolve_missing_path(self, store, tmp_path):
        with pytest.raises(FileNotFoundError):
            store.resolve(str(tmp_path / "nope.png"))

    def test_list_filters_by_type(self, store):
        store.upload(b"1", "image", "a.png")
        store.upload(b"2", "video", "b.mp4")
        listed = store.list("video")
        assert [a["filename"] for a in listed] == ["b.mp4"]
        assert listed[0]["uri"].startswith("asset://")

    def test_env_sets_default_root(self, tmp_path, monkeypatch):
        monkeypatch.setenv("FALGRAPH_ASSET_DIR", str(tmp_path / "env-store"))
        assert LocalAssetStore().root == tmp_path / "env-store"

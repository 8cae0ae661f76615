"""
Tests for image object storage.
"""

from __future__ import annotations

import base64

import pytest
from pymongo.errors import OperationFailure, ServerSelectionTimeoutError

import config
import storage
from conftest import JPEG_BYTES
from errors import NetworkFailure, PermissionDenied, StorageError, ValidationFailed


class TestDataUrls:
    def test_decode(self, jpeg) -> None:
        data, content_type = storage.decode_data_url(jpeg)
        assert data == JPEG_BYTES
        assert content_type == "image/jpeg"

    @pytest.mark.parametrize(
        "value",
        [
            "data:image/jpeg;base64",
            "data:image/jpeg,plain-text",
            "data:image/png;base64,***",
        ],
    )
    def test_invalid(self, value) -> None:
        with pytest.raises(ValidationFailed, match="Invalid image data"):
            storage.decode_data_url(value)

    def test_non_image_rejected(self) -> None:
        payload = base64.b64encode(b"hello").decode()
        with pytest.raises(ValidationFailed, match="Only image uploads"):
            storage.decode_data_url(f"data:text/plain;base64,{payload}")


class TestPaths:
    def test_product_path_under_owner(self) -> None:
        path = storage.product_image_path("u1")
        assert path.startswith("products/u1/") and path.endswith(".jpg")
        assert storage.product_image_path("u1") != storage.product_image_path("u1")

    def test_profile_path(self) -> None:
        assert storage.profile_image_path("u1").startswith("profiles/u1_")

    def test_write_rules(self) -> None:
        assert storage.can_write("products/u1/1_a.jpg", "u1")
        assert storage.can_write("profiles/u1_1.jpg", "u1")
        assert not storage.can_write("products/u2/1_a.jpg", "u1")
        assert not storage.can_write("profiles/u10_1.jpg", "u1")


class TestUpload:
    def test_upload_and_download(self, db) -> None:
        url = storage.upload_bytes("products/u1/1_a.jpg", b"abc", "image/jpeg", "u1")
        assert url == f"{config.PUBLIC_BASE_URL}/api/storage/products/u1/1_a.jpg"
        assert storage.download("products/u1/1_a.jpg") == (b"abc", "image/jpeg")

    def test_overwrite_same_path(self, db) -> None:
        storage.upload_bytes("products/u1/1_a.jpg", b"one", "image/jpeg", "u1")
        storage.upload_bytes("products/u1/1_a.jpg", b"two", "image/png", "u1")
        assert db.storageobject.count_documents({}) == 1
        assert storage.download("products/u1/1_a.jpg") == (b"two", "image/png")

    def test_foreign_path_denied(self, db) -> None:
        with pytest.raises(PermissionDenied, match="Storage permission denied"):
            storage.upload_bytes("products/u2/1_a.jpg", b"abc", "image/jpeg", "u1")
        assert db.storageobject.count_documents({}) == 0

    def test_size_limit(self, db, monkeypatch) -> None:
        monkeypatch.setattr(config, "MAX_IMAGE_BYTES", 2)
        with pytest.raises(ValidationFailed, match="too large"):
            storage.upload_bytes("products/u1/1_a.jpg", b"abc", "image/jpeg", "u1")

    def test_unreachable_database_is_network(self, db, monkeypatch) -> None:
        def offline(*args, **kwargs):
            raise ServerSelectionTimeoutError("no servers")

        monkeypatch.setattr(storage, "create_document", offline)
        with pytest.raises(NetworkFailure) as info:
            storage.upload_bytes("products/u1/1_a.jpg", b"abc", "image/jpeg", "u1")
        assert info.value.status_code == 503

    def test_other_database_errors_are_storage(self, db, monkeypatch) -> None:
        def rejected(*args, **kwargs):
            raise OperationFailure("quota exceeded")

        monkeypatch.setattr(storage, "create_document", rejected)
        with pytest.raises(StorageError, match="Unknown storage error"):
            storage.upload_bytes("products/u1/1_a.jpg", b"abc", "image/jpeg", "u1")

    def test_outage_while_adding_product(self, client, make_user, product_form, monkeypatch) -> None:
        user = make_user("alice@uni.edu")

        def offline(*args, **kwargs):
            raise ServerSelectionTimeoutError("no servers")

        monkeypatch.setattr(storage, "create_document", offline)
        resp = client.post("/api/products", json=product_form, headers=user["headers"])
        assert resp.status_code == 503
        body = resp.json()
        assert body["category"] == "network"
        assert body["detail"] == "Failed to add product: Network error. Check your connection."

    def test_remote_urls_pass_through(self, db) -> None:
        assert storage.upload_image("https://cdn.example.org/a.jpg", "u1") == "https://cdn.example.org/a.jpg"
        assert db.storageobject.count_documents({}) == 0

    def test_unsupported_reference(self, db) -> None:
        with pytest.raises(ValidationFailed, match="Unsupported image format"):
            storage.upload_image("file:///tmp/a.jpg", "u1")

    def test_batch_keeps_order(self, db, jpeg) -> None:
        urls = storage.upload_images([jpeg, "https://cdn.example.org/b.jpg", jpeg], "u1")
        assert len(urls) == 3
        assert urls[1] == "https://cdn.example.org/b.jpg"
        assert urls[0] != urls[2]
        assert db.storageobject.count_documents({}) == 2

    def test_missing_object(self, client) -> None:
        assert client.get("/api/storage/products/u1/nothing.jpg").status_code == 404

    def test_upload_endpoint(self, client, make_user, jpeg) -> None:
        user = make_user("alice@uni.edu")
        resp = client.post("/api/storage/images", json={"image": jpeg}, headers=user["headers"])
        assert resp.status_code == 201
        path = resp.json()["url"].split("/api/storage/", 1)[1]
        assert client.get(f"/api/storage/{path}").content == JPEG_BYTES

"""
Tests for profile reads and saves.
"""

from __future__ import annotations

import pytest

import profiles
from errors import StorageError


class TestProfile:
    def test_defaults_to_email_name(self, client, make_user) -> None:
        user = make_user("nimal@uni.edu")
        body = client.get("/api/profile", headers=user["headers"]).json()
        assert body["email"] == "nimal@uni.edu"
        assert body["name"] == ""
        assert body["display_name"] == "nimal"
        assert body["profile_image"] is None

    def test_save_and_merge(self, client, db, make_user) -> None:
        user = make_user("nimal@uni.edu")
        h = user["headers"]
        resp = client.put("/api/profile", json={"name": " Nimal ", "mobile": "077 123 4567"}, headers=h)
        assert resp.status_code == 200
        assert resp.json()["message"] == "Profile updated successfully"

        db.users.update_one({"_id": user["id"]}, {"$set": {"profile_image": "https://cdn.example.org/me.jpg"}})
        client.put("/api/profile", json={"name": "Nimal S"}, headers=h)

        body = client.get("/api/profile", headers=h).json()
        assert body["name"] == "Nimal S"
        assert body["display_name"] == "Nimal S"
        assert body["profile_image"] == "https://cdn.example.org/me.jpg"

    def test_image_upload(self, client, make_user, jpeg) -> None:
        user = make_user("nimal@uni.edu")
        body = client.put("/api/profile", json={"name": "Nimal", "profile_image": jpeg}, headers=user["headers"]).json()
        assert f"/api/storage/profiles/{user['id']}_" in body["profile_image"]

    @pytest.mark.parametrize(
        "payload, message",
        [
            ({"name": ""}, "Please enter your name"),
            ({"name": "Nimal", "mobile": "123"}, "Please enter a valid 10-digit mobile number"),
        ],
    )
    def test_rejected(self, client, make_user, payload, message) -> None:
        user = make_user("nimal@uni.edu")
        resp = client.put("/api/profile", json=payload, headers=user["headers"])
        assert resp.status_code == 400
        assert resp.json()["detail"] == message

    def test_failed_upload_aborts_by_default(self, client, db, make_user, jpeg, monkeypatch) -> None:
        user = make_user("nimal@uni.edu")

        def broken(*args, **kwargs):
            raise StorageError("Unknown storage error. Check your internet connection.")

        monkeypatch.setattr(profiles, "upload_image", broken)
        resp = client.put("/api/profile", json={"name": "Nimal", "profile_image": jpeg}, headers=user["headers"])
        assert resp.status_code == 500
        assert resp.json()["category"] == "unknown"
        assert resp.json()["detail"].startswith("Failed to update profile: Unknown storage error")
        assert db.users.count_documents({}) == 0

    def test_failed_upload_can_save_without_image(self, client, make_user, jpeg, monkeypatch) -> None:
        user = make_user("nimal@uni.edu")

        def broken(*args, **kwargs):
            raise StorageError("Unknown storage error. Check your internet connection.")

        monkeypatch.setattr(profiles, "upload_image", broken)
        resp = client.put(
            "/api/profile",
            json={"name": "Nimal", "profile_image": jpeg, "save_without_image": True},
            headers=user["headers"],
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["name"] == "Nimal"
        assert body["profile_image"] is None
        assert body["warning"] == "Profile saved without the new image"


class TestPublicProfile:
    def test_other_user(self, client, make_user) -> None:
        alice = make_user("alice@uni.edu")
        bob = make_user("bob@uni.edu")
        client.put("/api/profile", json={"name": "Bob"}, headers=bob["headers"])
        body = client.get(f"/api/users/{bob['id']}", headers=alice["headers"]).json()
        assert body == {"id": bob["id"], "name": "Bob", "profile_image": None}

    def test_unknown_user(self, client, make_user) -> None:
        alice = make_user("alice@uni.edu")
        assert client.get("/api/users/nobody", headers=alice["headers"]).status_code == 404

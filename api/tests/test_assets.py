"""Asset catalogue and asset blobs."""

from __future__ import annotations

from conftest import API, register, upload
from game_hangar.object_store import TIER_LIMITS


def _asset(client, **fields) -> dict:
    body = {"name": "Tileset", "description": "16x16 dungeon tiles", "tags": ["pixel"], **fields}
    response = client.post(f"{API}/assets", json=body)
    assert response.status_code == 201, response.text
    return response.json()


def test_create_and_get_asset(user_client):
    client, _ = user_client
    asset = _asset(client, link="https://example.com/tiles.zip")
    assert asset["version"] == 1
    assert asset["link"] == "https://example.com/tiles.zip"

    fetched = client.get(f"{API}/assets/{asset['id']}").json()
    assert fetched["name"] == "Tileset"
    assert fetched["tags"] == ["pixel"]


def test_create_asset_requires_login(client):
    assert client.post(f"{API}/assets", json={"name": "Nope"}).status_code == 401


def test_update_asset_requires_version(user_client):
    client, _ = user_client
    asset = _asset(client)
    url = f"{API}/assets/{asset['id']}"

    assert client.patch(url, json={"name": "No version"}).status_code == 422

    response = client.patch(url, json={"name": "Renamed", "version": 1})
    assert response.status_code == 200
    assert response.json()["version"] == 2
    assert response.json()["description"] == "16x16 dungeon tiles"

    assert client.patch(url, json={"name": "Stale", "version": 1}).status_code == 409


def test_upload_file_gives_presigned_link(user_client, object_store):
    client, _ = user_client
    asset = _asset(client)

    response = client.put(f"{API}/assets/{asset['id']}/file", files=upload(b"tiles"))
    assert response.status_code == 200
    body = response.json()
    key = f"asset-{asset['id']}"
    assert object_store.objects[key] == b"tiles"
    assert key in body["link"]
    assert body["version"] == 2

    assert key in client.get(f"{API}/assets/{asset['id']}").json()["link"]


def test_upload_over_tier_limit(user_client, object_store, monkeypatch):
    client, _ = user_client
    asset = _asset(client)
    monkeypatch.setitem(TIER_LIMITS, "freetier", 4)

    response = client.put(f"{API}/assets/{asset['id']}/file", files=upload(b"too big"))
    assert response.status_code == 422
    assert response.json()["title"] == "The object for upload is too large"
    assert object_store.objects == {}


def test_only_owner_may_upload(user_client, make_client):
    client, _ = user_client
    asset = _asset(client)

    stranger = make_client()
    register(stranger)
    response = stranger.put(f"{API}/assets/{asset['id']}/file", files=upload(b"x"))
    assert response.status_code == 403


def test_delete_asset_removes_blob(user_client, object_store):
    client, _ = user_client
    asset = _asset(client)
    client.put(f"{API}/assets/{asset['id']}/file", files=upload(b"tiles"))

    assert client.delete(f"{API}/assets/{asset['id']}").status_code == 200
    assert object_store.objects == {}
    assert client.get(f"{API}/assets/{asset['id']}").status_code == 404


def test_delete_asset_survives_missing_blob(user_client, object_store):
    client, _ = user_client
    asset = _asset(client)
    client.put(f"{API}/assets/{asset['id']}/file", files=upload(b"tiles"))
    object_store.objects.clear()

    assert client.delete(f"{API}/assets/{asset['id']}").status_code == 200


def test_list_assets_by_tag(user_client):
    client, _ = user_client
    asset = _asset(client, tags=["voxel", "isometric"])

    found = client.get(f"{API}/assets", params={"q": "ISOMETRIC voxel"}).json()
    assert asset["id"] in [a["id"] for a in found]

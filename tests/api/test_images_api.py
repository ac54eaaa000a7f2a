"""Tests for /api/images."""

import base64

import pytest

from talko.services import storage

pytestmark = pytest.mark.integration


async def test_generate_returns_url_and_data_uri(client):
    response = await client.post("/api/images/generate", json={"prompt": "a lighthouse at dusk"})

    body = response.json()
    assert body["imageUrl"] == "https://images.example.test/generated.png"
    prefix = "data:image/png;base64,"
    assert body["base64Data"].startswith(prefix)
    assert base64.b64decode(body["base64Data"][len(prefix):]).startswith(b"\x89PNG")


async def test_generate_quota(client):
    for _ in range(2):
        await client.post("/api/images/generate", json={"prompt": "x"})

    response = await client.post("/api/images/generate", json={"prompt": "x"})

    assert response.status_code == 403
    assert response.json()["limit"] == 2


async def test_generated_image_in_history(client, auth_headers):
    await client.post("/api/images/generate", json={"prompt": "a red fox"}, headers=auth_headers)

    images = (await client.get("/api/images/history", headers=auth_headers)).json()["data"]

    assert len(images) == 1
    assert images[0]["prompt"] == "a red fox"
    assert images[0]["isGenerated"] is True


async def test_upload_anonymous_not_recorded(client, auth_headers):
    response = await client.post("/api/images/upload", files={"image": ("cat.jpg", b"\xff\xd8\xff", "image/jpeg")})

    assert response.json()["data"]["url"].startswith("/uploads/images/")
    assert (await client.get("/api/images/history", headers=auth_headers)).json()["data"] == []


async def test_upload_get_and_delete(client, auth_headers):
    await client.post(
        "/api/images/upload",
        files={"image": ("cat.jpg", b"\xff\xd8\xff", "image/jpeg")},
        headers=auth_headers,
    )
    image_id = (await client.get("/api/images/history", headers=auth_headers)).json()["data"][0]["_id"]

    fetched = await client.get(f"/api/images/{image_id}", headers=auth_headers)
    assert fetched.json()["data"]["isGenerated"] is False

    deleted = await client.delete(f"/api/images/{image_id}", headers=auth_headers)
    assert deleted.status_code == 200
    assert list(storage.upload_dir("images").iterdir()) == []

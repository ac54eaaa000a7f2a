"""API-specific test fixtures."""

from contextlib import asynccontextmanager

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from talko.core.llm_client import get_ai_client
from talko.db.redis import get_usage_ledger
from talko.services.image_service import ImageService
from talko.services.storage import ensure_upload_dirs

FAKE_PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


@pytest.fixture
def app(settings, engine, redis, ledger, fake_ai, monkeypatch) -> FastAPI:
    """Full application wired to SQLite, fakeredis and the fake AI client.

    The database globals are set by the engine fixture in the pytest-asyncio
    loop, which the in-process AsyncClient shares.
    """
    import talko.db.redis as redis_mod
    from talko.main import create_app

    @asynccontextmanager
    async def test_lifespan(app: FastAPI):
        yield

    monkeypatch.setattr(redis_mod, "_redis", redis)

    async def fake_download(self, url):
        return FAKE_PNG

    monkeypatch.setattr(ImageService, "_download", fake_download)

    ensure_upload_dirs()
    app = create_app(lifespan_handler=test_lifespan)
    app.dependency_overrides[get_ai_client] = lambda: fake_ai
    app.dependency_overrides[get_usage_ledger] = lambda: ledger
    return app


@pytest.fixture
async def client(app) -> AsyncClient:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def register(client):
    """Factory registering a user and returning its Authorization headers."""

    async def _register(username: str = "alice", email: str = "alice@example.com") -> dict:
        response = await client.post(
            "/api/auth/register",
            json={"username": username, "email": email, "password": "s3cret-pass"},
        )
        assert response.status_code == 201, response.text
        return {"Authorization": f"Bearer {response.json()['token']}"}

    return _register


@pytest.fixture
async def auth_headers(register) -> dict:
    return await register()

"""Shared test fixtures for all test groups."""

import pytest
from fakeredis import FakeAsyncRedis
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from talko.core.config import get_settings
from talko.core.llm_client import AIClient
from talko.db.base import Base
from talko.services.usage_ledger import UsageLedger

# ID3 header followed by padding; long enough for range tests
FAKE_MP3 = b"ID3\x04" + bytes(range(256)) * 4


class FakeAIClient(AIClient):
    """Canned vendor responses. Records every call for assertions."""

    def __init__(self):
        self.settings = get_settings()
        self.calls: list[tuple[str, object]] = []
        self.chat_reply = "Hello from the model"
        self.transcription = "transcribed words"
        self.image_url = "https://images.example.test/generated.png"

    async def chat(self, messages, model=None, max_tokens=None, json_mode=False):
        self.calls.append(("chat", {"messages": messages, "model": model, "json_mode": json_mode}))
        return self.chat_reply

    async def speech(self, text, voice=None):
        self.calls.append(("speech", text))
        return FAKE_MP3

    async def transcribe(self, filename, data):
        self.calls.append(("transcribe", filename))
        return self.transcription

    async def generate_image(self, prompt, size="1024x1024"):
        self.calls.append(("image", prompt))
        return self.image_url


@pytest.fixture
def settings(tmp_path, monkeypatch):
    """Settings pointing uploads and the database at tmp_path."""
    monkeypatch.setenv("UPLOADS_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'talko.db'}")
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
async def redis():
    """Create a fake Redis instance for testing."""
    fake_redis = FakeAsyncRedis(decode_responses=True)
    yield fake_redis
    await fake_redis.flushall()
    await fake_redis.aclose()


@pytest.fixture
def ledger(redis) -> UsageLedger:
    return UsageLedger(redis, window_hours=24)


@pytest.fixture
async def engine(settings) -> AsyncEngine:
    """SQLite test engine with tables created and the global factory set."""
    import talko.db.base as db_mod
    import talko.db.models  # noqa: F401

    engine = create_async_engine(settings.database_url, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    db_mod._engine = engine
    db_mod._session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    yield engine

    db_mod._engine = None
    db_mod._session_factory = None
    await engine.dispose()


@pytest.fixture
async def db_session(engine: AsyncEngine) -> AsyncSession:
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest.fixture
def fake_ai(settings) -> FakeAIClient:
    return FakeAIClient()

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from talko.core.exceptions import ConfigurationError


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    app_name: str = "Talko AI"
    debug: bool = False
    environment: str = "development"
    port: int = 3001

    # API
    frontend_url: str = "http://localhost:3000"

    # OpenAI
    openai_api_key: str = ""

    # Database
    database_url: str = ""
    redis_url: str = "redis://localhost:6379"

    # Sessions and tokens
    session_secret: str = "talko-ai-session-secret"
    session_max_age_seconds: int = 24 * 60 * 60
    jwt_secret: str = "talko-jwt-secret"
    jwt_expires_hours: int = 24

    # Models
    chat_model: str = "gpt-3.5-turbo"
    text_model: str = "gpt-3.5-turbo"
    tts_model: str = "tts-1"
    tts_voice: str = "alloy"
    stt_model: str = "whisper-1"
    image_model: str = "dall-e-3"

    # Uploads
    uploads_dir: str = "uploads"
    max_file_size: int = 52_428_800  # 50MB

    # Anonymous quota window; also used for the retryAfter hint
    anonymous_window_hours: int = 24

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    return Settings()


def validate_required_settings(settings: Settings | None = None) -> None:
    """Fail fast when the vendor key or database URL is missing."""
    settings = settings or get_settings()
    missing = []
    if not settings.openai_api_key:
        missing.append("OPENAI_API_KEY")
    if not settings.database_url:
        missing.append("DATABASE_URL")
    if missing:
        raise ConfigurationError(f"Missing required environment variables: {missing}")

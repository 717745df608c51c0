from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """App configuration loaded from env and .env file."""
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Required: OAuth application registered in GitLab
    CLIENT_ID: str
    CLIENT_SECRET: str
    REDIRECT_URI: str  # e.g. http://localhost:8080/auth/callback
    SESSION_SECRET: str

    # Optional
    GITLAB_BASE_URL: str = "https://gitlab.lnu.se"  # без /api/v4
    SCOPE: str = "openid profile email read_api"
    SESSION_NAME: str = "portal_session"
    SESSION_MAX_AGE_S: int = 60 * 60 * 24  # 1 day
    ENVIRONMENT: str = "development"  # development/production
    REQUEST_TIMEOUT_S: float = 10.0

    # GitLab не отдаёт общее число событий, поэтому потолок пагинации фиксированный
    ACTIVITIES_TOTAL: int = 120

    # Лимит запросов на один IP (синтаксис limits: "100/15 minutes")
    RATE_LIMIT: str = "100/15 minutes"
    RATE_LIMIT_ENABLED: bool = True

    # Логирование
    LOG_LEVEL: str = "INFO"  # DEBUG/INFO/WARNING/ERROR
    GITLAB_LOG_LEVEL: str = "WARNING"  # уровень логов HTTP-вызовов к GitLab

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def oauth_url(self) -> str:
        return f"{self.GITLAB_BASE_URL.rstrip('/')}/oauth"


@lru_cache()
def get_settings() -> Settings:
    return Settings()

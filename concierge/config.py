"""Application settings loaded from the environment."""

import os

from pydantic import BaseModel, Field

DEFAULT_STORE_URL = "https://rentagun.com"
DEFAULT_CORS_ORIGINS = "http://localhost:3000,https://rentagun.com"


class Settings(BaseModel):
    """Runtime settings for the concierge service.

    Secrets are optional here: a missing Anthropic key is reported per request
    as a configuration error on the chat stream, and a missing store key
    switches the service to the in-memory store for local development.
    """

    anthropic_api_key: str | None = None
    anthropic_model: str | None = None
    store_url: str = DEFAULT_STORE_URL
    store_api_key: str | None = None
    cors_origins: list[str] = Field(default_factory=lambda: DEFAULT_CORS_ORIGINS.split(","))
    log_level: str = "INFO"
    knowledge_file: str | None = None

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        origins = os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS)
        return cls(
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY") or None,
            anthropic_model=os.getenv("ANTHROPIC_MODEL") or None,
            store_url=os.getenv("STORE_URL", DEFAULT_STORE_URL).rstrip("/"),
            store_api_key=os.getenv("STORE_API_KEY") or None,
            cors_origins=[origin.strip() for origin in origins.split(",") if origin.strip()],
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            knowledge_file=os.getenv("KNOWLEDGE_FILE") or None,
        )

"""Application configuration via Pydantic Settings."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings

# Resolve .env from backend/ regardless of CWD
_ENV_FILE = Path(__file__).resolve().parents[3] / ".env"


class Settings(BaseSettings):
    """Central configuration loaded from environment variables / .env file."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./replymate.db"

    # Generation backends
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    gemini_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    anthropic_base_url: str = "https://api.anthropic.com/v1"

    # Tier routing
    low_tier_provider: str = "openai"
    low_tier_model: str = "gpt-4o-mini"
    low_tier_max_tokens: int = 500
    high_tier_provider: str = "anthropic"
    high_tier_model: str = "claude-3-5-haiku-20241022"
    high_tier_max_tokens: int = 600
    generation_temperature: float = 0.7

    # Timeouts (seconds)
    generation_timeout_seconds: float = 30.0
    request_deadline_seconds: float = 55.0
    ebay_timeout_seconds: float = 10.0

    # eBay
    ebay_api_base: str = "https://api.ebay.com"

    # Empty means the policy file bundled with the package
    reply_policy_path: str = ""

    # CORS / Frontend
    cors_origins: str = "chrome-extension://*,http://localhost:3000"

    # General
    debug: bool = True

    model_config = {"env_file": str(_ENV_FILE), "env_file_encoding": "utf-8", "extra": "ignore"}

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list.

        In debug mode, returns ["*"] to allow any origin.
        """
        if self.debug:
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Return cached Settings instance."""
    return Settings()

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings


PROJECT_ROOT = Path(__file__).resolve().parent.parent
LOCAL_ENV_FILE = PROJECT_ROOT / ".env.local"

if LOCAL_ENV_FILE.exists():
    load_dotenv(LOCAL_ENV_FILE, override=True)


class Settings(BaseSettings):
    class Config:
        env_file = ".env"
        extra = "ignore"
    database_url: str = "sqlite:///./adforge.db"
    database_public_url: str = ""
    environment: str = "development"
    frontend_base_url: str = Field(default="http://localhost:3000")
    additional_cors_origins: str | None = Field(default=None)

    # LLM providers
    openai_api_key: str | None = Field(default=None)
    anthropic_api_key: str | None = Field(default=None)

    # Scoring
    score_oracle: Literal["heuristic", "llm"] = Field(default="heuristic")
    score_oracle_model: str = Field(default="gpt-4o-mini")
    oracle_timeout_seconds: float = Field(default=30.0)  # per combination
    llm_timeout_seconds: float = Field(default=25.0)  # capped at oracle_timeout_seconds
    prune_default_min_score: int = Field(default=70)

    # Generation
    max_combinations_per_adset: int = Field(default=5000)
    default_cta_type: str = Field(default="LEARN_MORE")

    # Progress stream
    progress_channel_maxsize: int = Field(default=100)

    # Upstream cache
    cache_sweep_interval_seconds: float = Field(default=5 * 60)

    # Meta Graph API
    meta_access_token: str | None = Field(default=None)
    meta_graph_api_base: str = Field(default="https://graph.facebook.com/v24.0")

    def get_database_url(self) -> str:
        """
        Get the appropriate database URL.
        Prefers DATABASE_PUBLIC_URL for local development (external access).
        Falls back to DATABASE_URL.
        """
        public_url = os.getenv('DATABASE_PUBLIC_URL') or self.database_public_url
        internal_url = os.getenv('DATABASE_URL') or self.database_url

        if public_url:
            return public_url
        return internal_url

    def get_additional_cors_origins(self) -> list[str]:
        value = self.additional_cors_origins
        if not value:
            return []

        stripped = value.strip()
        if not stripped:
            return []
        if stripped.startswith("[") and stripped.endswith("]"):
            try:
                parsed = json.loads(stripped)
                if isinstance(parsed, list):
                    return [
                        str(origin).strip()
                        for origin in parsed
                        if str(origin).strip()
                    ]
            except json.JSONDecodeError:
                pass
        return [item.strip() for item in stripped.split(",") if item.strip()]


def get_cors_origins(settings: Settings) -> list[str]:
    """Frontend origin plus any additional origins, de-duplicated, http(s) only."""
    origins: list[str] = []
    for origin in [settings.frontend_base_url, *settings.get_additional_cors_origins()]:
        origin = (origin or "").strip().rstrip("/")
        if not origin.startswith(("http://", "https://")):
            continue
        if origin not in origins:
            origins.append(origin)
    return origins


@lru_cache()
def get_settings():
    return Settings()

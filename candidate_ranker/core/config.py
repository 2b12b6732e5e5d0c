"""
Application configuration

Settings are managed with pydantic-settings and read from the environment / .env
"""
from functools import lru_cache
from pathlib import Path
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
import json

# Project root (the directory holding pyproject.toml)
BASE_DIR = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "Candidate-Ranker-API"
    app_env: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Database
    database_url: str = f"sqlite+aiosqlite:///{BASE_DIR / 'data' / 'candidates.db'}"

    # CORS
    cors_origins: List[str] = ["http://localhost:5173"]

    # LLM (any OpenAI compatible endpoint)
    llm_model: str = "gpt-4o-mini"
    llm_api_key: str = ""
    llm_base_url: str = "https://api.openai.com/v1"
    llm_temperature: float = 0.7
    llm_timeout: int = 120
    llm_max_tokens: int = 4000
    llm_max_concurrency: int = 5
    llm_rate_limit: int = 60

    # Ranking / generation
    default_ranking_criteria: str = "Software Engineering Position"
    criteria_max_length: int = 500
    generation_max_count: int = 10

    # Access control
    api_key: str = ""
    ai_rate_limit_requests: int = 20
    ai_rate_limit_window: int = 15 * 60
    api_rate_limit_requests: int = 100
    api_rate_limit_window: int = 15 * 60

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(",")]
        return v

    @field_validator("database_url", mode="before")
    @classmethod
    def fix_database_path(cls, v):
        if isinstance(v, str) and "./data/" in v:
            return v.replace("./data/", str(BASE_DIR / "data") + "/")
        return v

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def auth_enabled(self) -> bool:
        """API key auth is only enforced when a key is configured"""
        return bool(self.api_key)


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings instance"""
    return Settings()


settings = get_settings()

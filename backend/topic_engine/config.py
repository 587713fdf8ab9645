"""
Application configuration from environment variables.
Loads .env from the backend directory so settings are found regardless of cwd.
"""
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_SECRET = "change-me-in-production"

# .env next to backend/ (parent of topic_engine/) : load explicitly so values are set even when run from repo root
_BACKEND_DIR = Path(__file__).resolve().parent.parent
_ENV_FILE = _BACKEND_DIR / ".env"

if _ENV_FILE.exists():
    from dotenv import load_dotenv
    load_dotenv(_ENV_FILE, override=False)
else:
    # Fallback: try backend/.env relative to cwd (e.g. when running from repo root)
    import os
    _cwd_env = Path(os.getcwd()) / "backend" / ".env"
    if _cwd_env.exists():
        from dotenv import load_dotenv
        load_dotenv(_cwd_env, override=False)


class Settings(BaseSettings):
    """Load and validate config from env."""

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE if _ENV_FILE.exists() else None,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database: sqlite for local runs and tests, postgresql for production
    database_url: str = "sqlite:///./topic_engine_dev.db"
    sql_echo: bool = False

    # Environment: set ENV=production in production; used to enforce SECRET_KEY.
    env: str = ""

    # Bearer tokens are issued by the external auth service; we only read the actor id (sub claim).
    secret_key: str = _DEFAULT_SECRET
    jwt_algorithm: str = "HS256"

    # Topic payload defaults
    default_language: str = "en"
    default_page_size: int = 20
    max_page_size: int = 100

    # CORS: comma-separated origins
    cors_origins: str = "http://localhost:3000"

    debug: bool = False

    @field_validator("default_language", mode="before")
    @classmethod
    def _lower_language(cls, v: str) -> str:
        return (v or "en").strip().lower() or "en"

    @property
    def is_production(self) -> bool:
        return (self.env or "").strip().lower() == "production"

    @property
    def uses_default_secret(self) -> bool:
        return (self.secret_key or "").strip() == _DEFAULT_SECRET


settings = Settings()

"""PULSE — Central Configuration via Pydantic Settings."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # ── Database ──
    database_url: str = ""

    # ── App ──
    log_level: str = "INFO"

    # ── Metrics Engine ──
    formula_max_length: int = 500  # Longer formulas evaluate to 0

    @property
    def effective_database_url(self) -> str:
        """Return the configured database URL, otherwise fall back to SQLite."""
        if self.database_url:
            return self.database_url
        return "sqlite:///./pulse.db"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()

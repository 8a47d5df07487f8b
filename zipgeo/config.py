"""Application configuration."""
from functools import lru_cache
from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore"
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///./zipgeo.db"
    database_echo: bool = False

    # App Settings
    app_name: str = "ZIP Geodata Directory"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"

    # Source data
    assets_dir: Path = Path(__file__).parent / "data"
    source_csv: str = "zip_code_database.csv"
    asset_timeout_seconds: float = 30.0
    write_zip_entries: bool = True

    # Geographic Settings
    search_radius_km: float = 50.0
    max_search_radius_km: float = 500.0

    # API Settings
    list_page_size: int = 1000
    cors_origins: list[str] = ["*"]

    @property
    def is_sqlite(self) -> bool:
        """Whether the configured database is SQLite."""
        return self.database_url.startswith("sqlite")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

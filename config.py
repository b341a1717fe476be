from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List
from functools import lru_cache


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    app_name: str = "Payments Ledger"
    app_version: str = "1.0.0"
    debug: bool = False

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    # Security settings
    rate_limit_enabled: bool = True
    rate_limit_per_minute: int = 30

    # CORS settings
    allowed_origins: List[str] = ["*"]  # In production, specify exact origins
    allowed_methods: List[str] = ["GET", "POST", "OPTIONS"]
    allowed_headers: List[str] = ["*"]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Environment-specific configurations
class DevelopmentSettings(Settings):
    debug: bool = True
    log_level: str = "DEBUG"
    log_format: str = "text"
    rate_limit_per_minute: int = 100  # More lenient for development


class ProductionSettings(Settings):
    debug: bool = False
    log_level: str = "INFO"
    allowed_origins: List[str] = []  # Must be specified in production
    rate_limit_per_minute: int = 30


class TestingSettings(Settings):
    debug: bool = True
    log_level: str = "WARNING"  # Reduce noise in tests
    rate_limit_enabled: bool = False


def get_settings_for_environment(env: str = "development") -> Settings:
    """Get settings for specific environment."""
    settings_map = {
        "development": DevelopmentSettings,
        "production": ProductionSettings,
        "testing": TestingSettings,
    }

    settings_class = settings_map.get(env.lower(), Settings)
    return settings_class()

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    ENV_STATE: Optional[str] = "dev"

    """Loads the dotenv file."""
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


class GlobalConfig(BaseConfig):
    # samedi Booking API
    BOOKING_API_URL: str = "https://patient.samedi.de/api/booking/v3"
    CLIENT_ID: Optional[str] = None
    CLIENT_SECRET: Optional[str] = None
    REQUEST_TIMEOUT: float = 5.0
    CACHE_TTL_SECONDS: int = 1200
    CACHE_MAX_ENTRIES: int = 1024

    # Patient OAuth
    OAUTH_AUTHORIZE_URL: str = "https://patient.samedi.de/oauth/authorize"
    OAUTH_TOKEN_URL: str = "https://patient.samedi.de/oauth/token"
    OAUTH_REDIRECT_URI: Optional[str] = None

    # Session cookie
    SESSION_SECRET_KEY: str = "change-me-in-production"
    SESSION_TTL_MINUTES: int = 120

    CORS_ORIGINS: List[str] = ["http://localhost", "http://localhost:5173"]
    LOG_LEVEL: str = "INFO"


class DevConfig(GlobalConfig):
    model_config = SettingsConfigDict(env_prefix="DEV_")


class ProdConfig(GlobalConfig):
    model_config = SettingsConfigDict(env_prefix="PROD_")


class TestConfig(GlobalConfig):
    CLIENT_ID: Optional[str] = "test-client"
    BOOKING_API_URL: str = "https://booking.test/api/booking/v3"
    SESSION_SECRET_KEY: str = "test-secret"
    model_config = SettingsConfigDict(env_prefix="TEST_")


@lru_cache()
def get_config(env_state: str):
    """Instantiate config based on the environment."""
    configs = {"dev": DevConfig, "prod": ProdConfig, "test": TestConfig}
    return configs[env_state](ENV_STATE=env_state)


config = get_config(BaseConfig().ENV_STATE)

import os
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    APP_NAME: str = "Customer Records"
    DEBUG: bool = True
    DB_PATH: str = "data/customers.db"
    DATABASE_URL: Optional[str] = None  # overrides DB_PATH when set

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # Create the stock custom fields on first start
    SEED_DEFAULT_FIELDS: bool = True
    # Seconds to wait for another field-definition change to finish
    SCHEMA_LOCK_TIMEOUT: float = 10.0

    CORS_ORIGINS: List[str] = ["*"]
    HOST: str = "0.0.0.0"
    PORT: int = 8080

    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"sqlite:///{self.DB_PATH}"

settings = Settings()

# Ensure the SQLite directory exists
if not settings.DATABASE_URL and os.path.dirname(settings.DB_PATH):
    os.makedirs(os.path.dirname(settings.DB_PATH), exist_ok=True)

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    # API Settings
    PROJECT_NAME: str = "Supplier Ledger API"
    API_V1_STR: str = "/api/v1"
    PROJECT_VERSION: str = "0.1.0"
    DESCRIPTION: str = "Supplier obligations and payment settlement for the repair shop back office"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Storage: "memory" or "mongo"
    LEDGER_STORE: str = "memory"

    # MongoDB
    MONGODB_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "supplier_ledger"

    # Storage boundary policy (mongo only)
    STORAGE_TIMEOUT_SECONDS: float = 5.0
    STORAGE_RETRIES: int = 2
    STORAGE_BACKOFF_SECONDS: float = 0.1

    # Settlement policy
    SYNTHESIZE_UNMATCHED_PAYMENTS: bool = True
    SETTLEMENT_CONFLICT_RETRIES: int = 3

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = ""  # "json" or "console"; empty picks by DEBUG

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env"
    )

settings = Settings()

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class LicensingConfig(BaseModel):
    API_BASE_URL: str = "http://localhost:8000"
    API_V1_STR: str = "/api/v1"

    # Bearer token of the signed-in account owner
    ACCESS_TOKEN: str = ""

    # Default timeouts (in seconds)
    DEFAULT_TIMEOUT: float = 30.0
    DEFAULT_CONNECT_TIMEOUT: float = 10.0


class ActivationConfig(BaseModel):
    # Consecutive invalid QR payloads before the scan session gives up
    MAX_INVALID_SCANS: int = 5


class StorageConfig(BaseModel):
    SELECTION_KEY_PREFIX: str = "booths:selected"
    CREDENTIALS_KEY_PREFIX: str = "booths:credentials"


class LoggingConfig(BaseModel):
    BASE_DIR: Path = Path(__file__).resolve().parent.parent

    LOG_DIR: str = os.path.join(BASE_DIR, "logs")

    LOG_STD_LEVEL: str = "INFO"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    DEBUG: bool = False

    REDIS_URL: str = "redis://localhost:6379"

    # Licensing backend configuration
    LICENSING: LicensingConfig = LicensingConfig()

    # Scan session configuration
    ACTIVATION: ActivationConfig = ActivationConfig()

    # Redis key layout
    STORAGE: StorageConfig = StorageConfig()

    # Logging configuration
    LOGGING: LoggingConfig = LoggingConfig()


settings = Settings()

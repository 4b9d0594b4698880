from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings managed via Pydantic Settings.
    Reads variables from environment and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    # --- Application Meta ---
    APP_NAME: str = "CSV Explorer"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    # --- Server Configuration ---
    HOST: str = "127.0.0.1"
    PORT: int = 8000

    # --- Data Ingestion Limits ---
    MAX_UPLOAD_SIZE_MB: int = 50
    READ_CHUNK_SIZE: int = Field(64 * 1024, gt=0, description="Bytes per read while loading a file")

    # --- Persistence ---
    STORAGE_DIR: str = Field(".csv_explorer", description="Directory backing the file key-value store")
    PERSISTED_ROW_LIMIT: int = 2000
    SAMPLE_ROW_LIMIT: int = 200

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """
        Normalizes the level name; unknown names fall back to INFO in the logger.
        """
        return v.strip().upper() or "INFO"


settings = Settings()

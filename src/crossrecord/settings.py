"""Settings for CrossRecord stores."""

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CrossRecordSettings(BaseSettings):
    """CrossRecord configuration settings."""

    # Azure AI Search
    AZURE_AI_SEARCH_ENDPOINT: Optional[str] = None
    AZURE_AI_SEARCH_API_KEY: Optional[str] = None

    # Qdrant
    QDRANT_URL: Optional[str] = "http://localhost:6333"
    QDRANT_API_KEY: Optional[str] = None
    QDRANT_HAS_NAMED_VECTORS: bool = False

    # Redis
    REDIS_URL: Optional[str] = "redis://localhost:6379"
    REDIS_STORAGE_TYPE: Literal["json", "hash_set"] = "json"
    REDIS_PREFIX_COLLECTION_NAME_TO_KEY_NAMES: bool = False

    # Store settings
    DEFAULT_COLLECTION_NAME: Optional[str] = None
    MAX_DEGREE_OF_GET_PARALLELISM: int = Field(50, ge=1)
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


settings = CrossRecordSettings()

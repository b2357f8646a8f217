from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List

class Settings(BaseSettings):
    # Each field is read from the environment variable of the same name, upper-cased
    app_title: str = "Image Gallery"
    root_path: str = "/api/v1"

    # Local persistence
    storage_dir: str = "downloads"
    metadata_file: str = "metadata.json"

    # Upload limits
    max_upload_bytes: int = Field(5 * 1024 * 1024, gt=0)
    allowed_mime_types: List[str] = ["image/jpeg", "image/jpg", "image/png", "image/svg+xml"]

    log_level: str = "INFO"
    cors_origins: List[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="allow",  # tolerate unknown vars if needed
    )

settings = Settings()

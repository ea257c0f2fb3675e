"""Application configuration via environment variables."""

from typing import Annotated, List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode


class Settings(BaseSettings):
    # Server
    host: str = "0.0.0.0"
    port: int = 54976
    cors_origins: Annotated[List[str], NoDecode] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    # Supabase (required)
    supabase_url: str
    supabase_service_role_key: str
    supabase_bucket: str

    # Replicate (required)
    replicate_api_token: str
    replicate_model: str = (
        "fofr/sdxl-fresh-ink:"
        "8515c238222fa529763ec99b4ba1fa9d32ab5d6ebc82b4281de99e4dbdcec943"
    )

    # Website downloads
    download_concurrency: int = 2
    fetch_timeout_seconds: float = 60.0
    scratch_dir: Optional[str] = None

    # Progress tracker bounds
    progress_max_entries: int = 1000
    progress_ttl_seconds: int = 3600

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_origins(cls, v):
        if isinstance(v, str):
            return [o.strip() for o in v.split(",") if o.strip()]
        return v

    @field_validator("download_concurrency")
    @classmethod
    def positive_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError("DOWNLOAD_CONCURRENCY must be a positive integer")
        return v


settings = Settings()

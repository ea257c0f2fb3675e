"""Job record data models for downloads and AI generations."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class DownloadProgress(BaseModel):
    """In-memory progress of a website download. Not persisted."""
    total_files: int = 0
    downloaded_files: int = 0
    status: JobStatus = JobStatus.PENDING
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class DownloadJob(BaseModel):
    """Row of the `downloads` table."""
    id: str
    user_id: str
    url: str
    status: JobStatus = JobStatus.PENDING
    storage_path: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"extra": "ignore"}

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "DownloadJob":
        return cls.model_validate(row)


class Generation(BaseModel):
    """Row of the `ai_generations` table."""
    id: str
    user_id: str
    prompt: str
    negative_prompt: Optional[str] = None
    width: int = 1024
    height: int = 1024
    output_urls: List[str] = Field(default_factory=list)
    status: str = JobStatus.PENDING.value
    error: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"extra": "allow"}

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Generation":
        data = dict(row)
        # Column is nullable until the job completes
        if data.get("output_urls") is None:
            data["output_urls"] = []
        return cls.model_validate(data)

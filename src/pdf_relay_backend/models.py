from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Response model serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HealthSnapshot(CamelModel):
    status: str = "ok"
    timestamp: datetime
    uptime: float
    downstream_configured: bool


class StatsSnapshot(CamelModel):
    files_waiting: int
    temp_dir: str
    max_file_size: str
    downstream_webhook: str
    environment: str
    total_size_mb: str = Field(alias="totalSizeMB")


class UploadResponse(CamelModel):
    success: bool = True
    message: str
    file_name: str
    file_size: int
    file_size_mb: str = Field(alias="fileSizeMB")
    processing_time: str
    job_id: str


class BatchUploadResponse(CamelModel):
    success: bool = True
    message: str
    batch_id: str
    total_files: int
    processing_time: str
    downstream_response: Any = None


class ErrorResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    success: bool = False
    error: str

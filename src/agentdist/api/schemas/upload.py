from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field


class UploadManifestResponse(BaseModel):
    upload_id: str
    filename: str
    original_count: int
    uploaded_by: str
    status: str
    message: str | None = None
    created_at: datetime
    processed_at: datetime | None = None


class DistributionEntryResponse(BaseModel):
    agent_id: str
    agent_name: str
    count: int = Field(..., ge=0)


class DistributeResult(BaseModel):
    upload_id: str
    filename: str
    total_records: int
    agents_count: int
    distribution: List[DistributionEntryResponse]


class DistributeResponse(BaseModel):
    success: bool = True
    message: str
    data: DistributeResult


class DistributeFailureResponse(BaseModel):
    success: bool = False
    message: str
    reason: str
    errors: List[str] = Field(default_factory=list)
    upload_id: str | None = None


class UploadHistoryData(BaseModel):
    uploads: List[UploadManifestResponse]


class UploadHistoryResponse(BaseModel):
    success: bool = True
    data: UploadHistoryData

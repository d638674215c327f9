from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import BaseModel

from .upload import UploadManifestResponse


class AssignedItemResponse(BaseModel):
    id: int
    agent_id: str
    upload_id: str
    position: int
    contact_name: str | None
    phone: str | None
    notes: str
    status: str
    created_at: datetime
    upload_filename: str
    upload_date: datetime


class PaginationResponse(BaseModel):
    current_page: int
    total_pages: int
    total_count: int
    per_page: int


class AgentSummaryResponse(BaseModel):
    id: str
    name: str
    email: str | None = None
    status: str
    assigned_lists_count: int = 0


class AssignedListsData(BaseModel):
    agent: AgentSummaryResponse
    assigned_lists: List[AssignedItemResponse]
    pagination: PaginationResponse


class AssignedListsResponse(BaseModel):
    success: bool = True
    data: AssignedListsData


class AgentListData(BaseModel):
    agents: List[AgentSummaryResponse]


class AgentListResponse(BaseModel):
    success: bool = True
    data: AgentListData
    count: int


class UploadDistributionData(BaseModel):
    upload: UploadManifestResponse
    distribution: List[AssignedItemResponse]


class UploadDistributionResponse(BaseModel):
    success: bool = True
    data: UploadDistributionData

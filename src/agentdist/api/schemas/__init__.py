"""Pydantic models for API I/O."""

from .assignment import (
    AgentListData,
    AgentListResponse,
    AgentSummaryResponse,
    AssignedItemResponse,
    AssignedListsData,
    AssignedListsResponse,
    PaginationResponse,
    UploadDistributionData,
    UploadDistributionResponse,
)
from .upload import (
    DistributeFailureResponse,
    DistributeResponse,
    DistributeResult,
    DistributionEntryResponse,
    UploadHistoryData,
    UploadHistoryResponse,
    UploadManifestResponse,
)

__all__ = [
    "AgentListData",
    "AgentListResponse",
    "AgentSummaryResponse",
    "AssignedItemResponse",
    "AssignedListsData",
    "AssignedListsResponse",
    "DistributeFailureResponse",
    "DistributeResponse",
    "DistributeResult",
    "DistributionEntryResponse",
    "PaginationResponse",
    "UploadDistributionData",
    "UploadDistributionResponse",
    "UploadHistoryData",
    "UploadHistoryResponse",
    "UploadManifestResponse",
]

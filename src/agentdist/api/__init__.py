"""REST API for uploading contact files and reading agent assignments."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator

from fastapi import Depends, FastAPI, File, Header, HTTPException, Query, Request, UploadFile
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from agentdist.api.schemas import (
    AgentListData,
    AgentListResponse,
    AgentSummaryResponse,
    AssignedItemResponse,
    AssignedListsData,
    AssignedListsResponse,
    DistributeFailureResponse,
    DistributeResponse,
    DistributeResult,
    DistributionEntryResponse,
    PaginationResponse,
    UploadDistributionData,
    UploadDistributionResponse,
    UploadHistoryData,
    UploadHistoryResponse,
    UploadManifestResponse,
)
from agentdist.config import Settings, load_settings
from agentdist.ingest import is_allowed_upload
from agentdist.persistence import AgentRecord, AssignedItem, DistributionStore, UploadManifest
from agentdist.pipeline import DistributionPipeline, PipelineResult


logger = logging.getLogger(__name__)

DISALLOWED_TYPE_MESSAGE = "Only CSV, XLS, and XLSX files are allowed"


def manifest_to_response(manifest: UploadManifest) -> UploadManifestResponse:
    return UploadManifestResponse(
        upload_id=manifest.upload_id,
        filename=manifest.filename,
        original_count=manifest.original_count,
        uploaded_by=manifest.uploaded_by,
        status=manifest.status,
        message=manifest.message,
        created_at=manifest.created_at,
        processed_at=manifest.processed_at,
    )


def item_to_response(item: AssignedItem) -> AssignedItemResponse:
    return AssignedItemResponse(
        id=item.item_id,
        agent_id=item.agent_id,
        upload_id=item.upload_id,
        position=item.position,
        contact_name=item.contact_name,
        phone=item.phone,
        notes=item.notes,
        status=item.status,
        created_at=item.created_at,
        upload_filename=item.upload_filename,
        upload_date=item.upload_date or item.created_at,
    )


def agent_to_summary(agent: AgentRecord) -> AgentSummaryResponse:
    return AgentSummaryResponse(
        id=agent.agent_id,
        name=agent.name,
        email=agent.email,
        status=agent.status,
        assigned_lists_count=agent.assigned_count,
    )


def _failure_status(result: PipelineResult) -> int:
    return 500 if result.reason == "persistence_failure" else 400


def get_caller_identity(x_user_id: str | None = Header(None)) -> str:
    """Identity of the caller, as established by the authenticating gateway."""

    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Authorization required")
    return x_user_id.strip()


def create_app(settings: Settings | None = None, store: DistributionStore | None = None) -> FastAPI:
    settings = settings or load_settings()
    owns_store = store is None
    store = store or DistributionStore(settings.db_path)
    store.open()
    pipeline = DistributionPipeline(store, settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            yield
        finally:
            if owns_store:
                store.close()

    app = FastAPI(title="agentdist", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.pipeline = pipeline

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.get("/api/health")
    async def health() -> dict[str, str]:
        return {
            "status": "OK",
            "message": "Server is running",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.post(
        "/api/upload/distribute",
        response_model=DistributeResponse,
        responses={400: {"model": DistributeFailureResponse}, 500: {"model": DistributeFailureResponse}},
    )
    async def distribute_upload(
        file: UploadFile | None = File(None),
        uploaded_by: str = Depends(get_caller_identity),
    ):
        if file is None:
            raise HTTPException(status_code=400, detail="No file uploaded")
        if not is_allowed_upload(file.content_type, file.filename):
            raise HTTPException(status_code=400, detail=DISALLOWED_TYPE_MESSAGE)
        contents = await file.read(settings.max_upload_bytes + 1)
        if len(contents) > settings.max_upload_bytes:
            raise HTTPException(status_code=400, detail="File too large")

        filename = file.filename or "upload"
        result = pipeline.run(
            contents,
            filename=filename,
            uploaded_by=uploaded_by,
            content_type=file.content_type,
        )
        if not result.success:
            failure = DistributeFailureResponse(
                message=result.message,
                reason=result.reason or "pipeline_error",
                errors=result.errors,
                upload_id=result.manifest.upload_id if result.manifest else None,
            )
            return JSONResponse(status_code=_failure_status(result), content=failure.model_dump())

        manifest = result.manifest
        if manifest is None:
            logger.error("Upload %s reported success without an upload record", filename)
            raise HTTPException(status_code=500, detail="Upload record missing")
        return DistributeResponse(
            message=result.message,
            data=DistributeResult(
                upload_id=manifest.upload_id,
                filename=result.filename,
                total_records=result.total_records,
                agents_count=result.agents_count,
                distribution=[DistributionEntryResponse(**entry) for entry in result.distribution],
            ),
        )

    @app.get("/api/upload/history", response_model=UploadHistoryResponse)
    async def upload_history(
        limit: int | None = Query(None, ge=1),
        _caller: str = Depends(get_caller_identity),
    ) -> UploadHistoryResponse:
        uploads = store.list_uploads(limit=limit)
        return UploadHistoryResponse(data=UploadHistoryData(uploads=[manifest_to_response(m) for m in uploads]))

    @app.get("/api/upload/{upload_id}/distribution", response_model=UploadDistributionResponse)
    async def upload_distribution(
        upload_id: str,
        _caller: str = Depends(get_caller_identity),
    ) -> UploadDistributionResponse:
        manifest = store.get_upload(upload_id)
        if manifest is None:
            raise HTTPException(status_code=404, detail="Upload not found")
        items = store.list_upload_items(upload_id)
        return UploadDistributionResponse(
            data=UploadDistributionData(
                upload=manifest_to_response(manifest),
                distribution=[item_to_response(item) for item in items],
            )
        )

    @app.get("/api/agents", response_model=AgentListResponse)
    async def list_agents(
        status: str | None = Query(None),
        _caller: str = Depends(get_caller_identity),
    ) -> AgentListResponse:
        agents = [agent_to_summary(agent) for agent in store.list_agents(status=status)]
        return AgentListResponse(data=AgentListData(agents=agents), count=len(agents))

    @app.get("/api/agents/{agent_id}/assigned-lists", response_model=AssignedListsResponse)
    async def assigned_lists(
        agent_id: str,
        page: int = Query(1, ge=1),
        limit: int | None = Query(None, ge=1),
        _caller: str = Depends(get_caller_identity),
    ) -> AssignedListsResponse:
        page_size = limit or settings.default_page_size
        try:
            result = store.list_assignments(agent_id, page=page, page_size=page_size)
        except KeyError:
            raise HTTPException(status_code=404, detail="Agent not found") from None
        return AssignedListsResponse(
            data=AssignedListsData(
                agent=agent_to_summary(result.agent),
                assigned_lists=[item_to_response(item) for item in result.items],
                pagination=PaginationResponse(
                    current_page=result.page,
                    total_pages=result.total_pages,
                    total_count=result.total_count,
                    per_page=result.page_size,
                ),
            )
        )

    return app

"""Run one upload through decode, normalize, partition and persist."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Literal, Optional, Protocol, Sequence

from agentdist.config import Settings
from agentdist.distribution import distribute, summarize
from agentdist.errors import PipelineError, SchemaValidationFailed
from agentdist.ingest import decode, detect_format, normalize
from agentdist.models import WorkerSnapshot
from agentdist.persistence import DistributionStore, ManifestDraft, UploadManifest


logger = logging.getLogger(__name__)

Stage = Literal["received", "decoded", "normalized", "partitioned", "persisted", "failed"]


class WorkerDirectory(Protocol):
    def list_eligible_agents(self, limit: int) -> Sequence[WorkerSnapshot]:
        ...


@dataclass
class PipelineResult:
    stage: Stage
    filename: str
    message: str
    reason: Optional[str] = None
    failed_after: Optional[Stage] = None
    errors: List[str] = field(default_factory=list)
    missing_fields: List[str] = field(default_factory=list)
    manifest: Optional[UploadManifest] = None
    total_records: int = 0
    distribution: List[dict] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.stage == "persisted"

    @property
    def agents_count(self) -> int:
        return len(self.distribution)


class DistributionPipeline:
    """Sequences the ingestion stages for a single upload.

    Eligible agents are read right before partitioning. Nothing is written
    until partitioning succeeds, so decode, schema and empty-pool failures
    leave no manifest behind.
    """

    def __init__(
        self,
        store: DistributionStore,
        workers: Optional[WorkerDirectory] = None,
        *,
        settings: Optional[Settings] = None,
    ):
        self.store = store
        self.workers: WorkerDirectory = workers if workers is not None else store
        self.settings = settings or Settings()

    def run(
        self,
        buffer: bytes,
        *,
        filename: str,
        uploaded_by: str,
        content_type: Optional[str] = None,
    ) -> PipelineResult:
        stage: Stage = "received"
        try:
            tabular_format = detect_format(content_type, filename)
            raw_records = decode(buffer, tabular_format, filename=filename)
            stage = "decoded"
            logger.info("Decoded %s rows from %s (%s)", len(raw_records), filename, tabular_format)

            records = normalize(raw_records).ensure_valid()
            stage = "normalized"

            workers = list(self.workers.list_eligible_agents(self.settings.max_agents))
            groups = distribute(records, workers)
            stage = "partitioned"
            logger.info("Partitioned %s records across %s agents", len(records), len(groups))

            manifest = self.store.commit(
                ManifestDraft(filename=filename, original_count=len(records), uploaded_by=uploaded_by),
                groups,
            )
            stage = "persisted"
        except PipelineError as exc:
            logger.warning("Upload %s failed after %s: %s (%s)", filename, stage, exc.message, exc.reason)
            return self._failure(exc, filename=filename, failed_after=stage)

        logger.info("Upload %s distributed as %s", filename, manifest.upload_id)
        return PipelineResult(
            stage=stage,
            filename=filename,
            message="File uploaded and distributed successfully",
            manifest=manifest,
            total_records=len(records),
            distribution=summarize(groups),
        )

    def _failure(self, exc: PipelineError, *, filename: str, failed_after: Stage) -> PipelineResult:
        result = PipelineResult(
            stage="failed",
            filename=filename,
            message=exc.message,
            reason=exc.reason,
            failed_after=failed_after,
        )
        if isinstance(exc, SchemaValidationFailed):
            result.errors = list(exc.errors)
            result.missing_fields = list(exc.missing_fields)
        upload_id = getattr(exc, "upload_id", None)
        if upload_id:
            result.manifest = self.store.get_upload(upload_id)
        return result

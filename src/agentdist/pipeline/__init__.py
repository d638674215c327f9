"""Upload pipeline orchestration."""

from .service import DistributionPipeline, PipelineResult, WorkerDirectory

__all__ = ["DistributionPipeline", "PipelineResult", "WorkerDirectory"]

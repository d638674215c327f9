"""Failure taxonomy shared by the ingestion and distribution stages."""

from __future__ import annotations

from typing import Sequence


class PipelineError(Exception):
    """Base class for failures that end an upload run."""

    reason = "pipeline_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UnsupportedFormat(PipelineError):
    reason = "unsupported_format"


class MalformedInput(PipelineError):
    reason = "malformed_input"


class SchemaValidationFailed(PipelineError):
    reason = "schema_validation_failed"

    def __init__(self, errors: Sequence[str], missing_fields: Sequence[str] = ()):
        super().__init__("Invalid file format")
        self.errors = list(errors)
        self.missing_fields = list(missing_fields)


class NoEligibleWorkers(PipelineError):
    reason = "no_eligible_workers"

    def __init__(self, message: str = "No active agents found. Please create agents first."):
        super().__init__(message)


class PersistenceFailure(PipelineError):
    reason = "persistence_failure"

    def __init__(self, message: str, *, upload_id: str | None = None):
        super().__init__(message)
        self.upload_id = upload_id

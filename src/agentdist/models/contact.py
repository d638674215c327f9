"""Canonical contact and worker models shared across ingestion and distribution."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict


class CanonicalRecord(BaseModel):
    """Normalized contact row produced by the schema normalizer."""

    contact_name: Optional[str] = None
    phone: Optional[str] = None
    notes: str = ""

    model_config = ConfigDict(frozen=True)


class WorkerSnapshot(BaseModel):
    """Read-only view of an agent eligible to receive a distribution."""

    agent_id: str = Field(..., min_length=1)
    name: str
    active: bool = True

    model_config = ConfigDict(frozen=True)

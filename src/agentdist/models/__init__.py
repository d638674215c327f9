"""Canonical models shared across ingestion, distribution and persistence."""

from .contact import CanonicalRecord, WorkerSnapshot

__all__ = ["CanonicalRecord", "WorkerSnapshot"]

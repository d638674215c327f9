"""Distribution of normalized records across the active agent pool."""

from .partition import WorkerGroup, distribute, summarize

__all__ = ["WorkerGroup", "distribute", "summarize"]

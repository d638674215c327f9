"""Contact list ingestion and round-robin distribution across agents."""

__version__ = "0.1.0"

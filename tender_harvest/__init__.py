"""Tender harvesting: scheduled ingestion, deduplication and cached reads."""

__version__ = "0.1.0"

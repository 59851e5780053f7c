"""Ingestion execution engine."""

from .context import RunContext
from .pipeline import IngestionPipeline, STAGE_ORDER, validate_stage_sequence

__all__ = [
    "RunContext",
    "IngestionPipeline",
    "STAGE_ORDER",
    "validate_stage_sequence",
]

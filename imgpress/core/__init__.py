"""Encoding pipeline, work item model and batch coordination."""

from imgpress.core.batch import BatchCoordinator, BatchSummary, ExportEntry
from imgpress.core.pipeline import (
    EncodeFailure,
    EncodeRequest,
    EncodeResult,
    EncodeSuccess,
    EncodingPipeline,
    FallbackDecision,
)
from imgpress.core.state import Failed, Pending, SourceImage, Succeeded, WorkItem

__all__ = [
    "BatchCoordinator",
    "BatchSummary",
    "ExportEntry",
    "EncodingPipeline",
    "EncodeRequest",
    "EncodeResult",
    "EncodeSuccess",
    "EncodeFailure",
    "FallbackDecision",
    "SourceImage",
    "WorkItem",
    "Pending",
    "Succeeded",
    "Failed",
]

"""Business logic services for the reel pipeline."""

from app.services.pipeline_orchestrator import PipelineOrchestrator, StageProviders
from app.services.result_store import (
    LocalResultSink,
    ResultSink,
    SupabaseResultSink,
    build_result_sink,
)
from app.services.status_store import StatusStore

__all__ = [
    "LocalResultSink",
    "PipelineOrchestrator",
    "ResultSink",
    "StageProviders",
    "StatusStore",
    "SupabaseResultSink",
    "build_result_sink",
]

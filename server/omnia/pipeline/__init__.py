"""Per-item orchestration pipeline."""

from .errors import (
    ErrorKind,
    ExternalCallError,
    InputValidationError,
    ParseError,
    PipelineError,
    StoreError,
    redact,
)
from .runner import Persisted, PipelineStep, run_item, run_pipeline
from .state import InvalidTransition, PipelineRun, PipelineTask, TaskStatus

__all__ = [
    "ErrorKind",
    "ExternalCallError",
    "InputValidationError",
    "InvalidTransition",
    "ParseError",
    "Persisted",
    "PipelineError",
    "PipelineRun",
    "PipelineStep",
    "PipelineTask",
    "StoreError",
    "TaskStatus",
    "redact",
    "run_item",
    "run_pipeline",
]

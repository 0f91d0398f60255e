"""
Execution History

Records every executed node of a run and persists records for inspection.
"""

from .models import (
    ExecutionHistoryEntry,
    ExecutionRecord,
    ExecutionStatus,
    StepStatus,
    format_duration,
    new_execution_id,
)
from .recorder import HistoryRecorder, OpenStep, summarize_for_repair, truncate_binary
from .storage import FileSystemHistoryStorage, HistoryStorage, InMemoryHistoryStorage

__all__ = [
    "ExecutionHistoryEntry",
    "ExecutionRecord",
    "ExecutionStatus",
    "StepStatus",
    "format_duration",
    "new_execution_id",
    "HistoryRecorder",
    "OpenStep",
    "summarize_for_repair",
    "truncate_binary",
    "FileSystemHistoryStorage",
    "HistoryStorage",
    "InMemoryHistoryStorage",
]

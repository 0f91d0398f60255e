"""
Document-store event triggers.
"""

from .bindings import DocumentEvent, EventType, TriggerBinding
from .glob import compile_pattern, match_file_pattern, translate
from .matcher import TriggerMatcher

__all__ = [
    "DocumentEvent",
    "EventType",
    "TriggerBinding",
    "compile_pattern",
    "match_file_pattern",
    "translate",
    "TriggerMatcher",
]

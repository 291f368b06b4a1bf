"""
Core logic package.

Provides event building, result translation and failure classification.
"""

from .event_builder import AlbEventBuilder, EventBuilder
from .failure import classify_failure, extract_status_code
from .response_translator import build_response, translate_result

__all__ = [
    "AlbEventBuilder",
    "EventBuilder",
    "classify_failure",
    "extract_status_code",
    "build_response",
    "translate_result",
]

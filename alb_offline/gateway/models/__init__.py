"""
Data model definitions package.

Aggregates Pydantic models for use in other modules.
"""

from .alb import AlbEvent
from .context import InputContext
from .function import AlbConditions, AlbTrigger, FunctionEntity
from .result import BinaryResult, EmptyResult, FunctionResult, StructuredResult, TextResult
from .route import LastRequestOptions, RouteDescriptor

__all__ = [
    "AlbEvent",
    "InputContext",
    "AlbConditions",
    "AlbTrigger",
    "FunctionEntity",
    "BinaryResult",
    "EmptyResult",
    "FunctionResult",
    "StructuredResult",
    "TextResult",
    "LastRequestOptions",
    "RouteDescriptor",
]

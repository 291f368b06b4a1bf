"""
Services package.

Provides function lookup, invocation backends and request dispatching.
"""

from .dispatcher import InvocationDispatcher
from .function_provider import FunctionProvider
from .function_registry import FunctionRegistry

__all__ = [
    "InvocationDispatcher",
    "FunctionProvider",
    "FunctionRegistry",
]

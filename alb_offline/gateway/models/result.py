"""
Function result models.

The Response Translator classifies every successful function result into
exactly one of these shapes before building the HTTP response.
"""

from typing import Dict, List, Union

from pydantic import BaseModel, Field


class TextResult(BaseModel):
    """A bare string result, sent as a JSON string literal."""

    body: str


class StructuredResult(BaseModel):
    """A response-contract object with a text body."""

    body: str = ""
    headers: Dict[str, str] = Field(default_factory=dict)
    multi_headers: Dict[str, List[str]] = Field(default_factory=dict)


class BinaryResult(BaseModel):
    """A response-contract object whose body was base64 encoded."""

    body: bytes
    headers: Dict[str, str] = Field(default_factory=dict)
    multi_headers: Dict[str, List[str]] = Field(default_factory=dict)


class EmptyResult(BaseModel):
    """Any other result: nothing is sent back."""


FunctionResult = Union[TextResult, StructuredResult, BinaryResult, EmptyResult]

"""
Input context models.

Encapsulates all data required to build an event for a request.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class InputContext(BaseModel):
    """
    Snapshot of an incoming request plus its routing context.

    This model decouples the event builder from Starlette's Request object.
    """

    function_key: str
    method: str
    raw_path: str
    url: str
    headers: Dict[str, str]
    multi_headers: Dict[str, List[str]] = Field(default_factory=dict)
    query_params: Dict[str, str] = Field(default_factory=dict)
    multi_query_params: Dict[str, List[str]] = Field(default_factory=dict)
    body: Optional[bytes] = None
    stage: Optional[str] = None
    prepend_stage: bool = True
    prefix: str = ""

    model_config = ConfigDict(frozen=True)

"""
Route models.

RouteDescriptor is built once per declared ALB trigger; LastRequestOptions is
the diagnostic snapshot of the most recent request.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict

# Listener wildcard for the ALB "ANY" method condition.
ANY_METHOD = "*"


class RouteDescriptor(BaseModel):
    """A registered mapping from an ALB trigger to a function key."""

    function_key: str
    method: str
    path: str
    invoke_path: str
    server: str
    stage: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class LastRequestOptions(BaseModel):
    """Raw fields of the last request seen by any route handler."""

    headers: Dict[str, str]
    method: str
    payload: Any = None
    url: str

"""
Function domain models.

Defines the structure of a Lambda function configuration as a Pydantic model.
"""

from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator


class AlbConditions(BaseModel):
    """Trigger conditions: HTTP method and path pattern."""

    method: List[str] = Field(default_factory=lambda: ["ANY"])
    path: List[str]

    @field_validator("method", "path", mode="before")
    @classmethod
    def _as_list(cls, value: Union[str, List[str]]) -> List[str]:
        if isinstance(value, str):
            return [value]
        return value


class AlbTrigger(BaseModel):
    """ALB event declaration of a function."""

    listenerArn: Optional[str] = None
    priority: Optional[int] = None
    conditions: AlbConditions


class FunctionEvent(BaseModel):
    """Generic event wrapper; only ALB events are served."""

    alb: Optional[AlbTrigger] = None


class FunctionEntity(BaseModel):
    """
    Core domain entity for a Lambda function.

    Represents the unified configuration after defaults are merged.
    handler (local, "module.attr") or url (Lambda RIE base URL) selects the backend.
    """

    name: str
    handler: Optional[str] = None
    url: Optional[str] = None
    timeout: Optional[int] = None
    memory_size: int = 1024
    environment: Dict[str, str] = Field(default_factory=dict)
    events: List[FunctionEvent] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_backend(self) -> "FunctionEntity":
        if not self.handler and not self.url:
            raise ValueError(f"function '{self.name}' needs a handler or a url")
        return self

    @property
    def alb_triggers(self) -> List[AlbTrigger]:
        return [event.alb for event in self.events if event.alb is not None]

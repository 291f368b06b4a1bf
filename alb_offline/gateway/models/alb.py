# alb_offline/gateway/models/alb.py

"""
Pydantic models for the AWS Application Load Balancer Lambda event structure.

Reference: https://docs.aws.amazon.com/elasticloadbalancing/latest/application/lambda-functions.html#receive-event-from-load-balancer

Events are frozen: once built for a request they are handed to the function
as-is and never modified.
"""

from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_TARGET_GROUP_ARN = (
    "arn:aws:elasticloadbalancing:us-east-1:550213415212:"
    "targetgroup/5811b5d6aff964cd50efa8596604c4e0/b49d49c443aa999f"
)


class ElbContext(BaseModel):
    """ELB section of the request context."""

    targetGroupArn: str = DEFAULT_TARGET_GROUP_ARN

    model_config = ConfigDict(frozen=True)


class AlbRequestContext(BaseModel):
    """ALB Request Context object."""

    elb: ElbContext = Field(default_factory=ElbContext)

    model_config = ConfigDict(frozen=True)


class AlbEvent(BaseModel):
    """
    AWS ALB -> Lambda Event Structure

    Defines the structure of the event object received by Lambda functions.
    Use model_dump() to convert to a dict.
    """

    requestContext: AlbRequestContext = Field(default_factory=AlbRequestContext)
    httpMethod: str
    path: str
    queryStringParameters: Dict[str, str] = Field(default_factory=dict)
    multiValueQueryStringParameters: Dict[str, List[str]] = Field(default_factory=dict)
    headers: Dict[str, str]
    multiValueHeaders: Dict[str, List[str]] = Field(default_factory=dict)
    body: Optional[str] = None
    isBase64Encoded: bool = False

    model_config = ConfigDict(frozen=True)

"""
Response Translator

Maps a function result onto the HTTP response the load balancer would send.

Result shapes:
    str                                   -> TextResult (JSON string literal)
    {"body": ..., "isBase64Encoded": true} -> BinaryResult (decoded bytes)
    {"body": "<string>"}                  -> StructuredResult
    anything else                          -> EmptyResult

A falsy body (None, "", 0, False, empty containers) is sent as an empty body.
"""

import base64
import binascii
import json
import logging
from collections.abc import Mapping
from typing import Any, Dict, List

from fastapi.responses import JSONResponse, Response

from alb_offline.common.core.logging_config import NOTICE

from ..models.result import (
    BinaryResult,
    EmptyResult,
    FunctionResult,
    StructuredResult,
    TextResult,
)
from .exceptions import ContractViolationError
from .failure import ClassifiedFailure

logger = logging.getLogger("gateway.response_translator")

UNSERIALIZED_BODY_MESSAGE = (
    "According to the API Gateway specs, the body content must be stringified. "
    "Check your Lambda response and make sure you are invoking "
    "JSON.stringify(YOUR_CONTENT) on your body object"
)
INVALID_BASE64_BODY_MESSAGE = (
    "The body is flagged with isBase64Encoded but is not valid base64. "
    "Check your Lambda response and make sure the body is base64 encoded"
)

DEFAULT_MEDIA_TYPES = {
    TextResult: "application/json",
    StructuredResult: "text/plain",
    BinaryResult: "application/octet-stream",
}


def translate_result(result: Any) -> FunctionResult:
    """
    Classify a successful function result.

    Raises:
        ContractViolationError: the body is neither a string nor valid base64
    """
    if isinstance(result, str):
        return TextResult(body=json.dumps(result))

    if not isinstance(result, Mapping) or "body" not in result:
        return EmptyResult()

    body = result["body"]
    headers = _normalize_headers(result.get("headers"))
    multi_headers = _normalize_multi_headers(result.get("multiValueHeaders"))

    if result.get("isBase64Encoded"):
        if not body:
            return BinaryResult(body=b"", headers=headers, multi_headers=multi_headers)
        if not isinstance(body, (str, bytes)):
            raise ContractViolationError(INVALID_BASE64_BODY_MESSAGE)
        try:
            decoded = base64.b64decode(body)
        except (binascii.Error, ValueError) as e:
            raise ContractViolationError(INVALID_BASE64_BODY_MESSAGE) from e
        return BinaryResult(body=decoded, headers=headers, multi_headers=multi_headers)

    if not body:
        body = ""
    elif not isinstance(body, str):
        raise ContractViolationError(UNSERIALIZED_BODY_MESSAGE)

    return StructuredResult(body=body, headers=headers, multi_headers=multi_headers)


def _normalize_headers(headers: Any) -> Dict[str, str]:
    if not isinstance(headers, Mapping):
        return {}
    return {str(k): str(v) for k, v in headers.items()}


def _normalize_multi_headers(headers: Any) -> Dict[str, List[str]]:
    if not isinstance(headers, Mapping):
        return {}
    normalized = {}
    for name, values in headers.items():
        if isinstance(values, (list, tuple)):
            normalized[str(name)] = [str(v) for v in values]
        else:
            normalized[str(name)] = [str(values)]
    return normalized


def build_response(result: FunctionResult, status_code: int = 200) -> Response:
    """
    Build the outbound HTTP response for a translated result.

    Bodies get a default Content-Type by result kind. A Content-Type from the
    result's own headers replaces it.
    """
    if isinstance(result, EmptyResult):
        return Response(status_code=status_code)

    response = Response(
        content=result.body,
        status_code=status_code,
        media_type=DEFAULT_MEDIA_TYPES[type(result)],
    )

    if isinstance(result, (StructuredResult, BinaryResult)):
        for name, value in result.headers.items():
            response.headers[name] = value
        for name, values in result.multi_headers.items():
            if name in response.headers:
                del response.headers[name]
            for value in values:
                response.headers.append(name, value)

    return response


def build_error_response(failure: ClassifiedFailure) -> JSONResponse:
    """Build the JSON error response for a classified failure."""
    content = failure.body.model_dump()
    if content.get("offlineInfo") is None:
        content.pop("offlineInfo", None)

    return JSONResponse(status_code=failure.status_code, content=content)


def log_output(status_code: int, result: Any, failed: bool = False) -> None:
    """Log the outbound status and a best-effort JSON rendering of the result."""
    if failed:
        logger.log(NOTICE, f"Replying {status_code}")
        return

    try:
        what_to_log = json.dumps(result)
    except (TypeError, ValueError):
        what_to_log = repr(result)

    logger.log(NOTICE, f"[{status_code}] {what_to_log}")

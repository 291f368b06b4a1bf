import base64
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

from alb_offline.common.core.request_context import get_trace_id
from alb_offline.gateway.models.alb import AlbEvent
from alb_offline.gateway.models.context import InputContext

from .encoding import detect_encoding

logger = logging.getLogger("gateway.event_builder")

TRACE_HEADER = "x-amzn-trace-id"


class EventBuilder(ABC):
    @abstractmethod
    def build(self, context: InputContext) -> Dict[str, Any]:
        """
        Build an event dictionary from an InputContext.
        """
        pass


class AlbEventBuilder(EventBuilder):
    """Application Load Balancer compatible event builder."""

    def build(self, context: InputContext) -> Dict[str, Any]:
        """
        Build an ALB Lambda target event from context.
        """
        body, is_base64 = self.decode_body(context.body, context.headers)

        headers = dict(context.headers)
        multi_headers = {name: list(values) for name, values in context.multi_headers.items()}

        # The load balancer stamps every request it forwards.
        trace_id = get_trace_id()
        if trace_id and TRACE_HEADER not in headers:
            headers[TRACE_HEADER] = trace_id
            multi_headers[TRACE_HEADER] = [trace_id]

        event_model = AlbEvent(
            httpMethod=context.method.upper(),
            path=self.request_path(context),
            queryStringParameters=context.query_params,
            multiValueQueryStringParameters=context.multi_query_params,
            headers=headers,
            multiValueHeaders=multi_headers,
            body=body,
            isBase64Encoded=is_base64,
        )

        return event_model.model_dump()

    def request_path(self, context: InputContext) -> str:
        """
        Path as the function sees it: the route prefix and stage segments
        are removed.

        Paths that do not start with those segments are passed through.
        """
        segments = [context.prefix.strip("/")]
        if context.prepend_stage and context.stage:
            segments.append(context.stage)
        segments = [segment for segment in segments if segment]
        if not segments:
            return context.raw_path

        prefix = "/" + "/".join(segments)
        if context.raw_path == prefix:
            return "/"
        if context.raw_path.startswith(prefix + "/"):
            return context.raw_path[len(prefix) :]

        logger.warning(
            f"Request path {context.raw_path} is not under {prefix}",
            extra={"path": context.raw_path, "stage": context.stage},
        )
        return context.raw_path

    def decode_body(
        self, payload: Optional[bytes], headers: Dict[str, str]
    ) -> Tuple[Optional[str], bool]:
        """
        Decode the raw payload with the detected charset.

        Compressed or undecodable payloads are base64 encoded instead.
        """
        if not payload:
            return None, False

        if "gzip" in headers.get("content-encoding", "").lower():
            return base64.b64encode(payload).decode("ascii"), True

        encoding = detect_encoding(headers)
        try:
            return payload.decode(encoding), False
        except UnicodeDecodeError:
            return base64.b64encode(payload).decode("ascii"), True

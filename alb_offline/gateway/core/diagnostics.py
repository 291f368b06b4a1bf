"""
Process-wide debug state.

Holds the raw fields of the most recent request seen by any route handler.
Last write wins and nothing synchronizes writers, so under concurrent load the
value may belong to any in-flight request. It exists for inspection and tests
only; no request handling decision reads it.
"""

from typing import Optional

from alb_offline.gateway.models.route import LastRequestOptions

_last_request_options: Optional[LastRequestOptions] = None


def record_last_request(options: LastRequestOptions) -> None:
    global _last_request_options
    _last_request_options = options


def get_last_request_options() -> Optional[LastRequestOptions]:
    return _last_request_options


def clear_last_request() -> None:
    global _last_request_options
    _last_request_options = None

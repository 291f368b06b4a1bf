"""
ALB trigger path -> listener path conversion.
"""

import re
from typing import Tuple

GREEDY_PARAM = re.compile(r"\{(\w+)\+\}")
PARAM = re.compile(r"\{\w+\}")
INVOKE_PATH_TEMPLATE = "/2015-03-31/functions/{function_key}/invocations"


def generate_alb_path(path: str, stage: str, prepend_stage: bool = True, prefix: str = "") -> str:
    """
    Convert an ALB condition path into a listener route path.

    Example: "/users/{id}" with stage "dev" -> "/dev/users/{id}"
             "/files/{key+}"                -> "/dev/files/{key:path}"
             "/static/*"                    -> "/dev/static/{wildcard0:path}"
    """
    alb_path = path if path.startswith("/") else f"/{path}"

    if prepend_stage:
        alb_path = f"/{stage}{alb_path}"

    if prefix.strip("/"):
        alb_path = f"/{prefix.strip('/')}{alb_path}"

    # /my-path/ and /my-path are the same route
    if alb_path != "/" and alb_path.endswith("/"):
        alb_path = alb_path[:-1]

    alb_path = GREEDY_PARAM.sub(r"{\1:path}", alb_path)

    wildcard_count = 0
    while "*" in alb_path:
        alb_path = alb_path.replace("*", f"{{wildcard{wildcard_count}:path}}", 1)
        wildcard_count += 1

    return alb_path


def route_specificity(listener_path: str) -> Tuple[int, ...]:
    """
    Rank each segment of a listener path, lower is more specific:
    literal 0, mixed literal and parameter 1, parameter 2, catch-all 3.

    Sorting routes by this key lets "/dev/items/special" win over
    "/dev/items/{id}", which wins over "/dev/items/{rest:path}".
    """
    ranks = []
    for segment in listener_path.strip("/").split("/"):
        if ":path}" in segment:
            ranks.append(3)
        elif PARAM.fullmatch(segment):
            ranks.append(2)
        elif "{" in segment:
            ranks.append(1)
        else:
            ranks.append(0)
    return tuple(ranks)


def invoke_path(function_key: str) -> str:
    return INVOKE_PATH_TEMPLATE.format(function_key=function_key)

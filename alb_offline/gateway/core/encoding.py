"""
Request payload charset detection.
"""

import codecs
import logging
from typing import Mapping

logger = logging.getLogger("gateway.encoding")

DEFAULT_ENCODING = "utf-8"
# Byte-preserving: every byte maps to exactly one character.
BINARY_ENCODING = "latin-1"


def detect_encoding(headers: Mapping[str, str]) -> str:
    """
    Pick the charset used to decode a request payload.

    multipart/form-data is decoded byte for byte; otherwise the charset
    parameter of Content-Type wins when Python knows it, else UTF-8.
    """
    content_type = headers.get("content-type", "")

    if "multipart/form-data" in content_type.lower():
        return BINARY_ENCODING

    for param in content_type.split(";")[1:]:
        key, _, value = param.partition("=")
        if key.strip().lower() != "charset":
            continue
        charset = value.strip().strip('"')
        try:
            return codecs.lookup(charset).name
        except LookupError:
            logger.warning(f"Unknown request charset '{charset}', using {DEFAULT_ENCODING}")
            break

    return DEFAULT_ENCODING

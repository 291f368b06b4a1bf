import secrets
import time
from typing import Dict, Optional


class TraceId:
    """
    X-Amzn-Trace-Id value as stamped by an Application Load Balancer.

    ``Root=1-<epoch hex>-<24 hex>`` comes first. Any further fields the
    client or an upstream balancer added (``Self``, ``Parent``, ``Sampled``)
    are kept in arrival order.
    """

    def __init__(self, root: str, fields: Optional[Dict[str, str]] = None):
        self.root = root
        self.fields = dict(fields or {})

    @classmethod
    def generate(cls) -> "TraceId":
        return cls(root=f"1-{int(time.time()):08x}-{secrets.token_hex(12)}")

    @classmethod
    def parse(cls, header: str) -> "TraceId":
        fields = {}
        for part in header.split(";"):
            key, sep, value = part.partition("=")
            if sep:
                fields[key.strip()] = value.strip()

        root = fields.pop("Root", "")
        if not root:
            raise ValueError(f"Invalid trace header: {header!r}")
        return cls(root=root, fields=fields)

    @property
    def parent(self) -> Optional[str]:
        return self.fields.get("Parent")

    @property
    def sampled(self) -> Optional[str]:
        return self.fields.get("Sampled")

    def __str__(self) -> str:
        return ";".join([f"Root={self.root}"] + [f"{k}={v}" for k, v in self.fields.items()])

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from .errors import SDKError
from .policy import is_safe


@dataclass
class Request:
    """One logical API call, as handed to the executor by resource clients."""

    method: str
    path: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None
    query: Optional[Mapping[str, Any]] = None
    safe: Optional[bool] = None  # None: derive from method

    def __post_init__(self) -> None:
        self.method = self.method.upper()

    @property
    def is_safe(self) -> bool:
        return is_safe(self.method, self.safe)

    def encode_body(self) -> bytes | None:
        if self.body is None:
            return None
        try:
            return json.dumps(self.body).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise SDKError("failed to marshal request body", 0) from exc


@dataclass
class RawResponse:
    status_code: int
    headers: Mapping[str, str]
    body: bytes = b""
    data: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        return json.loads(self.body) if self.body else None

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class RequestSpec:
    """A fully built request, ready for the transport."""

    url: str
    method: str
    headers: tuple[tuple[str, str], ...]
    body: dict[str, Any] | None = None
    multipart: bool = False


@dataclass(frozen=True)
class TransportResult:
    status_code: int
    raw_body: str
    diagnostics: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class NormalizedResponse:
    """Uniform shape returned by every ManagerSaaS call.

    ``body`` is the raw text, or the decoded JSON value when decoding applies.
    ``info`` carries transport diagnostics and is only set in debug mode.
    """

    body: Any
    http_code: int
    info: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"body": self.body, "httpCode": self.http_code}
        if self.info is not None:
            data["info"] = self.info
        return data

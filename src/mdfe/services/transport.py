from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from typing import Any

import requests

from mdfe.config import MANAGER_TIMEOUT
from mdfe.models.response import RequestSpec, TransportResult
from mdfe.services.exceptions import TransportError
from mdfe.services.params import form_value

logger = logging.getLogger(__name__)


# Single-valued fields: a later line replaces an earlier one
_SINGLE_VALUED = frozenset({"authorization", "content-type", "content-length", "host"})


def _fold_headers(lines: Iterable[tuple[str, str]], drop_content_type: bool) -> dict[str, str]:
    """Fold header lines into a dict.

    Repeated list-valued names are joined with ``, ``; repeated single-valued
    names keep the last line. With *drop_content_type* the Content-Type is
    left out so requests can add the multipart boundary itself.
    """
    folded: dict[str, str] = {}
    canonical: dict[str, str] = {}
    for name, value in lines:
        key = name.lower()
        if drop_content_type and key == "content-type":
            continue
        if key not in canonical:
            canonical[key] = name
            folded[name] = value
        elif key in _SINGLE_VALUED:
            folded[canonical[key]] = value
        else:
            first = canonical[key]
            folded[first] = f"{folded[first]}, {value}"
    return folded


def _multipart_field(value: Any) -> tuple[str | None, Any]:
    """Form-field tuple for requests' ``files``: binary and file content pass untouched."""
    if isinstance(value, (bytes, bytearray)):
        return (None, bytes(value))
    if hasattr(value, "read"):
        name = getattr(value, "name", None)
        return (os.path.basename(name) if isinstance(name, str) else None, value)
    return (None, form_value(value))


def _diagnostics(resp: requests.Response, spec: RequestSpec) -> dict[str, Any]:
    return {
        "url": resp.url,
        "method": spec.method,
        "http_code": resp.status_code,
        "total_time": resp.elapsed.total_seconds(),
        "content_type": resp.headers.get("Content-Type"),
        "request_headers": dict(resp.request.headers) if resp.request is not None else {},
        "response_headers": dict(resp.headers),
    }


class HttpTransport:
    """Executes a RequestSpec over requests, one session per call."""

    def __init__(self, timeout: float = MANAGER_TIMEOUT) -> None:
        self.timeout = timeout

    def _request_kwargs(self, spec: RequestSpec) -> dict[str, Any]:
        # an empty multipart body has no boundary, so the bare header stays
        with_fields = spec.multipart and bool(spec.body)
        kwargs: dict[str, Any] = {
            "headers": _fold_headers(spec.headers, drop_content_type=with_fields),
            "timeout": self.timeout,
        }
        if not spec.body:
            return kwargs
        if spec.multipart:
            kwargs["files"] = {k: _multipart_field(v) for k, v in spec.body.items()}
        else:
            kwargs["data"] = spec.body
        return kwargs

    def execute(self, spec: RequestSpec) -> TransportResult:
        """Send *spec* and return status, raw text and diagnostics.

        Raises TransportError when no response was received.
        """
        logger.debug("%s %s", spec.method, spec.url.split("?", 1)[0])
        try:
            with requests.Session() as session:
                resp = session.request(spec.method, spec.url, **self._request_kwargs(spec))
                return TransportResult(
                    status_code=resp.status_code,
                    raw_body=resp.text,
                    diagnostics=_diagnostics(resp, spec),
                )
        except requests.exceptions.RequestException as exc:
            raise TransportError(str(exc)) from exc

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from mdfe.config import ENDPOINTS
from mdfe.models.client_config import ClientConfig
from mdfe.models.parameter import Parameter, ParamsLike
from mdfe.models.response import RequestSpec
from mdfe.services.params import encode_query, flatten, force

FORM_URLENCODED = "application/x-www-form-urlencoded"
MULTIPART = "multipart/form-data"

_BODY_METHODS = frozenset({"POST", "PUT"})


def base_url(config: ClientConfig) -> str:
    return ENDPOINTS[config.env]


def default_headers(config: ClientConfig) -> list[tuple[str, str]]:
    """Authorization plus the Content-Type matching the upload mode."""
    content_type = MULTIPART if config.upload else FORM_URLENCODED
    return [
        ("Authorization", f"Basic {config.token}"),
        ("Content-Type", content_type),
    ]


def identity_params(config: ClientConfig, params: ParamsLike | None) -> list[Parameter]:
    """Force Grupo and CNPJ from the config, whatever the caller sent."""
    return force(
        params,
        Parameter("Grupo", config.grupo),
        Parameter("CNPJ", config.cnpj),
    )


def build_request(
    config: ClientConfig,
    path: str,
    method: str = "GET",
    params: ParamsLike | None = None,
    body: Mapping[str, Any] | None = None,
    headers: Iterable[tuple[str, str]] = (),
) -> RequestSpec:
    """Assemble URL, headers and body for one ManagerSaaS call.

    Parameters always travel in the query string, POST included. Only POST
    flattens the body in upload mode; PUT sends the field map as given.
    OPTIONS carries only the caller's headers.
    """
    method = method.upper()
    if not path.startswith("/"):
        path = "/" + path

    query = encode_query(identity_params(config, params))
    url = base_url(config) + path + query

    if method == "OPTIONS":
        header_lines = list(headers)
    else:
        header_lines = default_headers(config) + list(headers)

    payload: dict[str, Any] | None = None
    multipart = False
    if method in _BODY_METHODS:
        payload = dict(body or {})
        if method == "POST" and config.upload:
            payload = flatten(payload)
            multipart = True

    return RequestSpec(
        url=url,
        method=method,
        headers=tuple(header_lines),
        body=payload,
        multipart=multipart,
    )

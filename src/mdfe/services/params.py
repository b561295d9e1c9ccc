"""Parameter hygiene shared by request building and the fiscal operations.

ManagerSaaS reads identity and document parameters by name, so each forced
name must appear exactly once with the canonical value. Nested form data is
sent as bracketed field names (``emit[endereco][uf]``), the way multipart
encoders represent nested structures.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import quote_plus

from mdfe.models.parameter import Parameter, ParamsLike, as_parameters
from mdfe.services.exceptions import FlattenDepthError

MAX_FLATTEN_DEPTH = 32


def dedupe(params: ParamsLike | None, exclude_names: Iterable[str]) -> list[Parameter]:
    """Drop every parameter whose name is in *exclude_names*, keeping order."""
    excluded = frozenset(exclude_names)
    return [p for p in as_parameters(params) if p.name not in excluded]


def force(params: ParamsLike | None, *forced: Parameter) -> list[Parameter]:
    """Replace any caller-supplied value for the *forced* names with the canonical ones."""
    result = dedupe(params, (p.name for p in forced))
    result.extend(forced)
    return result


def _is_nested(value: Any) -> bool:
    return isinstance(value, (Mapping, list, tuple))


def _children(value: Mapping | list | tuple) -> Iterable[tuple[Any, Any]]:
    if isinstance(value, Mapping):
        return value.items()
    return enumerate(value)


def flatten(data: Mapping[str, Any], max_depth: int = MAX_FLATTEN_DEPTH) -> dict[str, Any]:
    """Flatten nested form data into ``parent[child]`` keys.

    Each pass expands one level; passes repeat until no value is nested.
    Lists and tuples expand by index. An empty nested value contributes no
    keys. Raises FlattenDepthError after *max_depth* passes.
    """
    current: dict[str, Any] = dict(data)
    passes = 0
    while any(_is_nested(v) for v in current.values()):
        passes += 1
        if passes > max_depth:
            raise FlattenDepthError(f"Dados aninhados excedem a profundidade máxima ({max_depth})")
        expanded: dict[str, Any] = {}
        for key, value in current.items():
            if not _is_nested(value):
                expanded[key] = value
                continue
            for sub_key, sub_value in _children(value):
                expanded[f"{key}[{sub_key}]"] = sub_value
        current = expanded
    return current


def form_value(value: Any) -> str:
    """Text form of a scalar field value: None and False are empty, True is ``1``."""
    if value is None or value is False:
        return ""
    if value is True:
        return "1"
    return str(value)


def encode_query(params: ParamsLike | None) -> str:
    """Render parameters as ``?name=value&...``; blank names or values are dropped.

    Booleans render as ``1`` (True) or are dropped (False).
    Returns an empty string when nothing survives.
    """
    pairs = []
    for p in as_parameters(params):
        name, value = form_value(p.name), form_value(p.value)
        if name and value:
            pairs.append(f"{quote_plus(name)}={quote_plus(value)}")
    if not pairs:
        return ""
    return "?" + "&".join(pairs)

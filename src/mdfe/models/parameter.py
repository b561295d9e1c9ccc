from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Parameter:
    """A named query/form parameter sent to ManagerSaaS."""

    name: str
    value: Any = None


# Parameter, {"name": ..., "value": ...} dicts or (name, value) tuples
ParamsLike = Iterable[Any]


def as_parameter(item: Parameter | Mapping[str, Any] | tuple[str, Any]) -> Parameter:
    """Coerce a ``{"name", "value"}`` dict or ``(name, value)`` tuple into a Parameter."""
    if isinstance(item, Parameter):
        return item
    if isinstance(item, Mapping):
        return Parameter(name=item.get("name"), value=item.get("value"))
    name, value = item
    return Parameter(name=name, value=value)


def as_parameters(items: ParamsLike | None) -> list[Parameter]:
    """Coerce any accepted parameter sequence into a fresh list of Parameter."""
    if not items:
        return []
    return [as_parameter(item) for item in items]

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from mdfe.services.exceptions import ManagerError

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    error: ManagerError

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self):
        raise self.error


Result = Ok[T] | Err

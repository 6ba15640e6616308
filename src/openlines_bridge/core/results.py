"""
Gateway result type.

Lets callers tell "empty because nothing exists" apart from
"empty because the upstream call failed".
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass
class GatewayResult(Generic[T]):
    """Outcome of a gateway call: a value on success, an error otherwise."""

    ok: bool
    value: T | None = None
    error: Exception | None = None

    @classmethod
    def success(cls, value: T) -> "GatewayResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: Exception) -> "GatewayResult[T]":
        return cls(ok=False, error=error)

    def unwrap_or(self, default: T) -> T:
        if self.ok and self.value is not None:
            return self.value
        return default

    @property
    def error_message(self) -> str:
        return str(self.error) if self.error else ""

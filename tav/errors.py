"""Result types and structured errors for tav.

Operations that touch the filesystem return ``Result`` values instead of
raising, so the repair pipeline can turn every failure into a message in
its report without aborting the process.

Example:
    result = atomic_write_text(path, content)
    if result.is_err():
        print(format_error(result.unwrap_err()))
"""

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True)
class TavError:
    """A structured error with a stable code for programmatic handling."""

    code: str
    message: str
    context: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful result."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_err(self):
        raise ValueError("Called unwrap_err() on an Ok result")


@dataclass(frozen=True)
class Err(Generic[E]):
    """Failed result."""

    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self):
        raise ValueError(f"Called unwrap() on an Err result: {self.error}")

    def unwrap_err(self) -> E:
        return self.error


Result = Ok[T] | Err[E]


def ok(value: T) -> Ok[T]:
    """Wrap a value in an Ok result."""
    return Ok(value)


def err(error: E) -> Err[E]:
    """Wrap an error in an Err result."""
    return Err(error)


def format_error(error: TavError) -> str:
    """Format an error for terminal display."""
    return f"{error.message} [{error.code}]"

"""
Two-state result container used by every data-access and auth call.

Expected failures (not found, duplicate, bad credentials) and infra faults
are both returned as ``Err`` with distinct codes instead of being raised.

Usage:
    match users.find_by_email(email):
        case Ok(user):
            ...
        case Err(code):
            ...

    users.find_by_id(user_id).and_then(lambda user: tokens.find_by_user_id(user.id))
"""

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar, Union

T = TypeVar("T")
U = TypeVar("U")


class UnwrapError(RuntimeError):
    """Raised when the value of a failed Result is read. Always a bug in the caller."""


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: Any) -> T:
        return self.value

    def map(self, fn: Callable[[T], U]) -> "Ok[U]":
        return Ok(fn(self.value))

    def and_then(self, fn: Callable[[T], "Result[U]"]) -> "Result[U]":
        return fn(self.value)

    def map_err(self, fn: Callable[["Err"], "Err"]) -> "Ok[T]":
        return self


@dataclass(frozen=True)
class Err:
    code: str
    message: str = ""

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self):
        raise UnwrapError(f"Called unwrap() on Err({self.code!r}): {self.message}")

    def unwrap_or(self, default: Any) -> Any:
        return default

    def map(self, fn: Callable) -> "Err":
        return self

    def and_then(self, fn: Callable) -> "Err":
        return self

    def map_err(self, fn: Callable[["Err"], "Err"]) -> "Err":
        return fn(self)


Result = Union[Ok[T], Err]

"""
Vault Results — Explicit outcome type for every public vault operation.

Vault operations never raise across their public boundary. Instead they
return a :class:`Result` whose ``status`` says what happened, so callers
can tell "not found" from "storage unavailable" from "could not decrypt".
"""
from enum import Enum
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class Status(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"
    DECRYPT_FAILED = "decrypt_failed"
    FAILED = "failed"


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a vault operation.

    A result is truthy only when ``status`` is ``OK``. The value of a
    successful result may itself be falsy (an empty string decrypted
    from an empty plaintext, an empty page, zero deleted rows), so
    callers must test the result and not the value.
    """

    status: Status
    value: Optional[T] = None

    def __bool__(self) -> bool:
        return self.status is Status.OK

    @property
    def ok(self) -> bool:
        return self.status is Status.OK

    def unwrap_or(self, default: Any = None) -> Any:
        """Return the value on success, ``default`` otherwise."""
        return self.value if self.status is Status.OK else default

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Result[T]":
        return cls(Status.OK, value)

    @classmethod
    def not_found(cls, value: Optional[T] = None) -> "Result[T]":
        return cls(Status.NOT_FOUND, value)

    @classmethod
    def unavailable(cls, value: Optional[T] = None) -> "Result[T]":
        return cls(Status.UNAVAILABLE, value)

    @classmethod
    def decrypt_failed(cls) -> "Result[T]":
        return cls(Status.DECRYPT_FAILED)

    @classmethod
    def failed(cls, value: Optional[T] = None) -> "Result[T]":
        return cls(Status.FAILED, value)

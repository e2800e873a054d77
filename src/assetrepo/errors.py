"""Result channel shared by every repository operation.

Operations never raise for expected failures. They produce an ``Outcome``
holding either a value or a ``RepositoryError`` describing what went wrong.
Storage backends, on the other hand, raise ``StoreError`` (or anything else);
the coordinator turns those into ``ErrorKind.BACKEND_ERROR`` outcomes.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Generic, TypeVar

T = TypeVar("T")


class ErrorKind(StrEnum):
    ROOT_OPERATION_FORBIDDEN = "RootOperationForbidden"
    PATH_ALREADY_EXISTS = "PathAlreadyExists"
    PATH_NOT_FOUND = "PathNotFound"
    NOT_A_DIRECTORY = "NotADirectory"
    NOT_AN_ASSET = "NotAnAsset"
    PARENT_NOT_A_DIRECTORY = "ParentNotADirectory"
    BACKEND_ERROR = "BackendError"
    INVALID_ARGUMENT = "InvalidArgument"


@dataclass(slots=True, frozen=True)
class RepositoryError:
    kind: ErrorKind
    message: str
    path: str | None = None

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


@dataclass(slots=True, frozen=True)
class Outcome(Generic[T]):
    value: T | None = None
    error: RepositoryError | None = None

    def __post_init__(self) -> None:
        if self.error is not None and self.value is not None:
            raise ValueError("an outcome carries either a value or an error, not both")

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T | None = None) -> Outcome[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str, *, path: str | None = None) -> Outcome[T]:
        return cls(error=RepositoryError(kind=kind, message=message, path=path))

    def unwrap(self) -> T:
        """Return the value, raising ``RepositoryOperationError`` for a failed outcome."""
        if self.error is not None:
            raise RepositoryOperationError(self.error)
        return self.value  # type: ignore[return-value]


class RepositoryOperationError(RuntimeError):
    def __init__(self, error: RepositoryError) -> None:
        super().__init__(str(error))
        self.error = error


class StoreError(Exception):
    """Raised by storage backends for any failure they cannot recover from."""


class EntityNotFoundError(StoreError):
    def __init__(self, path: str) -> None:
        super().__init__(f"path does not exist {path}")
        self.path = path

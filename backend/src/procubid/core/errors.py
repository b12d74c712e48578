"""Tagged operation results returned by the service layer."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from procubid.core.config import settings

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Error taxonomy shared by every service operation."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    PRECONDITION = "precondition"
    STORE = "store"


@dataclass(frozen=True)
class ServiceError:
    kind: ErrorKind
    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Either a success value or a tagged ServiceError, never both."""

    value: T | None = None
    error: ServiceError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(
        cls, kind: ErrorKind, code: str, message: str, **details: Any
    ) -> "Outcome[T]":
        return cls(error=ServiceError(kind=kind, code=code, message=message, details=details))

    @classmethod
    def not_found(cls, code: str, message: str) -> "Outcome[T]":
        return cls.failure(ErrorKind.NOT_FOUND, code, message)

    @classmethod
    def precondition(cls, code: str, message: str, **details: Any) -> "Outcome[T]":
        return cls.failure(ErrorKind.PRECONDITION, code, message, **details)

    @classmethod
    def store_failure(cls, message: str, detail: str | None = None) -> "Outcome[T]":
        """Generic store failure; `detail` is only exposed in debug mode."""
        details = {"detail": detail} if detail else {}
        return cls.failure(ErrorKind.STORE, "DATABASE_ERROR", message, **details)


def store_failure(log: logging.Logger, operation: str, error: Exception) -> Outcome:
    """Log a store failure with its context and build the generic outcome.

    The underlying error text is only exposed when DEBUG is on.
    """
    log.error(f"{operation} failed: {error}")
    detail = str(error) if settings.DEBUG else None
    return Outcome.store_failure("An internal error occurred while accessing the database", detail)

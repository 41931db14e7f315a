"""Tagged results shared by the engine and the persistence collaborator."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    INVALID_INPUT = "invalid_input"
    NOT_FOUND = "not_found"
    ALREADY_FINALIZED = "already_finalized"
    COLLABORATOR_FAILURE = "collaborator_failure"


class NotFoundError(LookupError):
    """Raised when an operation names a contestant or question that does not exist."""


@dataclass(frozen=True)
class Result:
    ok: bool
    value: Any = None
    error: Optional[ErrorKind] = None
    message: str = ""

    @classmethod
    def success(cls, value: Any = None) -> "Result":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: ErrorKind, message: str = "") -> "Result":
        return cls(ok=False, error=error, message=message)

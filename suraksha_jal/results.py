from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Generic, List, TypeVar, Union

from pydantic import ValidationError

T = TypeVar("T")


class FailureKind(str, Enum):
    VALIDATION = "validation"
    UNAVAILABLE = "unavailable"
    OVERLOADED = "overloaded"
    MALFORMED_RESULT = "malformed_result"
    AUTH = "auth"


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    kind: FailureKind
    message: str
    errors: List[Dict[str, str]] = field(default_factory=list)
    code: str = ""  # provider-specific code, e.g. auth error codes

    @property
    def ok(self) -> bool:
        return False


Result = Union[Success[T], Failure]


def field_errors(exc: ValidationError) -> List[Dict[str, str]]:
    """Flatten a pydantic error into [{"field": ..., "message": ...}]"""
    errors = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ())) or "__root__"
        errors.append({"field": loc, "message": err.get("msg", "invalid value")})
    return errors


def validation_failure(exc: ValidationError) -> Failure:
    errors = field_errors(exc)
    summary = "; ".join(f"{e['field']}: {e['message']}" for e in errors)
    return Failure(FailureKind.VALIDATION, summary or "Invalid input", errors)

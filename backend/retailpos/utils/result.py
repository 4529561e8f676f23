"""
Tagged result values returned across every collaborator boundary.

An async collaborator never raises to its caller: it returns either ``Ok`` with
the value or ``Err`` describing what went wrong. Callers branch on ``ok``::

    res = await catalog.get_by_id(7)
    if not res.ok:
        log.warning(res.message)
        return res
    product = res.value
"""
from dataclasses import dataclass, field
from typing import Any, Generic, List, Optional, TypeVar, Union

T = TypeVar("T")


class ErrorCode:
    VALIDATION = "validation"
    INSUFFICIENT_STOCK = "insufficient_stock"
    NOT_FOUND = "not_found"
    INELIGIBLE_BILL = "ineligible_bill"
    INVALID_TRANSITION = "invalid_transition"
    INVALID_QUANTITY = "invalid_quantity"
    PERSISTENCE = "persistence"
    LOOKUP_FAILED = "lookup_failed"
    BUSY = "busy"
    INACTIVE = "inactive"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    code: str
    message: str
    errors: List[str] = field(default_factory=list)
    detail: Optional[Any] = None

    @property
    def ok(self) -> bool:
        return False

    @property
    def all_errors(self) -> List[str]:
        return self.errors or [self.message]


Result = Union[Ok[T], Err]


def err(code: str, message: str, errors: Optional[List[str]] = None, detail: Any = None) -> Err:
    return Err(code=code, message=message, errors=list(errors or []), detail=detail)

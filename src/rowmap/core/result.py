"""
Success/failure values returned by the DAO.

Write and read operations return ``Ok`` or ``Err`` instead of sentinels
(``-1``, ``False``, ``None``), so "no row matched" (``Ok(None)``,
``Ok(False)``, ``Ok([])``) is distinct from "the row could not be
converted" (``Err(MarshallingError(...))``).

Architecture:
    ::

        dao.fetch_each(...)  ──►  [Ok(item), Err(e), Ok(item)]
                                        │
                   ┌────────────────────┴────────────────────┐
                   ▼                                         ▼
        collect_results()                          partition_results()
        Ok([item, item]) or first Err              ([item, item], [e])
        (dao.fetch_all)                            (rowmap db check)

Examples:
    >>> match dao.fetch(7):
    ...     case Ok(None):
    ...         print("no such row")
    ...     case Ok(item):
    ...         print(item.name)
    ...     case Err(error):
    ...         print(f"failed: {error.message}")

Guardrails:
    ❌ DON'T: Call unwrap() on a result you have not checked
    ✅ DO: Pattern match on Ok / Err

Tags:
    result, error-handling, dao, rowmap
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """The operation succeeded with ``value`` (which may itself be ``None``)."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def inspect_err(self, f: Callable[[Exception], None]) -> Ok[T]:
        return self

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[T]):
    """The operation failed; ``unwrap()`` re-raises ``error``."""

    error: Exception

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> T:
        raise self.error

    def inspect_err(self, f: Callable[[Exception], None]) -> Err[T]:
        """Call ``f`` with the error (for logging) and return self."""
        f(self.error)
        return self

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


Result = Ok[T] | Err[T]


def collect_results(results: Iterable[Result[T]]) -> Result[list[T]]:
    """``Ok`` of every value, or the first ``Err``."""
    values: list[T] = []
    for result in results:
        match result:
            case Ok(value):
                values.append(value)
            case Err():
                return Err(result.error)
    return Ok(values)


def partition_results(results: Iterable[Result[T]]) -> tuple[list[T], list[Exception]]:
    """Split results into ``(values, errors)``, keeping both in order."""
    values: list[T] = []
    errors: list[Exception] = []
    for result in results:
        match result:
            case Ok(value):
                values.append(value)
            case Err(error):
                errors.append(error)
    return values, errors


__all__ = [
    "Result",
    "Ok",
    "Err",
    "collect_results",
    "partition_results",
]

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict

from twindata.errors import ErrorKind, classify_exception

T = TypeVar("T")


class Result(BaseModel, Generic[T]):
    """Outcome of a public service call.

    Truthy on success. Failures carry an ``error_kind`` so callers can decide
    whether a retry makes sense; ``value`` may still hold a safe default
    (for example an empty list) when the call failed.
    """

    ok: bool
    value: T | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    def __bool__(self) -> bool:
        return self.ok

    @property
    def not_found(self) -> bool:
        return self.error_kind == ErrorKind.NOT_FOUND

    @property
    def retryable(self) -> bool:
        return self.error_kind == ErrorKind.TRANSIENT

    def unwrap(self) -> T:
        if not self.ok:
            raise RuntimeError(f"unwrap on failed result ({self.error_kind}): {self.error}")
        return self.value  # type: ignore[return-value]

    @classmethod
    def success(cls, value: Any = None) -> "Result[Any]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, error: str, value: Any = None) -> "Result[Any]":
        return cls(ok=False, value=value, error=error, error_kind=kind)

    @classmethod
    def from_exception(cls, error: BaseException, value: Any = None) -> "Result[Any]":
        return cls.failure(classify_exception(error), str(error) or type(error).__name__, value)

"""
Result primitive: a value or a non-empty list of error messages.
"""
from typing import TYPE_CHECKING, Any, Callable, Generic, Iterable, List, Tuple, TypeVar, Union

from .validators import ResultAccessError

if TYPE_CHECKING:
    from .option import Option

T = TypeVar("T")
U = TypeVar("U")
V = TypeVar("V")

_NO_VALUE = object()


def _collect_errors(errors: Tuple[Any, ...]) -> Tuple[str, ...]:
    # Accept failure("a", "b") as well as failure(["a", "b"])
    if len(errors) == 1 and not isinstance(errors[0], str) and isinstance(errors[0], Iterable):
        errors = tuple(errors[0])
    return tuple(str(e) for e in errors)


class Result(Generic[T]):
    """Immutable success-or-errors wrapper.

    Build with ``Result.success(value)`` or ``Result.failure(*errors)``.
    Read the contents with ``match``; ``unwrap`` exists for tests and interop
    and raises ``ResultAccessError`` when called on the wrong variant.
    """

    __slots__ = ("_value", "_errors")

    def __init__(self, value: Any = _NO_VALUE, errors: Tuple[str, ...] = ()):
        if value is _NO_VALUE and not errors:
            raise ValueError("A failed result requires at least one error")
        object.__setattr__(self, "_value", value)
        object.__setattr__(self, "_errors", tuple(errors))

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Result is immutable")

    # ========== Construction ==========

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, *errors: Union[str, Iterable[str]]) -> "Result[Any]":
        collected = _collect_errors(errors)
        if not collected:
            raise ValueError("A failed result requires at least one error")
        return cls(errors=collected)

    @staticmethod
    def combine(results: Iterable["Result[T]"]) -> "Result[List[T]]":
        """Collect every value, or the union of every error list in order."""
        values: List[T] = []
        errors: List[str] = []
        for result in results:
            if result.is_success:
                values.append(result._value)
            else:
                errors.extend(result._errors)
        if errors:
            return Result.failure(errors)
        return Result.success(values)

    # ========== State ==========

    @property
    def is_success(self) -> bool:
        return self._value is not _NO_VALUE

    @property
    def is_failure(self) -> bool:
        return self._value is _NO_VALUE

    @property
    def errors(self) -> Tuple[str, ...]:
        return self._errors

    # ========== Composition ==========

    def map(self, transform: Callable[[T], U]) -> "Result[U]":
        if self.is_failure:
            return Result(errors=self._errors)
        return Result.success(transform(self._value))

    def bind(self, transform: Callable[[T], "Result[U]"]) -> "Result[U]":
        if self.is_failure:
            return Result(errors=self._errors)
        return transform(self._value)

    flat_map = bind

    def map_errors(self, transform: Callable[[str], str]) -> "Result[T]":
        if self.is_success:
            return self
        return Result(errors=tuple(transform(e) for e in self._errors))

    def match(
        self,
        on_success: Callable[[T], U],
        on_failure: Callable[[Tuple[str, ...]], U],
    ) -> U:
        if self.is_success:
            return on_success(self._value)
        return on_failure(self._errors)

    def combine_with(self, other: "Result[U]", combiner: Callable[[T, U], V]) -> "Result[V]":
        if self.is_success and other.is_success:
            return Result.success(combiner(self._value, other._value))
        return Result(errors=self._errors + other._errors)

    def ensure(self, predicate: Callable[[T], bool], message: str) -> "Result[T]":
        if self.is_success and not predicate(self._value):
            return Result.failure(message)
        return self

    def tap(self, action: Callable[[T], Any]) -> "Result[T]":
        if self.is_success:
            action(self._value)
        return self

    def value_or(self, default: T) -> T:
        return self._value if self.is_success else default

    def to_option(self) -> "Option[T]":
        from .option import Option

        return Option.some(self._value) if self.is_success else Option.none()

    # ========== Unsafe access ==========

    def unwrap(self) -> T:
        """Return the value. Raises ResultAccessError on a failure."""
        if self.is_failure:
            raise ResultAccessError(f"Cannot access value of a failed result: {list(self._errors)}")
        return self._value

    def unwrap_errors(self) -> Tuple[str, ...]:
        """Return the errors. Raises ResultAccessError on a success."""
        if self.is_success:
            raise ResultAccessError("Cannot access errors of a successful result")
        return self._errors

    # ========== Value semantics ==========

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Result):
            return NotImplemented
        if self.is_success != other.is_success:
            return False
        if self.is_success:
            return self._value == other._value
        return self._errors == other._errors

    def __hash__(self) -> int:
        if self.is_success:
            return hash((True, self._value))
        return hash((False, self._errors))

    def __repr__(self) -> str:
        if self.is_success:
            return f"Success({self._value!r})"
        return f"Failure({list(self._errors)!r})"

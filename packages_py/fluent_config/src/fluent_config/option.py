"""
Option primitive: a value that may be absent.
"""
from typing import Any, Callable, Generic, Iterable, List, TypeVar, Union

from .result import Result
from .validators import OptionAccessError

T = TypeVar("T")
U = TypeVar("U")

_ABSENT = object()


class Option(Generic[T]):
    """Immutable present-or-absent wrapper.

    ``Option`` is for absence-tolerant lookups; use ``Result`` when the caller
    needs to know why something is missing.
    """

    __slots__ = ("_value",)

    def __init__(self, value: Any = _ABSENT):
        object.__setattr__(self, "_value", value)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Option is immutable")

    @classmethod
    def some(cls, value: T) -> "Option[T]":
        return cls(value)

    @classmethod
    def none(cls) -> "Option[Any]":
        return _NONE

    @classmethod
    def from_nullable(cls, value: Any) -> "Option[Any]":
        return _NONE if value is None else cls(value)

    @staticmethod
    def combine(options: Iterable["Option[T]"]) -> "Option[List[T]]":
        values = []
        for option in options:
            if option.is_none:
                return _NONE
            values.append(option._value)
        return Option.some(values)

    @staticmethod
    def first_some(options: Iterable["Option[T]"]) -> "Option[T]":
        for option in options:
            if option.is_some:
                return option
        return _NONE

    @property
    def is_some(self) -> bool:
        return self._value is not _ABSENT

    @property
    def is_none(self) -> bool:
        return self._value is _ABSENT

    def map(self, mapper: Callable[[T], U]) -> "Option[U]":
        return Option.some(mapper(self._value)) if self.is_some else _NONE

    def bind(self, binder: Callable[[T], "Option[U]"]) -> "Option[U]":
        return binder(self._value) if self.is_some else _NONE

    flat_map = bind

    def match(self, on_some: Callable[[T], U], on_none: Callable[[], U]) -> U:
        return on_some(self._value) if self.is_some else on_none()

    def filter(self, predicate: Callable[[T], bool]) -> "Option[T]":
        if self.is_some and predicate(self._value):
            return self
        return _NONE

    def or_else(self, alternative: Union["Option[T]", Callable[[], "Option[T]"]]) -> "Option[T]":
        if self.is_some:
            return self
        return alternative() if callable(alternative) else alternative

    def value_or(self, default: T) -> T:
        return self._value if self.is_some else default

    def value_or_else(self, factory: Callable[[], T]) -> T:
        return self._value if self.is_some else factory()

    def tap(self, action: Callable[[T], Any]) -> "Option[T]":
        if self.is_some:
            action(self._value)
        return self

    def to_result(self, error: Union[str, Callable[[], str]]) -> Result[T]:
        if self.is_some:
            return Result.success(self._value)
        return Result.failure(error() if callable(error) else error)

    def to_list(self) -> List[T]:
        return [self._value] if self.is_some else []

    def unwrap(self) -> T:
        """Return the value. Raises OptionAccessError when absent."""
        if self.is_none:
            raise OptionAccessError("Cannot access value of an empty option")
        return self._value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Option):
            return NotImplemented
        if self.is_none or other.is_none:
            return self.is_none and other.is_none
        return self._value == other._value

    def __hash__(self) -> int:
        return hash(None) if self.is_none else hash((True, self._value))

    def __repr__(self) -> str:
        return f"Some({self._value!r})" if self.is_some else "Nothing"


_NONE: Option[Any] = Option()

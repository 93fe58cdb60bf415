"""
Declarative field constraints.

Constraints are attached to fields with ``typing.Annotated`` or
``dataclasses.field(metadata={"constraints": [...]})``, or registered by path
on a ``ConstraintTable``. The binder evaluates them once a field has been
bound, so structural and semantic failures are reported separately.
"""
import re
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import annotated_types
from pydantic import AnyUrl
from pydantic.fields import FieldInfo

from .conversion import parse_scalar


def constraint_error(path: str, constraint: str, message: str) -> str:
    return f"Validation failed for '{path}' ({constraint}): {message}"


class Constraint(ABC):
    """A named rule evaluated against a bound value."""

    name: str = "Constraint"
    # set for constraints translated from annotated_types, which pydantic enforces itself
    pydantic_native: bool = False

    def __init__(self, message: Optional[str] = None):
        self.message = message

    @abstractmethod
    def _check(self, value: Any) -> Optional[str]:
        """Return a failure description, or None when the value passes."""
        pass

    def evaluate(self, path: str, value: Any) -> Optional[str]:
        # absence is Required's business
        if value is None and not isinstance(self, Required):
            return None
        failure = self._check(value)
        if failure is None:
            return None
        return constraint_error(path, self.name, self.message or failure)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class Required(Constraint):
    name = "Required"

    def _check(self, value: Any) -> Optional[str]:
        if value is None:
            return "a value is required"
        if isinstance(value, str) and not value.strip():
            return "a value is required"
        return None


class Range(Constraint):
    name = "Range"

    def __init__(self, min: Any = None, max: Any = None, message: Optional[str] = None):
        super().__init__(message)
        self.min = min
        self.max = max

    def _check(self, value: Any) -> Optional[str]:
        if self.min is not None and value < self.min:
            return self._describe()
        if self.max is not None and value > self.max:
            return self._describe()
        return None

    def _describe(self) -> str:
        if self.min is not None and self.max is not None:
            return f"value must be between {self.min} and {self.max}"
        if self.min is not None:
            return f"value must be at least {self.min}"
        return f"value must be at most {self.max}"

    def __repr__(self) -> str:
        return f"Range(min={self.min!r}, max={self.max!r})"


class Exclusive(Constraint):
    """Strict bounds, produced from ``annotated_types.Gt`` / ``Lt``."""

    name = "Range"

    def __init__(self, gt: Any = None, lt: Any = None, message: Optional[str] = None):
        super().__init__(message)
        self.gt = gt
        self.lt = lt

    def _check(self, value: Any) -> Optional[str]:
        if self.gt is not None and not value > self.gt:
            return f"value must be greater than {self.gt}"
        if self.lt is not None and not value < self.lt:
            return f"value must be less than {self.lt}"
        return None


class Length(Constraint):
    name = "Length"

    def __init__(self, min: int = 0, max: Optional[int] = None, message: Optional[str] = None):
        super().__init__(message)
        self.min = min
        self.max = max

    def _check(self, value: Any) -> Optional[str]:
        try:
            size = len(value)
        except TypeError:
            return f"value of type {type(value).__name__} has no length"
        if size < self.min:
            return f"length must be at least {self.min}"
        if self.max is not None and size > self.max:
            return f"length must be at most {self.max}"
        return None

    def __repr__(self) -> str:
        return f"Length(min={self.min!r}, max={self.max!r})"


class Pattern(Constraint):
    name = "Pattern"

    def __init__(self, regex: Union[str, "re.Pattern[str]"], message: Optional[str] = None):
        super().__init__(message)
        self.regex = re.compile(regex) if isinstance(regex, str) else regex

    def _check(self, value: Any) -> Optional[str]:
        if self.regex.fullmatch(str(value)) is None:
            return f"value does not match pattern '{self.regex.pattern}'"
        return None

    def __repr__(self) -> str:
        return f"Pattern({self.regex.pattern!r})"


class Email(Constraint):
    name = "Email"

    _PATTERN = re.compile(r'^[^@\s]+@[^@\s]+$')

    def _check(self, value: Any) -> Optional[str]:
        if self._PATTERN.match(str(value)) is None:
            return "value is not a valid email address"
        return None


class Url(Constraint):
    name = "Url"

    def __init__(self, schemes: Sequence[str] = ("http", "https", "ftp"), message: Optional[str] = None):
        super().__init__(message)
        self.schemes = tuple(s.lower() for s in schemes)

    def _check(self, value: Any) -> Optional[str]:
        parsed = parse_scalar(str(value), AnyUrl)
        if parsed.is_failure or parsed.unwrap().scheme.lower() not in self.schemes:
            return f"value is not a valid {'/'.join(self.schemes)} URL"
        return None


class Predicate(Constraint):
    name = "Predicate"

    def __init__(self, predicate: Callable[[Any], bool], message: str, name: str = "Predicate"):
        super().__init__(message)
        self.predicate = predicate
        self.name = name

    def _check(self, value: Any) -> Optional[str]:
        return None if self.predicate(value) else self.message


# ========== Metadata extraction ==========

def from_metadata(item: Any) -> List[Constraint]:
    """Translate one ``Annotated`` metadata item into constraints.

    Understands this module's constraints, ``annotated_types`` bounds and
    pydantic ``Field(...)`` objects; anything else is ignored.
    """
    if isinstance(item, Constraint):
        return [item]
    translated = _from_annotated_types(item)
    for constraint in translated:
        constraint.pydantic_native = True
    return translated


def _from_annotated_types(item: Any) -> List[Constraint]:
    if isinstance(item, FieldInfo):
        found: List[Constraint] = []
        for nested in item.metadata:
            found.extend(from_metadata(nested))
        return found
    if isinstance(item, annotated_types.Ge):
        return [Range(min=item.ge)]
    if isinstance(item, annotated_types.Le):
        return [Range(max=item.le)]
    if isinstance(item, annotated_types.Gt):
        return [Exclusive(gt=item.gt)]
    if isinstance(item, annotated_types.Lt):
        return [Exclusive(lt=item.lt)]
    if isinstance(item, annotated_types.Interval):
        found = []
        if item.ge is not None or item.le is not None:
            found.append(Range(min=item.ge, max=item.le))
        if item.gt is not None or item.lt is not None:
            found.append(Exclusive(gt=item.gt, lt=item.lt))
        return found
    if isinstance(item, annotated_types.MinLen):
        return [Length(min=item.min_length)]
    if isinstance(item, annotated_types.MaxLen):
        return [Length(max=item.max_length)]
    if isinstance(item, annotated_types.Len):
        return [Length(min=item.min_length, max=item.max_length)]
    if isinstance(item, annotated_types.Predicate):
        return [Predicate(item.func, f"value failed {getattr(item.func, '__name__', 'predicate')}")]
    return []


def collect_constraints(items: Iterable[Any]) -> Tuple[Constraint, ...]:
    found: List[Constraint] = []
    for item in items:
        found.extend(from_metadata(item))
    return tuple(found)


def evaluate_all(path: str, value: Any, constraints: Iterable[Constraint]) -> List[str]:
    errors = []
    for constraint in constraints:
        error = constraint.evaluate(path, value)
        if error is not None:
            errors.append(error)
    return errors


class ConstraintTable:
    """Constraints registered by field path, e.g. ``Api:Port``."""

    def __init__(self) -> None:
        self._entries: Dict[str, List[Constraint]] = {}

    def add(self, path: str, *constraints: Constraint) -> "ConstraintTable":
        if not path:
            raise ValueError("path must not be empty")
        self._entries.setdefault(path, []).extend(constraints)
        return self

    def constrain(self, path: str, predicate: Callable[[Any], bool], message: str) -> "ConstraintTable":
        if not callable(predicate):
            raise TypeError("predicate must be callable")
        return self.add(path, Predicate(predicate, message))

    def for_path(self, path: str, case_sensitive: bool = False) -> List[Constraint]:
        if case_sensitive:
            return list(self._entries.get(path, ()))
        folded = path.casefold()
        found: List[Constraint] = []
        for key, constraints in self._entries.items():
            if key.casefold() == folded:
                found.extend(constraints)
        return found

    def paths(self) -> List[str]:
        return list(self._entries)

    def __len__(self) -> int:
        return sum(len(c) for c in self._entries.values())

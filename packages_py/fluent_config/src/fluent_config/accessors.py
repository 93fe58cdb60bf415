"""
Typed lookups against a resolved flat map.
"""
from typing import Any, Callable, Mapping, Optional, Type, TypeVar

from .conversion import convert
from .option import Option
from .result import Result

T = TypeVar("T")


def _find(config: Mapping[str, str], key: str) -> Option[str]:
    if key in config:
        return Option.some(config[key])
    folded = key.casefold()
    for name, value in config.items():
        if name.casefold() == folded:
            return Option.some(value)
    return Option.none()


def get_required(config: Mapping[str, str], key: str, as_type: Type[T] = str) -> Result[T]:
    """Look up ``key`` (case-insensitive) and convert it to ``as_type``."""
    return (
        _find(config, key)
        .to_result(f"Required configuration key '{key}' not found")
        .bind(lambda raw: convert(raw, as_type, key))
    )


def get_optional(config: Mapping[str, str], key: str, as_type: Type[T] = str) -> Option[T]:
    """Like ``get_required`` but a missing or unconvertible value is ``none``."""
    return _find(config, key).bind(lambda raw: convert(raw, as_type, key).to_option())


def get_or_default(
    config: Mapping[str, str],
    key: str,
    default: T,
    as_type: Optional[Type[Any]] = None,
) -> T:
    """Converted value, or ``default`` when absent or unconvertible.

    The target type is taken from ``default`` unless ``as_type`` is given.
    """
    target = as_type or (type(default) if default is not None else str)
    return get_optional(config, key, target).value_or(default)


def validate_key(
    config: Mapping[str, str],
    key: str,
    predicate: Callable[[str], bool],
    message: str,
) -> Result[str]:
    return (
        _find(config, key)
        .to_result(f"Configuration key '{key}' not found")
        .ensure(predicate, message)
    )

"""
Scalar conversion between flat-map strings and Python values.

Every parser returns a ``Result``; a malformed value is a failure carrying the
field path and target type, never an exception.
"""
import json
import re
import uuid
from datetime import date, datetime, time, timedelta
from decimal import Decimal, InvalidOperation
from enum import Enum
from functools import lru_cache
from pathlib import PurePath
from typing import Any, Callable, Dict, Literal, Optional, get_args, get_origin

from pydantic import AnyHttpUrl, AnyUrl, HttpUrl, SecretStr, TypeAdapter, ValidationError

from .result import Result

Parser = Callable[[str], Any]

_TIMESPAN_PATTERN = re.compile(
    r'^(?P<sign>-)?'
    r'(?:(?P<days>\d+)\.)?'
    r'(?P<hours>\d{1,2}):(?P<minutes>\d{1,2})'
    r'(?::(?P<seconds>\d{1,2})(?:\.(?P<fraction>\d{1,7}))?)?$'
)

_PYDANTIC_SCALARS = (AnyUrl, AnyHttpUrl, HttpUrl, SecretStr)

_custom_parsers: Dict[Any, Parser] = {}


def type_name(target: Any) -> str:
    name = getattr(target, "__name__", None)
    if name and get_origin(target) is None:
        return name
    return repr(target).replace("typing.", "")


def conversion_error(raw: str, path: str, target: Any, reason: str) -> str:
    return f"Failed to convert value '{raw}' at '{path}' to {type_name(target)}: {reason}"


def register_converter(target: Any, parser: Optional[Parser] = None) -> None:
    """Teach the binder a new scalar type.

    ``parser`` takes the raw string and returns the value, raising ``ValueError``
    or ``TypeError`` on bad input. Without a parser the type is validated with
    a pydantic ``TypeAdapter``.
    """
    if parser is None:
        adapter = _adapter(target)
        parser = adapter.validate_python
    _custom_parsers[target] = parser


def unregister_converter(target: Any) -> None:
    _custom_parsers.pop(target, None)


@lru_cache(maxsize=None)
def _adapter(target: Any) -> TypeAdapter:
    return TypeAdapter(target)


def is_scalar_type(target: Any) -> bool:
    if target in _custom_parsers or target in _PYDANTIC_SCALARS:
        return True
    if get_origin(target) is Literal:
        return True
    if not isinstance(target, type):
        return False
    if issubclass(target, (str, int, float, Decimal, date, time, timedelta, uuid.UUID, PurePath, Enum)):
        return True
    return False


# ========== Parsers ==========

def parse_bool(raw: str) -> Result[bool]:
    text = raw.strip().lower()
    if text == "true":
        return Result.success(True)
    if text == "false":
        return Result.success(False)
    return Result.failure("expected 'true' or 'false'")


def parse_timedelta(raw: str) -> Result[timedelta]:
    """Parse ``[-][d.]hh:mm[:ss[.fffffff]]`` or a whole number of days."""
    text = raw.strip()
    if re.fullmatch(r'-?\d+', text):
        return Result.success(timedelta(days=int(text)))

    match = _TIMESPAN_PATTERN.match(text)
    if match is None:
        if text.lstrip("-").startswith("P"):
            return _parse_with_adapter(timedelta, text)
        return Result.failure("expected [-][d.]hh:mm[:ss[.fffffff]]")

    hours = int(match.group("hours"))
    minutes = int(match.group("minutes"))
    seconds = int(match.group("seconds") or 0)
    if hours > 23 or minutes > 59 or seconds > 59:
        return Result.failure("time component out of range")

    fraction = match.group("fraction") or "0"
    # seven fractional digits are ticks of 100ns
    microseconds = int(fraction.ljust(7, "0")) // 10
    value = timedelta(
        days=int(match.group("days") or 0),
        hours=hours,
        minutes=minutes,
        seconds=seconds,
        microseconds=microseconds,
    )
    return Result.success(-value if match.group("sign") else value)


def parse_enum(raw: str, target: type) -> Result[Enum]:
    text = raw.strip()
    folded = text.casefold()
    for member in target:
        if member.name.casefold() == folded:
            return Result.success(member)
    for member in target:
        if str(member.value) == text:
            return Result.success(member)
    names = ", ".join(m.name for m in target)
    return Result.failure(f"expected one of {names}")


def parse_literal(raw: str, target: Any) -> Result[Any]:
    for choice in get_args(target):
        converted = parse_scalar(raw, type(choice))
        if converted.is_success and converted.unwrap() == choice:
            return Result.success(choice)
    choices = ", ".join(repr(c) for c in get_args(target))
    return Result.failure(f"expected one of {choices}")


def _parse_with(parser: Parser, raw: str) -> Result[Any]:
    try:
        return Result.success(parser(raw))
    except (ValueError, TypeError, ArithmeticError) as e:
        return Result.failure(str(e) or e.__class__.__name__)


def _parse_with_adapter(target: Any, raw: str) -> Result[Any]:
    try:
        return Result.success(_adapter(target).validate_python(raw))
    except ValidationError as e:
        return Result.failure("; ".join(err["msg"] for err in e.errors()))


def parse_scalar(raw: str, target: Any) -> Result[Any]:
    """Convert ``raw`` to ``target``; failures carry only the reason."""
    if target in _custom_parsers:
        return _parse_with(_custom_parsers[target], raw)
    if target in _PYDANTIC_SCALARS:
        return _parse_with_adapter(target, raw)
    if get_origin(target) is Literal:
        return parse_literal(raw, target)

    if target is str:
        return Result.success(raw)
    if target is bool:
        return parse_bool(raw)
    if isinstance(target, type) and issubclass(target, Enum):
        return parse_enum(raw, target)
    if target is int:
        return _parse_with(int, raw)
    if target is float:
        return _parse_with(float, raw)
    if target is Decimal:
        try:
            return Result.success(Decimal(raw.strip()))
        except InvalidOperation:
            return Result.failure("invalid decimal literal")
    # datetime is a date subclass so it has to be checked first
    if target is datetime:
        return _parse_with(datetime.fromisoformat, raw.strip())
    if target is date:
        return _parse_with(date.fromisoformat, raw.strip())
    if target is time:
        return _parse_with(time.fromisoformat, raw.strip())
    if target is timedelta:
        return parse_timedelta(raw)
    if target is uuid.UUID:
        return _parse_with(uuid.UUID, raw.strip())
    if isinstance(target, type) and issubclass(target, PurePath):
        return Result.success(target(raw))
    if isinstance(target, type) and issubclass(target, str):
        return _parse_with(target, raw)

    return Result.failure("no converter registered")


def convert(raw: str, target: Any, path: str) -> Result[Any]:
    """``parse_scalar`` with the error message qualified by path and type."""
    return parse_scalar(raw, target).map_errors(
        lambda reason: conversion_error(raw, path, target, reason)
    )


# ========== Rendering ==========

def format_timedelta(value: timedelta) -> str:
    sign = "-" if value < timedelta(0) else ""
    value = abs(value)
    hours, rest = divmod(value.seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    text = f"{hours:02d}:{minutes:02d}:{seconds:02d}"
    if value.days:
        text = f"{value.days}.{text}"
    if value.microseconds:
        text = f"{text}.{value.microseconds:06d}"
    return sign + text


def to_config_string(value: Any) -> str:
    """Render a Python value the way a flat map stores it."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, Enum):
        return value.name
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return format_timedelta(value)
    if isinstance(value, SecretStr):
        return value.get_secret_value()
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, default=str)
    return str(value)

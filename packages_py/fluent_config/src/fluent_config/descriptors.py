"""
Type descriptor registry.

``describe(target)`` classifies a binding target once and records everything
the binder needs: the shape kind, element types, fields with their config
keys, defaults and constraints, and how to construct an instance.
"""
import collections.abc
import dataclasses
import inspect
import types
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import (
    Annotated,
    Any,
    Callable,
    ClassVar,
    Dict,
    Optional,
    Tuple,
    TypeVar,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from pydantic import BaseModel

from .constraints import Constraint, collect_constraints
from .conversion import is_scalar_type, type_name
from .validators import UnsupportedShapeError

_NO_DEFAULT = object()

_LIST_ORIGINS = {
    list: list,
    collections.abc.Sequence: list,
    collections.abc.MutableSequence: list,
    collections.abc.Iterable: list,
    collections.abc.Collection: list,
    set: set,
    collections.abc.Set: frozenset,
    collections.abc.MutableSet: set,
    frozenset: frozenset,
}

_DICT_ORIGINS = (dict, collections.abc.Mapping, collections.abc.MutableMapping)

_UNION_TYPES = (Union, types.UnionType)


class ShapeKind(Enum):
    SCALAR = "scalar"
    NULLABLE = "nullable"
    OBJECT = "object"
    RECORD = "record"
    LIST = "list"
    DICT = "dict"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class ConfigKey:
    """``Annotated`` marker that binds a field to a different config key."""
    name: str


def normalize_name(name: str) -> str:
    """``base_url``, ``BaseUrl`` and ``base-url`` all normalize to ``baseurl``."""
    return name.replace("_", "").replace("-", "").casefold()


@dataclass(frozen=True)
class FieldDescriptor:
    """One bindable member.

    ``constraints`` holds what is declared on the field itself (dataclass
    metadata, pydantic ``Field``); ``Annotated`` metadata stays with the
    annotation and is picked up by ``describe(annotation)``.
    """
    name: str
    key: str
    annotation: Any
    argument: str
    constraints: Tuple[Constraint, ...] = ()
    default: Any = _NO_DEFAULT
    default_factory: Any = _NO_DEFAULT
    explicit_key: bool = False

    @property
    def has_default(self) -> bool:
        return self.default is not _NO_DEFAULT or self.default_factory is not _NO_DEFAULT

    def make_default(self) -> Any:
        if self.default_factory is not _NO_DEFAULT:
            return self.default_factory()
        if self.default is not _NO_DEFAULT:
            return self.default
        raise LookupError(f"Field '{self.name}' has no default")

    def matches(self, segment: str, case_sensitive: bool) -> bool:
        if case_sensitive:
            return segment == self.key
        if segment.casefold() == self.key.casefold():
            return True
        # an explicit key is matched as written, without separator folding
        if self.explicit_key:
            return False
        return normalize_name(segment) == normalize_name(self.key)


@dataclass(frozen=True)
class TypeDescriptor:
    target: Any
    kind: ShapeKind
    element: Any = None
    key_type: Any = str
    collection: Optional[Callable[..., Any]] = None
    fields: Tuple[FieldDescriptor, ...] = ()
    constraints: Tuple[Constraint, ...] = ()
    reason: str = ""

    @property
    def name(self) -> str:
        return type_name(self.target)

    @property
    def is_pydantic(self) -> bool:
        return isinstance(self.target, type) and issubclass(self.target, BaseModel)

    @property
    def is_frozen(self) -> bool:
        if dataclasses.is_dataclass(self.target):
            return self.target.__dataclass_params__.frozen
        if self.is_pydantic:
            return bool(self.target.model_config.get("frozen"))
        return self.kind is ShapeKind.RECORD

    def field_named(self, argument: str) -> Optional[FieldDescriptor]:
        for f in self.fields:
            if f.argument == argument or f.name == argument:
                return f
        return None

    def require_supported(self, path: str = "") -> "TypeDescriptor":
        if self.kind is ShapeKind.UNSUPPORTED:
            raise UnsupportedShapeError(self.target, path, self.reason)
        return self


def split_annotated(annotation: Any) -> Tuple[Any, Tuple[Any, ...]]:
    """``Annotated[int, a, b]`` -> ``(int, (a, b))``; nested wrappers are flattened."""
    metadata: Tuple[Any, ...] = ()
    while get_origin(annotation) is Annotated:
        args = get_args(annotation)
        annotation = args[0]
        metadata = metadata + tuple(args[1:])
    return annotation, metadata


def _field_key(name: str, metadata: Tuple[Any, ...], explicit: Optional[str] = None) -> Tuple[str, bool]:
    for item in metadata:
        if isinstance(item, ConfigKey):
            return item.name, True
    if explicit:
        return explicit, True
    return name, False


def describe(target: Any) -> TypeDescriptor:
    """Classify ``target``; results are cached per type."""
    try:
        return _describe_cached(target)
    except TypeError as e:
        # unhashable Annotated metadata cannot be cached
        if "unhashable" not in str(e):
            raise
        return _describe(target)


@lru_cache(maxsize=512)
def _describe_cached(target: Any) -> TypeDescriptor:
    return _describe(target)


def _unsupported(target: Any, reason: str) -> TypeDescriptor:
    return TypeDescriptor(target=target, kind=ShapeKind.UNSUPPORTED, reason=reason)


def _describe(target: Any) -> TypeDescriptor:
    inner, metadata = split_annotated(target)
    if metadata:
        described = describe(inner)
        return dataclasses.replace(
            described,
            constraints=described.constraints + collect_constraints(metadata),
        )
    target = inner

    if target is Any or isinstance(target, TypeVar):
        return _unsupported(target, "a concrete type is required")

    origin = get_origin(target)
    args = get_args(target)

    if origin in _UNION_TYPES:
        members = [a for a in args if a is not type(None)]
        if len(members) == 1 and len(args) == 2:
            return TypeDescriptor(target=target, kind=ShapeKind.NULLABLE, element=members[0])
        return _unsupported(target, "only Optional[...] unions are supported")

    if is_scalar_type(target):
        return TypeDescriptor(target=target, kind=ShapeKind.SCALAR)

    if target in _LIST_ORIGINS or origin in _LIST_ORIGINS:
        element = args[0] if args else str
        return TypeDescriptor(
            target=target,
            kind=ShapeKind.LIST,
            element=element,
            collection=_LIST_ORIGINS[origin or target],
        )

    if target is tuple or origin is tuple:
        if not args or (len(args) == 2 and args[1] is Ellipsis):
            return TypeDescriptor(
                target=target,
                kind=ShapeKind.LIST,
                element=args[0] if args else str,
                collection=tuple,
            )
        return _unsupported(target, "fixed-length tuples are not supported, use tuple[T, ...]")

    if target in _DICT_ORIGINS or origin in _DICT_ORIGINS:
        key_type, value_type = args if args else (str, str)
        if not is_scalar_type(key_type):
            return _unsupported(target, f"dictionary keys must be scalar, got {type_name(key_type)}")
        return TypeDescriptor(
            target=target,
            kind=ShapeKind.DICT,
            element=value_type,
            key_type=key_type,
            collection=dict,
        )

    if not isinstance(target, type):
        return _unsupported(target, "not a class")

    if issubclass(target, BaseModel):
        return _describe_pydantic(target)
    if dataclasses.is_dataclass(target):
        return _describe_dataclass(target)
    if issubclass(target, tuple) and hasattr(target, "_fields"):
        return _describe_named_tuple(target)
    return _describe_plain_class(target)


def _type_hints(target: type) -> Dict[str, Any]:
    try:
        return get_type_hints(target, include_extras=True)
    except (NameError, TypeError) as e:
        raise UnsupportedShapeError(target, reason=f"cannot resolve annotations ({e})") from e


def _describe_pydantic(target: type) -> TypeDescriptor:
    fields = []
    for name, info in target.model_fields.items():
        # pydantic has already moved Annotated metadata into info.metadata
        key, explicit = _field_key(name, tuple(info.metadata), info.alias)
        default = _NO_DEFAULT
        factory = _NO_DEFAULT
        if not info.is_required():
            if info.default_factory is not None:
                factory = info.default_factory
            else:
                default = info.default
        fields.append(FieldDescriptor(
            name=name,
            key=key,
            annotation=info.annotation,
            argument=info.alias or name,
            constraints=collect_constraints(info.metadata),
            default=default,
            default_factory=factory,
            explicit_key=explicit,
        ))
    return TypeDescriptor(target=target, kind=ShapeKind.RECORD, fields=tuple(fields))


def _dataclass_default(value: Any) -> Any:
    return _NO_DEFAULT if value is dataclasses.MISSING else value


def _describe_dataclass(target: type) -> TypeDescriptor:
    hints = _type_hints(target)
    fields = []
    any_required = False
    for f in dataclasses.fields(target):
        if not f.init:
            continue
        annotation = hints.get(f.name, f.type)
        _, metadata = split_annotated(annotation)
        key, explicit = _field_key(f.name, metadata, f.metadata.get("config_key"))
        constraints = collect_constraints(f.metadata.get("constraints", ()))
        if f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING:
            any_required = True
        fields.append(FieldDescriptor(
            name=f.name,
            key=key,
            annotation=annotation,
            argument=f.name,
            constraints=constraints,
            default=_dataclass_default(f.default),
            default_factory=_dataclass_default(f.default_factory),
            explicit_key=explicit,
        ))

    frozen = target.__dataclass_params__.frozen
    kind = ShapeKind.RECORD if frozen or any_required else ShapeKind.OBJECT
    return TypeDescriptor(target=target, kind=kind, fields=tuple(fields))


def _describe_named_tuple(target: type) -> TypeDescriptor:
    hints = _type_hints(target)
    defaults = getattr(target, "_field_defaults", {})
    fields = []
    for name in target._fields:
        annotation = hints.get(name, str)
        _, metadata = split_annotated(annotation)
        key, explicit = _field_key(name, metadata)
        fields.append(FieldDescriptor(
            name=name,
            key=key,
            annotation=annotation,
            argument=name,
            default=defaults.get(name, _NO_DEFAULT),
            explicit_key=explicit,
        ))
    return TypeDescriptor(target=target, kind=ShapeKind.RECORD, fields=tuple(fields))


def _accepts_no_arguments(target: type) -> bool:
    if target.__init__ is object.__init__ and target.__new__ is object.__new__:
        return True
    try:
        signature = inspect.signature(target)
    except (TypeError, ValueError):
        return False
    return all(
        p.default is not inspect.Parameter.empty
        or p.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
        for p in signature.parameters.values()
    )


def _describe_plain_class(target: type) -> TypeDescriptor:
    if inspect.isabstract(target) or getattr(target, "_is_protocol", False):
        return _unsupported(target, "abstract types have no construction strategy")
    if not _accepts_no_arguments(target):
        return _unsupported(target, "constructor requires arguments")

    hints = _type_hints(target)
    fields = []
    for name, annotation in hints.items():
        if name.startswith("_") or get_origin(annotation) is ClassVar or annotation is ClassVar:
            continue
        _, metadata = split_annotated(annotation)
        key, explicit = _field_key(name, metadata)
        default = getattr(target, name, _NO_DEFAULT)
        fields.append(FieldDescriptor(
            name=name,
            key=key,
            annotation=annotation,
            argument=name,
            default=default,
            explicit_key=explicit,
        ))

    if not fields:
        return _unsupported(target, "no annotated fields to bind")
    return TypeDescriptor(target=target, kind=ShapeKind.OBJECT, fields=tuple(fields))


def clear_cache() -> None:
    _describe_cached.cache_clear()

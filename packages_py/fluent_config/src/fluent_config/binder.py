"""
Structural binder: flat map -> typed object graph.

The binder walks a ``TypeDescriptor`` and pulls values out of a
``FlatKeyIndex``. Sibling fields, list elements and dictionary entries are
all attempted before reporting, so a single call returns every problem it
found. Records collect all constructor arguments first and are constructed
only when every argument resolved.
"""
import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Type, TypeVar

from pydantic import ValidationError

from .constraints import Constraint, constraint_error, evaluate_all
from .conversion import convert, parse_scalar, type_name
from .descriptors import FieldDescriptor, ShapeKind, TypeDescriptor, describe
from .domain import BindingOptions
from .keys import FlatKeyIndex, flatten_document, is_index, join_path, parse_key
from .result import Result
from .validators import UnsupportedShapeError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Path = Tuple[str, ...]


def missing_error(path: str) -> str:
    return f"Required property '{path}' was not found in configuration"


def section_path(section: Optional[str]) -> Path:
    return parse_key(section).values() if section else ()


def pydantic_errors(error: ValidationError, base: Sequence[str]) -> List[str]:
    """Flatten a pydantic ValidationError into path-qualified messages."""
    messages = []
    for item in error.errors():
        path = join_path(*base, *item["loc"])
        if item["type"] == "missing":
            messages.append(missing_error(path))
        else:
            messages.append(constraint_error(path, item["type"], item["msg"]))
    return messages


class _Binder:
    """State for one bind call. Not shared between calls."""

    def __init__(
        self,
        flat_map: Mapping[str, str],
        options: BindingOptions,
        display_prefix: Path = (),
    ):
        self.options = options
        self.index = FlatKeyIndex(flat_map, case_sensitive=options.case_sensitive)
        self.display_prefix = display_prefix

    def display(self, path: Path) -> str:
        return join_path(*self.display_prefix, *path)

    # ========== Entry points ==========

    def bind_root(self, target: Any, path: Path) -> Result[Any]:
        desc = describe(target).require_supported(self.display(path))

        if desc.kind in (ShapeKind.OBJECT, ShapeKind.RECORD, ShapeKind.LIST, ShapeKind.DICT):
            return self.bind_value(desc, path)
        if self.index.contains(path):
            return self.bind_value(desc, path)
        if desc.kind is ShapeKind.NULLABLE:
            return self.check(desc.constraints, path, None)
        return Result.failure(missing_error(self.display(path)))

    def bind_onto(self, instance: Any, path: Path) -> Result[Any]:
        """Set only the fields that are present in configuration."""
        desc = describe(type(instance)).require_supported(self.display(path))
        if desc.kind not in (ShapeKind.OBJECT, ShapeKind.RECORD) or desc.is_frozen:
            raise UnsupportedShapeError(
                type(instance), self.display(path), "instance binding needs a mutable object"
            )

        errors: List[str] = []
        for field in desc.fields:
            child = self.resolve_child(path, field)
            if child is None:
                continue
            result = self.bind_field(field, path + (child,))
            if result.is_failure:
                errors.extend(result.errors)
            else:
                setattr(instance, field.name, result.unwrap())

        if errors:
            return Result.failure(errors)
        return Result.success(instance)

    # ========== Dispatch ==========

    def bind_value(self, desc: TypeDescriptor, path: Path) -> Result[Any]:
        desc.require_supported(self.display(path))

        if desc.kind is ShapeKind.SCALAR:
            result = self.bind_scalar(desc, path)
        elif desc.kind is ShapeKind.NULLABLE:
            result = self.bind_nullable(desc, path)
        elif desc.kind is ShapeKind.OBJECT:
            result = self.expand_json(desc, path) or self.bind_object(desc, path)
        elif desc.kind is ShapeKind.RECORD:
            result = self.expand_json(desc, path) or self.bind_record(desc, path)
        elif desc.kind is ShapeKind.LIST:
            result = self.expand_json(desc, path) or self.bind_list(desc, path)
        else:
            result = self.expand_json(desc, path) or self.bind_dict(desc, path)

        if result.is_failure or not desc.constraints:
            return result
        return result.bind(lambda value: self.check(desc.constraints, path, value))

    def bind_scalar(self, desc: TypeDescriptor, path: Path) -> Result[Any]:
        if self.index.has_descendants(path):
            found = "indexed entries" if all(is_index(c) for c in self.index.children(path)) else "nested keys"
            return Result.failure(
                f"Failed to convert value at '{self.display(path)}' to {desc.name}: "
                f"expected a single value but found {found}"
            )
        raw = self.index.value_at(path)
        if raw.is_none:
            return Result.failure(missing_error(self.display(path)))
        return convert(raw.unwrap(), desc.target, self.display(path))

    def bind_nullable(self, desc: TypeDescriptor, path: Path) -> Result[Any]:
        if not self.index.contains(path):
            return Result.success(None)
        inner = describe(desc.element)
        raw = self.index.value_at(path).value_or(None)
        # an empty value means null for everything except strings
        if raw == "" and not self.index.has_descendants(path) and inner.target is not str:
            return Result.success(None)
        return self.bind_value(inner, path)

    def bind_object(self, desc: TypeDescriptor, path: Path) -> Result[Any]:
        instance = desc.target()
        errors: List[str] = []

        for field in desc.fields:
            child = self.resolve_child(path, field)
            if child is None and (field.has_default or hasattr(instance, field.name)):
                if self.options.enable_validation:
                    errors.extend(self.field_violations(field, path + (field.key,), getattr(instance, field.name, None)))
                continue
            result = self.bind_field(field, path + ((child or field.key),))
            if result.is_failure:
                errors.extend(result.errors)
            else:
                setattr(instance, field.name, result.unwrap())

        if errors:
            return Result.failure(errors)
        return Result.success(instance)

    def bind_record(self, desc: TypeDescriptor, path: Path) -> Result[Any]:
        arguments: Dict[str, Any] = {}
        errors: List[str] = []

        for field in desc.fields:
            child = self.resolve_child(path, field)
            if child is None and field.has_default:
                if self.options.enable_validation:
                    errors.extend(self.field_violations(field, path + (field.key,), field.make_default()))
                continue
            result = self.bind_field(field, path + ((child or field.key),))
            if result.is_failure:
                errors.extend(result.errors)
            else:
                arguments[field.argument] = result.unwrap()

        if errors:
            logger.debug(f"Skipping construction of {desc.name} at '{self.display(path)}': {len(errors)} error(s)")
            return Result.failure(errors)
        return self.construct(desc, path, arguments)

    def construct(self, desc: TypeDescriptor, path: Path, arguments: Dict[str, Any]) -> Result[Any]:
        try:
            if desc.is_pydantic:
                return Result.success(desc.target.model_validate(arguments))
            return Result.success(desc.target(**arguments))
        except ValidationError as e:
            return Result.failure(pydantic_errors(e, self.display_prefix + path))
        except (ValueError, TypeError) as e:
            return Result.failure(constraint_error(self.display(path), desc.name, str(e)))

    def bind_list(self, desc: TypeDescriptor, path: Path) -> Result[Any]:
        element = describe(desc.element)
        children = self.index.children(path)
        errors: List[str] = []

        stray = [c for c in children if not is_index(c)]
        for child in stray:
            errors.append(
                f"Unexpected key '{self.display(path + (child,))}': "
                f"a list of {element.name} is addressed by numeric index"
            )
        if not children and self.index.value_at(path).value_or("") != "":
            errors.append(
                f"Failed to convert value '{self.index.value_at(path).unwrap()}' at "
                f"'{self.display(path)}' to {desc.name}: expected indexed entries"
            )

        indices = sorted((c for c in children if is_index(c)), key=int)
        items = []
        for child in indices:
            result = self.bind_value(element, path + (child,))
            if result.is_failure:
                errors.extend(result.errors)
            else:
                items.append(result.unwrap())

        if errors:
            return Result.failure(errors)
        return Result.success(desc.collection(items))

    def bind_dict(self, desc: TypeDescriptor, path: Path) -> Result[Any]:
        element = describe(desc.element)
        entries: Dict[Any, Any] = {}
        errors: List[str] = []

        for child in self.index.children(path):
            key = parse_scalar(child, desc.key_type)
            if key.is_failure:
                errors.append(
                    f"Failed to convert key '{child}' at '{self.display(path)}' to "
                    f"{type_name(desc.key_type)}: {key.errors[0]}"
                )
                continue
            result = self.bind_value(element, path + (child,))
            if result.is_failure:
                errors.extend(result.errors)
            else:
                entries[key.unwrap()] = result.unwrap()

        if errors:
            return Result.failure(errors)
        return Result.success(entries)

    def expand_json(self, desc: TypeDescriptor, path: Path) -> Optional[Result[Any]]:
        """Bind a collection or object stored as JSON text in a single value.

        Defaults registered on the builder are rendered this way.
        """
        if self.index.has_descendants(path):
            return None
        raw = self.index.value_at(path).value_or("").strip()
        if not raw or raw[0] not in "[{":
            return None
        try:
            document = json.loads(raw)
        except json.JSONDecodeError:
            return None
        nested = _Binder(flatten_document(document), self.options, self.display_prefix + path)
        return nested.bind_value(desc, ())

    # ========== Fields ==========

    def resolve_child(self, path: Path, field: FieldDescriptor) -> Optional[str]:
        children = self.index.children(path)
        case_sensitive = self.options.case_sensitive
        for child in children:
            if child == field.key or (not case_sensitive and child.casefold() == field.key.casefold()):
                return child
        if case_sensitive:
            return None
        for child in children:
            if field.matches(child, case_sensitive):
                return child
        return None

    def bind_field(self, field: FieldDescriptor, path: Path) -> Result[Any]:
        desc = describe(field.annotation)
        desc.require_supported(self.display(path))

        if not self.index.contains(path):
            if desc.kind is ShapeKind.NULLABLE:
                result = self.check(desc.constraints, path, None)
            elif desc.kind in (ShapeKind.OBJECT, ShapeKind.RECORD):
                # report the missing members with their own paths
                result = self.bind_value(desc, path)
            else:
                return Result.failure(missing_error(self.display(path)))
        else:
            result = self.bind_value(desc, path)

        if result.is_failure or not self.options.enable_validation:
            return result
        value = result.unwrap()
        errors = evaluate_all(self.display(path), value, self.field_constraints(field, path))
        return Result.failure(errors) if errors else result

    def field_constraints(self, field: FieldDescriptor, path: Path) -> List[Constraint]:
        constraints = list(field.constraints)
        if self.options.constraints is not None:
            constraints.extend(self.options.constraints.for_path(self.display(path), self.options.case_sensitive))
        return constraints

    def field_violations(self, field: FieldDescriptor, path: Path, value: Any) -> List[str]:
        """Constraint failures for a field that keeps its default."""
        constraints = self.field_constraints(field, path) + list(describe(field.annotation).constraints)
        return evaluate_all(self.display(path), value, constraints)

    def check(self, constraints: Sequence[Constraint], path: Path, value: Any) -> Result[Any]:
        if not self.options.enable_validation:
            return Result.success(value)
        errors = evaluate_all(self.display(path), value, constraints)
        return Result.failure(errors) if errors else Result.success(value)


# ========== Public API ==========

def bind(
    flat_map: Mapping[str, str],
    target: Type[T],
    options: Optional[BindingOptions] = None,
    section: Optional[str] = None,
) -> Result[T]:
    """Bind ``flat_map`` (or the part under ``section``) to ``target``.

    Returns every missing field, conversion failure and constraint violation
    found. Raises ``UnsupportedShapeError`` when ``target`` cannot be bound
    at all.
    """
    options = options or BindingOptions()
    binder = _Binder(dict(flat_map), options)
    result = binder.bind_root(target, section_path(section))
    if result.is_failure:
        logger.debug(f"Binding {type_name(target)} failed with {len(result.errors)} error(s)")
    return result


def bind_to_instance(
    flat_map: Mapping[str, str],
    instance: T,
    options: Optional[BindingOptions] = None,
    section: Optional[str] = None,
) -> Result[T]:
    """Overwrite the attributes of ``instance`` that have configuration values."""
    options = options or BindingOptions()
    binder = _Binder(dict(flat_map), options)
    return binder.bind_onto(instance, section_path(section))


def bind_list(
    flat_map: Mapping[str, str],
    section: str,
    element_type: Type[T],
    options: Optional[BindingOptions] = None,
) -> Result[List[T]]:
    return bind(flat_map, List[element_type], options, section)


def bind_dict(
    flat_map: Mapping[str, str],
    section: str,
    value_type: Type[T],
    options: Optional[BindingOptions] = None,
) -> Result[Dict[str, T]]:
    return bind(flat_map, Dict[str, value_type], options, section)

"""
Document round-trip binding.

An alternative to field-by-field binding: the flat slice is rebuilt into a
nested document, keys are aligned with the target's fields, and pydantic
validates the whole thing in one pass. Constraints pydantic does not know
about (this package's own ``Constraint`` objects and ``ConstraintTable``
entries) are checked afterwards against the validated object.
"""
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Type, TypeVar

from pydantic import TypeAdapter, ValidationError
from pydantic.errors import PydanticSchemaGenerationError

from .binder import missing_error, section_path
from .constraints import Constraint, constraint_error, evaluate_all
from .conversion import conversion_error
from .descriptors import FieldDescriptor, ShapeKind, TypeDescriptor, describe
from .domain import BindingOptions
from .keys import join_path, to_document
from .result import Result
from .validators import UnsupportedShapeError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CONVERSION_ERROR_SUFFIXES = ("_parsing", "_type")


def align(document: Any, desc: TypeDescriptor, case_sensitive: bool = False) -> Any:
    """Rename document keys to the target's constructor argument names.

    Unknown keys are dropped. Empty strings become ``None`` for nullable
    members and empty collections for list/dict members.
    """
    if desc.kind is ShapeKind.NULLABLE:
        if document is None or document == "":
            return None
        return align(document, describe(desc.element), case_sensitive)

    if desc.kind is ShapeKind.LIST:
        if document == "" or document is None:
            return []
        if isinstance(document, dict):
            # sparse list whose entries were not all indices
            return document
        element = describe(desc.element)
        return [align(item, element, case_sensitive) for item in document]

    if desc.kind is ShapeKind.DICT:
        if document == "" or document is None:
            return {}
        if not isinstance(document, dict):
            return document
        element = describe(desc.element)
        return {key: align(value, element, case_sensitive) for key, value in document.items()}

    if desc.kind in (ShapeKind.OBJECT, ShapeKind.RECORD):
        if not isinstance(document, dict):
            return {} if document in (None, "") else document
        aligned: Dict[str, Any] = {}
        for field in desc.fields:
            for key, value in document.items():
                if field.matches(key, case_sensitive):
                    aligned[field.argument] = align(value, describe(field.annotation), case_sensitive)
                    break
        return aligned

    return document


def _document_key(node: Any, field: FieldDescriptor, case_sensitive: bool) -> Optional[str]:
    """The key ``align`` picked for ``field`` in a document node."""
    if isinstance(node, dict):
        for key in node:
            if field.matches(key, case_sensitive):
                return key
    return None


def _child_node(node: Any, part: Any) -> Any:
    if isinstance(node, dict):
        return node.get(str(part))
    if isinstance(node, list) and isinstance(part, int) and 0 <= part < len(node):
        return node[part]
    return None


def _resolve_loc(
    document: Any,
    desc: TypeDescriptor,
    loc: Sequence[Any],
    case_sensitive: bool,
) -> Tuple[List[str], Optional[TypeDescriptor]]:
    """Map a pydantic ``loc`` to configuration key segments.

    Field names become the keys found in the document (or the field key when
    absent), matching the paths ``bind`` reports.
    """
    segments: List[str] = []
    node = document
    current: Optional[TypeDescriptor] = desc
    for part in loc:
        while current is not None and current.kind is ShapeKind.NULLABLE:
            current = describe(current.element)
        if current is not None and current.kind in (ShapeKind.OBJECT, ShapeKind.RECORD):
            field = current.field_named(str(part))
            if field is not None:
                key = _document_key(node, field, case_sensitive)
                segments.append(key or field.key)
                node = node.get(key) if key is not None else None
                current = describe(field.annotation)
                continue
            current = None
        elif current is not None and current.kind in (ShapeKind.LIST, ShapeKind.DICT):
            current = describe(current.element)
        else:
            current = None
        segments.append(str(part))
        node = _child_node(node, part)
    return segments, current


def translate_errors(
    error: ValidationError,
    desc: TypeDescriptor,
    base: Sequence[str],
    document: Any = None,
    case_sensitive: bool = False,
) -> List[str]:
    messages = []
    for item in error.errors():
        segments, target = _resolve_loc(document, desc, item["loc"], case_sensitive)
        path = join_path(*base, *segments)
        kind = item["type"]
        if kind == "missing":
            messages.append(missing_error(path))
            continue
        if kind.endswith(_CONVERSION_ERROR_SUFFIXES) and target is not None and isinstance(item.get("input"), str):
            messages.append(conversion_error(item["input"], path, target.target, item["msg"]))
        else:
            messages.append(constraint_error(path, kind, item["msg"]))
    return messages


def _unenforced(constraints: Sequence[Constraint]) -> List[Constraint]:
    return [c for c in constraints if not c.pydantic_native]


def collect_violations(
    value: Any,
    desc: TypeDescriptor,
    path: Sequence[str],
    options: BindingOptions,
    document: Any = None,
) -> List[str]:
    """Walk a bound value and evaluate constraints pydantic did not enforce."""
    errors: List[str] = []
    display = join_path(*path)
    if path:
        errors.extend(evaluate_all(display, value, _unenforced(desc.constraints)))
    if value is None:
        return errors

    if desc.kind is ShapeKind.NULLABLE:
        errors.extend(collect_violations(value, describe(desc.element), path, options, document))
    elif desc.kind is ShapeKind.LIST:
        element = describe(desc.element)
        for i, item in enumerate(value):
            child = _child_node(document, i)
            errors.extend(collect_violations(item, element, tuple(path) + (str(i),), options, child))
    elif desc.kind is ShapeKind.DICT:
        element = describe(desc.element)
        for key, item in value.items():
            child = _child_node(document, key)
            errors.extend(collect_violations(item, element, tuple(path) + (str(key),), options, child))
    elif desc.kind in (ShapeKind.OBJECT, ShapeKind.RECORD):
        for field in desc.fields:
            key = _document_key(document, field, options.case_sensitive)
            child_path = tuple(path) + (key or field.key,)
            child_value = getattr(value, field.name, None)
            # dataclass field metadata is invisible to pydantic
            if desc.is_pydantic:
                field_constraints = _unenforced(field.constraints)
            else:
                field_constraints = list(field.constraints)
            if options.constraints is not None:
                field_constraints.extend(options.constraints.for_path(join_path(*child_path), options.case_sensitive))
            errors.extend(evaluate_all(join_path(*child_path), child_value, field_constraints))
            child = document.get(key) if key is not None else None
            errors.extend(collect_violations(child_value, describe(field.annotation), child_path, options, child))
    return errors


def bind_document(
    flat_map: Mapping[str, str],
    target: Type[T],
    options: Optional[BindingOptions] = None,
    section: Optional[str] = None,
) -> Result[T]:
    """Bind through a nested document validated by ``pydantic.TypeAdapter``.

    ``options.document_options`` is passed to ``validate_python`` (for
    example ``{"strict": True}``).
    """
    options = options or BindingOptions()
    base = section_path(section)
    desc = describe(target).require_supported(join_path(*base))

    document = to_document(flat_map, base, case_sensitive=options.case_sensitive)
    aligned = align(document, desc, options.case_sensitive)

    try:
        adapter = TypeAdapter(target)
    except PydanticSchemaGenerationError as e:
        raise UnsupportedShapeError(target, join_path(*base), str(e)) from e

    try:
        value = adapter.validate_python(aligned, **options.document_options)
    except ValidationError as e:
        errors = translate_errors(e, desc, base, document, options.case_sensitive)
        logger.debug(f"Document binding of {desc.name} failed with {len(errors)} error(s)")
        return Result.failure(errors)

    if options.enable_validation:
        violations = collect_violations(value, desc, base, options, document)
        if violations:
            return Result.failure(violations)
    return Result.success(value)

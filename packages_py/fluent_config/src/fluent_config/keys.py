"""
Flat key codec.

A flat key such as ``Database:Host`` or ``Endpoints__0__Url`` is decomposed
into a ``KeyPath`` of typed segments. ``:`` nests properties; ``__`` joins a
collection to an index or a map key, and that entry to its own members.
"""
import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from .option import Option

NESTING_DELIMITER = ":"
INDEX_DELIMITER = "__"

_SPLIT_PATTERN = re.compile(r'(__|:)')


class SegmentKind(Enum):
    PROPERTY = "property"
    INDEX = "index"
    MAP_KEY = "map_key"


@dataclass(frozen=True)
class Segment:
    kind: SegmentKind
    value: str

    @property
    def index(self) -> int:
        if self.kind is not SegmentKind.INDEX:
            raise ValueError(f"Segment '{self.value}' is not an index")
        return int(self.value)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class KeyPath:
    segments: Tuple[Segment, ...] = ()

    def __iter__(self) -> Iterator[Segment]:
        return iter(self.segments)

    def __len__(self) -> int:
        return len(self.segments)

    def values(self) -> Tuple[str, ...]:
        return tuple(s.value for s in self.segments)

    def to_key(self) -> str:
        return format_key(self)

    def __str__(self) -> str:
        return self.to_key()


def is_index(segment: str) -> bool:
    return segment.isdigit() and segment.isascii()


def parse_key(key: str) -> KeyPath:
    """Split a flat key on both delimiters and classify each segment."""
    if not key:
        return KeyPath()

    parts = _SPLIT_PATTERN.split(key)
    segments: List[Segment] = []
    delimiter: Optional[str] = None

    for part in parts:
        if part in (NESTING_DELIMITER, INDEX_DELIMITER):
            delimiter = part
            continue
        if not part:
            continue

        previous = segments[-1].kind if segments else None
        if is_index(part):
            kind = SegmentKind.INDEX
        elif delimiter == INDEX_DELIMITER and previous is SegmentKind.PROPERTY:
            kind = SegmentKind.MAP_KEY
        else:
            kind = SegmentKind.PROPERTY
        segments.append(Segment(kind, part))

    return KeyPath(tuple(segments))


def format_key(path: Union[KeyPath, Iterable[Segment]]) -> str:
    """Inverse of ``parse_key``."""
    segments = list(path)
    out: List[str] = []
    previous: Optional[Segment] = None

    for segment in segments:
        if previous is not None:
            entry_axis = (
                segment.kind in (SegmentKind.INDEX, SegmentKind.MAP_KEY)
                or previous.kind in (SegmentKind.INDEX, SegmentKind.MAP_KEY)
            )
            out.append(INDEX_DELIMITER if entry_axis else NESTING_DELIMITER)
        out.append(segment.value)
        previous = segment

    return "".join(out)


def join_path(*parts: Union[str, int]) -> str:
    """Human readable path used in error messages (``Items:0:Name``)."""
    return NESTING_DELIMITER.join(str(p) for p in parts if str(p) != "")


# ========== Document conversion ==========

def _scalar_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def flatten_document(document: Any, prefix: str = "") -> Dict[str, str]:
    """Flatten nested mappings and lists into a flat key map.

    Objects nest with ``:``; array items are written as ``name__<i>`` and their
    members continue with ``__``.
    """
    result: Dict[str, str] = {}
    _flatten_into(result, document, prefix, after_entry=False)
    return result


def _flatten_into(result: Dict[str, str], node: Any, prefix: str, after_entry: bool) -> None:
    if isinstance(node, Mapping):
        if not node and prefix:
            result[prefix] = ""
        for key, value in node.items():
            if not prefix:
                child = str(key)
            else:
                child = f"{prefix}{INDEX_DELIMITER if after_entry else NESTING_DELIMITER}{key}"
            _flatten_into(result, value, child, after_entry=False)
    elif isinstance(node, (list, tuple)):
        if not node and prefix:
            result[prefix] = ""
        for i, item in enumerate(node):
            child = f"{prefix}{INDEX_DELIMITER}{i}" if prefix else str(i)
            _flatten_into(result, item, child, after_entry=True)
    else:
        if prefix:
            result[prefix] = _scalar_text(node)


def to_document(
    flat_map: Mapping[str, str],
    prefix: Sequence[str] = (),
    case_sensitive: bool = False,
) -> Any:
    """Rebuild the nested document stored under ``prefix``.

    Nodes whose children are all integers become lists ordered by numeric
    index. Returns ``None`` when nothing lives under the prefix.
    """
    index = FlatKeyIndex(flat_map, case_sensitive=case_sensitive)
    return index.document(tuple(prefix))


# ========== Parsed view ==========

class FlatKeyIndex:
    """A flat map parsed once, queried by path.

    Segment comparison is case-insensitive unless ``case_sensitive`` is set.
    When two keys collide under case folding, the first one in map order wins.
    """

    def __init__(self, flat_map: Mapping[str, str], case_sensitive: bool = False):
        self.case_sensitive = case_sensitive
        self._entries: List[Tuple[Tuple[str, ...], Tuple[str, ...], str]] = []
        for key, value in flat_map.items():
            raw = parse_key(key).values()
            self._entries.append((raw, self._fold_all(raw), value))

    def _fold(self, segment: str) -> str:
        return segment if self.case_sensitive else segment.casefold()

    def _fold_all(self, segments: Sequence[str]) -> Tuple[str, ...]:
        return tuple(self._fold(s) for s in segments)

    def __len__(self) -> int:
        return len(self._entries)

    def value_at(self, path: Sequence[str]) -> Option[str]:
        folded = self._fold_all(path)
        for _, entry, value in self._entries:
            if entry == folded:
                return Option.some(value)
        return Option.none()

    def children(self, path: Sequence[str]) -> List[str]:
        """Distinct next segments below ``path`` in first-seen order."""
        folded = self._fold_all(path)
        depth = len(folded)
        seen: Dict[str, str] = {}
        for raw, entry, _ in self._entries:
            if len(entry) > depth and entry[:depth] == folded:
                seen.setdefault(entry[depth], raw[depth])
        return list(seen.values())

    def has_descendants(self, path: Sequence[str]) -> bool:
        folded = self._fold_all(path)
        depth = len(folded)
        return any(len(entry) > depth and entry[:depth] == folded for _, entry, _ in self._entries)

    def contains(self, path: Sequence[str]) -> bool:
        return self.value_at(path).is_some or self.has_descendants(path)

    def document(self, path: Tuple[str, ...]) -> Any:
        children = self.children(path)
        if not children:
            return self.value_at(path).value_or(None)

        if all(is_index(c) for c in children):
            ordered = sorted(children, key=int)
            return [self.document(path + (c,)) for c in ordered]

        return {c: self.document(path + (c,)) for c in children}

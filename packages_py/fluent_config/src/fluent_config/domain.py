from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

if TYPE_CHECKING:
    from .constraints import ConstraintTable


class SourceState(Enum):
    UNLOADED = "unloaded"
    LOADED = "loaded"
    RELOADED = "reloaded"


@dataclass
class BindingOptions:
    enable_validation: bool = True
    case_sensitive: bool = False
    # Keyword arguments forwarded to pydantic ``validate_python`` by bind_document
    document_options: Dict[str, Any] = field(default_factory=dict)
    constraints: Optional["ConstraintTable"] = None


def default_key_mapper(secret_name: str) -> str:
    """``Database--Host`` -> ``Database:Host``"""
    return secret_name.replace("--", ":")


@dataclass
class SecretStoreOptions:
    cache_ttl: float = 300.0
    continue_on_secret_failure: bool = True
    key_mapper: Callable[[str], str] = default_key_mapper
    secret_version: Optional[str] = None
    secret_name_prefix: Optional[str] = None
    operation_timeout: float = 30.0
    max_workers: int = 8

    def __post_init__(self) -> None:
        if self.cache_ttl < 0:
            raise ValueError("cache_ttl must not be negative")
        if self.operation_timeout <= 0:
            raise ValueError("operation_timeout must be positive")
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")


@dataclass
class CacheStatistics:
    hits: int = 0
    misses: int = 0
    expired: int = 0
    entries: int = 0

    @property
    def hit_ratio(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "expired": self.expired,
            "entries": self.entries,
            "hit_ratio": self.hit_ratio,
        }

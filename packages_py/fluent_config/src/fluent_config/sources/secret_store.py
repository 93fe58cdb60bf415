"""
Remote secret store source.

Secrets are listed once, fetched in parallel and mapped to configuration keys
(``Database--Password`` -> ``Database:Password``). Individual failures are
collected in ``load_errors``; whether they fail the whole load depends on
``SecretStoreOptions.continue_on_secret_failure``.
"""
import logging
import threading
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ..domain import CacheStatistics, SecretStoreOptions
from ..result import Result
from ..sensitive import mask_value
from ..validators import SourceLoadError
from .base import ConfigurationSource, FlatMap

logger = logging.getLogger(__name__)


class SecretClient(ABC):
    """Transport to a secret store."""

    @property
    def location(self) -> str:
        """Host or identifier used in the source name."""
        return self.__class__.__name__

    @abstractmethod
    def list_secret_names(self) -> List[str]:
        """Names of all enabled secrets. Raises ``SourceLoadError`` on failure."""
        pass

    @abstractmethod
    def get_secret(self, name: str, version: Optional[str] = None) -> Optional[str]:
        """Secret value, or None when it does not exist."""
        pass

    def close(self) -> None:
        pass


@dataclass
class _CacheEntry:
    value: str
    expires_at: float


class SecretCache:
    """Thread-safe TTL cache for secret values."""

    def __init__(self, ttl: float = 300.0):
        self.ttl = ttl
        self._entries: Dict[str, _CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._expired = 0

    def get(self, key: str) -> Optional[str]:
        now = time.monotonic()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if now >= entry.expires_at:
                del self._entries[key]
                self._expired += 1
                self._misses += 1
                return None
            self._hits += 1
            return entry.value

    def set(self, key: str, value: str, ttl: Optional[float] = None) -> None:
        lifetime = self.ttl if ttl is None else ttl
        if lifetime <= 0:
            return
        with self._lock:
            self._entries[key] = _CacheEntry(value, time.monotonic() + lifetime)

    def remove(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def statistics(self) -> CacheStatistics:
        with self._lock:
            return CacheStatistics(
                hits=self._hits,
                misses=self._misses,
                expired=self._expired,
                entries=len(self._entries),
            )


class SecretStoreSource(ConfigurationSource):
    """Secrets from a ``SecretClient`` as configuration values.

    The first successful ``load`` is remembered; later calls return it without
    contacting the store. ``reload`` clears the cache and fetches again.
    """

    def __init__(
        self,
        client: SecretClient,
        options: Optional[SecretStoreOptions] = None,
        priority: int = 200,
    ):
        super().__init__(f"SecretStore({client.location})", priority)
        self.client = client
        self.options = options or SecretStoreOptions()
        self.cache = SecretCache(self.options.cache_ttl)
        self._load_errors: List[str] = []
        self._loaded: Optional[FlatMap] = None
        self._closed = False

    @property
    def load_errors(self) -> List[str]:
        return list(self._load_errors)

    @property
    def cache_statistics(self) -> CacheStatistics:
        return self.cache.statistics()

    def _load(self) -> Result[FlatMap]:
        if self._closed:
            return Result.failure(f"Source '{self.name}' has been closed")
        with self._lock:
            if self._loaded is not None:
                return Result.success(dict(self._loaded))

        logger.info(f"Loading secrets from {self.client.location}")
        self._load_errors = []

        try:
            names = self._matching_names()
        except SourceLoadError as e:
            return Result.failure(f"Failed to load secrets from '{self.client.location}': {e}")

        values: FlatMap = {}
        for name, value, error in self._fetch_all(names):
            if error is not None:
                self._load_errors.append(error)
                logger.warning(f"Failed to load secret '{name}': {error}")
                continue
            key = self.options.key_mapper(name)
            values[key] = value
            self.cache.set(self._cache_key(name), value)
            logger.debug(f"Loaded secret '{name}' as '{key}' = {mask_value(key, value, force=True)}")

        if self._load_errors and not self.options.continue_on_secret_failure:
            return Result.failure(self._load_errors)

        summary = f"Loaded {len(values)} secret(s) from {self.client.location}"
        if self._load_errors:
            summary += f" (with {len(self._load_errors)} error(s))"
        logger.info(summary)

        with self._lock:
            self._loaded = values
        return Result.success(dict(values))

    def reload(self) -> Result[FlatMap]:
        with self._lock:
            self._loaded = None
        self.cache.clear()
        return super().reload()

    def _matching_names(self) -> List[str]:
        names = self.client.list_secret_names()
        prefix = self.options.secret_name_prefix
        if not prefix:
            return list(names)
        folded = prefix.casefold()
        return [n for n in names if n.casefold().startswith(folded)]

    def _fetch_one(self, name: str) -> Tuple[str, str, Optional[str]]:
        try:
            value = self.client.get_secret(name, self.options.secret_version)
        except SourceLoadError as e:
            return name, "", str(e)
        if value is None or value == "":
            return name, "", f"Secret '{name}' value is null or empty"
        return name, value, None

    def _fetch_all(self, names: List[str]) -> List[Tuple[str, str, Optional[str]]]:
        if not names:
            return []
        timeout = self.options.operation_timeout
        executor = ThreadPoolExecutor(max_workers=min(self.options.max_workers, len(names)))
        try:
            futures = {executor.submit(self._fetch_one, name): name for name in names}
            done, _ = wait(futures, timeout=timeout)
            results = []
            for future, name in futures.items():
                if future in done:
                    results.append(future.result())
                else:
                    results.append((name, "", f"Secret '{name}' timed out after {timeout} seconds"))
            return results
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def _cache_key(self, name: str, version: Optional[str] = None) -> str:
        version = version or self.options.secret_version
        return f"{name}:{version}" if version else name

    def get_secret(self, name: str, version: Optional[str] = None) -> Optional[str]:
        """Fetch one secret by its store name, using the cache."""
        if self._closed:
            return None
        cache_key = self._cache_key(name, version)
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            value = self.client.get_secret(name, version or self.options.secret_version)
        except SourceLoadError as e:
            logger.error(f"Failed to get secret '{name}': {e}")
            return None
        if value is not None:
            self.cache.set(cache_key, value)
        return value

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info(f"Secret cache cleared for {self.client.location}")

    def close(self) -> None:
        if self._closed:
            return
        self.cache.clear()
        self.client.close()
        self._closed = True
        logger.info(f"Source '{self.name}' closed")

    def __enter__(self) -> "SecretStoreSource":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

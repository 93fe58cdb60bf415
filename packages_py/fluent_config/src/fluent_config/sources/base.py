"""
Abstract configuration source.
"""
import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Dict, List

from ..domain import SourceState
from ..option import Option
from ..result import Result

logger = logging.getLogger(__name__)

FlatMap = Dict[str, str]
ChangeCallback = Callable[[FlatMap, FlatMap], None]


class ConfigurationSource(ABC):
    """A named, prioritized provider of a flat string-to-string map.

    Subclasses implement ``_load``. ``load`` and ``reload`` track state,
    remember the last good map and notify change subscribers.
    """

    def __init__(self, name: str, priority: int = 0):
        if not name:
            raise ValueError("Source name must not be empty")
        self._name = name
        self._priority = priority
        self._state = SourceState.UNLOADED
        self._values: FlatMap = {}
        self._callbacks: List[ChangeCallback] = []
        self._lock = threading.RLock()

    # ========== Identity ==========

    @property
    def name(self) -> str:
        return self._name

    @property
    def priority(self) -> int:
        return self._priority

    @property
    def supports_hot_reload(self) -> bool:
        return False

    @property
    def state(self) -> SourceState:
        return self._state

    @property
    def values(self) -> FlatMap:
        """Copy of the last successfully loaded map."""
        with self._lock:
            return dict(self._values)

    # ========== Loading ==========

    @abstractmethod
    def _load(self) -> Result[FlatMap]:
        """Read the native format and return a flat map."""
        pass

    def load(self) -> Result[FlatMap]:
        result = self._load()
        if result.is_failure:
            logger.warning(f"Source '{self.name}' failed to load: {'; '.join(result.errors)}")
            return result

        values = dict(result.unwrap())
        with self._lock:
            self._values = values
            if self._state is SourceState.UNLOADED:
                self._state = SourceState.LOADED
        logger.debug(f"Source '{self.name}' loaded {len(values)} key(s)")
        return Result.success(dict(values))

    def reload(self) -> Result[FlatMap]:
        """Load again and notify subscribers if the map changed."""
        with self._lock:
            previous = dict(self._values)

        result = self._load()
        if result.is_failure:
            logger.warning(f"Source '{self.name}' failed to reload: {'; '.join(result.errors)}")
            return result

        current = dict(result.unwrap())
        with self._lock:
            self._values = current
            self._state = SourceState.RELOADED

        if current != previous:
            logger.info(f"Source '{self.name}' changed on reload")
            self._notify(previous, current)
        return Result.success(dict(current))

    # ========== Lookup ==========

    def contains_key(self, key: str) -> bool:
        return self.get_value(key).is_some

    def get_value(self, key: str) -> Option[str]:
        with self._lock:
            if key in self._values:
                return Option.some(self._values[key])
            folded = key.casefold()
            for name, value in self._values.items():
                if name.casefold() == folded:
                    return Option.some(value)
        return Option.none()

    # ========== Change notification ==========

    def on_change(self, callback: ChangeCallback) -> Callable[[], None]:
        """Subscribe to changes; returns a function that unsubscribes."""
        if not callable(callback):
            raise TypeError("callback must be callable")
        with self._lock:
            self._callbacks.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return unsubscribe

    def _notify(self, previous: FlatMap, current: FlatMap) -> None:
        with self._lock:
            callbacks = list(self._callbacks)
        for callback in callbacks:
            try:
                callback(dict(previous), dict(current))
            except Exception as e:
                logger.error(f"Change callback for source '{self.name}' failed: {e}", exc_info=True)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r}, priority={self.priority})"

from typing import Mapping, Optional

from ..conversion import to_config_string
from ..result import Result
from .base import ConfigurationSource, FlatMap


class InMemorySource(ConfigurationSource):
    """Fixed key/value pairs, mostly for defaults and tests.

    ``set`` and ``remove`` change the backing map; call ``reload`` to publish
    the change to subscribers.
    """

    def __init__(self, values: Optional[Mapping[str, object]] = None, priority: int = 0, name: str = "InMemory"):
        super().__init__(name, priority)
        self._data: FlatMap = {k: to_config_string(v) for k, v in (values or {}).items()}

    @property
    def supports_hot_reload(self) -> bool:
        return True

    def set(self, key: str, value: object) -> "InMemorySource":
        if not key:
            raise ValueError("key must not be empty")
        self._data[key] = to_config_string(value)
        return self

    def remove(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def _load(self) -> Result[FlatMap]:
        return Result.success(dict(self._data))

import os
from typing import Mapping, Optional

from ..result import Result
from .base import ConfigurationSource, FlatMap


class EnvironmentSource(ConfigurationSource):
    """Process environment, copied once per load.

    With a ``prefix`` only matching variables are kept (compared
    case-insensitively) and the prefix is stripped, so ``APP_Database__Host``
    becomes ``Database__Host``. ``environ`` replaces ``os.environ``.
    """

    def __init__(
        self,
        priority: int = 100,
        prefix: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        super().__init__("Environment", priority)
        self.prefix = prefix
        self._environ = environ

    def _load(self) -> Result[FlatMap]:
        snapshot = dict(self._environ if self._environ is not None else os.environ)
        if not self.prefix:
            return Result.success(snapshot)

        folded = self.prefix.casefold()
        values: FlatMap = {}
        for key, value in snapshot.items():
            if key.casefold().startswith(folded) and len(key) > len(self.prefix):
                values[key[len(self.prefix):]] = value
        return Result.success(values)

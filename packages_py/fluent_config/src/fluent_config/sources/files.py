"""
File-backed sources: JSON, YAML and dotenv.
"""
import io
import json
import logging
import os
from abc import abstractmethod
from typing import Any, Union

import yaml
from dotenv import dotenv_values

from ..keys import flatten_document
from ..result import Result
from .base import ConfigurationSource, FlatMap

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


class FileSource(ConfigurationSource):
    """Reads one file per load. Subclasses turn its text into a flat map."""

    kind = "file"
    label = "File"

    def __init__(self, path: PathLike, priority: int = 50, optional: bool = False, encoding: str = "utf-8"):
        self.path = os.fspath(path)
        self.optional = optional
        self.encoding = encoding
        super().__init__(f"{self.label}({os.path.basename(self.path)})", priority)

    @abstractmethod
    def _parse(self, text: str) -> FlatMap:
        """Convert file contents to a flat map; raise on malformed input."""
        pass

    def _load(self) -> Result[FlatMap]:
        if not os.path.isfile(self.path):
            if self.optional:
                logger.debug(f"Optional {self.kind} configuration file '{self.path}' not found")
                return Result.success({})
            return Result.failure(f"Required {self.kind} configuration file '{self.path}' was not found")

        try:
            with open(self.path, "r", encoding=self.encoding) as f:
                text = f.read()
        except (OSError, UnicodeDecodeError) as e:
            return Result.failure(f"Failed to read {self.kind} configuration file '{self.path}': {e}")

        if not text.strip():
            return Result.success({})

        try:
            return Result.success(self._parse(text))
        except (ValueError, yaml.YAMLError) as e:
            return Result.failure(f"Failed to parse {self.kind} configuration file '{self.path}': {e}")


def _flatten_root(document: Any, kind: str) -> FlatMap:
    if document is None:
        return {}
    if not isinstance(document, dict):
        raise ValueError(f"top-level {kind} value must be an object, got {type(document).__name__}")
    return flatten_document(document)


class JsonFileSource(FileSource):
    kind = "JSON"
    label = "JsonFile"

    def _parse(self, text: str) -> FlatMap:
        return _flatten_root(json.loads(text), self.kind)


class YamlFileSource(FileSource):
    kind = "YAML"
    label = "YamlFile"

    def _parse(self, text: str) -> FlatMap:
        return _flatten_root(yaml.safe_load(text), self.kind)


class DotEnvFileSource(FileSource):
    """``KEY=value`` lines; keys are used as-is, so use ``__`` or ``:`` for nesting."""

    kind = "dotenv"
    label = "DotEnvFile"

    def __init__(self, path: PathLike, priority: int = 75, optional: bool = False, encoding: str = "utf-8"):
        super().__init__(path, priority, optional, encoding)

    def _parse(self, text: str) -> FlatMap:
        parsed = dotenv_values(stream=io.StringIO(text))
        # a bare KEY line has no value
        return {key: ("" if value is None else value) for key, value in parsed.items()}

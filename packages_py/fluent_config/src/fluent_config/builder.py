"""
Configuration builder: sources -> merged flat map -> typed object.

Pipeline order:
    1. load every source (descending priority, registration order on ties)
    2. stop if any source failed, reporting every source error
    3. required keys
    4. defaults for absent optional keys
    5. transformations, in order, stopping at the first failure
    6. validations, all of them
"""
import asyncio
import logging
from collections.abc import Mapping as MappingABC
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Type, TypeVar, Union

from .binder import bind
from .conversion import to_config_string
from .document import bind_document
from .domain import BindingOptions, SecretStoreOptions
from .result import Result
from .sensitive import mask_value
from .sources import (
    ConfigurationSource,
    DotEnvFileSource,
    EnvironmentSource,
    InMemorySource,
    JsonFileSource,
    SecretClient,
    SecretStoreSource,
    YamlFileSource,
)
from .sources.base import FlatMap

logger = logging.getLogger(__name__)

T = TypeVar("T")

Transformation = Callable[[FlatMap], Union[Result[FlatMap], FlatMap]]
KeyTransformation = Callable[[str], Union[Result[str], str]]
Validation = Callable[[FlatMap], Union[Result[Any], Optional[str]]]
KeyValidation = Callable[[str], Union[Result[Any], Optional[str]]]


def _require_key(key: str) -> None:
    if not key:
        raise ValueError("key must not be empty")


def _require_callable(fn: Any, name: str) -> None:
    if not callable(fn):
        raise TypeError(f"{name} must be callable")


def _as_result(outcome: Any) -> Result[Any]:
    """Normalize a validator return: None/Result/str."""
    if isinstance(outcome, Result):
        return outcome
    if outcome is None:
        return Result.success(None)
    return Result.failure(str(outcome))


def timeout_error(source: ConfigurationSource, timeout: float) -> str:
    return f"Configuration source '{source.name}' timed out after {timeout:g} seconds"


class ConfigurationBuilder:
    """Fluent assembly of a configuration pipeline.

    Example:
        result = (
            ConfigurationBuilder()
            .from_environment()
            .from_json_file("appsettings.json", optional=True)
            .required("Api:BaseUrl")
            .optional("Api:Timeout", 30)
            .build_as(ApiSettings, section="Api")
        )
    """

    def __init__(self) -> None:
        self._sources: List[ConfigurationSource] = []
        self._required: List[str] = []
        self._defaults: Dict[str, str] = {}
        self._transformations: List[Transformation] = []
        self._validations: List[Validation] = []

    # ========== Sources ==========

    def add_source(self, source: ConfigurationSource) -> "ConfigurationBuilder":
        if not isinstance(source, ConfigurationSource):
            raise TypeError("source must be a ConfigurationSource")
        self._sources.append(source)
        return self

    def from_environment(
        self,
        priority: int = 100,
        prefix: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "ConfigurationBuilder":
        return self.add_source(EnvironmentSource(priority=priority, prefix=prefix, environ=environ))

    def from_json_file(self, path: str, priority: int = 50, optional: bool = False) -> "ConfigurationBuilder":
        return self.add_source(JsonFileSource(path, priority=priority, optional=optional))

    def from_yaml_file(self, path: str, priority: int = 50, optional: bool = False) -> "ConfigurationBuilder":
        return self.add_source(YamlFileSource(path, priority=priority, optional=optional))

    def from_dotenv_file(self, path: str, priority: int = 75, optional: bool = False) -> "ConfigurationBuilder":
        return self.add_source(DotEnvFileSource(path, priority=priority, optional=optional))

    def from_in_memory(self, values: Mapping[str, Any], priority: int = 0) -> "ConfigurationBuilder":
        return self.add_source(InMemorySource(values, priority=priority))

    def from_secret_store(
        self,
        client: SecretClient,
        options: Optional[SecretStoreOptions] = None,
        priority: int = 200,
    ) -> "ConfigurationBuilder":
        return self.add_source(SecretStoreSource(client, options, priority=priority))

    @property
    def sources(self) -> List[ConfigurationSource]:
        return list(self._sources)

    # ========== Key contracts ==========

    def required(self, *keys: str) -> "ConfigurationBuilder":
        if not keys:
            raise ValueError("at least one key is required")
        for key in keys:
            _require_key(key)
            if key not in self._required:
                self._required.append(key)
        return self

    def optional(self, key: str, default: Any) -> "ConfigurationBuilder":
        """Insert ``default`` into the merged map when no source provides ``key``."""
        _require_key(key)
        self._defaults[key] = to_config_string(default)
        return self

    # ========== Stages ==========

    def transform(self, transformation: Transformation) -> "ConfigurationBuilder":
        """Whole-map transformation returning a new map (or a Result of one)."""
        _require_callable(transformation, "transformation")
        self._transformations.append(transformation)
        return self

    def transform_key(self, key: str, transformation: KeyTransformation) -> "ConfigurationBuilder":
        """Transform one value; an absent key is left alone."""
        _require_key(key)
        _require_callable(transformation, "transformation")

        def apply(config: FlatMap) -> Result[FlatMap]:
            if key not in config:
                return Result.success(config)
            outcome = transformation(config[key])
            result = outcome if isinstance(outcome, Result) else Result.success(outcome)
            return result.map(lambda value: {**config, key: str(value)})

        self._transformations.append(apply)
        return self

    def validate(self, validation: Validation) -> "ConfigurationBuilder":
        """Whole-map check returning None or an error message (or a Result)."""
        _require_callable(validation, "validation")
        self._validations.append(validation)
        return self

    def validate_key(self, key: str, validation: KeyValidation) -> "ConfigurationBuilder":
        """Check one value; an absent key passes."""
        _require_key(key)
        _require_callable(validation, "validation")

        def check(config: FlatMap) -> Result[Any]:
            if key not in config:
                return Result.success(None)
            return _as_result(validation(config[key]))

        self._validations.append(check)
        return self

    # ========== Build ==========

    def _ordered_sources(self) -> List[ConfigurationSource]:
        # sorted() is stable, so equal priorities keep registration order
        return sorted(self._sources, key=lambda s: s.priority, reverse=True)

    def build(self) -> Result[FlatMap]:
        loaded = [(source, self._load_source(source)) for source in self._ordered_sources()]
        return self._run_pipeline(loaded)

    async def build_async(self, source_timeout: Optional[float] = None) -> Result[FlatMap]:
        """Load all sources concurrently, then run the pipeline.

        Each source load runs in a worker thread; one that exceeds
        ``source_timeout`` counts as a failed source.
        """
        ordered = self._ordered_sources()
        results = await asyncio.gather(*(self._load_source_async(s, source_timeout) for s in ordered))
        return self._run_pipeline(list(zip(ordered, results)))

    def build_as(
        self,
        target: Type[T],
        options: Optional[BindingOptions] = None,
        section: Optional[str] = None,
        use_document: bool = False,
    ) -> Result[T]:
        binder = bind_document if use_document else bind
        return self.build().bind(lambda config: binder(config, target, options, section))

    async def build_as_async(
        self,
        target: Type[T],
        options: Optional[BindingOptions] = None,
        section: Optional[str] = None,
        source_timeout: Optional[float] = None,
        use_document: bool = False,
    ) -> Result[T]:
        binder = bind_document if use_document else bind
        config = await self.build_async(source_timeout)
        return config.bind(lambda flat: binder(flat, target, options, section))

    # ========== Internals ==========

    def _load_source(self, source: ConfigurationSource) -> Result[FlatMap]:
        logger.debug(f"Loading source '{source.name}' (priority {source.priority})")
        return source.load()

    async def _load_source_async(self, source: ConfigurationSource, timeout: Optional[float]) -> Result[FlatMap]:
        logger.debug(f"Loading source '{source.name}' (priority {source.priority})")
        try:
            return await asyncio.wait_for(asyncio.to_thread(source.load), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Source '{source.name}' timed out after {timeout} seconds")
            return Result.failure(timeout_error(source, timeout))

    def _run_pipeline(self, loaded: List[Tuple[ConfigurationSource, Result[FlatMap]]]) -> Result[FlatMap]:
        config: FlatMap = {}
        errors: List[str] = []

        for source, result in loaded:
            if result.is_failure:
                errors.extend(result.errors)
                continue
            for key, value in result.unwrap().items():
                if key not in config:
                    config[key] = value

        if errors:
            # source failures end the build before key contracts are checked
            logger.warning(f"Configuration build failed: {len(errors)} source error(s)")
            return Result.failure(errors)

        for key in self._required:
            if key not in config:
                errors.append(f"Required key '{key}' was not found")

        for key, default in self._defaults.items():
            if key not in config:
                logger.debug(f"Using default for '{key}': {mask_value(key, default)}")
                config[key] = default

        for transformation in self._transformations:
            outcome = transformation(dict(config))
            if isinstance(outcome, Result):
                result = outcome
            elif isinstance(outcome, MappingABC):
                result = Result.success(outcome)
            else:
                raise TypeError("transformation must return a mapping or a Result")
            if result.is_failure:
                errors.extend(result.errors)
                break
            config = {str(k): str(v) for k, v in result.unwrap().items()}

        for validation in self._validations:
            result = _as_result(validation(dict(config)))
            if result.is_failure:
                errors.extend(result.errors)

        if errors:
            logger.warning(f"Configuration build failed with {len(errors)} error(s)")
            return Result.failure(errors)

        logger.info(f"Configuration built from {len(loaded)} source(s): {len(config)} key(s)")
        return Result.success(config)

from .result import Result
from .option import Option
from .domain import BindingOptions, CacheStatistics, SecretStoreOptions, SourceState, default_key_mapper
from .validators import (
    FluentConfigError,
    OptionAccessError,
    ResultAccessError,
    SourceLoadError,
    UnsupportedShapeError,
)
from .keys import (
    FlatKeyIndex,
    KeyPath,
    Segment,
    SegmentKind,
    flatten_document,
    format_key,
    parse_key,
    to_document,
)
from .conversion import register_converter, to_config_string, unregister_converter
from .constraints import (
    Constraint,
    ConstraintTable,
    Email,
    Length,
    Pattern,
    Predicate,
    Range,
    Required,
    Url,
)
from .descriptors import ConfigKey, ShapeKind, TypeDescriptor, describe
from .binder import bind, bind_dict, bind_list, bind_to_instance
from .document import bind_document
from .accessors import get_optional, get_or_default, get_required, validate_key
from .sources import (
    ConfigurationSource,
    DotEnvFileSource,
    EnvironmentSource,
    HttpSecretClient,
    InMemorySource,
    JsonFileSource,
    SecretCache,
    SecretClient,
    SecretStoreSource,
    YamlFileSource,
)
from .builder import ConfigurationBuilder
from .sensitive import mask_value, set_log_mask

__all__ = [
    "Result",
    "Option",
    "BindingOptions",
    "CacheStatistics",
    "SecretStoreOptions",
    "SourceState",
    "default_key_mapper",
    "FluentConfigError",
    "OptionAccessError",
    "ResultAccessError",
    "SourceLoadError",
    "UnsupportedShapeError",
    "FlatKeyIndex",
    "KeyPath",
    "Segment",
    "SegmentKind",
    "flatten_document",
    "format_key",
    "parse_key",
    "to_document",
    "register_converter",
    "unregister_converter",
    "to_config_string",
    "Constraint",
    "ConstraintTable",
    "Email",
    "Length",
    "Pattern",
    "Predicate",
    "Range",
    "Required",
    "Url",
    "ConfigKey",
    "ShapeKind",
    "TypeDescriptor",
    "describe",
    "bind",
    "bind_dict",
    "bind_list",
    "bind_to_instance",
    "bind_document",
    "get_optional",
    "get_or_default",
    "get_required",
    "validate_key",
    "ConfigurationSource",
    "DotEnvFileSource",
    "EnvironmentSource",
    "HttpSecretClient",
    "InMemorySource",
    "JsonFileSource",
    "SecretCache",
    "SecretClient",
    "SecretStoreSource",
    "YamlFileSource",
    "ConfigurationBuilder",
    "mask_value",
    "set_log_mask",
]

"""
Configuration sources.
"""
from .base import ChangeCallback, ConfigurationSource, FlatMap
from .environment import EnvironmentSource
from .files import DotEnvFileSource, FileSource, JsonFileSource, YamlFileSource
from .http_secret_client import HttpSecretClient
from .in_memory import InMemorySource
from .secret_store import SecretCache, SecretClient, SecretStoreSource

__all__ = [
    "ChangeCallback",
    "ConfigurationSource",
    "FlatMap",
    "EnvironmentSource",
    "FileSource",
    "JsonFileSource",
    "YamlFileSource",
    "DotEnvFileSource",
    "InMemorySource",
    "SecretClient",
    "SecretCache",
    "SecretStoreSource",
    "HttpSecretClient",
]

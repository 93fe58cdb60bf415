"""
Sensitive value detection and masking for log output.
"""
import os
import re
from typing import Any

SENSITIVE_KEY_PATTERNS = [
    re.compile(r'SECRET', re.IGNORECASE),
    re.compile(r'PASSWORD', re.IGNORECASE),
    re.compile(r'PASSWD', re.IGNORECASE),
    re.compile(r'TOKEN', re.IGNORECASE),
    re.compile(r'CREDENTIAL', re.IGNORECASE),
    re.compile(r'CONNECTION_?STRING', re.IGNORECASE),
    re.compile(r'API_?KEY', re.IGNORECASE),
    re.compile(r'PRIVATE', re.IGNORECASE),
]

SENSITIVE_VALUE_PREFIXES = [
    'sk-', 'pk-', 'Bearer ', 'Basic ', 'eyJ'
]

REDACTED = '[REDACTED]'

_log_mask = os.getenv('FLUENT_CONFIG_LOG_MASK', '').lower() != 'false'


def set_log_mask(enabled: bool) -> None:
    global _log_mask
    _log_mask = enabled


def is_sensitive_key(key: str) -> bool:
    return any(p.search(key) for p in SENSITIVE_KEY_PATTERNS)


def is_sensitive_value(value: str) -> bool:
    if not value:
        return False
    return any(value.startswith(p) for p in SENSITIVE_VALUE_PREFIXES)


def mask_value(key: str, value: Any, force: bool = False) -> str:
    """Return ``value`` as text, or a placeholder when it looks like a secret.

    ``force`` masks regardless of key or value, used for values that came from
    a secret store.
    """
    val_str = str(value)
    if not _log_mask or not val_str:
        return val_str

    if force or is_sensitive_key(key) or is_sensitive_value(val_str):
        return REDACTED

    return val_str

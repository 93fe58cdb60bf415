"""Custom exceptions.

Expected configuration problems (missing keys, bad values, failed checks) are
reported as ``Result`` failures. The exceptions below cover misuse and the
conditions where no partial result makes sense.
"""


class FluentConfigError(Exception):
    """Base class for library exceptions."""
    pass


class ResultAccessError(FluentConfigError):
    """Raised when unwrapping the wrong variant of a Result."""
    pass


class OptionAccessError(FluentConfigError):
    """Raised when unwrapping an empty Option."""
    pass


class UnsupportedShapeError(FluentConfigError):
    """Raised when the binder has no strategy for a target type."""

    def __init__(self, target: object, path: str = "", reason: str = ""):
        self.target = target
        self.path = path
        name = getattr(target, "__name__", None) or repr(target)
        where = f" at '{path}'" if path else ""
        detail = f": {reason}" if reason else ""
        super().__init__(f"Cannot bind configuration to type {name}{where}{detail}")


class SourceLoadError(FluentConfigError):
    """Raised by transport adapters; sources turn it into a failed load."""
    pass

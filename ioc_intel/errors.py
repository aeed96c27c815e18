from __future__ import annotations


class IOCIntelError(Exception):
    """Base class for errors raised by ioc_intel."""


class ConfigError(IOCIntelError):
    """The application config file is unreadable or holds a bad value."""


class StorageError(IOCIntelError):
    """A storage area could not be read or written."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class StateLoadError(IOCIntelError):
    """Raised when a state loader returns something that is not a mapping."""

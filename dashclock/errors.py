from __future__ import annotations


class DashclockError(Exception):
    pass


class FatalError(DashclockError):
    """Unrecoverable condition; the process releases the terminal and exits."""


class ConfigError(FatalError, ValueError):
    pass


class DisplayError(FatalError):
    pass


class BackendClientError(FatalError):
    pass


class UnsupportedResultError(FatalError):
    pass

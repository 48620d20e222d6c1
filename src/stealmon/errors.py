"""Exceptions raised by stealmon."""


class StealmonError(Exception):
    """Base class for stealmon errors."""


class ConfigError(StealmonError):
    """Invalid configuration value."""


class UnavailableError(StealmonError):
    """The kernel counter interface could not be read."""

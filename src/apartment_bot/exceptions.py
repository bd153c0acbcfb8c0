"""Exception types raised by the apartment bot."""


class ApartmentBotError(Exception):
    """Base class for all apartment bot errors."""


class ConfigError(ApartmentBotError, ValueError):
    """Configuration is missing or invalid. Fatal at startup."""


class SessionError(ApartmentBotError):
    """A portal session could not be obtained or refreshed."""


class ApplicationError(ApartmentBotError):
    """A rental application could not be submitted."""

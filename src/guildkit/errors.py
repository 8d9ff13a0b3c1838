from __future__ import annotations


class GuildKitError(Exception):
    """Base class for errors raised by guildkit modules."""


class ConfigurationError(GuildKitError):
    """Module configuration is missing or invalid. Fatal for the module."""


class PatternCompileError(GuildKitError):
    """A configured pattern could not be compiled."""

    def __init__(self, pattern: str, cause: Exception) -> None:
        super().__init__(f"Invalid pattern {pattern!r}: {cause}")
        self.pattern = pattern
        self.cause = cause


class NotificationDeliveryError(GuildKitError):
    """A warning could not be delivered to the user."""


class OperationOnUninitialized(GuildKitError):
    """A store operation was called before init()."""


class ProfileFetchError(GuildKitError):
    """External profile API returned an unexpected response."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class HousesFetchError(ProfileFetchError):
    pass


class GuildsFetchError(ProfileFetchError):
    pass

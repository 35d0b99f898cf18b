"""Exception hierarchy for SpotiBot."""

from __future__ import annotations


class SpotibotError(Exception):
    """Base class for all SpotiBot errors."""


class RegistryError(SpotibotError):
    """Raised when an action definition cannot be registered."""


class DuplicateNameError(RegistryError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Action '{name}' is already registered")
        self.name = name


class InvalidCategoryError(RegistryError):
    def __init__(self, category: str) -> None:
        super().__init__(f"Invalid category '{category}'")
        self.category = category


class AuthRequiredError(SpotibotError):
    """The context lacks usable Spotify credentials."""

    def __init__(self, message: str = "Spotify authentication required") -> None:
        super().__init__(message)


class NoAssistantMessageError(SpotibotError):
    """Tool calls/results can only attach to the latest assistant message."""


class ContextValidationError(SpotibotError):
    """An imported context snapshot did not match the schema."""


class SpotifyAPIError(SpotibotError):
    """Non-2xx response from the Spotify Web API."""

    def __init__(self, status: int, message: str, retry_after: int | None = None) -> None:
        super().__init__(f"Spotify API error {status}: {message}")
        self.status = status
        self.message = message
        self.retry_after = retry_after


class SpotifyAuthError(SpotibotError):
    """The OAuth authorization-code login did not produce a code."""

"""Error taxonomy shared by the quote pipeline."""
from __future__ import annotations

from typing import Optional, Sequence


class QuoteAgentError(Exception):
    """Base class for every error raised by :mod:`quote_core`."""

    kind = "error"


class MalformedInputError(QuoteAgentError, ValueError):
    """User input was rejected before any remote interaction took place."""

    kind = "malformed-input"


class ResolutionError(QuoteAgentError, LookupError):
    """A human supplied value could not be matched against the catalog."""

    kind = "resolution"

    def __init__(self, field: str, query: str, available: Sequence[str] = ()) -> None:
        self.field = field
        self.query = query
        self.available = list(available)
        message = f"{field.capitalize()} {query!r} not found in catalog"
        if self.available:
            message += f". Available: {', '.join(self.available)}"
        super().__init__(message)


class RemoteInteractionError(QuoteAgentError, RuntimeError):
    """The remote site did not behave as expected (missing element, timeout, HTTP error)."""

    kind = "remote-interaction"

    def __init__(self, message: str, screenshot_path: Optional[str] = None) -> None:
        super().__init__(message)
        self.screenshot_path = screenshot_path


class CatalogUnavailableError(QuoteAgentError):
    """No catalog has been built yet."""

    kind = "catalog-unavailable"


__all__ = [
    "CatalogUnavailableError",
    "MalformedInputError",
    "QuoteAgentError",
    "RemoteInteractionError",
    "ResolutionError",
]

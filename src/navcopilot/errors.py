"""
Error taxonomy for backend interaction.

These exceptions are raised inside backend clients and payload parsers and
caught at the public boundary of each engine component, where they degrade
to a fallback route or an empty result.
"""

from typing import Optional


class NavigationError(Exception):
    """Base class for navcopilot errors."""


class BackendUnavailable(NavigationError):
    """A backend could not be reached or answered with a non-success status."""

    def __init__(self, reason: str, status: Optional[str] = None):
        self.reason = reason
        self.status = status
        message = f"{status}: {reason}" if status else reason
        super().__init__(message)


class NoResult(BackendUnavailable):
    """The backend answered successfully but had nothing to return."""

    def __init__(self, reason: str = "No results", status: Optional[str] = "ZERO_RESULTS"):
        super().__init__(reason, status)


class MalformedResponse(NavigationError):
    """A single item in a backend payload could not be decoded."""


class StaleResponse(NavigationError):
    """A response arrived for a query that has since been superseded."""

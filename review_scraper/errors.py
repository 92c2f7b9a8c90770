"""Exception types raised by the extraction pipeline."""

from typing import Any, Optional


class ReviewScraperError(Exception):
    """Base class for pipeline failures."""


class NavigationError(ReviewScraperError):
    """The target page could not be loaded (DNS, connection, blocked)."""


class RenderTimeoutError(ReviewScraperError, TimeoutError):
    """The page did not load or become ready within the allowed time."""


class ExtractionServiceError(ReviewScraperError):
    """The vision model call failed.

    `payload` holds whatever the provider returned (status code, error
    body) in a JSON-serialisable form so it can be dumped for postmortem.
    """

    def __init__(self, message: str, payload: Optional[Any] = None):
        super().__init__(message)
        self.payload = payload

    def to_dict(self) -> dict:
        return {
            "type": type(self).__name__,
            "message": str(self),
            "payload": self.payload,
        }

from __future__ import annotations

from typing import Dict, List, Optional


class ReviewError(Exception):
    """Base for every failure the review handler reports to the client.

    `message` is the provider- or handler-level detail; `describe()` is the
    string placed in the `{"error": ...}` payload.
    """

    status_code: int = 500
    prefix: str = ""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def describe(self) -> str:
        if self.prefix:
            return f"{self.prefix}: {self.message}"
        return self.message


class ConfigurationError(ReviewError):
    status_code = 500


class ServiceUnavailable(ReviewError):
    """Model listing returned a non-success status (raised with that status)."""

    prefix = "Failed to fetch models"


class UpstreamError(ReviewError):
    """Content generation failed at the provider (or never reached it)."""

    status_code = 502
    prefix = "Gemini API error"


class NoCapableModel(ReviewError):
    status_code = 500


class MalformedResponse(ReviewError):
    status_code = 500


class SchemaMismatch(ReviewError):
    """A parsed review that does not fit the shape the results page renders."""

    def __init__(self, errors: List[Dict[str, str]]) -> None:
        self.errors = errors
        first = errors[0] if errors else {"path": "(root)", "message": "invalid"}
        super().__init__(f"{first['path']}: {first['message']}")

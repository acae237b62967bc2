"""Error taxonomy for Homebase.

ValidationError is raised before any write. CollaboratorError wraps failures
from the calendar API or the language model. AuthenticationError means the
caller identity or the Google provider token is missing or expired.
"""


class HomebaseError(Exception):
    """Base class for errors the HTTP layer knows how to render."""


class ValidationError(HomebaseError):
    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.message = message
        self.field = field


class CollaboratorError(HomebaseError):
    """A remote service (calendar, language model) failed."""

    user_message = "Something went wrong talking to an external service. Please try again."

    def __init__(self, service: str, message: str):
        super().__init__(f"{service}: {message}")
        self.service = service


class AuthenticationError(HomebaseError):
    pass

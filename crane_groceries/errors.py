"""Error taxonomy shared by the services and the HTTP layer.

Every error carries the HTTP status it maps to and a message that is safe
to show callers. Upstream details belong in the server log, not the message.
"""

from __future__ import annotations

from fastapi import status


class GroceriesError(RuntimeError):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    public_message: str = "An internal error occurred."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.public_message)
        if message is not None:
            self.public_message = message


class ValidationError(GroceriesError):
    """Malformed or missing caller input."""

    status_code = status.HTTP_400_BAD_REQUEST
    public_message = "Invalid request."


class UnauthorizedError(GroceriesError):
    status_code = status.HTTP_401_UNAUTHORIZED
    public_message = "Unauthorized"


class NotFoundError(GroceriesError):
    status_code = status.HTTP_404_NOT_FOUND
    public_message = "Not found."


class UpstreamError(GroceriesError):
    """An external collaborator failed; callers get the generic message."""

    def __init__(self, detail: str) -> None:
        super().__init__()
        self.detail = detail

    def __str__(self) -> str:
        return self.detail


class RowStoreError(UpstreamError):
    """The spreadsheet API could not be reached or rejected the call."""


class GenerativeServiceError(UpstreamError):
    """The text-generation service is unconfigured or returned unusable output."""

"""Exception types raised by the request helper."""

from __future__ import annotations


class ApiRequestError(Exception):
    """Base class for every error raised by this package."""


class TransportError(ApiRequestError):
    """The HTTP call itself failed (connection, DNS, protocol)."""

    def __init__(self, message: str, uri: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.uri = uri


class RequestTimeoutError(TransportError):
    """The request did not complete within its timeout."""


class DecodeError(ApiRequestError):
    """Response body is not a JSON object."""

    def __init__(self, message: str, uri: str | None = None, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.uri = uri
        self.status_code = status_code
        self.body = body[:200]


class ServiceException(ApiRequestError):
    """Non-success status classified into a machine-readable code.

    ``code`` is a slug such as ``not-found`` or, for unmapped statuses, the
    decimal status itself. ``display_message_key`` is an opaque localization
    key supplied by the server for user-facing messages.
    """

    def __init__(
        self,
        code: str,
        message: str | None = None,
        display_message_key: str | None = None,
        status_code: int | None = None,
        uri: str | None = None,
    ) -> None:
        super().__init__(message or code)
        self.code = code
        self.message = message
        self.display_message_key = display_message_key
        self.status_code = status_code
        self.uri = uri

    def __repr__(self) -> str:
        return (
            f"ServiceException(code={self.code!r}, message={self.message!r}, "
            f"display_message_key={self.display_message_key!r})"
        )


ClassifiedServiceError = ServiceException


class StatusStreamClosedError(ApiRequestError, RuntimeError):
    """Status published after the stream was closed."""

"""
Error types for the streaming pipeline, plus HTTP exception helpers for routes.

Usage:
    from chatstream.utils.exceptions import CancellationError, raise_bad_request

    raise CancellationError()
    raise_bad_request("Unknown model")
"""

from typing import NoReturn, Optional

from fastapi import HTTPException, status


class ChatStreamError(Exception):
    """Base class for errors that abort a chat call."""


class ConfigurationError(ChatStreamError):
    """Required credential or endpoint is missing. Raised before any network call."""


class TransportError(ChatStreamError):
    """Provider returned a non-success status or no response body."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CancellationError(ChatStreamError):
    """The caller aborted the request while the stream was being read."""

    def __init__(self, message: str = "Request aborted"):
        super().__init__(message)


class MalformedEventWarning(UserWarning):
    """A data line could not be parsed as an event. The frame is skipped."""


class TrailingContentWarning(UserWarning):
    """Content arrived after the structured block was closed. The text is dropped."""


def raise_bad_request(detail: str) -> NoReturn:
    """Raise HTTP 400 Bad Request."""
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=detail,
    )


def raise_service_unavailable(detail: str) -> NoReturn:
    """Raise HTTP 503 Service Unavailable."""
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=detail,
    )

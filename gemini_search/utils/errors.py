"""Typed failures raised by the search core."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class WebSearchError(Exception):
    """Base class for every failure the search core reports."""


class AuthErrorKind(str, Enum):
    NO_CREDENTIALS = "no_credentials"
    CSRF_MISMATCH = "csrf_mismatch"
    AUTHORIZATION_DENIED = "authorization_denied"
    TOKEN_EXCHANGE_FAILED = "token_exchange_failed"
    CALLBACK_TIMEOUT = "callback_timeout"


class AuthError(WebSearchError):
    def __init__(self, kind: AuthErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind


class ProjectSetupErrorKind(str, Enum):
    NO_PROJECT_AVAILABLE = "no_project_available"
    ONBOARDING_FAILED = "onboarding_failed"


class ProjectSetupError(WebSearchError):
    def __init__(self, kind: ProjectSetupErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind


class ApiError(WebSearchError):
    """Non-2xx response, or a request that never produced a response.

    ``status_code`` is None when the transport itself failed.
    """

    def __init__(self, status_code: Optional[int], body: str, url: str = "") -> None:
        self.status_code = status_code
        self.body = body
        self.url = url
        status = status_code if status_code is not None else "transport error"
        super().__init__(f"{url or 'request'} failed: {status} - {body}")


class ResponseFormatError(ApiError):
    """Response body is not JSON, or not the shape the caller expects."""

    def __init__(self, message: str, url: str = "", status_code: Optional[int] = None) -> None:
        super().__init__(status_code, message, url)


class EmptyQueryError(WebSearchError):
    def __init__(self) -> None:
        super().__init__("The query parameter cannot be empty.")


class EmptyResultError(WebSearchError):
    def __init__(self, query: str) -> None:
        super().__init__(f'No search results or information found for query: "{query}"')
        self.query = query


__all__ = [
    "ApiError",
    "AuthError",
    "AuthErrorKind",
    "EmptyQueryError",
    "EmptyResultError",
    "ProjectSetupError",
    "ProjectSetupErrorKind",
    "ResponseFormatError",
    "WebSearchError",
]

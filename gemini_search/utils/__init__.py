"""Shared utilities for gemini_search."""

from .env_parser import load_env_file
from .errors import (
    ApiError,
    AuthError,
    AuthErrorKind,
    EmptyQueryError,
    EmptyResultError,
    ProjectSetupError,
    ProjectSetupErrorKind,
    ResponseFormatError,
    WebSearchError,
)

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
    "load_env_file",
]

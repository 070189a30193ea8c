"""Tool layer for gemini_search."""

from .search import create_server, describe_error, perform_search

__all__ = ["create_server", "describe_error", "perform_search"]

"""Authentication for the API-key and OAuth (Code Assist) transports."""

from .credentials import Credentials, CredentialStore
from .loopback import FlowState, LoopbackAuthFlow
from .oauth_client import OAuthClient
from .project import ProjectResolver

__all__ = [
    "CredentialStore",
    "Credentials",
    "FlowState",
    "LoopbackAuthFlow",
    "OAuthClient",
    "ProjectResolver",
]

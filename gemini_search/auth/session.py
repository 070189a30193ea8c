"""Per-process search session that owns the selected transport."""

from __future__ import annotations

import logging
import threading
from typing import Optional

from ..grounding.backends import CodeAssistBackend, GeminiApiBackend, SearchBackend
from ..grounding.models import SearchResult
from ..utils.config import AppConfig
from ..utils.errors import AuthError, AuthErrorKind, EmptyQueryError, EmptyResultError
from ..utils.http import HttpClient
from .credentials import CredentialStore
from .oauth_client import login_from_config
from .project import ProjectResolver

logger = logging.getLogger(__name__)


class AuthSession:
    """Runs searches through whichever transport the config selects.

    The transport is chosen on the first search and kept for the rest of
    the process; the session is never rebuilt mid-call.
    """

    def __init__(
        self,
        cfg: AppConfig,
        *,
        http: Optional[HttpClient] = None,
        store: Optional[CredentialStore] = None,
    ) -> None:
        self.cfg = cfg
        self.http = http or HttpClient.from_config(cfg)
        self.store = store or CredentialStore(cfg.credentials_path, self.http)
        self._backend: Optional[SearchBackend] = None
        self._init_lock = threading.Lock()

    @property
    def backend(self) -> Optional[SearchBackend]:
        return self._backend

    @property
    def transport(self) -> Optional[str]:
        return self._backend.label if self._backend else None

    def _build_backend(self) -> SearchBackend:
        cfg = self.cfg
        if cfg.use_oauth:
            logger.info("Using OAuth authentication with Code Assist API...")
            oauth = login_from_config(cfg, self.http, self.store)
            logger.info("OAuth authentication successful")
            project_id = ProjectResolver(
                oauth,
                self.http,
                explicit_project_id=cfg.project_id,
                config_path=cfg.project_config_path,
            ).resolve()
            return CodeAssistBackend(oauth, project_id, self.http, cfg.model)
        if cfg.api_key:
            logger.info("Using API key authentication with Gemini API...")
            return GeminiApiBackend(cfg.api_key, self.http, cfg.model)
        raise AuthError(
            AuthErrorKind.NO_CREDENTIALS,
            "Authentication required. Either set GOOGLE_API_KEY/GEMINI_API_KEY "
            "or set USE_OAUTH=true to use Google login.",
        )

    def _ensure_backend(self) -> SearchBackend:
        with self._init_lock:
            if self._backend is None:
                self._backend = self._build_backend()
            return self._backend

    def search(self, query: str) -> SearchResult:
        if not query or not query.strip():
            raise EmptyQueryError()
        backend = self._ensure_backend()
        result = backend.search(query)
        if not result.text.strip():
            raise EmptyResultError(query)
        logger.info(
            "Search completed using %s: sources=%s supports=%s",
            backend.label,
            len(result.chunks),
            len(result.supports),
        )
        return result


__all__ = ["AuthSession"]

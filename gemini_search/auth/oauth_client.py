"""Google OAuth2 client for the Code Assist transport."""

from __future__ import annotations

import logging
import sys
import threading
import webbrowser
from typing import Optional, Sequence
from urllib.parse import urlencode

from ..utils.config import AppConfig
from ..utils.errors import ApiError, AuthError, AuthErrorKind
from ..utils.http import HttpClient, json_or_raise
from .credentials import Credentials, CredentialStore
from .loopback import LoopbackAuthFlow

logger = logging.getLogger(__name__)

AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"

OAUTH_SCOPES = (
    "https://www.googleapis.com/auth/generative-language.retriever",
    "https://www.googleapis.com/auth/cloud-platform",
)


class OAuthClient:
    """Holds the current credentials and keeps the access token fresh."""

    def __init__(
        self,
        client_id: Optional[str],
        client_secret: Optional[str],
        store: CredentialStore,
        http: HttpClient,
        *,
        scopes: Sequence[str] = OAUTH_SCOPES,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.store = store
        self.http = http
        self.scopes = tuple(scopes)
        self.credentials: Optional[Credentials] = None
        self._lock = threading.Lock()

    def _require_client(self) -> tuple[str, str]:
        if not self.client_id or not self.client_secret:
            raise AuthError(
                AuthErrorKind.NO_CREDENTIALS,
                "OAUTH_CLIENT_ID and OAUTH_CLIENT_SECRET must be set to sign in with Google",
            )
        return self.client_id, self.client_secret

    def authorization_url(self, redirect_uri: str, state: str) -> str:
        client_id, _ = self._require_client()
        params = {
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.scopes),
            "state": state,
            "access_type": "offline",
        }
        return f"{AUTH_URL}?{urlencode(params)}"

    def _token_request(self, form: dict[str, str], previous: Optional[Credentials] = None) -> Credentials:
        try:
            response = self.http.post(TOKEN_URL, data=form)
            payload = json_or_raise(response, TOKEN_URL)
            return Credentials.from_token_response(payload, previous=previous)
        except (ApiError, ValueError) as e:
            raise AuthError(AuthErrorKind.TOKEN_EXCHANGE_FAILED, f"Token request failed: {e}") from e

    def exchange_code(self, code: str, redirect_uri: str) -> Credentials:
        client_id, client_secret = self._require_client()
        creds = self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
                "client_id": client_id,
                "client_secret": client_secret,
            }
        )
        self.credentials = creds
        return creds

    def refresh(self, creds: Credentials) -> Credentials:
        client_id, client_secret = self._require_client()
        if not creds.refresh_token:
            raise AuthError(AuthErrorKind.NO_CREDENTIALS, "Access token expired and no refresh token is stored")
        refreshed = self._token_request(
            {
                "grant_type": "refresh_token",
                "refresh_token": creds.refresh_token,
                "client_id": client_id,
                "client_secret": client_secret,
            },
            previous=creds,
        )
        self.store.save(refreshed)
        self.credentials = refreshed
        logger.info("Refreshed OAuth access token")
        return refreshed

    def access_token(self) -> str:
        with self._lock:
            creds = self.credentials
            if creds is None:
                raise AuthError(AuthErrorKind.NO_CREDENTIALS, "Not signed in")
            if creds.is_expired():
                creds = self.refresh(creds)
            return creds.access_token

    def auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token()}"}

    def _use_cached(self) -> bool:
        creds = self.store.load()
        if creds is None:
            return False
        if creds.is_expired():
            if not creds.refresh_token:
                return False
            try:
                creds = self.refresh(creds)
            except AuthError as e:
                logger.info("Cached credentials could not be refreshed: %s", e)
                return False
        if not self.store.validate(creds):
            return False
        self.credentials = creds
        return True

    def login(self, *, callback_timeout_s: Optional[float] = None, open_browser: bool = True) -> "OAuthClient":
        """Sign in from the cache when possible, otherwise through the browser.

        Only one browser login may run at a time in a process.
        """

        if self._use_cached():
            logger.info("Using cached OAuth credentials from %s", self.store.path)
            return self

        self._require_client()
        flow = LoopbackAuthFlow(self, self.store, timeout_s=callback_timeout_s)
        auth_url = flow.start()
        print(
            "\n\nGoogle login required for Gemini Web Search.\n"
            "Attempting to open authentication page in your browser.\n"
            f"Otherwise navigate to:\n\n{auth_url}\n\n",
            file=sys.stderr,
        )
        if open_browser:
            try:
                webbrowser.open(auth_url)
            except webbrowser.Error as e:
                logger.warning("Could not open a browser: %s", e)
        print("Waiting for authentication...", file=sys.stderr)

        self.credentials = flow.wait()
        print("Authentication successful!", file=sys.stderr)
        return self


def login_from_config(cfg: AppConfig, http: HttpClient, store: Optional[CredentialStore] = None) -> OAuthClient:
    client = OAuthClient(
        cfg.oauth_client_id,
        cfg.oauth_client_secret,
        store or CredentialStore(cfg.credentials_path, http),
        http,
    )
    return client.login(
        callback_timeout_s=cfg.oauth_callback_timeout_s,
        open_browser=cfg.open_browser,
    )


__all__ = ["AUTH_URL", "OAUTH_SCOPES", "OAuthClient", "TOKEN_URL", "login_from_config"]

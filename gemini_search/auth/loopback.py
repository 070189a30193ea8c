"""One-shot local HTTP listener completing an OAuth authorization-code login.

The flow moves INIT -> LISTENING -> (CALLBACK_OK | CALLBACK_ERROR |
STATE_MISMATCH) -> CLOSED. Exactly one callback request is serviced; the
listener is closed on every exit path, including timeouts and errors
raised while waiting.
"""

from __future__ import annotations

import logging
import secrets
import time
from concurrent.futures import Future
from enum import Enum
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import TYPE_CHECKING, Optional
from urllib.parse import parse_qs, urlsplit

from ..utils.errors import AuthError, AuthErrorKind
from .credentials import Credentials, CredentialStore

if TYPE_CHECKING:
    from .oauth_client import OAuthClient

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/oauth2callback"
SIGN_IN_SUCCESS_URL = "https://developers.google.com/gemini-code-assist/auth_success_gemini"
SIGN_IN_FAILURE_URL = "https://developers.google.com/gemini-code-assist/auth_failure_gemini"

_Reply = tuple[int, dict[str, str], bytes]


class FlowState(str, Enum):
    INIT = "init"
    LISTENING = "listening"
    CALLBACK_OK = "callback_ok"
    CALLBACK_ERROR = "callback_error"
    STATE_MISMATCH = "state_mismatch"
    CLOSED = "closed"


def _redirect(location: str) -> _Reply:
    return 301, {"Location": location}, b""


def _first(query: dict[str, list[str]], key: str) -> Optional[str]:
    values = query.get(key)
    return values[0] if values else None


class _CallbackHandler(BaseHTTPRequestHandler):
    # A client that connects and stalls must not hold the listener forever.
    timeout = 10

    def _reply(self) -> None:
        status, headers, body = self.server.flow.handle_callback(self.path)  # type: ignore[attr-defined]
        self.send_response(status)
        for key, value in headers.items():
            self.send_header(key, value)
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Connection", "close")
        self.end_headers()
        if body:
            self.wfile.write(body)

    do_GET = _reply

    def log_message(self, format: str, *args) -> None:  # noqa: A002
        logger.debug("callback listener: " + format, *args)


class _CallbackServer(HTTPServer):
    def __init__(self, flow: "LoopbackAuthFlow") -> None:
        super().__init__(("127.0.0.1", 0), _CallbackHandler)
        self.flow = flow


class LoopbackAuthFlow:
    """A single browser login attempt.

    Callers must not run two flows concurrently in one process.
    """

    def __init__(
        self,
        oauth: "OAuthClient",
        store: CredentialStore,
        *,
        timeout_s: Optional[float] = None,
    ) -> None:
        self.oauth = oauth
        self.store = store
        self.timeout_s = timeout_s
        self.state = FlowState.INIT
        self.outcome: Optional[FlowState] = None
        self.port: Optional[int] = None
        self.redirect_uri: Optional[str] = None
        self.auth_url: Optional[str] = None
        self._csrf_state = ""
        self._server: Optional[_CallbackServer] = None
        self._received = False
        self._result: Future = Future()

    def start(self) -> str:
        """Bind an ephemeral port and return the authorization URL."""

        if self.state is not FlowState.INIT:
            raise RuntimeError(f"login flow already {self.state.value}")
        self._server = _CallbackServer(self)
        try:
            self.port = self._server.server_address[1]
            self.redirect_uri = f"http://localhost:{self.port}{CALLBACK_PATH}"
            self._csrf_state = secrets.token_hex(32)
            self.auth_url = self.oauth.authorization_url(self.redirect_uri, self._csrf_state)
        except BaseException:
            self.close()
            raise
        self.state = FlowState.LISTENING
        logger.debug("OAuth callback listener on port %s", self.port)
        return self.auth_url

    def _fail(self, outcome: FlowState, error: BaseException) -> None:
        self.outcome = outcome
        self._result.set_exception(error)

    def handle_callback(self, path: str) -> _Reply:
        """Resolve the flow from one callback request and build the reply."""

        if self._received:
            return 409, {"Content-Type": "text/plain"}, b"Login already completed"
        self._received = True

        url = urlsplit(path)
        if url.path != CALLBACK_PATH:
            self._fail(
                FlowState.CALLBACK_ERROR,
                AuthError(AuthErrorKind.AUTHORIZATION_DENIED, f"Unexpected request: {path}"),
            )
            return _redirect(SIGN_IN_FAILURE_URL)

        query = parse_qs(url.query)
        state = _first(query, "state")
        if state is None or not secrets.compare_digest(state.encode(), self._csrf_state.encode()):
            logger.error("OAuth callback state mismatch; possible CSRF attack")
            self._fail(
                FlowState.STATE_MISMATCH,
                AuthError(AuthErrorKind.CSRF_MISMATCH, "State mismatch. Possible CSRF attack"),
            )
            return 400, {"Content-Type": "text/plain"}, b"State mismatch. Possible CSRF attack"

        error = _first(query, "error")
        if error:
            self._fail(
                FlowState.CALLBACK_ERROR,
                AuthError(AuthErrorKind.AUTHORIZATION_DENIED, f"Error during authentication: {error}"),
            )
            return _redirect(SIGN_IN_FAILURE_URL)

        code = _first(query, "code")
        if not code:
            self._fail(
                FlowState.CALLBACK_ERROR,
                AuthError(AuthErrorKind.AUTHORIZATION_DENIED, "No code found in request"),
            )
            return _redirect(SIGN_IN_FAILURE_URL)

        try:
            creds = self._exchange(code)
        except AuthError as e:
            logger.error("OAuth code exchange failed: %s", e)
            self._fail(FlowState.CALLBACK_ERROR, e)
            return _redirect(SIGN_IN_FAILURE_URL)

        self.outcome = FlowState.CALLBACK_OK
        self._result.set_result(creds)
        return _redirect(SIGN_IN_SUCCESS_URL)

    def _exchange(self, code: str) -> Credentials:
        try:
            creds = self.oauth.exchange_code(code, self.redirect_uri or "")
            self.store.save(creds)
        except AuthError:
            raise
        except Exception as e:
            raise AuthError(
                AuthErrorKind.TOKEN_EXCHANGE_FAILED,
                f"Could not complete sign-in: {e}",
            ) from e
        return creds

    def wait(self) -> Credentials:
        """Block until the callback arrives, then tear the listener down."""

        if self.state is not FlowState.LISTENING or self._server is None:
            raise RuntimeError("login flow is not listening")
        deadline = None if self.timeout_s is None else time.monotonic() + self.timeout_s
        try:
            # Connections that close without sending a request do not count.
            while not self._received:
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        raise AuthError(
                            AuthErrorKind.CALLBACK_TIMEOUT,
                            f"No OAuth callback received within {self.timeout_s:g}s",
                        )
                    self._server.timeout = remaining
                self._server.handle_request()
            return self._result.result(timeout=0)
        finally:
            self.close()

    def close(self) -> None:
        if self._server is not None:
            self._server.server_close()
            self._server = None
        self.state = FlowState.CLOSED

    def __enter__(self) -> "LoopbackAuthFlow":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


__all__ = [
    "CALLBACK_PATH",
    "FlowState",
    "LoopbackAuthFlow",
    "SIGN_IN_FAILURE_URL",
    "SIGN_IN_SUCCESS_URL",
]

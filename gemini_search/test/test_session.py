import json
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

from gemini_search.auth.session import AuthSession
from gemini_search.grounding.backends import GEMINI_API_BASE, CodeAssistBackend, GeminiApiBackend
from gemini_search.utils.config import build_config
from gemini_search.utils.errors import (
    AuthError,
    AuthErrorKind,
    EmptyQueryError,
    EmptyResultError,
)


class _FakeResponse:
    def __init__(self, payload, status_code: int = 200) -> None:
        self.text = payload if isinstance(payload, str) else json.dumps(payload)
        self.status_code = status_code


def _grounded(text: str) -> dict:
    return {
        "candidates": [
            {
                "content": {"parts": [{"text": text}]},
                "groundingMetadata": {
                    "groundingChunks": [{"web": {"uri": "https://wiki.example", "title": "Wiki"}}],
                    "groundingSupports": [
                        {"segment": {"endIndex": len(text.encode("utf-8"))}, "groundingChunkIndices": [0]}
                    ],
                },
            }
        ]
    }


class AuthSessionTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.env = {
            "OAUTH_CREDENTIALS_PATH": str(Path(self._tmp.name) / "creds.json"),
            "PROJECT_CONFIG_PATH": str(Path(self._tmp.name) / "config.json"),
        }
        self.http = MagicMock()

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _session(self, **env) -> AuthSession:
        cfg = build_config(argv=[], env={**self.env, **env})
        return AuthSession(cfg, http=self.http)

    def test_empty_query_fails_before_any_request(self) -> None:
        session = self._session(GOOGLE_API_KEY="key")
        for query in ("", "   ", "\t\n"):
            with self.assertRaises(EmptyQueryError):
                session.search(query)
        self.http.post.assert_not_called()
        self.http.get.assert_not_called()
        self.assertIsNone(session.backend)

    def test_no_authentication_configured(self) -> None:
        with self.assertRaises(AuthError) as ctx:
            self._session().search("weather in Paris")
        self.assertEqual(ctx.exception.kind, AuthErrorKind.NO_CREDENTIALS)
        self.http.post.assert_not_called()

    def test_api_key_transport_parses_grounded_response(self) -> None:
        self.http.post.return_value = _FakeResponse(_grounded("Paris is the capital."))
        session = self._session(GEMINI_API_KEY="key", GEMINI_MODEL="gemini-2.5-pro")

        result = session.search("capital of France")

        self.assertEqual(result.text, "Paris is the capital.")
        self.assertEqual(result.chunks[0].uri, "https://wiki.example")
        self.assertEqual(session.transport, GeminiApiBackend.label)
        args, kwargs = self.http.post.call_args
        self.assertEqual(args[0], f"{GEMINI_API_BASE}/models/gemini-2.5-pro:generateContent")
        self.assertEqual(kwargs["headers"], {"x-goog-api-key": "key"})
        self.assertEqual(kwargs["json"]["tools"], [{"googleSearch": {}}])
        self.assertEqual(kwargs["json"]["contents"][0]["parts"][0]["text"], "capital of France")

    def test_transport_is_selected_once(self) -> None:
        self.http.post.return_value = _FakeResponse(_grounded("Answer."))
        session = self._session(GOOGLE_API_KEY="key")
        session.search("first")
        backend = session.backend
        session.search("second")
        self.assertIs(session.backend, backend)

    def test_oauth_is_preferred_over_api_key(self) -> None:
        oauth = MagicMock()
        oauth.auth_headers.return_value = {"Authorization": "Bearer t"}
        self.http.post.return_value = _FakeResponse({"response": _grounded("Answer.")})

        with patch("gemini_search.auth.session.login_from_config", return_value=oauth) as login:
            session = self._session(GOOGLE_API_KEY="key", USE_OAUTH="true", GOOGLE_CLOUD_PROJECT="proj-1")
            result = session.search("query")
            session.search("query again")

        login.assert_called_once()
        self.assertIsInstance(session.backend, CodeAssistBackend)
        self.assertEqual(session.backend.project_id, "proj-1")
        self.assertEqual(result.text, "Answer.")
        body = self.http.post.call_args.kwargs["json"]
        self.assertEqual(body["project"], "proj-1")
        self.assertEqual(body["request"]["tools"], [{"googleSearch": {}}])

    def test_blank_response_text_is_empty_result(self) -> None:
        self.http.post.return_value = _FakeResponse({"candidates": [{"content": {"parts": [{"text": "  "}]}}]})
        with self.assertRaises(EmptyResultError) as ctx:
            self._session(GOOGLE_API_KEY="key").search("obscure")
        self.assertIn('"obscure"', str(ctx.exception))


if __name__ == "__main__":
    unittest.main()

"""generateContent calls with the Google Search tool enabled."""

from __future__ import annotations

import logging
from typing import Any, Union

from ..auth.oauth_client import OAuthClient
from ..auth.project import code_assist_url
from ..utils.errors import ResponseFormatError
from ..utils.http import HttpClient, json_or_raise
from .models import SearchResult, parse_generate_content

logger = logging.getLogger(__name__)

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"

_GENERATION_CONFIG = {"temperature": 0.7, "topK": 40, "topP": 0.95}


def _search_request(query: str) -> dict[str, Any]:
    return {
        "contents": [{"role": "user", "parts": [{"text": query}]}],
        "tools": [{"googleSearch": {}}],
    }


class GeminiApiBackend:
    label = "Gemini API (API Key)"

    def __init__(self, api_key: str, http: HttpClient, model: str) -> None:
        self.api_key = api_key
        self.http = http
        self.model = model

    def search(self, query: str) -> SearchResult:
        url = f"{GEMINI_API_BASE}/models/{self.model}:generateContent"
        body = _search_request(query)
        body["generationConfig"] = dict(_GENERATION_CONFIG)
        logger.info("Calling Gemini API, model=%s", self.model)
        response = self.http.post(url, json=body, headers={"x-goog-api-key": self.api_key})
        return parse_generate_content(json_or_raise(response, url))


class CodeAssistBackend:
    label = "Code Assist API (OAuth)"

    def __init__(self, oauth: OAuthClient, project_id: str, http: HttpClient, model: str) -> None:
        self.oauth = oauth
        self.project_id = project_id
        self.http = http
        self.model = model

    def search(self, query: str) -> SearchResult:
        url = code_assist_url("generateContent")
        body = {
            "model": self.model,
            "project": self.project_id,
            "request": _search_request(query),
        }
        logger.info("Calling Code Assist API, model=%s project=%s", self.model, self.project_id)
        response = self.http.post(url, json=body, headers=self.oauth.auth_headers())
        payload = json_or_raise(response, url)
        # Code Assist wraps the generateContent response
        inner = payload.get("response", {})
        if not isinstance(inner, dict):
            raise ResponseFormatError("response: expected an object", url)
        return parse_generate_content(inner)


SearchBackend = Union[GeminiApiBackend, CodeAssistBackend]


__all__ = ["CodeAssistBackend", "GeminiApiBackend", "SearchBackend"]

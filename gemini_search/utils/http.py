"""Thin curl_cffi wrapper shared by the OAuth and search backends."""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Optional

from curl_cffi import requests as curl_requests

from .config import AppConfig
from .errors import ApiError, ResponseFormatError

logger = logging.getLogger(__name__)


class HttpClient:
    def __init__(
        self,
        *,
        proxy: Optional[str] = None,
        timeout_s: int = 60,
        impersonate: Optional[str] = None,
    ) -> None:
        self.proxies = {"http": proxy, "https": proxy} if proxy else None
        self.timeout_s = timeout_s
        self.impersonate = impersonate

    @classmethod
    def from_config(cls, cfg: AppConfig) -> "HttpClient":
        return cls(
            proxy=cfg.proxy,
            timeout_s=cfg.request_timeout_s,
            impersonate=cfg.curl_impersonate,
        )

    def _send(self, method: str, url: str, **kwargs: Any) -> curl_requests.Response:
        options: dict[str, Any] = {
            "proxies": self.proxies,
            "timeout": self.timeout_s,
            "allow_redirects": True,
        }
        if self.impersonate:
            options["impersonate"] = self.impersonate
        options.update({k: v for k, v in kwargs.items() if v is not None})

        sender = curl_requests.get if method == "GET" else curl_requests.post
        try:
            response = sender(url, **options)
        except Exception as e:
            logger.warning("%s %s failed before a response: %s", method, url, e)
            raise ApiError(None, str(e), url) from e
        logger.debug("%s %s -> %s", method, url, response.status_code)
        return response

    def get(
        self,
        url: str,
        *,
        params: Optional[Mapping[str, str]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> curl_requests.Response:
        return self._send("GET", url, params=params, headers=headers)

    def post(
        self,
        url: str,
        *,
        json: Optional[Any] = None,
        data: Optional[Mapping[str, str]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> curl_requests.Response:
        return self._send("POST", url, json=json, data=data, headers=headers)


def is_success(response: Any) -> bool:
    return 200 <= int(response.status_code) < 300


def json_or_raise(response: Any, url: str = "") -> dict[str, Any]:
    """Decode a 2xx JSON object body, raising typed errors otherwise."""

    text = response.text or ""
    if not is_success(response):
        raise ApiError(int(response.status_code), text, url)
    try:
        data = json.loads(text) if text else {}
    except ValueError as e:
        raise ResponseFormatError(f"response is not JSON: {e}", url, int(response.status_code)) from e
    if not isinstance(data, dict):
        raise ResponseFormatError(
            f"expected a JSON object, got {type(data).__name__}",
            url,
            int(response.status_code),
        )
    return data


__all__ = ["HttpClient", "is_success", "json_or_raise"]

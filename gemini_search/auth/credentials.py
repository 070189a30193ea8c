"""OAuth credential model and on-disk cache."""

from __future__ import annotations

import json
import logging
import math
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from ..utils.http import HttpClient, is_success

logger = logging.getLogger(__name__)

TOKEN_INFO_URL = "https://oauth2.googleapis.com/tokeninfo"

# Treat tokens this close to expiry as already expired.
EXPIRY_SKEW_MS = 60_000


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class Credentials:
    access_token: str
    refresh_token: Optional[str] = None
    expiry_date: Optional[int] = None
    scopes: tuple[str, ...] = field(default_factory=tuple)
    token_type: str = "Bearer"
    id_token: Optional[str] = None

    def is_expired(self, now_ms: Optional[int] = None) -> bool:
        if self.expiry_date is None:
            return False
        now = _now_ms() if now_ms is None else now_ms
        return now >= self.expiry_date - EXPIRY_SKEW_MS

    def to_json(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "access_token": self.access_token,
            "scope": " ".join(self.scopes),
            "token_type": self.token_type,
        }
        if self.refresh_token is not None:
            data["refresh_token"] = self.refresh_token
        if self.expiry_date is not None:
            data["expiry_date"] = self.expiry_date
        if self.id_token is not None:
            data["id_token"] = self.id_token
        return data

    @classmethod
    def from_json(cls, data: Any) -> "Credentials":
        if not isinstance(data, dict):
            raise ValueError("credentials must be a JSON object")
        access_token = data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise ValueError("credentials have no access_token")

        expiry = data.get("expiry_date")
        if expiry is not None and (
            isinstance(expiry, bool) or not isinstance(expiry, (int, float)) or not math.isfinite(expiry)
        ):
            raise ValueError("expiry_date must be a finite number")

        scope = data.get("scope") or ""
        if isinstance(scope, str):
            scopes = tuple(s for s in scope.split() if s)
        elif isinstance(scope, list):
            scopes = tuple(str(s) for s in scope)
        else:
            raise ValueError("scope must be a string or list")

        refresh_token = data.get("refresh_token")
        return cls(
            access_token=access_token,
            refresh_token=str(refresh_token) if refresh_token else None,
            expiry_date=int(expiry) if expiry is not None else None,
            scopes=scopes,
            token_type=str(data.get("token_type") or "Bearer"),
            id_token=data.get("id_token") or None,
        )

    @classmethod
    def from_token_response(
        cls,
        data: dict[str, Any],
        *,
        previous: Optional["Credentials"] = None,
        now_ms: Optional[int] = None,
    ) -> "Credentials":
        """Build credentials from a token endpoint response.

        A refresh response carries no refresh token; the previous one is kept.
        """

        access_token = data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise ValueError("token response has no access_token")

        expires_in = data.get("expires_in")
        expiry_date: Optional[int] = None
        if isinstance(expires_in, (int, float)):
            now = _now_ms() if now_ms is None else now_ms
            expiry_date = now + int(expires_in * 1000)

        scope = data.get("scope")
        if isinstance(scope, str) and scope.strip():
            scopes = tuple(scope.split())
        else:
            scopes = previous.scopes if previous else ()

        return cls(
            access_token=access_token,
            refresh_token=data.get("refresh_token") or (previous.refresh_token if previous else None),
            expiry_date=expiry_date,
            scopes=scopes,
            token_type=str(data.get("token_type") or "Bearer"),
            id_token=data.get("id_token") or (previous.id_token if previous else None),
        )


class CredentialStore:
    """Credential cache at a fixed per-user path.

    Writes are not atomic and not locked: a concurrent reader may see a
    partial file, which ``load`` then reports as no credentials.
    """

    def __init__(self, path: Path, http: Optional[HttpClient] = None) -> None:
        self.path = Path(path)
        self.http = http or HttpClient()

    def load(self) -> Optional[Credentials]:
        try:
            raw = self.path.read_text(encoding="utf-8")
            return Credentials.from_json(json.loads(raw))
        except FileNotFoundError:
            return None
        except (OSError, ValueError, RecursionError) as e:
            logger.warning("Ignoring unreadable credential cache %s: %s", self.path, e)
            return None

    def validate(self, creds: Credentials) -> bool:
        """Ask the token-info endpoint whether the access token is live."""

        try:
            response = self.http.get(TOKEN_INFO_URL, params={"access_token": creds.access_token})
        except Exception as e:
            logger.info("Token validation request failed: %s", e)
            return False
        if not is_success(response):
            logger.info("Cached access token rejected (HTTP %s)", response.status_code)
            return False
        return True

    def save(self, creds: Credentials) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(creds.to_json(), indent=2), encoding="utf-8")
        logger.info("Saved OAuth credentials to %s", self.path)

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            logger.warning("Could not remove credential cache %s: %s", self.path, e)
            return
        logger.info("Removed OAuth credentials at %s", self.path)


__all__ = ["Credentials", "CredentialStore", "TOKEN_INFO_URL"]

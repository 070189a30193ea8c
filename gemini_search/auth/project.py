"""Code Assist project discovery and onboarding."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from ..utils.errors import ApiError, ProjectSetupError, ProjectSetupErrorKind
from ..utils.http import HttpClient, json_or_raise
from .oauth_client import OAuthClient

logger = logging.getLogger(__name__)

CODE_ASSIST_ENDPOINT = "https://cloudcode-pa.googleapis.com"
CODE_ASSIST_API_VERSION = "v1internal"
DEFAULT_TIER_ID = "LEGACY"

_NOT_FOUND_STATUSES = {403, 404}


def code_assist_url(method: str) -> str:
    return f"{CODE_ASSIST_ENDPOINT}/{CODE_ASSIST_API_VERSION}:{method}"


def _client_metadata() -> dict[str, Any]:
    return {
        "ideType": "IDE_UNSPECIFIED",
        "platform": "PLATFORM_UNSPECIFIED",
        "pluginType": "GEMINI",
    }


def _project_id_from(value: Any) -> Optional[str]:
    # cloudaicompanionProject is a bare id in loadCodeAssist and {id, name} in onboardUser
    if isinstance(value, str) and value.strip():
        return value.strip()
    if isinstance(value, dict):
        return _project_id_from(value.get("id"))
    return None


def load_project_config(path: Path) -> Optional[str]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except (OSError, ValueError, RecursionError) as e:
        logger.warning("Ignoring unreadable project config %s: %s", path, e)
        return None
    if not isinstance(data, dict):
        return None
    return _project_id_from(data.get("project_id"))


def save_project_config(path: Path, project_id: str) -> None:
    config = {
        "project_id": project_id,
        "setup_date": datetime.now(timezone.utc).isoformat(),
        "auth_type": "oauth",
    }
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(config, indent=2), encoding="utf-8")
    except OSError as e:
        logger.warning("Could not save project configuration %s: %s", path, e)
        return
    logger.info("Saved project configuration: %s", path)


class ProjectResolver:
    """Find the project id OAuth calls are billed against.

    Precedence: explicit id, then the cached config file, then remote
    discovery (with one onboarding call whenever discovery asks for it).
    """

    def __init__(
        self,
        oauth: OAuthClient,
        http: HttpClient,
        *,
        explicit_project_id: Optional[str] = None,
        config_path: Path,
    ) -> None:
        self.oauth = oauth
        self.http = http
        self.explicit_project_id = explicit_project_id
        self.config_path = Path(config_path)

    def resolve(self) -> str:
        if self.explicit_project_id:
            logger.info("Using configured project: %s", self.explicit_project_id)
            return self.explicit_project_id

        cached = load_project_config(self.config_path)
        if cached:
            logger.info("Using saved project ID: %s", cached)
            return cached

        logger.info("Detecting available projects...")
        discovered = self.load_code_assist()
        project_id = _project_id_from(discovered.get("cloudaicompanionProject"))
        if discovered.get("onboardingRequired"):
            logger.info("Setting up Code Assist for this account...")
            project_id = self.onboard_user(project_id) or project_id

        if not project_id:
            raise ProjectSetupError(
                ProjectSetupErrorKind.NO_PROJECT_AVAILABLE,
                "No Google Cloud project could be detected or provisioned; "
                "set GOOGLE_CLOUD_PROJECT to an existing project id",
            )

        save_project_config(self.config_path, project_id)
        logger.info("Project setup completed: %s", project_id)
        return project_id

    def load_code_assist(self) -> dict[str, Any]:
        """Ask the backend which project this account uses.

        403 and 404 mean the account has not been onboarded yet.
        """

        url = code_assist_url("loadCodeAssist")
        body = {"cloudaicompanionProject": None, "metadata": _client_metadata()}
        response = self.http.post(url, json=body, headers=self.oauth.auth_headers())
        if int(response.status_code) in _NOT_FOUND_STATUSES:
            logger.info("loadCodeAssist returned %s; onboarding required", response.status_code)
            return {"onboardingRequired": True}
        return json_or_raise(response, url)

    def onboard_user(self, project_id: Optional[str] = None) -> Optional[str]:
        url = code_assist_url("onboardUser")
        body = {
            "tierId": DEFAULT_TIER_ID,
            "cloudaicompanionProject": project_id,
            "metadata": _client_metadata(),
        }
        try:
            response = self.http.post(url, json=body, headers=self.oauth.auth_headers())
            result = json_or_raise(response, url)
        except ApiError as e:
            raise ProjectSetupError(
                ProjectSetupErrorKind.ONBOARDING_FAILED,
                f"User onboarding failed: {e}",
            ) from e

        operation = result.get("response")
        assigned = None
        if isinstance(operation, dict):
            assigned = _project_id_from(operation.get("cloudaicompanionProject"))
        return assigned or _project_id_from(result.get("cloudaicompanionProject"))


__all__ = [
    "CODE_ASSIST_ENDPOINT",
    "ProjectResolver",
    "code_assist_url",
    "load_project_config",
    "save_project_config",
]

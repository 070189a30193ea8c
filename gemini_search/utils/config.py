"""Runtime configuration and logging bootstrap for gemini_search."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Sequence

from .env_parser import load_env_file

_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"

DEFAULT_MODEL = "gemini-2.5-flash"
_DEFAULT_CREDENTIALS_PATH = Path.home() / ".gemini" / "mcp_oauth_creds.json"
_DEFAULT_PROJECT_CONFIG_PATH = Path.home() / ".google-web-search" / "config.json"

_LOGGING_READY = False


@dataclass(frozen=True)
class AppConfig:
    api_key: Optional[str]
    use_oauth: bool
    project_id: Optional[str]
    oauth_client_id: Optional[str]
    oauth_client_secret: Optional[str]
    model: str
    proxy: Optional[str]
    curl_impersonate: Optional[str]
    request_timeout_s: int
    oauth_callback_timeout_s: int
    open_browser: bool
    credentials_path: Path
    project_config_path: Path
    log_level: str

    @property
    def auth_configured(self) -> bool:
        return self.use_oauth or bool(self.api_key)


def _normalize_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    text = value.strip()
    return text if text else None


def _normalize_log_level(value: Optional[str]) -> str:
    text = (value or "INFO").strip().upper()
    level = getattr(logging, text, None)
    if isinstance(level, int):
        return text
    print(f"[config] invalid LOG_LEVEL '{value}', fallback to INFO", file=sys.stderr)
    return "INFO"


def _parse_bool(
    value: Optional[str],
    *,
    default: bool,
    field_name: str,
) -> bool:
    if value is None:
        return default
    text = value.strip().lower()
    if text in {"1", "true", "yes", "on"}:
        return True
    if text in {"0", "false", "no", "off"}:
        return False
    print(f"[config] invalid boolean for {field_name}: '{value}', fallback to {default}", file=sys.stderr)
    return default


def _parse_int(
    value: Optional[str],
    *,
    default: int,
    minimum: Optional[int] = None,
    field_name: str,
) -> int:
    if value is None:
        return default
    try:
        parsed = int(value.strip())
    except ValueError:
        print(f"[config] invalid integer for {field_name}: '{value}', fallback to {default}", file=sys.stderr)
        return default
    if minimum is not None and parsed < minimum:
        print(
            f"[config] {field_name}={parsed} is below minimum {minimum}, fallback to {default}",
            file=sys.stderr,
        )
        return default
    return parsed


def _parse_path(value: Optional[str], default: Path) -> Path:
    text = _normalize_optional(value)
    if text is None:
        return default
    return Path(text).expanduser()


def build_parser(description: str = "Gemini Google Web Search MCP Server") -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument("--api-key", type=str, default=None, help="Gemini API key")
    parser.add_argument(
        "--oauth",
        action="store_true",
        default=None,
        help="Use Google login (Code Assist API) instead of an API key",
    )
    parser.add_argument("--project", type=str, default=None, help="Google Cloud project id for OAuth calls")
    parser.add_argument("--model", type=str, default=None, help=f"Gemini model name (default {DEFAULT_MODEL})")
    parser.add_argument("--proxy", type=str, default=None, help="Local proxy, e.g. http://127.0.0.1:7890")
    parser.add_argument("--log-level", type=str, default=None, help="DEBUG/INFO/WARNING/ERROR/CRITICAL")
    return parser


def _pick(
    cli_value: Optional[str],
    env: Mapping[str, str],
    env_key: str,
    default: Optional[str] = None,
) -> Optional[str]:
    if cli_value is not None:
        return cli_value
    return env.get(env_key, default)


def build_config(
    argv: Optional[Sequence[str]] = None,
    env: Optional[Mapping[str, str]] = None,
) -> AppConfig:
    """Build AppConfig from argv and environment variables."""

    env_map: Mapping[str, str] = env if env is not None else os.environ
    parser = build_parser()
    args, _ = parser.parse_known_args(list(argv) if argv is not None else None)

    api_key = _normalize_optional(_pick(args.api_key, env_map, "GOOGLE_API_KEY")) or _normalize_optional(
        env_map.get("GEMINI_API_KEY")
    )
    if args.oauth:
        use_oauth = True
    else:
        use_oauth = _parse_bool(
            env_map.get("USE_OAUTH"),
            default=False,
            field_name="USE_OAUTH",
        ) or _parse_bool(
            env_map.get("USE_CODE_ASSIST"),
            default=False,
            field_name="USE_CODE_ASSIST",
        )
    project_id = _normalize_optional(_pick(args.project, env_map, "GOOGLE_CLOUD_PROJECT"))
    model = _normalize_optional(_pick(args.model, env_map, "GEMINI_MODEL", DEFAULT_MODEL)) or DEFAULT_MODEL
    proxy = _normalize_optional(_pick(args.proxy, env_map, "PROXY"))
    log_level = _normalize_log_level(_pick(args.log_level, env_map, "LOG_LEVEL", "INFO"))

    request_timeout_s = _parse_int(
        env_map.get("REQUEST_TIMEOUT_S"),
        default=60,
        minimum=1,
        field_name="REQUEST_TIMEOUT_S",
    )
    oauth_callback_timeout_s = _parse_int(
        env_map.get("OAUTH_CALLBACK_TIMEOUT_S"),
        default=300,
        minimum=1,
        field_name="OAUTH_CALLBACK_TIMEOUT_S",
    )
    open_browser = _parse_bool(
        env_map.get("OAUTH_OPEN_BROWSER"),
        default=True,
        field_name="OAUTH_OPEN_BROWSER",
    )

    return AppConfig(
        api_key=api_key,
        use_oauth=use_oauth,
        project_id=project_id,
        oauth_client_id=_normalize_optional(env_map.get("OAUTH_CLIENT_ID")),
        oauth_client_secret=_normalize_optional(env_map.get("OAUTH_CLIENT_SECRET")),
        model=model,
        proxy=proxy,
        curl_impersonate=_normalize_optional(env_map.get("CURL_IMPERSONATE")),
        request_timeout_s=request_timeout_s,
        oauth_callback_timeout_s=oauth_callback_timeout_s,
        open_browser=open_browser,
        credentials_path=_parse_path(
            _normalize_optional(env_map.get("OAUTH_CREDENTIALS_PATH"))
            or env_map.get("GOOGLE_APPLICATION_CREDENTIALS"),
            _DEFAULT_CREDENTIALS_PATH,
        ),
        project_config_path=_parse_path(env_map.get("PROJECT_CONFIG_PATH"), _DEFAULT_PROJECT_CONFIG_PATH),
        log_level=log_level,
    )


def setup_logging(level_name: str, stream: Optional[object] = None) -> None:
    """Initialize root logging once and keep it idempotent.

    Logs always go to stderr: stdout carries the MCP stdio transport.
    """

    global _LOGGING_READY

    level = getattr(logging, level_name.upper(), logging.INFO)
    root = logging.getLogger()

    if stream is None:
        try:
            stream = open(
                sys.stderr.fileno(),
                mode="w",
                encoding="utf-8",
                errors="replace",
                closefd=False,
            )
        except (AttributeError, OSError, ValueError):
            stream = sys.stderr

    existing = [h for h in root.handlers if getattr(h, "_gemini_search_handler", False)]
    if not _LOGGING_READY or not existing:
        root.handlers = [h for h in root.handlers if not getattr(h, "_gemini_search_handler", False)]
        handler = logging.StreamHandler(stream)
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        handler._gemini_search_handler = True  # type: ignore[attr-defined]
        root.addHandler(handler)

    root.setLevel(level)
    for handler in root.handlers:
        if getattr(handler, "_gemini_search_handler", False):
            handler.setLevel(level)

    _LOGGING_READY = True


def init_runtime(argv: Optional[Sequence[str]] = None) -> AppConfig:
    """Load .env, build runtime config, and setup logging."""

    load_env_file(_ENV_PATH)
    cfg = build_config(argv=argv, env=os.environ)
    setup_logging(cfg.log_level)

    logger = logging.getLogger(__name__)
    logger.debug("argv=%s", list(argv) if argv is not None else sys.argv)
    logger.debug(
        "auth: api_key=%s oauth=%s project=%s model=%s",
        "***" if cfg.api_key else None,
        cfg.use_oauth,
        cfg.project_id,
        cfg.model,
    )
    logger.debug("proxy=%s credentials=%s", cfg.proxy, cfg.credentials_path)
    return cfg


def _reset_runtime_for_tests() -> None:
    """Reset logging globals for isolated tests."""

    global _LOGGING_READY
    _LOGGING_READY = False
    root = logging.getLogger()
    root.handlers = [h for h in root.handlers if not getattr(h, "_gemini_search_handler", False)]


__all__ = [
    "AppConfig",
    "DEFAULT_MODEL",
    "build_config",
    "build_parser",
    "init_runtime",
    "setup_logging",
]

import io
import logging
import unittest
from pathlib import Path
from unittest.mock import patch

from gemini_search.utils.config import (
    DEFAULT_MODEL,
    _reset_runtime_for_tests,
    build_config,
    init_runtime,
)


class ConfigRuntimeTests(unittest.TestCase):
    def setUp(self) -> None:
        _reset_runtime_for_tests()

    def test_defaults_without_auth(self) -> None:
        cfg = build_config(argv=[], env={})
        self.assertIsNone(cfg.api_key)
        self.assertFalse(cfg.use_oauth)
        self.assertFalse(cfg.auth_configured)
        self.assertEqual(cfg.model, DEFAULT_MODEL)
        self.assertEqual(cfg.request_timeout_s, 60)
        self.assertEqual(cfg.oauth_callback_timeout_s, 300)
        self.assertTrue(cfg.open_browser)
        self.assertEqual(cfg.credentials_path.name, "mcp_oauth_creds.json")

    def test_build_config_cli_overrides_env(self) -> None:
        env = {
            "PROXY": "http://env:7890",
            "GOOGLE_API_KEY": "env-key",
            "GEMINI_MODEL": "gemini-env",
            "GOOGLE_CLOUD_PROJECT": "env-project",
        }
        cfg = build_config(
            argv=["--proxy", "http://cli:7890", "--api-key", "cli-key", "--model", "gemini-cli", "--project", "p"],
            env=env,
        )
        self.assertEqual(cfg.proxy, "http://cli:7890")
        self.assertEqual(cfg.api_key, "cli-key")
        self.assertEqual(cfg.model, "gemini-cli")
        self.assertEqual(cfg.project_id, "p")

    def test_gemini_api_key_is_accepted_as_alias(self) -> None:
        cfg = build_config(argv=[], env={"GEMINI_API_KEY": "alias-key"})
        self.assertEqual(cfg.api_key, "alias-key")
        cfg = build_config(argv=[], env={"GOOGLE_API_KEY": "primary", "GEMINI_API_KEY": "alias"})
        self.assertEqual(cfg.api_key, "primary")

    def test_oauth_opt_in_from_env_or_flag(self) -> None:
        self.assertTrue(build_config(argv=[], env={"USE_OAUTH": "true"}).use_oauth)
        self.assertTrue(build_config(argv=[], env={"USE_CODE_ASSIST": "1"}).use_oauth)
        self.assertTrue(build_config(argv=["--oauth"], env={}).use_oauth)
        self.assertFalse(build_config(argv=[], env={"USE_OAUTH": "false"}).use_oauth)

    def test_invalid_values_fall_back_to_defaults(self) -> None:
        env = {
            "REQUEST_TIMEOUT_S": "invalid",
            "OAUTH_CALLBACK_TIMEOUT_S": "0",
            "OAUTH_OPEN_BROWSER": "maybe",
            "LOG_LEVEL": "chatty",
        }
        stderr = io.StringIO()
        with patch("gemini_search.utils.config.sys.stderr", stderr):
            cfg = build_config(argv=[], env=env)
        self.assertEqual(cfg.request_timeout_s, 60)
        self.assertEqual(cfg.oauth_callback_timeout_s, 300)
        self.assertTrue(cfg.open_browser)
        self.assertEqual(cfg.log_level, "INFO")
        self.assertIn("invalid integer", stderr.getvalue())
        self.assertIn("invalid boolean for OAUTH_OPEN_BROWSER", stderr.getvalue())

    def test_paths_expand_user(self) -> None:
        cfg = build_config(argv=[], env={"OAUTH_CREDENTIALS_PATH": "~/creds.json"})
        self.assertEqual(cfg.credentials_path, Path("~/creds.json").expanduser())

    def test_application_credentials_path_is_a_fallback(self) -> None:
        cfg = build_config(argv=[], env={"GOOGLE_APPLICATION_CREDENTIALS": "/keys/adc.json"})
        self.assertEqual(cfg.credentials_path, Path("/keys/adc.json"))
        cfg = build_config(
            argv=[],
            env={"OAUTH_CREDENTIALS_PATH": "/keys/mcp.json", "GOOGLE_APPLICATION_CREDENTIALS": "/keys/adc.json"},
        )
        self.assertEqual(cfg.credentials_path, Path("/keys/mcp.json"))
        cfg = build_config(argv=[], env={"OAUTH_CREDENTIALS_PATH": "  ", "GOOGLE_APPLICATION_CREDENTIALS": "/keys/adc.json"})
        self.assertEqual(cfg.credentials_path, Path("/keys/adc.json"))

    def test_unknown_arguments_are_ignored(self) -> None:
        cfg = build_config(argv=["some", "query", "--logout"], env={"GOOGLE_API_KEY": "k"})
        self.assertEqual(cfg.api_key, "k")

    def test_init_runtime_is_idempotent_for_logging_handler(self) -> None:
        init_runtime(argv=[])
        root = logging.getLogger()
        first_count = len([h for h in root.handlers if getattr(h, "_gemini_search_handler", False)])

        cfg = init_runtime(argv=[])
        second_count = len([h for h in root.handlers if getattr(h, "_gemini_search_handler", False)])

        self.assertEqual(first_count, 1)
        self.assertEqual(second_count, 1)
        self.assertIsNotNone(cfg)


if __name__ == "__main__":
    unittest.main()

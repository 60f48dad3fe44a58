import os
import tempfile
import unittest

from unittest import mock

from config.config import AppConfig
from core.exceptions import ConfigurationError


ENV_KEYS = [
    "LARK_APP_ID",
    "LARK_APP_SECRET",
    "LARK_TENANT_KEY",
    "LARK_USER_ACCESS_TOKEN",
    "LARK_BASE_URL",
    "LARK_DEFAULT_COLLABORATORS",
    "LARK_WIKI_AUTO_MOVE",
    "LARK_WIKI_SPACE_ID",
    "LARK_WIKI_ROOT_ID",
    "REQUEST_TIMEOUT",
    "MAX_RETRIES",
    "RETRY_BACKOFF",
    "LARK_DOC_LOG_DIR"
]


class TestConfig(unittest.TestCase):
    """Tests for config loading behavior."""

    def setUp(self) -> None:
        self.original_cwd = os.getcwd()
        self.original_env = dict(os.environ)
        for key in ENV_KEYS:
            os.environ.pop(key, None)
        self.tmp = tempfile.TemporaryDirectory()
        os.chdir(self.tmp.name)

    def tearDown(self) -> None:
        os.chdir(self.original_cwd)
        self.tmp.cleanup()
        os.environ.clear()
        os.environ.update(self.original_env)

    def test_load_from_dotenv(self) -> None:
        """Should read env values from local .env file.

        Args:
            self: Test case instance.
        """

        with open(".env", "w", encoding = "utf-8") as fp:
            fp.write("# comment\n")
            fp.write("LARK_APP_ID=cli_1\n")
            fp.write("export LARK_APP_SECRET='sec_1'\n")
            fp.write("LARK_WIKI_AUTO_MOVE=true\n")
            fp.write("LARK_WIKI_SPACE_ID=space_1\n")
            fp.write("LARK_WIKI_ROOT_ID=node_1\n")
            fp.write("LARK_BASE_URL=https://open.larksuite.com/\n")
            fp.write("LARK_DEFAULT_COLLABORATORS=openid:ou_1,email:a@example.com:view\n")

        config = AppConfig.from_env()

        self.assertEqual(config.app_id, "cli_1")
        self.assertEqual(config.app_secret, "sec_1")
        self.assertTrue(config.wiki_auto_move)
        self.assertEqual(config.wiki_space_id, "space_1")
        self.assertEqual(config.wiki_node_id, "node_1")
        self.assertEqual(config.base_url, "https://open.larksuite.com")
        self.assertEqual(config.default_collaborators, "openid:ou_1,email:a@example.com:view")

    def test_real_env_wins_over_dotenv(self) -> None:
        """Process env values are not overridden by .env.

        Args:
            self: Test case instance.
        """

        with open(".env", "w", encoding = "utf-8") as fp:
            fp.write("LARK_APP_ID=from_file\n")

        with mock.patch.dict(os.environ, {"LARK_APP_ID": "from_env"}):
            config = AppConfig.from_env()
        self.assertEqual(config.app_id, "from_env")

    def test_defaults(self) -> None:
        """Missing env uses documented defaults.

        Args:
            self: Test case instance.
        """

        config = AppConfig.from_env()

        self.assertEqual(config.base_url, "https://open.feishu.cn")
        self.assertFalse(config.wiki_auto_move)
        self.assertEqual(config.request_timeout, 30.0)
        self.assertEqual(config.max_retries, 3)
        self.assertEqual(config.log_dir, "")

    def test_with_overrides_skips_empty_values(self) -> None:
        """CLI values override env only when provided.

        Args:
            self: Test case instance.
        """

        config = AppConfig(app_id = "env_id", app_secret = "env_secret")
        merged = config.with_overrides(app_id = "cli_id", app_secret = "", tenant_key = None)

        self.assertEqual(merged.app_id, "cli_id")
        self.assertEqual(merged.app_secret, "env_secret")
        self.assertEqual(config.app_id, "env_id")

    def test_validate_credentials(self) -> None:
        """Missing credentials raise a configuration error naming them.

        Args:
            self: Test case instance.
        """

        with self.assertRaises(ConfigurationError) as ctx:
            AppConfig(app_id = "cli_1").validate_credentials()
        self.assertIn("LARK_APP_SECRET", str(ctx.exception))

        AppConfig(app_id = "cli_1", app_secret = "sec_1").validate_credentials()


if __name__ == "__main__":
    unittest.main()

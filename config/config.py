import os
import dataclasses

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from core.exceptions import ConfigurationError


TRUTHY_VALUES = {"1", "true", "yes", "on"}


@dataclass
class AppConfig:
    """Application runtime configuration.

    Args:
        app_id: Feishu app id.
        app_secret: Feishu app secret.
        tenant_key: Tenant key for store apps.
        user_access_token: User access token when the API scope needs one.
        base_url: Feishu open platform base url.
        default_collaborators: Comma separated memberType:memberId[:perm] list.
        wiki_auto_move: Move created documents into the wiki by default.
        wiki_space_id: Default wiki space id.
        wiki_node_id: Default parent wiki node token.
        request_timeout: HTTP timeout in seconds.
        max_retries: Maximum attempts for HTTP requests.
        retry_backoff: Retry backoff multiplier in seconds.
        log_dir: Directory for per-run log files, empty disables file logging.
    """

    app_id: str = ""
    app_secret: str = ""
    tenant_key: str = ""
    user_access_token: str = ""
    base_url: str = "https://open.feishu.cn"
    default_collaborators: str = ""
    wiki_auto_move: bool = False
    wiki_space_id: str = ""
    wiki_node_id: str = ""
    request_timeout: float = 30.0
    max_retries: int = 3
    retry_backoff: float = 1.0
    log_dir: str = ""

    @classmethod
    def from_env(cls, dotenv_path: str = ".env") -> "AppConfig":
        """Build configuration from environment variables.

        Args:
            dotenv_path: Optional .env file loaded without overriding real env vars.
        """

        _load_dotenv_if_exists(dotenv_path = dotenv_path)

        return cls(
            app_id = os.getenv("LARK_APP_ID", ""),
            app_secret = os.getenv("LARK_APP_SECRET", ""),
            tenant_key = os.getenv("LARK_TENANT_KEY", ""),
            user_access_token = os.getenv("LARK_USER_ACCESS_TOKEN", ""),
            base_url = os.getenv("LARK_BASE_URL", "https://open.feishu.cn").rstrip("/"),
            default_collaborators = os.getenv("LARK_DEFAULT_COLLABORATORS", ""),
            wiki_auto_move = _parse_bool(os.getenv("LARK_WIKI_AUTO_MOVE", "")),
            wiki_space_id = os.getenv("LARK_WIKI_SPACE_ID", ""),
            wiki_node_id = os.getenv("LARK_WIKI_ROOT_ID", ""),
            request_timeout = float(os.getenv("REQUEST_TIMEOUT", "30")),
            max_retries = int(os.getenv("MAX_RETRIES", "3")),
            retry_backoff = float(os.getenv("RETRY_BACKOFF", "1.0")),
            log_dir = os.getenv("LARK_DOC_LOG_DIR", "")
        )

    def with_overrides(self, **overrides: Any) -> "AppConfig":
        """Return a copy where every non-empty override replaces the env value.

        Args:
            overrides: Field values coming from CLI flags.
        """

        values = {
            key: value
            for key, value in overrides.items()
            if value is not None and value != ""
        }
        return dataclasses.replace(self, **values)

    def validate_credentials(self) -> None:
        """Fail before any network call when app credentials are missing.

        Args:
            self: Config instance.
        """

        missing = []
        if not self.app_id:
            missing.append("LARK_APP_ID")
        if not self.app_secret:
            missing.append("LARK_APP_SECRET")
        if missing:
            raise ConfigurationError(
                f"{' and '.join(missing)} must be provided (flag or environment variable)"
            )


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in TRUTHY_VALUES


def _load_dotenv_if_exists(dotenv_path: str = ".env") -> None:
    """Load .env key-values into process env if file exists.

    Args:
        dotenv_path: .env file path, relative to the working directory.
    """

    env_path = Path(dotenv_path)
    if not env_path.is_file():
        return

    with open(env_path, "r", encoding = "utf-8") as fp:
        for raw_line in fp:
            line = raw_line.strip()
            if not line or line.startswith("#"):
                continue
            if line.startswith("export "):
                line = line[len("export "):]
            if "=" not in line:
                continue
            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip().strip('"').strip("'")
            if key and key not in os.environ:
                os.environ[key] = value

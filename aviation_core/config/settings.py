# =============================================================================
# aviation_core/config/settings.py
# Runtime Settings for the Offline Store and Sync Engine
# =============================================================================
"""
Settings are resolved in this order (later wins):

1. Built-in defaults
2. ``.streamlit/secrets.toml``  ->  [supabase] url / key
3. Environment variables (a ``.env`` file is loaded first)

    SUPABASE_URL, SUPABASE_KEY
    AVIATION_DB_PATH
    AVIATION_SYNC_TIMEOUT          seconds per remote call
    AVIATION_PULL_PAGE_SIZE        default pull window
    AVIATION_MAX_PUSH_ATTEMPTS     0 or unset = retry forever
    AVIATION_LOG_LEVEL
"""

from __future__ import annotations
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
import logging

from dotenv import load_dotenv

from aviation_core.errors import ConfigurationError

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DEFAULT_SECRETS_PATH = PROJECT_ROOT / ".streamlit" / "secrets.toml"
DEFAULT_DB_PATH = PROJECT_ROOT / "local_data" / "aviation.db"


@dataclass
class Settings:
    """Resolved configuration for one application instance."""
    supabase_url: str = ""
    supabase_key: str = ""
    db_path: Path = DEFAULT_DB_PATH
    request_timeout: float = 10.0
    pull_page_size: int = 1000
    max_push_attempts: Optional[int] = None
    log_level: str = "INFO"

    @property
    def is_demo_mode(self) -> bool:
        """True when no usable Supabase project is configured."""
        url = self.supabase_url or ""
        return (
            not url
            or not self.supabase_key
            or "placeholder" in url
            or "supabase" not in url
        )


def load_secrets_toml(path: Optional[Path] = None) -> Tuple[str, str]:
    """Load Supabase credentials from a secrets.toml file, if present."""
    secrets_path = path or DEFAULT_SECRETS_PATH
    if not secrets_path.exists():
        return "", ""

    with open(secrets_path, "rb") as f:
        secrets = tomllib.load(f)

    section = secrets.get("supabase", {})
    return section.get("url", ""), section.get("key", "")


def _env_number(env: Dict[str, str], key: str, cast, minimum) -> Optional[Any]:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return None
    try:
        value = cast(raw)
    except ValueError as e:
        raise ConfigurationError(
            f"{key} must be a number, got {raw!r}",
            config_key=key,
            expected_type=cast.__name__,
        ) from e
    if value < minimum:
        raise ConfigurationError(
            f"{key} must be >= {minimum}, got {value}",
            config_key=key,
        )
    return value


def load_settings(
    secrets_path: Optional[Path] = None,
    env: Optional[Dict[str, str]] = None,
    dotenv: bool = True,
) -> Settings:
    """
    Build Settings from secrets.toml and the environment.

    Args:
        secrets_path: Override for the secrets.toml location
        env: Mapping to read instead of os.environ (tests)
        dotenv: Whether to load a .env file into os.environ first

    Returns:
        Settings
    """
    if env is None:
        if dotenv:
            load_dotenv()
        env = dict(os.environ)

    settings = Settings()

    url, key = load_secrets_toml(secrets_path)
    settings.supabase_url = env.get("SUPABASE_URL") or url
    settings.supabase_key = env.get("SUPABASE_KEY") or key

    if env.get("AVIATION_DB_PATH"):
        settings.db_path = Path(env["AVIATION_DB_PATH"])

    timeout = _env_number(env, "AVIATION_SYNC_TIMEOUT", float, 0.1)
    if timeout is not None:
        settings.request_timeout = timeout

    page_size = _env_number(env, "AVIATION_PULL_PAGE_SIZE", int, 1)
    if page_size is not None:
        settings.pull_page_size = page_size

    attempts = _env_number(env, "AVIATION_MAX_PUSH_ATTEMPTS", int, 0)
    if attempts:
        settings.max_push_attempts = attempts

    if env.get("AVIATION_LOG_LEVEL"):
        settings.log_level = env["AVIATION_LOG_LEVEL"]

    if settings.is_demo_mode:
        logger.info("Supabase not configured - running in local-only demo mode")

    return settings

"""
Bridge Configuration
====================

All tunables come from the environment (a ``.env`` file in the working
directory is loaded first). Timeouts are in milliseconds, the unit Playwright
uses.
"""

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return int(value)


@dataclass
class BridgeConfig:
    """Configuration for the Venice bridge."""

    # Server
    host: str = "127.0.0.1"
    port: int = 3000

    # Browser
    headless: bool = False
    executable_path: Optional[str] = None  # only honoured on Windows
    user_data_dir: Path = field(default_factory=lambda: Path.cwd() / "chrome-data")
    base_url: str = "https://venice.ai"

    # Credentials
    login_email: Optional[str] = None
    login_password: Optional[str] = None

    # Timeouts (ms)
    navigation_timeout_ms: int = 30000
    extended_timeout_ms: int = 120000
    login_wait_ms: int = 5000
    response_timeout_ms: int = 0  # 0 = wait for the inference response indefinitely
    session_idle_ms: int = 5 * 60 * 1000
    stale_request_ms: int = 5 * 60 * 1000
    sweep_interval_ms: int = 5 * 60 * 1000
    shutdown_grace_ms: int = 10000

    # Behaviour
    strict_model_check: bool = False
    renew_session_on_activity: bool = False
    max_concurrent_prompts: int = 4
    expose_stack: bool = True

    # Logging
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "BridgeConfig":
        """Load configuration from environment variables."""
        if dotenv:
            load_dotenv(find_dotenv(usecwd=True))

        executable_path = os.getenv("EXECUTABLE_PATH") or None
        if executable_path and sys.platform != "win32":
            executable_path = None

        return cls(
            host=os.getenv("HOST", "127.0.0.1"),
            port=_env_int("PORT", 3000),
            headless=_env_bool("HEADLESS", False),
            executable_path=executable_path,
            user_data_dir=Path(os.getenv("USER_DATA_DIR") or Path.cwd() / "chrome-data"),
            base_url=os.getenv("VENICE_BASE_URL", "https://venice.ai").rstrip("/"),
            login_email=os.getenv("LOGIN_EMAIL") or None,
            login_password=os.getenv("LOGIN_PASSWORD") or None,
            navigation_timeout_ms=_env_int("MAX_TIMEOUT", 30000),
            extended_timeout_ms=_env_int("EXTENDED_TIMEOUT", 120000),
            login_wait_ms=_env_int("LOGIN_WAIT", 5000),
            response_timeout_ms=_env_int("RESPONSE_TIMEOUT", 0),
            session_idle_ms=_env_int("SESSION_IDLE", 5 * 60 * 1000),
            stale_request_ms=_env_int("STALE_REQUEST", 5 * 60 * 1000),
            sweep_interval_ms=_env_int("SWEEP_INTERVAL", 5 * 60 * 1000),
            shutdown_grace_ms=_env_int("SHUTDOWN_GRACE", 10000),
            strict_model_check=_env_bool("STRICT_MODEL_CHECK", False),
            renew_session_on_activity=_env_bool("RENEW_SESSION_ON_ACTIVITY", False),
            max_concurrent_prompts=_env_int("MAX_CONCURRENT_PROMPTS", 4),
            expose_stack=_env_bool("EXPOSE_STACK", True),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    @property
    def has_credentials(self) -> bool:
        return bool(self.login_email and self.login_password)

"""
Runtime configuration.

Values come from the environment (and a .env file in the working directory,
via python-dotenv). Durations are given in milliseconds in the environment
and stored in seconds.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

LOG_LEVELS = ("debug", "info", "warn", "error")


def parse_bool(value: Optional[str]) -> bool:
    if not value:
        return False
    return value.strip().lower() in ("true", "yes", "1")


def parse_int(value: Optional[str], default: int) -> int:
    if not value:
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default


@dataclass(frozen=True)
class BridgeConfig:
    # Logging
    debug: bool = False
    log_to_file: bool = False
    log_file: str = "logs/chatgpt.log"
    log_level: str = "info"

    # Timeouts (seconds)
    standard_timeout: float = 120.0
    search_timeout: float = 600.0

    # UI interaction (seconds)
    initial_delay: float = 1.0
    new_chat_delay: float = 1.0
    typing_delay: float = 0.5
    clear_input_delay: float = 0.5
    conversation_delay: float = 1.0
    launch_settle_delay: float = 2.0
    list_conversations_delay: float = 1.5
    search_grace_delay: float = 3.0

    # Response detection
    stable_checks: int = 3
    check_interval: float = 1.0

    # Target application
    app_name: str = "ChatGPT"
    app_path: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "BridgeConfig":
        """Build a config from environment variables, falling back to defaults."""
        if environ is None:
            load_dotenv()
            environ = os.environ

        def ms(name: str, default_s: float) -> float:
            return parse_int(environ.get(name), int(default_s * 1000)) / 1000.0

        defaults = cls()
        log_level = (environ.get("LOG_LEVEL") or defaults.log_level).strip().lower()
        if log_level not in LOG_LEVELS:
            log_level = defaults.log_level

        return cls(
            debug=parse_bool(environ.get("DEBUG")),
            log_to_file=parse_bool(environ.get("LOG_TO_FILE")),
            log_file=environ.get("LOG_FILE") or defaults.log_file,
            log_level=log_level,
            standard_timeout=ms("STANDARD_TIMEOUT", defaults.standard_timeout),
            search_timeout=ms("SEARCH_TIMEOUT", defaults.search_timeout),
            initial_delay=ms("INITIAL_DELAY", defaults.initial_delay),
            new_chat_delay=ms("NEW_CHAT_DELAY", defaults.new_chat_delay),
            typing_delay=ms("TYPING_DELAY", defaults.typing_delay),
            stable_checks=max(1, parse_int(environ.get("STABLE_CHECKS"), defaults.stable_checks)),
            check_interval=ms("CHECK_INTERVAL", defaults.check_interval),
            app_name=environ.get("CHATGPT_APP_NAME") or defaults.app_name,
            app_path=environ.get("CHATGPT_APP_PATH") or None,
        )

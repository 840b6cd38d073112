"""Relay server configuration from environment variables."""

from __future__ import annotations

import os

from chatrelay.protocol.types import (
    DEFAULT_FETCH_LIMIT,
    MAX_CHANNEL_MESSAGES,
    MAX_FETCH_LIMIT,
    MAX_MESSAGE_LENGTH,
    ChannelClass,
)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Settings:
    """Relay server settings, read from environment variables with defaults.

    One instance per application; it fixes the deployment profile, including
    the channel class used when a caller omits one.
    """

    def __init__(self) -> None:
        self.host: str = os.getenv("CHATRELAY_HOST", "0.0.0.0")
        self.port: int = int(os.getenv("CHATRELAY_PORT", "3000"))
        self.cors_origins: str = os.getenv("CHATRELAY_CORS_ORIGINS", "*")
        self.log_level: str = os.getenv("CHATRELAY_LOG_LEVEL", "INFO").upper()
        self.debug: bool = _env_bool("CHATRELAY_DEBUG", "")
        # Only enable behind a proxy that overwrites X-Forwarded-For
        self.trust_proxy: bool = _env_bool("CHATRELAY_TRUST_PROXY", "false")
        self.redaction_salt: str = os.getenv(
            "CHATRELAY_REDACTION_SALT", "salt-change-this"
        )

        # Message store
        self.max_message_length: int = int(
            os.getenv("CHATRELAY_MAX_MESSAGE_LENGTH", str(MAX_MESSAGE_LENGTH))
        )
        self.global_capacity: int = int(
            os.getenv("CHATRELAY_GLOBAL_CAPACITY", str(MAX_CHANNEL_MESSAGES))
        )
        self.local_capacity: int = int(
            os.getenv("CHATRELAY_LOCAL_CAPACITY", str(MAX_CHANNEL_MESSAGES))
        )
        self.default_fetch_limit: int = int(
            os.getenv("CHATRELAY_DEFAULT_FETCH_LIMIT", str(DEFAULT_FETCH_LIMIT))
        )
        self.max_fetch_limit: int = int(
            os.getenv("CHATRELAY_MAX_FETCH_LIMIT", str(MAX_FETCH_LIMIT))
        )
        self.sanitize_html: bool = _env_bool("CHATRELAY_SANITIZE_HTML", "true")
        default_class = os.getenv("CHATRELAY_DEFAULT_CHANNEL_CLASS", "global")
        try:
            self.default_channel_class = ChannelClass(default_class.lower())
        except ValueError:
            raise ValueError(
                f"CHATRELAY_DEFAULT_CHANNEL_CLASS must be 'global' or 'local', got {default_class!r}"
            ) from None

        # Idle local channel reclamation
        self.reclaim_interval: float = float(
            os.getenv("CHATRELAY_RECLAIM_INTERVAL", "600")
        )
        self.local_idle_timeout: float = float(
            os.getenv("CHATRELAY_LOCAL_IDLE_TIMEOUT", "3600")
        )

        # Rate limit budgets: (max requests, window seconds)
        self.general_rate_limit: int = int(
            os.getenv("CHATRELAY_GENERAL_RATE_LIMIT", "100")
        )
        self.general_rate_window: float = float(
            os.getenv("CHATRELAY_GENERAL_RATE_WINDOW", "900")
        )
        self.init_rate_limit: int = int(os.getenv("CHATRELAY_INIT_RATE_LIMIT", "5"))
        self.init_rate_window: float = float(
            os.getenv("CHATRELAY_INIT_RATE_WINDOW", "60")
        )
        self.send_rate_limit: int = int(os.getenv("CHATRELAY_SEND_RATE_LIMIT", "10"))
        self.send_rate_window: float = float(
            os.getenv("CHATRELAY_SEND_RATE_WINDOW", "60")
        )
        self.rate_limit_cleanup_interval: float = float(
            os.getenv("CHATRELAY_RATE_LIMIT_CLEANUP_INTERVAL", "300")
        )

        for name in (
            "max_message_length",
            "global_capacity",
            "local_capacity",
            "default_fetch_limit",
            "max_fetch_limit",
        ):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be positive")

"""
Service configuration.

Settings are read from the environment exactly once at process start
(Settings.from_env()) and handed to each component through its constructor.
Components never consult os.environ at call time.
"""

import os
import logging
from dataclasses import dataclass
from typing import List, Optional

logger = logging.getLogger(__name__)

DEFAULT_TELEGRAM_API_BASE = "https://api.telegram.org"
DEFAULT_APP_URL = "https://clixen.app"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """Immutable process configuration."""

    database_url: str = "sqlite:///./clixen.db"
    auto_create_schema: bool = False

    # Payment provider
    stripe_webhook_secret: str = ""
    stripe_signature_tolerance_seconds: int = 300

    # Classification service
    openai_api_key: str = ""
    classifier_model: str = "gpt-4o-mini"
    classifier_timeout_seconds: float = 8.0

    # Workflow executor
    executor_base_url: str = ""
    executor_api_key: str = ""
    executor_timeout_seconds: float = 15.0

    # Messaging platform
    telegram_bot_token: str = ""
    telegram_api_base: str = DEFAULT_TELEGRAM_API_BASE
    telegram_timeout_seconds: float = 5.0
    telegram_webhook_secret: Optional[str] = None

    app_url: str = DEFAULT_APP_URL
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Load configuration from environment variables."""
        settings = cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            auto_create_schema=_env_bool("AUTO_CREATE_SCHEMA", False),
            stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET", ""),
            stripe_signature_tolerance_seconds=_env_int(
                "STRIPE_SIGNATURE_TOLERANCE_SECONDS", cls.stripe_signature_tolerance_seconds
            ),
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),
            classifier_model=os.getenv("CLASSIFIER_MODEL", cls.classifier_model),
            classifier_timeout_seconds=_env_float(
                "CLASSIFIER_TIMEOUT_SECONDS", cls.classifier_timeout_seconds
            ),
            executor_base_url=os.getenv("WORKFLOW_EXECUTOR_URL", "").rstrip("/"),
            executor_api_key=os.getenv("WORKFLOW_EXECUTOR_API_KEY", ""),
            executor_timeout_seconds=_env_float(
                "WORKFLOW_EXECUTOR_TIMEOUT_SECONDS", cls.executor_timeout_seconds
            ),
            telegram_bot_token=os.getenv("TELEGRAM_BOT_TOKEN", ""),
            telegram_api_base=os.getenv("TELEGRAM_API_BASE", DEFAULT_TELEGRAM_API_BASE).rstrip("/"),
            telegram_timeout_seconds=_env_float(
                "TELEGRAM_TIMEOUT_SECONDS", cls.telegram_timeout_seconds
            ),
            telegram_webhook_secret=os.getenv("TELEGRAM_WEBHOOK_SECRET") or None,
            app_url=os.getenv("APP_URL", DEFAULT_APP_URL).rstrip("/"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

        missing = settings.missing_required()
        if missing:
            logger.warning(
                "Service configuration incomplete",
                extra={"missing": missing},
            )
        return settings

    def missing_required(self) -> List[str]:
        """Names of required settings that are empty."""
        required = {
            "STRIPE_WEBHOOK_SECRET": self.stripe_webhook_secret,
            "OPENAI_API_KEY": self.openai_api_key,
            "WORKFLOW_EXECUTOR_URL": self.executor_base_url,
            "TELEGRAM_BOT_TOKEN": self.telegram_bot_token,
        }
        return [name for name, value in required.items() if not value]

    @property
    def billing_url(self) -> str:
        return f"{self.app_url}/subscription"

    @property
    def signup_url(self) -> str:
        return f"{self.app_url}/auth/signup"

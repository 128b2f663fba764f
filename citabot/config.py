"""
Centralized configuration with environment variable overrides.

Storage identifiers, model settings, dialog timings and bookable hours are
configurable here. The business profile itself (services, workers, schedule)
lives in a JSON file whose path is configured below.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_BOOKABLE_TIMES = (
    "9:00 AM,10:00 AM,11:00 AM,12:00 PM,1:00 PM,2:00 PM,"
    "3:00 PM,4:00 PM,5:00 PM,6:00 PM,7:00 PM"
)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _safe_bool(env_var: str, default: str) -> bool:
    """Parse a boolean flag from an env var (true/false, 1/0, yes/no)."""
    raw = os.getenv(env_var, default).strip().lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"Invalid boolean for {env_var}: {raw!r}")


def _csv_tuple(env_var: str, default: str) -> tuple[str, ...]:
    raw = os.getenv(env_var, default)
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class BusinessConfig:
    """Where the business profile lives and how the booking grid is laid out."""

    profile_path: str = os.getenv("BUSINESS_CONFIG_PATH", "business_config.json")
    timezone: str = os.getenv("BUSINESS_TIMEZONE", "America/Hermosillo")
    bookable_times: tuple[str, ...] = _csv_tuple("BOOKABLE_TIMES", DEFAULT_BOOKABLE_TIMES)
    sheet_name: str = os.getenv("SHEET_NAME", "Calendario")


@dataclass(frozen=True)
class ModelConfig:
    """LLM settings shared by the NLU analyzer and the text generator."""

    llm_model: str = os.getenv("LLM_MODEL", "gpt-4o-mini")
    llm_temperature: float = _safe_float("LLM_TEMPERATURE", "0.7")
    max_output_tokens: int = _safe_int("LLM_MAX_OUTPUT_TOKENS", "1024")
    request_timeout_sec: float = _safe_float("LLM_TIMEOUT", "15.0")


@dataclass(frozen=True)
class StorageConfig:
    """Google Sheets and Google Calendar identifiers."""

    spreadsheet_id: str = os.getenv("SPREADSHEETID", "")
    calendar_id: str = os.getenv("GOOGLE_CALENDAR_ID", "")
    google_token_path: str = os.getenv("GOOGLE_TOKEN_PATH", "google.json")
    request_timeout_sec: float = _safe_float("GOOGLE_TIMEOUT", "20.0")


@dataclass(frozen=True)
class DialogConfig:
    """Conversation timing and policy knobs."""

    quiet_window_sec: float = _safe_float("QUIET_WINDOW_SEC", "5.0")
    history_limit: int = _safe_int("HISTORY_LIMIT", "10")
    max_reply_chars: int = _safe_int("MAX_REPLY_CHARS", "500")
    confirm_unpersisted: bool = _safe_bool("CONFIRM_UNPERSISTED", "true")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    business: BusinessConfig = field(default_factory=BusinessConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    dialog: DialogConfig = field(default_factory=DialogConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    agent_name: str = os.getenv("AGENT_NAME", "citabot")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if not 0.0 <= config.model.llm_temperature <= 2.0:
        raise ValueError(
            f"LLM_TEMPERATURE must be between 0.0 and 2.0, got {config.model.llm_temperature}"
        )
    if config.model.max_output_tokens < 1:
        raise ValueError(
            f"LLM_MAX_OUTPUT_TOKENS must be >= 1, got {config.model.max_output_tokens}"
        )
    if config.model.request_timeout_sec <= 0:
        raise ValueError(
            f"LLM_TIMEOUT must be > 0, got {config.model.request_timeout_sec}"
        )
    if config.storage.request_timeout_sec <= 0:
        raise ValueError(
            f"GOOGLE_TIMEOUT must be > 0, got {config.storage.request_timeout_sec}"
        )
    if config.dialog.quiet_window_sec < 0:
        raise ValueError(
            f"QUIET_WINDOW_SEC must be >= 0, got {config.dialog.quiet_window_sec}"
        )
    if config.dialog.history_limit < 1:
        raise ValueError(
            f"HISTORY_LIMIT must be >= 1, got {config.dialog.history_limit}"
        )
    if config.dialog.max_reply_chars < 10:
        raise ValueError(
            f"MAX_REPLY_CHARS must be >= 10, got {config.dialog.max_reply_chars}"
        )
    if not config.business.bookable_times:
        raise ValueError("BOOKABLE_TIMES must list at least one time slot")
    for slot in config.business.bookable_times:
        if not slot.upper().endswith(("AM", "PM")):
            raise ValueError(f"BOOKABLE_TIMES entries must end in AM/PM, got {slot!r}")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info("Configuration loaded for agent '%s'", config.agent_name)
    return config


# Singleton instance
settings = load_config()

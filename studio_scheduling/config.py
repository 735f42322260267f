"""
Centralized configuration with environment variable overrides.

Slot granularity, session length, reschedule notice and the session
catalog are configurable here. Nothing is hardcoded in scheduling logic.
"""

import logging
import os
from dataclasses import dataclass, field
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TYPES = "In-Person Training,Virtual Training,Partner Training"


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _split_list(env_var: str, default: str) -> tuple[str, ...]:
    raw = os.getenv(env_var, default)
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class SchedulingConfig:
    """Slot generation and reschedule policy settings."""

    session_duration_minutes: int = _safe_int("SESSION_DURATION_MINUTES", "60")
    slot_step_minutes: int = _safe_int("SLOT_STEP_MINUTES", "30")
    reschedule_notice_hours: int = _safe_int("RESCHEDULE_NOTICE_HOURS", "24")
    studio_timezone: str = os.getenv("STUDIO_TIMEZONE", "UTC")


@dataclass(frozen=True)
class CatalogConfig:
    """Training types a session (and a package) can be bought for."""

    session_types: tuple[str, ...] = _split_list("SESSION_TYPES", DEFAULT_SESSION_TYPES)


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    scheduling: SchedulingConfig = field(default_factory=SchedulingConfig)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    app_name: str = os.getenv("APP_NAME", "studio-scheduling")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    sched = config.scheduling
    if sched.session_duration_minutes < 1:
        raise ValueError(
            f"SESSION_DURATION_MINUTES must be >= 1, got {sched.session_duration_minutes}"
        )
    if sched.slot_step_minutes < 1:
        raise ValueError(
            f"SLOT_STEP_MINUTES must be >= 1, got {sched.slot_step_minutes}"
        )
    if sched.session_duration_minutes % sched.slot_step_minutes != 0:
        raise ValueError(
            "SESSION_DURATION_MINUTES must be a multiple of SLOT_STEP_MINUTES, "
            f"got {sched.session_duration_minutes} and {sched.slot_step_minutes}"
        )
    if sched.reschedule_notice_hours < 0:
        raise ValueError(
            f"RESCHEDULE_NOTICE_HOURS must be >= 0, got {sched.reschedule_notice_hours}"
        )
    try:
        ZoneInfo(sched.studio_timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(
            f"STUDIO_TIMEZONE is not a known timezone: {sched.studio_timezone!r}"
        ) from None

    if not config.catalog.session_types:
        raise ValueError("SESSION_TYPES must name at least one session type")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info(
        "Configuration loaded for '%s' (timezone %s)",
        config.app_name, config.scheduling.studio_timezone,
    )
    return config


# Singleton instance
settings = load_config()

"""Behavioural settings for the replication checker service."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from enum import StrEnum

from .env import ENV_PREFIX, env_bool, env_float, optional_env_var
from .errors import ConfigurationError

DEFAULT_NEW_RECORD_DELAY_SECONDS = 2.0


class AutoCheckFrequency(StrEnum):
    NEVER = "never"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def interval(self) -> timedelta | None:
        return _INTERVALS.get(self)


_INTERVALS: dict[AutoCheckFrequency, timedelta] = {
    AutoCheckFrequency.DAILY: timedelta(days=1),
    AutoCheckFrequency.WEEKLY: timedelta(days=7),
    AutoCheckFrequency.MONTHLY: timedelta(days=30),
}


@dataclass(frozen=True, slots=True)
class CheckerSettings:
    auto_check_new_items: bool = True
    auto_check_frequency: AutoCheckFrequency = AutoCheckFrequency.NEVER
    new_record_delay_seconds: float = DEFAULT_NEW_RECORD_DELAY_SECONDS
    create_notes: bool = True
    create_folders: bool = True


def get_checker_settings() -> CheckerSettings:
    raw_frequency = optional_env_var(f"{ENV_PREFIX}AUTO_CHECK_FREQUENCY")
    try:
        frequency = (
            AutoCheckFrequency(raw_frequency.lower())
            if raw_frequency is not None
            else AutoCheckFrequency.NEVER
        )
    except ValueError as exc:
        allowed = ", ".join(member.value for member in AutoCheckFrequency)
        raise ConfigurationError(
            f"{ENV_PREFIX}AUTO_CHECK_FREQUENCY must be one of {allowed}, got {raw_frequency!r}"
        ) from exc

    delay = env_float(f"{ENV_PREFIX}NEW_RECORD_DELAY", DEFAULT_NEW_RECORD_DELAY_SECONDS)
    if delay < 0:
        raise ConfigurationError(f"{ENV_PREFIX}NEW_RECORD_DELAY must be non-negative")

    return CheckerSettings(
        auto_check_new_items=env_bool(f"{ENV_PREFIX}AUTO_CHECK_NEW_ITEMS", default=True),
        auto_check_frequency=frequency,
        new_record_delay_seconds=delay,
        create_notes=env_bool(f"{ENV_PREFIX}CREATE_NOTES", default=True),
        create_folders=env_bool(f"{ENV_PREFIX}CREATE_FOLDERS", default=True),
    )

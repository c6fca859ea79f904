"""FLoRA (FReD) API configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from replication_checker import __version__

from .env import ENV_PREFIX, env_float, env_int, optional_env_var
from .errors import ConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

DEFAULT_FLORA_BASE_URL = "https://rep-api.forrt.org/v1/"
PREFIX_LOOKUP_PATH = "prefix-lookup"
FLORA_TIMEOUT_SECONDS = 30.0
MAX_PREFIX_BATCH_SIZE = 100


@dataclass(frozen=True, slots=True)
class FloraConfig:
    """Holds FLoRA prefix lookup configuration values."""

    resilience: ResilienceConfig
    lookup_path: str = PREFIX_LOOKUP_PATH
    batch_size: int = MAX_PREFIX_BATCH_SIZE

    def __post_init__(self) -> None:
        if not 1 <= self.batch_size <= MAX_PREFIX_BATCH_SIZE:
            raise ConfigurationError(
                f"Prefix batch size must be between 1 and {MAX_PREFIX_BATCH_SIZE}, "
                f"got {self.batch_size}"
            )


def get_flora_config(*, resilience: ResilienceConfig | None = None) -> FloraConfig:
    base_url = optional_env_var(f"{ENV_PREFIX}API_URL") or DEFAULT_FLORA_BASE_URL
    if not base_url.endswith("/"):
        base_url = f"{base_url}/"
    return FloraConfig(
        resilience=resilience
        or ResilienceConfig(
            name="flora",
            base_url=base_url,
            timeout_seconds=env_float(f"{ENV_PREFIX}API_TIMEOUT", FLORA_TIMEOUT_SECONDS),
            ratelimit=RateLimit(max_calls=5, per_seconds=1.0),
            retry=RetryPolicy(total=3),
            default_headers={
                "Content-Type": "application/json",
                "User-Agent": f"replication-checker/{__version__}",
            },
        ),
        batch_size=env_int(f"{ENV_PREFIX}BATCH_SIZE", MAX_PREFIX_BATCH_SIZE),
    )

"""FLoRA prefix-lookup API client."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from replication_checker.adapters.http_resilience import ResilientClient

from .schema import PrefixLookupResponse

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from replication_checker.config.flora import FloraConfig
    from replication_checker.config.http_resilience import ResilienceConfig

log = getLogger(__name__)


class FloraAPIError(RuntimeError):
    """Raised when the FLoRA API returns an unexpected response."""


class FloraClient:
    """Low-level HTTP client for the FLoRA replication database API."""

    def __init__(
        self,
        *,
        config: FloraConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._config = config
        self._resilience = config.resilience
        self._client_factory = client_factory or ResilientClient

    async def lookup_prefixes(self, prefixes: Sequence[str]) -> PrefixLookupResponse:
        if self._resilience.base_url is None:
            raise FloraAPIError("Missing FLoRA base_url in resilience configuration")

        async with self._client_factory(self._resilience) as client:
            response = await client.post(
                self._config.lookup_path,
                json={"prefixes": list(prefixes)},
            )
        response.raise_for_status()

        payload = response.json()
        if not isinstance(payload, dict):
            raise FloraAPIError("Unexpected FLoRA response payload")
        if "results" not in payload:
            raise FloraAPIError("FLoRA response is missing 'results'")

        parsed = PrefixLookupResponse.model_validate(payload)
        log.debug(
            "FLoRA returned %s articles for %s prefixes",
            sum(len(articles) for articles in parsed.results.values()),
            len(prefixes),
        )
        return parsed

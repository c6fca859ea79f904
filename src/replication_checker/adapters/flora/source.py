"""Candidate source port implementation backed by the FLoRA API."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Protocol

import httpx
from pydantic import ValidationError

from replication_checker.domain.errors import SourceUnavailableError

from .client import FloraAPIError, FloraClient
from .translator import translate_response

if TYPE_CHECKING:
    from collections.abc import Sequence

    from replication_checker.config.flora import FloraConfig
    from replication_checker.domain.model import Candidate

    from .schema import PrefixLookupResponse

log = getLogger(__name__)


class PrefixLookupClient(Protocol):
    async def lookup_prefixes(self, prefixes: Sequence[str]) -> PrefixLookupResponse: ...


class FloraCandidateSource:
    """Answer fingerprint queries through FLoRA's ``prefix-lookup`` endpoint."""

    def __init__(
        self,
        *,
        config: FloraConfig,
        client: PrefixLookupClient | None = None,
    ) -> None:
        self._client = client or FloraClient(config=config)

    async def query_by_fingerprints(self, fingerprints: Sequence[str]) -> list[Candidate]:
        if not fingerprints:
            return []
        try:
            response = await self._client.lookup_prefixes(fingerprints)
        except (httpx.HTTPError, FloraAPIError, ValidationError, ValueError) as exc:
            log.warning("FLoRA prefix lookup failed: %s", exc)
            raise SourceUnavailableError("Replication database lookup failed") from exc
        return translate_response(response)


def build_flora_source(config: FloraConfig) -> FloraCandidateSource:
    return FloraCandidateSource(config=config)

"""Abstract base class for metadata / catalog providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import httpx

from gameshelf.models.metadata import PartialMetadata
from gameshelf.models.provider_match import ProviderMatch
from gameshelf.models.resolution import ResolvedIdentity
from gameshelf.providers.http import RateLimiter, http_client, with_retry


class MetadataProvider(ABC):
    """
    Abstract interface for an external game catalog.

    Network failures propagate as ``httpx.HTTPError`` (after retries);
    callers decide whether to fall back to the next provider.
    """

    def __init__(
        self,
        config: Any = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._config = config
        self._transport = transport
        self._limiter = RateLimiter(self._rate_limit())

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this provider (e.g. 'igdb', 'rawg')."""
        ...

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Human-readable name (e.g. 'IGDB', 'SteamGridDB')."""
        ...

    @abstractmethod
    def is_available(self) -> bool:
        """False when credentials are missing; the provider is then skipped."""
        ...

    @abstractmethod
    def search_by_title(self, title: str, hint_id: str | None = None) -> list[ProviderMatch]:
        """Search the catalog; *hint_id* is a storefront id when one is known."""
        ...

    def fetch_artwork(self, identity: ResolvedIdentity) -> PartialMetadata:
        """Artwork and text for a resolved identity. Optional."""
        return PartialMetadata()

    # ── HTTP helpers ──

    def _rate_limit(self) -> float:
        if self._config is None:
            return 0.0
        return float(self._config.get(f"providers.rate_limits.{self.name}", 0.0) or 0.0)

    def _timeout(self, name: str, default: float = 30.0) -> float:
        if self._config is None:
            return default
        return float(self._config.get(f"timeouts.{name}", default) or default)

    def _http_client(self, **kwargs: Any) -> httpx.Client:
        return http_client(self._config, self._transport, **kwargs)

    def _request(
        self,
        method: str,
        url: str,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Rate-limited request with retries; raises on HTTP error status."""
        timeout = timeout if timeout is not None else self._timeout("search")

        def send() -> httpx.Response:
            self._limiter.wait()
            with self._http_client(timeout=timeout) as client:
                resp = client.request(method, url, **kwargs)
                resp.raise_for_status()
                return resp

        return with_retry(send, label=f"{self.name} {method} {url}")

    def _get_json(self, url: str, **kwargs: Any) -> Any:
        return self._request("GET", url, **kwargs).json()

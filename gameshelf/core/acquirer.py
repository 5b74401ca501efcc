"""Artwork and metadata acquirer — ordered strategies, merged field by field."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from gameshelf.core.deadline import DeadlineExceeded, DeadlineRunner
from gameshelf.models.metadata import PartialMetadata
from gameshelf.models.resolution import ResolvedIdentity
from gameshelf.providers.base import MetadataProvider


@dataclass
class Strategy:
    """One acquisition step; ``applies`` decides whether it runs for the current state."""

    name: str
    fetch: Callable[[ResolvedIdentity], PartialMetadata]
    applies: Callable[[ResolvedIdentity, PartialMetadata], bool]


def _needs_fallback(_identity: ResolvedIdentity, acquired: PartialMetadata) -> bool:
    return not acquired.box_art or not acquired.description


class ArtworkAcquirer:
    """
    Runs acquisition strategies in order and merges their results.

    Order: storefront CDN (storefront id known), catalog artwork,
    primary metadata, aggregator fallback (only while box art or
    description is still missing).  The first strategy to populate a
    field wins.  All strategies together are bounded by *acquire_timeout*;
    a slow or failing strategy contributes nothing.
    """

    def __init__(
        self,
        providers: dict[str, MetadataProvider],
        acquire_timeout: float = 30.0,
        runner: DeadlineRunner | None = None,
    ) -> None:
        self._acquire_timeout = acquire_timeout
        self._runner = runner or DeadlineRunner(name="gameshelf-acquire")
        self._strategies = self._build_strategies(providers)

    @staticmethod
    def _build_strategies(providers: dict[str, MetadataProvider]) -> list[Strategy]:
        strategies: list[Strategy] = []

        def usable(name: str) -> MetadataProvider | None:
            provider = providers.get(name)
            return provider if provider is not None and provider.is_available() else None

        steam = usable("steam")
        if steam is not None:
            strategies.append(Strategy(
                "storefront-cdn", steam.fetch_artwork,
                lambda identity, _acquired: bool(identity.storefront_id),
            ))
        grid = usable("steamgriddb")
        if grid is not None:
            strategies.append(Strategy(
                "catalog", grid.fetch_artwork, lambda _identity, _acquired: True,
            ))
        igdb = usable("igdb")
        if igdb is not None:
            strategies.append(Strategy(
                "primary-metadata", igdb.fetch_artwork, lambda _identity, _acquired: True,
            ))
        rawg = usable("rawg")
        if rawg is not None:
            strategies.append(Strategy("aggregator", rawg.fetch_artwork, _needs_fallback))
        return strategies

    @property
    def strategy_names(self) -> list[str]:
        return [s.name for s in self._strategies]

    def acquire(self, identity: ResolvedIdentity) -> PartialMetadata:
        """Merged metadata for *identity*; empty when every strategy came back empty."""
        acquired = PartialMetadata()
        deadline = time.monotonic() + self._acquire_timeout
        for strategy in self._strategies:
            if not strategy.applies(identity, acquired):
                continue
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.warning(f"Acquisition deadline reached for '{identity.title}'; skipping {strategy.name}")
                continue
            try:
                result = self._runner.call(remaining, strategy.fetch, identity)
            except DeadlineExceeded:
                logger.warning(f"{strategy.name} hit the acquisition deadline for '{identity.title}'")
                continue
            except Exception as e:
                logger.warning(f"{strategy.name} failed for '{identity.title}': {e}")
                continue

            filled = acquired.merge(result, source=strategy.name)
            if filled:
                logger.debug(f"{strategy.name} filled {', '.join(filled)} for '{identity.title}'")
        return acquired

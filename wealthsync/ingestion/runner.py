"""Fan-out fetch over a batch of identities."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from wealthsync.core.errors import UpstreamProviderError, WealthSyncError
from wealthsync.core.logging import get_logger
from wealthsync.schemas.holdings import Performance
from .base import BaseSource

log = get_logger("ingestion.runner")


@dataclass
class FetchOutcome:
    """Result of fetching one identity: holdings, or the error that stopped it."""

    identity: Any
    label: str
    holdings: List[Any] = field(default_factory=list)
    performance: Dict[str, Performance] = field(default_factory=dict)
    error: Optional[WealthSyncError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class IngestionRunner:
    """Issues every identity's provider calls concurrently and waits for all.

    A failure on one identity is captured on its outcome; siblings still
    complete. Performance data is best effort: when it fails the identity's
    holdings are kept without PnL.
    """

    def __init__(self, source: BaseSource):
        self.source = source

    async def run(self, identities: Sequence[Any]) -> List[FetchOutcome]:
        outcomes = await asyncio.gather(*(self._fetch_one(identity) for identity in identities))
        ok = sum(1 for o in outcomes if o.ok)
        log.info(f"Source={self.source.name} identities={len(outcomes)} ok={ok} failed={len(outcomes) - ok}")
        return list(outcomes)

    async def _fetch_one(self, identity: Any) -> FetchOutcome:
        label = self.source.identity_label(identity)
        balances, performance = await asyncio.gather(
            self.source.fetch_balances(identity),
            self.source.fetch_performance(identity),
            return_exceptions=True,
        )

        if isinstance(balances, BaseException):
            error = _as_domain_error(self.source.name, balances)
            log.error(f"Fetch failed for {self.source.name}:{label}: {error}")
            return FetchOutcome(identity=identity, label=label, error=error)

        if isinstance(performance, BaseException):
            log.warning(f"Performance unavailable for {self.source.name}:{label}: {performance}")
            performance = {}

        return FetchOutcome(identity=identity, label=label, holdings=list(balances), performance=performance)


def _as_domain_error(provider: str, exc: BaseException) -> WealthSyncError:
    if isinstance(exc, WealthSyncError):
        return exc
    if isinstance(exc, (asyncio.CancelledError, KeyboardInterrupt, SystemExit)):
        raise exc
    # Malformed payloads (missing keys, wrong shapes) surface as provider errors
    return UpstreamProviderError(provider, f"{type(exc).__name__}: {exc}")

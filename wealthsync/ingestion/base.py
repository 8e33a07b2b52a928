"""Abstract provider interface for ingestion."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import httpx

from wealthsync.core.errors import UpstreamProviderError
from wealthsync.core.logging import get_logger
from wealthsync.schemas.holdings import Performance

log = get_logger("ingestion.base")


class BaseSource(ABC):
    """Abstract base class for provider adapters."""

    name: str

    def __init__(self, timeout: float = 15.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        # Injected in tests (httpx.MockTransport)
        self.transport = transport

    @abstractmethod
    async def fetch_balances(self, identity: Any) -> List[Any]:
        """Fetch raw holdings (RawHolding variants) for one identity."""

    async def fetch_performance(self, identity: Any) -> Dict[str, Performance]:
        """Realized PnL keyed by holding; empty where the provider has none."""
        return {}

    def identity_label(self, identity: Any) -> str:
        return str(identity)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Transport failures, non-2xx statuses, HTML error pages and
        undecodable bodies all surface as ``UpstreamProviderError``.
        """
        try:
            async with self._client() as client:
                resp = await client.request(method, url, params=params, json=json, headers=headers)
        except httpx.HTTPError as exc:
            raise UpstreamProviderError(self.name, f"request to {url} failed: {exc}") from exc

        text = resp.text
        if resp.status_code >= 400:
            raise UpstreamProviderError(
                self.name,
                f"HTTP {resp.status_code} from {url}: {_error_detail(resp)}",
                status=resp.status_code,
            )
        stripped = text.lstrip()
        if stripped.startswith("<!DOCTYPE") or stripped.startswith("<html"):
            raise UpstreamProviderError(self.name, f"HTML received instead of JSON from {url}", status=resp.status_code)
        try:
            return resp.json()
        except ValueError as exc:
            raise UpstreamProviderError(self.name, f"malformed JSON from {url}", status=resp.status_code) from exc


def _error_detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200]
    if isinstance(body, dict):
        return str(body.get("error_message") or body.get("message") or body.get("error") or body)[:200]
    return str(body)[:200]


Strategy = Callable[[], Awaitable[Sequence[Any]]]


class FallbackChain:
    """Ordered list of named strategies for one data need.

    ``run`` returns the name and result of the first strategy that yields a
    non-empty result. Strategy failures are logged and the next one is tried;
    when all of them come back empty or fail, the result is empty.
    """

    def __init__(self, name: str, strategies: List[Tuple[str, Strategy]]):
        self.name = name
        self.strategies = strategies

    async def run(self) -> Tuple[Optional[str], List[Any]]:
        for label, strategy in self.strategies:
            try:
                result = list(await strategy())
            except UpstreamProviderError as exc:
                log.warning(f"{self.name}: strategy '{label}' failed: {exc}")
                continue
            if result:
                return label, result
            log.debug(f"{self.name}: strategy '{label}' returned nothing")
        return None, []


def to_float(value: Any, default: Optional[float] = None) -> Optional[float]:
    """Parse provider numerics (often strings); bad input yields ``default``."""
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default

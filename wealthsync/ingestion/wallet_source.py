"""Wallet-chain source (Moralis Web3 Data + Streams APIs)."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

import httpx

from wealthsync.core.config import Settings
from wealthsync.core.errors import UpstreamProviderError
from wealthsync.core.logging import get_logger
from wealthsync.schemas.holdings import Performance, WalletHolding
from .base import BaseSource, to_float

log = get_logger("ingestion.wallet")

DATA_API_URL = "https://deep-index.moralis.io/api/v2.2"
STREAMS_API_URL = "https://api.moralis-streams.com/streams/evm"

# Hex chain ids for stream registration
CHAIN_IDS: Dict[str, str] = {
    "eth": "0x1",
    "polygon": "0x89",
    "bsc": "0x38",
    "avalanche": "0xa86a",
    "arbitrum": "0xa4b1",
    "optimism": "0xa",
    "base": "0x2105",
}

NATIVE_SYMBOLS: Dict[str, str] = {
    "eth": "ETH",
    "polygon": "POL",
    "bsc": "BNB",
    "avalanche": "AVAX",
    "arbitrum": "ETH",
    "optimism": "ETH",
    "base": "ETH",
}

NATIVE_ICONS: Dict[str, str] = {
    "eth": "https://assets.coingecko.com/coins/images/279/small/ethereum.png",
    "bsc": "https://assets.coingecko.com/coins/images/825/small/binance-coin-logo.png",
    "polygon": "https://assets.coingecko.com/coins/images/4713/small/matic-token-icon.png",
    "avalanche": "https://assets.coingecko.com/coins/images/12559/small/Avalanche_Circle_RedWhite_Trans.png",
    "arbitrum": "https://assets.coingecko.com/coins/images/16547/small/photo_2023-03-29_21.47.00.jpeg",
    "optimism": "https://assets.coingecko.com/coins/images/25244/small/Optimism.png",
    "base": "https://assets.coingecko.com/coins/images/31069/small/base.png",
}


class WalletChainSource(BaseSource):
    """Fetches wallet balances, profitability and manages the address stream."""

    name = "moralis"

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        settings.require("MORALIS_API_KEY")
        super().__init__(timeout=settings.HTTP_TIMEOUT_SECONDS, transport=transport)
        self.api_key = settings.MORALIS_API_KEY
        self.chains = list(settings.WALLET_CHAINS)
        self.token_chain = settings.WALLET_TOKEN_CHAIN
        self.stream_tag = settings.WALLET_STREAM_TAG

    @property
    def _headers(self) -> Dict[str, str]:
        return {"X-API-Key": self.api_key, "accept": "application/json"}

    async def _data(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self._request("GET", f"{DATA_API_URL}{endpoint}", params=params, headers=self._headers)

    # -------------------------------------------------------------------------
    # Balances
    # -------------------------------------------------------------------------
    async def fetch_balances(self, identity: str) -> List[WalletHolding]:
        address = identity.lower()
        networth, tokens = await asyncio.gather(
            self._data(
                f"/wallets/{address}/net-worth",
                {"chains": ",".join(self.chains), "exclude_spam": "true", "exclude_unverified_contracts": "true"},
            ),
            self._data(f"/wallets/{address}/tokens", {"chain": self.token_chain, "exclude_spam": "true"}),
        )
        if not isinstance(networth, dict) or not isinstance(tokens, dict):
            raise UpstreamProviderError(self.name, f"unexpected balance payload for {address}")

        holdings = [self._parse_native(address, chain) for chain in networth.get("chains") or []]
        for token in tokens.get("result") or []:
            if token.get("native_token"):
                continue  # already counted from the net-worth chains
            holdings.append(self._parse_token(address, token))

        log.info(f"Fetched {len(holdings)} holdings for wallet {address}")
        return holdings

    @staticmethod
    def _parse_native(address: str, chain: Dict[str, Any]) -> WalletHolding:
        chain_name = chain.get("chain") or "eth"
        return WalletHolding(
            wallet_address=address,
            chain=chain_name,
            symbol=NATIVE_SYMBOLS.get(chain_name, chain_name.upper()),
            name=f"{chain_name.upper()} Native",
            balance=to_float(chain.get("native_balance_formatted")),
            usd_value=to_float(chain.get("native_balance_usd")),
            verified_contract=True,
            logo=NATIVE_ICONS.get(chain_name),
        )

    def _parse_token(self, address: str, token: Dict[str, Any]) -> WalletHolding:
        return WalletHolding(
            wallet_address=address,
            chain=self.token_chain,
            token_address=(token.get("token_address") or "").lower(),
            symbol=token.get("symbol"),
            name=token.get("name"),
            balance=to_float(token.get("balance_formatted")),
            usd_price=to_float(token.get("usd_price")),
            usd_value=to_float(token.get("usd_value")),
            change_24h_percent=to_float(token.get("usd_price_24hr_percent_change")),
            possible_spam=bool(token.get("possible_spam")),
            verified_contract=bool(token.get("verified_contract")),
            logo=token.get("thumbnail") or token.get("logo"),
        )

    async def fetch_performance(self, identity: str) -> Dict[str, Performance]:
        address = identity.lower()
        data = await self._data(f"/wallets/{address}/profitability", {"chain": self.token_chain})
        performance: Dict[str, Performance] = {}
        for item in (data or {}).get("result") or []:
            token_address = (item.get("token_address") or "").lower()
            if not token_address:
                continue
            performance[token_address] = Performance(
                realized_pnl_usd=to_float(item.get("realized_profit_usd"), 0.0),
                realized_pnl_percent=to_float(item.get("realized_profit_percentage"), 0.0),
            )
        return performance

    # -------------------------------------------------------------------------
    # Wallet overview (details screen)
    # -------------------------------------------------------------------------
    async def wallet_overview(self, address: str, chain: str = "eth") -> Dict[str, Any]:
        address = address.lower()
        networth, summary, tokens, history = await asyncio.gather(
            self._data(
                f"/wallets/{address}/net-worth",
                {
                    "exclude_spam": "true",
                    "exclude_unverified_contracts": "true",
                    "min_pair_side_liquidity_usd": 1000,
                },
            ),
            self._data(f"/wallets/{address}/profitability/summary"),
            self._data(f"/wallets/{address}/tokens", {"chain": chain, "exclude_spam": "true"}),
            self._data(f"/wallets/{address}/history", {"chain": chain, "order": "DESC", "limit": 15}),
        )

        token_rows = [
            {
                "symbol": t.get("symbol"),
                "name": t.get("name"),
                "balance": to_float(t.get("balance_formatted"), 0.0),
                "valueUsd": to_float(t.get("usd_value"), 0.0),
                "priceUsd": to_float(t.get("usd_price"), 0.0),
                "change24h": to_float(t.get("usd_price_24hr_percent_change"), 0.0),
                "iconUrl": t.get("thumbnail") or t.get("logo") or "",
            }
            for t in (tokens or {}).get("result") or []
        ]

        transactions = []
        for tx in (history or {}).get("result") or []:
            transfers = tx.get("erc20_transfers") or [{}]
            sender = (tx.get("from_address") or "").lower()
            transactions.append(
                {
                    "hash": tx.get("hash"),
                    "type": "sent" if sender == address else "received",
                    "fromAddress": tx.get("from_address"),
                    "toAddress": tx.get("to_address"),
                    "amountUsd": to_float(tx.get("transaction_value_usd"), 0.0),
                    "tokenSymbol": transfers[0].get("token_symbol") or NATIVE_SYMBOLS.get(chain, "ETH"),
                    "tokenAmount": to_float(transfers[0].get("value_formatted"), 0.0),
                    "timestamp": tx.get("block_timestamp"),
                    "entityName": tx.get("to_address_label") or tx.get("from_address_label"),
                }
            )

        return {
            "walletAddress": address,
            "name": f"Wallet {address[:6]}",
            "totalValueUsd": to_float((networth or {}).get("total_networth_usd"), 0.0),
            "realizedPnlUsd": to_float((summary or {}).get("total_realized_profit_usd"), 0.0),
            "realizedPnlPercent": to_float((summary or {}).get("total_realized_profit_percentage"), 0.0),
            "tokens": token_rows,
            "transactions": transactions,
        }

    # -------------------------------------------------------------------------
    # Streams
    # -------------------------------------------------------------------------
    async def _streams(self, endpoint: str = "", method: str = "GET", body: Any = None, params: Any = None) -> Any:
        headers = {**self._headers, "Content-Type": "application/json"}
        return await self._request(method, f"{STREAMS_API_URL}{endpoint}", json=body, params=params, headers=headers)

    @staticmethod
    def stream_id(stream: Dict[str, Any]) -> str:
        stream_id = stream.get("id") or stream.get("streamId")
        if not stream_id:
            raise UpstreamProviderError("moralis", "could not find stream id in response")
        return stream_id

    async def find_stream(self) -> Optional[Dict[str, Any]]:
        response = await self._streams(params={"limit": 10})
        for stream in (response or {}).get("result") or []:
            if stream.get("tag") == self.stream_tag:
                return stream
        return None

    async def ensure_stream(self, webhook_url: str) -> Dict[str, Any]:
        stream = await self.find_stream()
        if stream:
            return stream
        log.info(f"Creating wallet stream '{self.stream_tag}' -> {webhook_url}")
        return await self._streams(
            method="PUT",
            body={
                "chainIds": [CHAIN_IDS[c] for c in self.chains if c in CHAIN_IDS],
                "description": "WealthSync wallet monitoring",
                "tag": self.stream_tag,
                "webhookUrl": webhook_url,
                "includeNativeTxs": True,
                "includeContractLogs": True,
                "includeInternalTxs": True,
            },
        )

    async def watch_address(self, stream_id: str, address: str) -> None:
        await self._streams(f"/{stream_id}/address", method="POST", body={"address": address.lower()})

    async def unwatch_address(self, stream_id: str, address: str) -> None:
        await self._streams(f"/{stream_id}/address", method="DELETE", body={"address": address.lower()})

"""Service tests against an in-memory database and mocked providers"""

import json
from datetime import timedelta

import httpx
import pytest
from sqlalchemy import select

from helpers import SCAM, USDC, WALLET, fmp_routes, json_transport, moralis_routes, ok, record
from wealthsync.core.clock import utcnow
from wealthsync.core.errors import (
    InvalidRequestError,
    NotFoundError,
    SignatureVerificationError,
    UpstreamProviderError,
)
from wealthsync.core.signatures import hmac_sha256_hex, keccak256_hex
from wealthsync.ingestion.bank_source import BankSource
from wealthsync.ingestion.base import BaseSource
from wealthsync.ingestion.market_source import MarketDataSource
from wealthsync.ingestion.wallet_source import WalletChainSource
from wealthsync.models import BankConnection, SyncRun, WealthSnapshot
from wealthsync.schemas.holdings import AssetStatus, MarketHolding, Provider
from wealthsync.services import (
    AssetService,
    BankService,
    ManualAssetService,
    MarketService,
    NetworthService,
    SnapshotRecorder,
    SyncService,
    WalletService,
    WebhookService,
)
from wealthsync.services.filters import AdmissibilityFilter
from wealthsync.services.webhook_service import touched_addresses


class QuoteStub(BaseSource):
    """Prices every symbol at $10; ``BAD`` fails like an unknown ticker."""

    name = "fmp"

    async def fetch_balances(self, identity):
        if identity == "BAD":
            raise UpstreamProviderError(self.name, "no quote returned for BAD")
        return [MarketHolding(symbol=identity, quantity=2, price=10.0, country="US")]


def wallet_transport():
    routes = moralis_routes()
    routes["/streams/evm"] = ok({"result": [{"id": "stream-1", "tag": "wealthsync-global-stream"}]})
    return json_transport(routes)


def bank_routes(remove_status=200):
    return {
        "/item/public_token/exchange": ok({"item_id": "item-1", "access_token": "access-sandbox-1"}),
        "/accounts/balance/get": ok(
            {
                "accounts": [
                    {
                        "account_id": "acc-1",
                        "name": "Checking",
                        "type": "depository",
                        "subtype": "checking",
                        "mask": "0000",
                        "balances": {"current": 110.0, "iso_currency_code": "USD"},
                    },
                    {
                        "account_id": "acc-2",
                        "name": "Credit Card",
                        "type": "credit",
                        "subtype": "credit card",
                        "balances": {"current": 410.5},
                    },
                ]
            }
        ),
        "/item/remove": lambda r: httpx.Response(remove_status, json={"error_message": "item already removed"}),
    }


class TestAssetService:
    """Test upsert semantics of the assets table"""

    def test_upsert_overwrites_and_keeps_enrichment(self, db):
        assets = AssetService(db)
        assets.upsert(record("fmp:AAPL", 400.0, provider=Provider.MARKET_DATA, type="stock", sparkline=[1.0, 2.0]))
        assets.upsert(record("fmp:AAPL", 500.0, provider=Provider.MARKET_DATA, type="stock"))
        db.expire_all()

        (asset,) = assets.list_active("user-1")
        assert asset.balance_usd == 500.0
        assert asset.sparkline == [1.0, 2.0]

    def test_one_row_per_key_and_user(self, db):
        assets = AssetService(db)
        assets.upsert_many([record("cash", 1.0), record("cash", 2.0), record("cash", 3.0, user_id="user-2")])
        assert len(assets.list_active("user-1")) == 1
        assert len(assets.list_active("user-2")) == 1
        assert assets.users_with_assets() == ["user-1", "user-2"]

    def test_removal_is_logical_and_upsert_reactivates(self, db):
        assets = AssetService(db)
        assets.upsert(record("cash", 100.0))
        assert assets.remove_key("user-1", "cash") == 1
        assert assets.list_active("user-1") == []
        assert assets.get_by_key("user-1", "cash").status == AssetStatus.REMOVED.value

        assets.upsert(record("cash", 120.0))
        db.expire_all()
        (asset,) = assets.list_active("user-1")
        assert asset.balance_usd == 120.0

    def test_get_checks_ownership(self, db):
        assets = AssetService(db)
        assets.upsert(record("cash", 100.0))
        asset_id = assets.get_by_key("user-1", "cash").id
        with pytest.raises(NotFoundError):
            assets.get("user-2", asset_id)

    def test_wallet_owners(self, db):
        assets = AssetService(db)
        assets.upsert_many(
            [
                record(f"{WALLET}:native:eth", 10.0, provider=Provider.WALLET_CHAIN, type="crypto"),
                record(f"{WALLET}:{USDC}", 10.0, provider=Provider.WALLET_CHAIN, type="crypto", user_id="user-2"),
            ]
        )
        assert assets.owners_of_wallet(WALLET.upper().replace("0X", "0x")) == ["user-1", "user-2"]
        assert assets.wallet_addresses("user-1") == [WALLET]


class TestSyncService:
    """Test the fetch, normalize, filter, persist pipeline"""

    @pytest.mark.asyncio
    async def test_partial_failure(self, db):
        service = SyncService(db, AdmissibilityFilter({}))
        result = await service.sync("user-1", QuoteStub(), ["AAPL", "BAD", "MSFT"], action="update_prices")

        assert result.status == "partial"
        assert result.succeeded == ["fmp:AAPL", "fmp:MSFT"]
        assert [(f["identity"], f["stage"]) for f in result.failed] == [("BAD", "fetch")]
        assert result.snapshot_recorded
        assert result.as_response()["success"] is False
        with pytest.raises(UpstreamProviderError):
            result.raise_for_fetch()

        run = db.execute(select(SyncRun)).scalar_one()
        assert (run.status, run.succeeded, run.failed) == ("partial", 2, 1)
        assert "BAD" in run.error_message
        assert run.ended_at is not None

        (snapshot,) = db.execute(select(WealthSnapshot)).scalars().all()
        assert snapshot.total_usd == 40.0
        assert snapshot.asset_count == 2

    @pytest.mark.asyncio
    async def test_total_failure_writes_nothing(self, db):
        result = await SyncService(db, AdmissibilityFilter({})).sync("user-1", QuoteStub(), ["BAD"], action="sync")
        assert result.status == "failure"
        assert not result.snapshot_recorded
        assert db.execute(select(WealthSnapshot)).first() is None
        assert db.execute(select(SyncRun.status)).scalar_one() == "failure"


class TestSnapshots:
    """Test the snapshot-based daily change"""

    def test_no_baseline_is_neutral(self, db):
        ManualAssetService(db).add("user-1", "Savings", "cash", 1000.0)
        change = SnapshotRecorder(db).daily_change("user-1", 1000.0)
        assert change == {"amount": 0.0, "percentage": 0.0, "direction": "neutral"}

    def test_change_against_day_old_snapshot(self, db):
        manual = ManualAssetService(db)
        snapshots = SnapshotRecorder(db)
        asset_id = manual.add("user-1", "Savings", "cash", 1000.0)["asset"]["id"]
        snapshots.record("user-1", now=utcnow() - timedelta(hours=25))
        manual.update("user-1", asset_id, {"value": 1100.0})

        change = snapshots.daily_change("user-1", 1100.0)
        assert change["amount"] == pytest.approx(100.0)
        assert change["percentage"] == pytest.approx(10.0)
        assert change["direction"] == "up"

    def test_history_newest_first(self, db):
        snapshots = SnapshotRecorder(db)
        now = utcnow()
        for hours in (48, 24, 0):
            snapshots.record("user-1", now=now - timedelta(hours=hours))
        history = snapshots.history("user-1", limit=2)
        assert len(history) == 2
        assert history[0].recorded_at > history[1].recorded_at


class TestManualAssetService:
    """Test user-entered assets and liabilities"""

    def test_add(self, db):
        result = ManualAssetService(db).add("user-1", "  Gold bars ", "commodity", 1000.0, quantity=2, details={"oz": 20})
        asset = result["asset"]
        assert result["success"]
        assert (asset["name"], asset["type"], asset["price_usd"], asset["balance_usd"]) == (
            "Gold bars",
            "commodity",
            500.0,
            1000.0,
        )
        assert asset["details"] == {"oz": 20}

    def test_liability_is_negative(self, db):
        asset = ManualAssetService(db).add("user-1", "Car loan", "liability", 12000.0)["asset"]
        assert asset["balance_usd"] == -12000.0

    def test_unknown_category_is_other(self, db):
        assert ManualAssetService(db).add("user-1", "Watch", "horology", 5000.0)["asset"]["type"] == "other"

    @pytest.mark.parametrize("name,value", [("", 10.0), ("   ", 10.0), ("House", None)])
    def test_add_requires_name_and_value(self, db, name, value):
        with pytest.raises(InvalidRequestError):
            ManualAssetService(db).add("user-1", name, "real_estate", value)

    def test_partial_update(self, db):
        manual = ManualAssetService(db)
        asset_id = manual.add("user-1", "Gold", "commodity", 1000.0, quantity=2, details={"oz": 20})["asset"]["id"]
        updated = manual.update("user-1", asset_id, {"value": 1500.0})["asset"]

        assert updated["id"] == asset_id
        assert (updated["name"], updated["quantity"], updated["price_usd"]) == ("Gold", 2.0, 750.0)
        assert updated["details"] == {"oz": 20}

    def test_update_liability_keeps_sign(self, db):
        manual = ManualAssetService(db)
        asset_id = manual.add("user-1", "Mortgage", "liability", 200000.0)["asset"]["id"]
        assert manual.update("user-1", asset_id, {"name": "Home loan"})["asset"]["balance_usd"] == -200000.0

    def test_remove_then_details(self, db):
        manual = ManualAssetService(db)
        asset_id = manual.add("user-1", "Art", "collectible", 800.0)["asset"]["id"]
        assert manual.details("user-1", asset_id)["currentValue"] == 800.0

        assert manual.remove("user-1", asset_id)["removed_asset"] == "Art"
        with pytest.raises(NotFoundError):
            manual.details("user-1", asset_id)

    def test_only_manual_assets(self, db):
        assets = AssetService(db)
        assets.upsert(record("fmp:AAPL", 400.0, provider=Provider.MARKET_DATA, type="stock"))
        with pytest.raises(NotFoundError):
            ManualAssetService(db).remove("user-1", assets.get_by_key("user-1", "fmp:AAPL").id)


class TestWalletService:
    """Test wallet tracking against a mocked chain provider"""

    @pytest.mark.asyncio
    async def test_add_address(self, db, settings):
        transport = wallet_transport()
        service = WalletService(db, settings, WalletChainSource(settings, transport=transport))
        result = await service.add_address("user-1", WALLET)

        assert result["succeeded"] == [f"{WALLET}:native:eth", f"{WALLET}:{USDC}"]
        assert result["rejected"] == 2
        assert result["count"] == 2
        keys = {a.asset_address_or_id for a in AssetService(db).list_active("user-1")}
        assert f"{WALLET}:{SCAM}" not in keys

        usdc = AssetService(db).get_by_key("user-1", f"{WALLET}:{USDC}")
        assert usdc.realized_pnl_usd == 12.5
        assert any(c.method == "POST" and c.url.path.endswith("/stream-1/address") for c in transport.calls)

    @pytest.mark.asyncio
    async def test_invalid_address_makes_no_calls(self, db, settings):
        transport = wallet_transport()
        service = WalletService(db, settings, WalletChainSource(settings, transport=transport))
        with pytest.raises(InvalidRequestError):
            await service.add_address("user-1", "0x123")
        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_add_address_fetch_failure(self, db, settings):
        routes = moralis_routes()
        routes["/streams/evm"] = ok({"result": [{"id": "stream-1", "tag": "wealthsync-global-stream"}]})
        routes["/net-worth"] = lambda r: httpx.Response(503, json={"message": "unavailable"})
        service = WalletService(db, settings, WalletChainSource(settings, transport=json_transport(routes)))
        with pytest.raises(UpstreamProviderError):
            await service.add_address("user-1", WALLET)

    @pytest.mark.asyncio
    async def test_remove_address_unwatches_last_owner(self, db, settings):
        transport = wallet_transport()
        service = WalletService(db, settings, WalletChainSource(settings, transport=transport))
        await service.add_address("user-1", WALLET)
        result = await service.remove_address("user-1", WALLET)

        assert result == {"success": True, "removed": 2}
        assert AssetService(db).list_active("user-1") == []
        assert any(c.method == "DELETE" for c in transport.calls)

    @pytest.mark.asyncio
    async def test_remove_address_keeps_shared_wallet_watched(self, db, settings):
        transport = wallet_transport()
        service = WalletService(db, settings, WalletChainSource(settings, transport=transport))
        await service.add_address("user-1", WALLET)
        await service.add_address("user-2", WALLET)
        await service.remove_address("user-1", WALLET)

        assert not any(c.method == "DELETE" for c in transport.calls)
        assert len(AssetService(db).list_active("user-2")) == 2

    @pytest.mark.asyncio
    async def test_sync_without_wallets(self, db, settings):
        service = WalletService(db, settings, WalletChainSource(settings, transport=wallet_transport()))
        result = await service.sync_user_wallets("user-1")
        assert result.succeeded == [] and result.failed == []


class TestMarketService:
    """Test stock positions against a mocked market-data provider"""

    @pytest.mark.asyncio
    async def test_add_and_top_up(self, db, settings):
        service = MarketService(db, settings, MarketDataSource(settings, transport=json_transport(fmp_routes())))
        first = await service.add_asset("user-1", "aapl", 2)
        assert first["asset"]["value"] == 400.0
        assert first["asset"]["sector"] == "Technology"

        second = await service.add_asset("user-1", "AAPL", 1)
        assert second["asset"]["quantity"] == 3
        db.expire_all()
        (asset,) = AssetService(db).list_active("user-1")
        assert asset.sparkline == [1.0, 2.0, 3.0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("symbol,quantity", [("", 1), ("AAPL", 0), ("AAPL", -2)])
    async def test_add_validates_before_io(self, db, settings, symbol, quantity):
        transport = json_transport(fmp_routes())
        service = MarketService(db, settings, MarketDataSource(settings, transport=transport))
        with pytest.raises(InvalidRequestError):
            await service.add_asset("user-1", symbol, quantity)
        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_update_prices_keeps_sparkline(self, db, settings):
        adding = MarketService(db, settings, MarketDataSource(settings, transport=json_transport(fmp_routes())))
        await adding.add_asset("user-1", "AAPL", 3)

        transport = json_transport(fmp_routes(price=250.0))
        refreshing = MarketService(db, settings, MarketDataSource(settings, transport=transport))
        result = await refreshing.update_prices("user-1")

        assert result.succeeded == ["fmp:AAPL"]
        assert [c.url.path.rsplit("/", 1)[-1] for c in transport.calls] == ["AAPL"]
        db.expire_all()
        (asset,) = AssetService(db).list_active("user-1")
        assert asset.balance_usd == 750.0
        assert asset.sparkline == [1.0, 2.0, 3.0]

    @pytest.mark.asyncio
    async def test_update_prices_keeps_etf_type(self, db, settings):
        service = MarketService(db, settings, MarketDataSource(settings, transport=json_transport(fmp_routes())))
        await service.add_asset("user-1", "SPY", 1)
        await service.add_asset("user-1", "AAPL", 1)

        transport = json_transport(fmp_routes(price=210.0))
        refreshing = MarketService(db, settings, MarketDataSource(settings, transport=transport))
        result = await refreshing.update_prices("user-1")

        assert sorted(result.succeeded) == ["fmp:AAPL", "fmp:SPY"]
        assert not any("/profile/" in c.url.path for c in transport.calls)
        db.expire_all()
        assets = AssetService(db)
        assert assets.get_by_key("user-1", "fmp:SPY").type == "etf"
        assert assets.get_by_key("user-1", "fmp:AAPL").type == "stock"
        assert assets.get_by_key("user-1", "fmp:SPY").balance_usd == 210.0

    @pytest.mark.asyncio
    async def test_remove(self, db, settings):
        service = MarketService(db, settings, MarketDataSource(settings, transport=json_transport(fmp_routes())))
        await service.add_asset("user-1", "MSFT", 1)
        asset_id = AssetService(db).get_by_key("user-1", "fmp:MSFT").id
        assert service.remove_asset("user-1", asset_id)["removed_asset"] == "MSFT"
        with pytest.raises(NotFoundError):
            service.remove_asset("user-2", asset_id)

    def test_split_symbols(self):
        from wealthsync.services.market_service import split_symbols

        assert split_symbols(" aapl, msft ,,") == ["AAPL", "MSFT"]
        assert split_symbols(["spy"]) == ["SPY"]
        with pytest.raises(InvalidRequestError):
            split_symbols("")


class TestBankService:
    """Test bank linking and encrypted credential storage"""

    @pytest.mark.asyncio
    async def test_exchange_stores_encrypted_token(self, db, settings):
        service = BankService(db, settings, BankSource(settings, transport=json_transport(bank_routes())))
        result = await service.exchange("user-1", "public-sandbox-1", "First Platypus Bank")

        assert result["itemId"] == "item-1"
        assert result["succeeded"] == ["plaid:item-1:acc-1", "plaid:item-1:acc-2"]

        connection = db.execute(select(BankConnection)).scalar_one()
        assert connection.access_token != "access-sandbox-1"
        assert "access-sandbox-1" not in connection.access_token
        assert service.cipher.decrypt(connection.access_token, connection.iv) == "access-sandbox-1"

        card = AssetService(db).get_by_key("user-1", "plaid:item-1:acc-2")
        assert (card.type, card.balance_usd) == ("credit", -410.5)

    @pytest.mark.asyncio
    async def test_exchange_fails_fast_without_key(self, db, settings):
        from wealthsync.core.errors import ConfigurationError

        transport = json_transport(bank_routes())
        broken = settings.model_copy(update={"ENCRYPTION_KEY": None})
        with pytest.raises(ConfigurationError):
            await BankService(db, broken, BankSource(broken, transport=transport)).exchange("user-1", "public-1")
        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_remove_item_tolerates_upstream_failure(self, db, settings):
        service = BankService(db, settings, BankSource(settings, transport=json_transport(bank_routes(500))))
        await service.exchange("user-1", "public-sandbox-1")
        result = await service.remove_item("user-1", "item-1")

        assert result["removed"] == 2
        assert db.execute(select(BankConnection)).first() is None
        assert AssetService(db).list_active("user-1") == []

    @pytest.mark.asyncio
    async def test_remove_item_checks_owner(self, db, settings):
        service = BankService(db, settings, BankSource(settings, transport=json_transport(bank_routes())))
        await service.exchange("user-1", "public-sandbox-1")
        with pytest.raises(NotFoundError):
            await service.remove_item("user-2", "item-1")


class TestWebhookService:
    """Test signed provider pushes"""

    @staticmethod
    def _wallet_body(**payload):
        return json.dumps(payload).encode()

    @pytest.mark.asyncio
    async def test_wallet_bad_signature(self, db, settings):
        body = self._wallet_body(confirmed=True, streamId="stream-1")
        with pytest.raises(SignatureVerificationError):
            await WebhookService(db, settings).handle_wallet(body, keccak256_hex(body, "wrong-secret"))

    @pytest.mark.asyncio
    async def test_wallet_test_ping_is_still_verified(self, db, settings):
        body = self._wallet_body(streamId="", chainId="")
        with pytest.raises(SignatureVerificationError):
            await WebhookService(db, settings).handle_wallet(body, None)
        result = await WebhookService(db, settings).handle_wallet(body, keccak256_hex(body, "wallet-secret"))
        assert result["message"] == "Test webhook received"

    @pytest.mark.asyncio
    async def test_wallet_unconfirmed(self, db, settings):
        body = self._wallet_body(confirmed=False, streamId="stream-1", txs=[{"fromAddress": WALLET}])
        result = await WebhookService(db, settings).handle_wallet(body, keccak256_hex(body, "wallet-secret"))
        assert result == {"success": True, "message": "Unconfirmed transaction"}

    @pytest.mark.asyncio
    async def test_wallet_resyncs_tracked_wallets(self, db, settings):
        source = WalletChainSource(settings, transport=wallet_transport())
        await WalletService(db, settings, source).add_address("user-1", WALLET)

        body = self._wallet_body(
            confirmed=True,
            streamId="stream-1",
            txs=[{"fromAddress": WALLET.upper().replace("0X", "0x"), "toAddress": SCAM}],
        )
        result = await WebhookService(db, settings, wallet_source=source).handle_wallet(
            body, keccak256_hex(body, "wallet-secret")
        )
        assert result["success"]
        assert result["message"] == "Processed 1 wallets"
        assert list(result["users"]) == ["user-1"]

    @pytest.mark.asyncio
    async def test_malformed_body(self, db, settings):
        body = b"[1, 2]"
        with pytest.raises(InvalidRequestError):
            await WebhookService(db, settings).handle_wallet(body, keccak256_hex(body, "wallet-secret"))

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"txs": ["0xabc"]},
            {"txs": {"fromAddress": WALLET}},
            {"erc20Transfers": [{"from": WALLET}, None]},
            {"nativeBalances": [42]},
        ],
    )
    async def test_non_object_entries_are_rejected(self, db, settings, payload):
        body = self._wallet_body(confirmed=True, streamId="stream-1", **payload)
        with pytest.raises(InvalidRequestError):
            await WebhookService(db, settings).handle_wallet(body, keccak256_hex(body, "wallet-secret"))

    def test_touched_addresses_ignores_blank_and_non_string_sides(self):
        payload = {
            "nativeBalances": [{"address": ""}, {"address": WALLET.upper().replace("0X", "0x")}],
            "txs": [{"fromAddress": None, "toAddress": 7}, {"from": SCAM}],
        }
        assert touched_addresses(payload) == sorted({WALLET, SCAM})

    @pytest.mark.asyncio
    async def test_bank_unknown_item(self, db, settings):
        body = json.dumps({"webhook_type": "TRANSACTIONS", "webhook_code": "DEFAULT_UPDATE", "item_id": "nope"}).encode()
        result = await WebhookService(db, settings).handle_bank(body, hmac_sha256_hex(body, "bank-secret"))
        assert result == {"webhook_received": True}

    @pytest.mark.asyncio
    async def test_bank_update_resyncs_item(self, db, settings):
        source = BankSource(settings, transport=json_transport(bank_routes()))
        await BankService(db, settings, source).exchange("user-1", "public-sandbox-1")

        body = json.dumps({"webhook_type": "TRANSACTIONS", "webhook_code": "DEFAULT_UPDATE", "item_id": "item-1"}).encode()
        result = await WebhookService(db, settings, bank_source=source).handle_bank(
            body, hmac_sha256_hex(body, "bank-secret")
        )
        assert result["webhook_received"]
        assert result["sync"]["succeeded"] == ["plaid:item-1:acc-1", "plaid:item-1:acc-2"]

    @pytest.mark.asyncio
    async def test_bank_other_codes_are_acknowledged(self, db, settings):
        body = json.dumps({"webhook_type": "ITEM", "webhook_code": "PENDING_EXPIRATION", "item_id": "item-1"}).encode()
        result = await WebhookService(db, settings).handle_bank(body, hmac_sha256_hex(body, "bank-secret"))
        assert result == {"webhook_received": True}


class TestNetworthService:
    """Test the assembled net-worth view"""

    @pytest.mark.asyncio
    async def test_view(self, db, settings):
        manual = ManualAssetService(db)
        manual.add("user-1", "House", "real_estate", 300000.0)
        manual.add("user-1", "Mortgage", "liability", 50000.0)
        manual.add("user-1", "Savings", "cash", 10000.0)

        view = await NetworthService(db, settings).get_networth("user-1")

        assert view["total"]["value"] == 260000.0
        assert view["total"]["currency"] == "USD"
        assert view["breakdown"]["by_type"] == {"cash": 10000.0, "liability": -50000.0, "real_estate": 300000.0}
        assert view["breakdown"]["by_provider"] == {"manual": 260000.0}
        assert [a["name"] for a in view["assets"]] == ["House", "Savings", "Mortgage"]
        assert view["performance"]["daily_change"]["direction"] == "neutral"
        assert view["insights"]["update_status"] == "fresh"
        assert 0 <= view["insights"]["diversification_score"] <= 100
        assert "refresh" not in view

    @pytest.mark.asyncio
    async def test_empty_user(self, db, settings):
        view = await NetworthService(db, settings).get_networth("nobody")
        assert view["total"]["value"] == 0.0
        assert view["assets"] == []
        assert view["breakdown"]["by_type"] == {}

    @pytest.mark.asyncio
    async def test_force_refresh(self, db, settings):
        service = NetworthService(
            db,
            settings,
            wallet_source=WalletChainSource(settings, transport=wallet_transport()),
            market_source=MarketDataSource(settings, transport=json_transport(fmp_routes())),
        )
        view = await service.get_networth("user-1", force_refresh=True)
        assert view["refresh"]["success"]
        assert set(view["refresh"]) == {"success", "wallets", "stocks"}

    @pytest.mark.asyncio
    async def test_refresh_isolates_provider_failure(self, db, settings):
        AssetService(db).upsert(
            record(f"{WALLET}:native:eth", 10.0, provider=Provider.WALLET_CHAIN, type="crypto")
        )
        broken = {"/net-worth": lambda r: httpx.Response(500, json={"message": "down"})}
        service = NetworthService(
            db,
            settings.model_copy(update={"FMP_API_KEY": None}),
            wallet_source=WalletChainSource(settings, transport=json_transport(broken)),
        )
        result = await service.refresh_prices("user-1")

        assert result["success"] is False
        assert result["wallets"]["success"] is False
        # no positions, so the market side never needs its (missing) key
        assert result["stocks"]["success"] is True

"""HTTP surface tests: routing, envelopes and dependency wiring"""

import json

import httpx
import pytest
from fastapi.testclient import TestClient

from helpers import fmp_routes, json_transport
from wealthsync.api.deps import get_db, get_market_service, get_settings
from wealthsync.core.signatures import keccak256_hex
from wealthsync.ingestion.market_source import MarketDataSource
from wealthsync.main import create_app
from wealthsync.models import SyncRun
from wealthsync.services import MarketService


@pytest.fixture
def app(db, settings):
    app = create_app(settings, migrate=False)
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_settings] = lambda: settings
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


def add_manual(client, **fields):
    body = {"action": "add", "userId": "user-1", "name": "House", "category": "real_estate", "value": 300000}
    body.update(fields)
    return client.post("/manual-assets", json=body)


class TestSystemRoutes:
    """Test health and preflight"""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {
            "database": "ok",
            "last_sync_status": None,
            "last_sync_provider": None,
            "last_sync_at": None,
            "providers": {"moralis": True, "fmp": True, "plaid": True, "credential_encryption": True},
        }

    def test_health_reports_latest_run(self, client, db):
        db.add(SyncRun(provider="fmp", action="update_prices", status="partial", succeeded=2, failed=1))
        db.commit()
        body = client.get("/health").json()
        assert (body["last_sync_status"], body["last_sync_provider"]) == ("partial", "fmp")
        assert body["last_sync_at"] is not None

    def test_health_flags_missing_credentials(self, app, client, settings):
        app.dependency_overrides[get_settings] = lambda: settings.model_copy(update={"FMP_API_KEY": None})
        providers = client.get("/health").json()["providers"]
        assert providers["fmp"] is False
        assert providers["moralis"] is True

    def test_ready(self, client):
        assert client.get("/health/ready").json()["status"] == "ready"

    def test_preflight(self, client):
        response = client.options("/manual-assets")
        assert response.status_code == 200
        assert response.text == "ok"

    def test_preflight_on_unknown_path(self, client):
        assert client.options("/no-such-route").text == "ok"

    def test_browser_preflight_gets_cors_headers(self, client):
        response = client.options(
            "/networth",
            headers={"Origin": "https://app.example.com", "Access-Control-Request-Method": "POST"},
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"

    @pytest.mark.parametrize("method", ["GET", "POST"])
    def test_unknown_path_is_404(self, client, method):
        assert client.request(method, "/no-such-route").status_code == 404

    def test_docs_disabled_in_production(self, client):
        assert client.get("/docs").status_code == 404


class TestErrorEnvelope:
    """Test the {error, message, action} response shape"""

    def test_validation_names_the_field(self, client):
        response = client.post("/manual-assets", json={"action": "add", "userId": "user-1", "name": "House"})
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Validation Error"
        assert "value" in body["message"]

    def test_unknown_action(self, client):
        response = client.post("/manual-assets", json={"action": "explode", "userId": "user-1"})
        assert response.status_code == 400
        assert response.json()["error"] == "Validation Error"

    def test_not_found_carries_action(self, client):
        response = client.post("/manual-assets", json={"action": "remove", "userId": "user-1", "assetId": "missing"})
        assert response.status_code == 404
        assert response.json() == {
            "error": "Not Found",
            "message": "Asset not found or does not belong to user",
            "action": "remove",
        }

    def test_upstream_failure_is_502(self, app, db, settings, client):
        routes = {"/quote/": lambda r: httpx.Response(500, json={"message": "upstream down"})}
        source = MarketDataSource(settings, transport=json_transport(routes))
        app.dependency_overrides[get_market_service] = lambda: MarketService(db, settings, source)

        response = client.post("/stocks", json={"action": "get_quotes", "symbols": "AAPL"})
        assert response.status_code == 502
        body = response.json()
        assert body["error"] == "Upstream Provider Error"
        assert body["action"] == "get_quotes"

    def test_webhook_without_signature(self, client):
        response = client.post("/webhooks/wallet", content=b'{"confirmed": true, "streamId": "s"}')
        assert response.status_code == 401
        assert response.json()["error"] == "Invalid Signature"


class TestManualAndNetworth:
    """Test the manual-asset flow through to the net-worth view"""

    def test_add_then_networth(self, client):
        added = add_manual(client)
        assert added.status_code == 200
        assert added.json()["asset"]["balance_usd"] == 300000.0

        add_manual(client, name="Car loan", category="liability", value=20000)
        view = client.post("/networth", json={"userId": "user-1"}).json()

        assert view["total"]["value"] == 280000.0
        assert [a["name"] for a in view["assets"]] == ["House", "Car loan"]
        assert view["breakdown"]["by_provider"] == {"manual": 280000.0}

    def test_update_and_details(self, client):
        asset_id = add_manual(client, quantity=2).json()["asset"]["id"]

        updated = client.post(
            "/manual-assets", json={"action": "update", "userId": "user-1", "assetId": asset_id, "value": 320000}
        )
        assert updated.json()["asset"]["price_usd"] == 160000.0

        details = client.post("/details/manual", json={"userId": "user-1", "assetId": asset_id}).json()
        assert details["currentValue"] == 320000.0
        assert details["category"] == "real_estate"

    def test_stats(self, client):
        add_manual(client)
        assert client.get("/stats/assets").json() == {"active_assets": 1, "users": 1}
        snapshots = client.get("/stats/snapshots/user-1").json()
        assert len(snapshots) == 1
        assert snapshots[0]["total_usd"] == 300000.0
        assert client.get("/stats").json() == []


class TestStockRoutes:
    """Test market lookups through the action router"""

    @pytest.fixture
    def client(self, app, db, settings):
        source = MarketDataSource(settings, transport=json_transport(fmp_routes()))
        app.dependency_overrides[get_market_service] = lambda: MarketService(db, settings, source)
        return TestClient(app)

    def test_quotes(self, client):
        body = client.post("/stocks", json={"action": "get_quotes", "symbols": ["aapl", "msft"]}).json()
        assert body["success"]
        assert [q["symbol"] for q in body["data"]] == ["AAPL", "MSFT"]

    def test_add_asset_and_stats(self, client):
        response = client.post("/stocks", json={"action": "add_asset", "userId": "user-1", "symbol": "AAPL", "quantity": 2})
        assert response.status_code == 200
        assert response.json()["asset"]["value"] == 400.0

        view = client.post("/networth", json={"userId": "user-1"}).json()
        assert view["breakdown"]["by_country"] == {"US": 400.0}
        assert view["assets"][0]["sparkline"] == [1.0, 2.0, 3.0]

    def test_non_positive_quantity(self, client):
        response = client.post("/stocks", json={"action": "add_asset", "userId": "user-1", "symbol": "AAPL", "quantity": 0})
        assert response.status_code == 400


class TestWebhookRoutes:
    """Test signed pushes through the HTTP layer"""

    def test_signed_test_ping(self, client):
        body = json.dumps({"streamId": "", "chainId": ""}).encode()
        response = client.post(
            "/webhooks/wallet", content=body, headers={"x-signature": keccak256_hex(body, "wallet-secret")}
        )
        assert response.status_code == 200
        assert response.json()["message"] == "Test webhook received"

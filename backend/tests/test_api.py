"""Tests for the REST API."""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from core.models.candle import Candle
from decision.aggregator import SignalAggregator
from decision.api.routes import get_aggregator
from decision.main import app
from decision.sources import SourceResult


T0 = datetime(2025, 5, 1, tzinfo=timezone.utc)


def candles_json(closes) -> list[dict]:
    return [
        Candle(time=T0 + timedelta(hours=i), open=c, high=c + 1.0, low=c - 1.0, close=c, volume=50.0).model_dump(
            mode="json"
        )
        for i, c in enumerate(closes)
    ]


RISING = [100.0 + i for i in range(250)]


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


class TestMeta:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_root(self, client):
        assert client.get("/").json()["name"] == "Signal Desk"

    def test_strategies(self, client):
        names = [s["name"] for s in client.get("/api/strategies").json()]
        assert "ema_cross" in names
        assert "golden_cross" in names


class TestBacktestEndpoint:
    def test_flat_series(self, client):
        response = client.post("/api/backtest", json={"candles": candles_json([100.0] * 100)})
        assert response.status_code == 200
        body = response.json()
        assert body["total_trades"] == 0
        assert len(body["equity_curve"]) == 100

    def test_unknown_strategy(self, client):
        response = client.post(
            "/api/backtest", json={"candles": candles_json([100.0] * 100), "strategy": "nope"}
        )
        assert response.status_code == 404

    def test_out_of_order_candles(self, client):
        candles = candles_json([100.0] * 100)
        candles[5], candles[6] = candles[6], candles[5]
        response = client.post("/api/backtest", json={"candles": candles})
        assert response.status_code == 422

    def test_bad_strategy_params(self, client):
        response = client.post(
            "/api/backtest",
            json={"candles": candles_json([100.0] * 100), "params": {"bogus": 1}},
        )
        assert response.status_code == 422

    def test_malformed_candle(self, client):
        candles = candles_json([100.0] * 100)
        candles[0]["high"] = 50.0
        response = client.post("/api/backtest", json={"candles": candles})
        assert response.status_code == 422


class TestGateEndpoint:
    def test_three_timeframes(self, client):
        body = {"candles": {tf: candles_json(RISING) for tf in ("1h", "4h", "1d")}}
        response = client.post("/api/gate", json=body)
        assert response.status_code == 200
        data = response.json()
        assert data["side"] == "LONG"
        assert len(data["reasons"]) == 6

    def test_two_timeframes_rejected(self, client):
        body = {"candles": {tf: candles_json(RISING) for tf in ("1h", "4h")}}
        assert client.post("/api/gate", json=body).status_code == 422


class TestAggregateEndpoint:
    def test_builtin_sources(self, client):
        body = {
            "symbol": "BTCUSDT",
            "candles": {tf: candles_json(RISING) for tf in ("1h", "4h", "1d")},
            "order_book_imbalance": 0.4,
        }
        response = client.post("/api/aggregate", json=body)
        assert response.status_code == 200
        data = response.json()
        assert data["symbol"] == "BTCUSDT"
        assert data["direction"] == "BULLISH"
        assert len(data["breakdown"]) == 8
        assert data["entry_price"] == 349.0

    def test_without_candles_sources_degrade(self, client):
        response = client.post("/api/aggregate", json={"symbol": "BTCUSDT"})
        assert response.status_code == 200
        data = response.json()
        assert data["recommendation"].startswith("ANALYSIS UNAVAILABLE")
        assert data["risk_level"] == "CRITICAL"

    def test_custom_aggregator(self, client):
        class Fixed:
            name = "fixed"

            async def analyze(self, context):
                return SourceResult(source="fixed", score=-0.6)

        app.dependency_overrides[get_aggregator] = lambda: SignalAggregator([Fixed()], weights={"fixed": 1.0})
        data = client.post("/api/aggregate", json={"symbol": "ETHUSDT"}).json()
        assert data["final_score"] == pytest.approx(-60.0)
        assert data["direction"] == "BEARISH"

    def test_out_of_order_candles(self, client):
        candles = candles_json([100.0] * 10)
        candles.reverse()
        response = client.post("/api/aggregate", json={"symbol": "BTCUSDT", "candles": {"1h": candles}})
        assert response.status_code == 422

"""Tests for the read API — /health, /status and /opportunities."""

from unittest.mock import MagicMock

from fastapi.testclient import TestClient

from scanner.api.routers import configure_routers
from scanner.engine import ScanResult
from scanner.main import app
from scanner.risk.market_risk import MarketRisk

client = TestClient(app)


# ── Helpers ──────────────────────────────────────────────────────────────


def _make_engine(opportunities=(), cycle_id=3):
    """Return a mock engine with a canned latest result."""
    engine = MagicMock()
    engine.latest = ScanResult(
        cycle_id=cycle_id,
        opportunities=tuple(opportunities),
        market_risk=MarketRisk(level="LOW", note="Market conditions normal", risk_type="NORMAL"),
        macro=None,
        symbols_scanned=len(opportunities),
        started_at="2024-01-01T00:00:00+00:00",
        finished_at="2024-01-01T00:00:05+00:00",
    )
    engine.status.return_value = {"running": True, "scanning": False, "cycle_count": cycle_id}
    return engine


# ── Tests ────────────────────────────────────────────────────────────────


class TestHealth:
    def test_health(self):
        """Liveness check answers without an engine."""
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


class TestStatusEndpoint:
    def test_without_engine(self):
        """Status falls back to an idle payload before the engine is wired."""
        configure_routers(engine=None)
        resp = client.get("/status")
        assert resp.status_code == 200
        assert resp.json()["cycle_count"] == 0

    def test_delegates_to_engine(self):
        """Status is whatever the engine reports."""
        configure_routers(engine=_make_engine())
        resp = client.get("/status")
        assert resp.json() == {"running": True, "scanning": False, "cycle_count": 3}


class TestOpportunitiesEndpoint:
    def test_before_first_cycle(self):
        """No cycle yet: empty list, null cycle id."""
        engine = MagicMock()
        engine.latest = None
        configure_routers(engine=engine)
        resp = client.get("/opportunities")
        assert resp.status_code == 200
        assert resp.json() == {"cycle_id": None, "opportunities": [], "total": 0}

    def test_returns_latest_cycle(self, make_opportunity):
        """The latest cycle is serialised with its plan and risk."""
        configure_routers(engine=_make_engine([make_opportunity("ETHUSDT", score=88.0)]))
        data = client.get("/opportunities").json()

        assert data["cycle_id"] == 3
        assert data["market_risk"]["level"] == "LOW"
        assert data["total"] == 1
        opp = data["opportunities"][0]
        assert opp["symbol"] == "ETHUSDT"
        assert opp["confidence_score"] == 88.0
        assert len(opp["dca_plan"]["entries"]) == 3
        assert opp["take_profits"]["tp1"] < opp["take_profits"]["tp3"]

    def test_side_filter_and_limit(self, make_opportunity):
        """Total counts the filtered set; limit trims the page."""
        opportunities = [
            make_opportunity("AAAUSDT", side="LONG", score=90.0),
            make_opportunity("BBBUSDT", side="SHORT", score=85.0),
            make_opportunity("CCCUSDT", side="LONG", score=80.0),
        ]
        configure_routers(engine=_make_engine(opportunities))

        data = client.get("/opportunities", params={"side": "LONG", "limit": 1}).json()
        assert data["total"] == 2
        assert [o["symbol"] for o in data["opportunities"]] == ["AAAUSDT"]

    def test_rejects_bad_side(self):
        """Unknown side values are a validation error."""
        configure_routers(engine=_make_engine())
        assert client.get("/opportunities", params={"side": "UP"}).status_code == 422

    def test_rejects_bad_limit(self):
        """Limit must be positive."""
        configure_routers(engine=_make_engine())
        assert client.get("/opportunities", params={"limit": 0}).status_code == 422

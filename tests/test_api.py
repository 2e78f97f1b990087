"""
Tests for the HTTP surface.

The app runs against the in-memory catalog unless a test asks for the SQL
backend; provider calls go to FakeProvider through app.state.ai_transport.
"""

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession

from fairquote.config.settings import AISettings, DatabaseSettings, PricingSettings, Settings
from fairquote.main import create_app
from tests.conftest import FakeProvider

API = "/api/v1"

VEHICLE = {"vehicle_make": "Toyota", "vehicle_model": "Corolla", "vehicle_year": 2018}


def build_client(
    *,
    api_key: str | None = "test-key",
    provider: FakeProvider | None = None,
    backend: str = "memory",
    db_url: str | None = None,
) -> TestClient:
    settings = Settings(
        log_format="console",
        ai=AISettings(api_key=api_key),
        pricing=PricingSettings(catalog_backend=backend),
        database=DatabaseSettings(url=db_url),
    )
    app = create_app(settings)
    app.state.ai_transport = httpx.MockTransport(provider or FakeProvider())
    return TestClient(app)


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def client(provider):
    """Client with a configured provider."""
    with build_client(provider=provider) as test_client:
        yield test_client


@pytest.fixture
def offline_client():
    """Client with no provider credential."""
    with build_client(api_key=None) as test_client:
        yield test_client


class TestSystem:
    """Tests for system endpoints."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["ai_configured"] is True

    def test_root(self, offline_client):
        response = offline_client.get("/")

        assert response.status_code == 200
        assert response.json()["name"] == "fairquote"


class TestRatesLookup:
    """Tests for POST /rates/lookup."""

    def test_best_effort_rates(self, client):
        response = client.post(f"{API}/rates/lookup", json={
            "items": [{"label": "Oil change"}, {"label": "Mystery service"}, {"label": "", "key": "tires"}],
        })

        assert response.status_code == 200
        items = response.json()["items"]
        assert [i["key"] for i in items] == ["oil_change", "mystery_service", "tires"]
        assert all(i["source"] == "heuristic" for i in items)
        assert all(i["avg_price"] > 0 and i["currency"] == "USD" for i in items)

    def test_uses_learned_quotes(self, client):
        client.post(f"{API}/quotes/learn", json={
            "items": [{"label": "Oil change", "price": p} for p in (100, 120, 110, 90, 130)],
        })

        response = client.post(f"{API}/rates/lookup", json={"items": [{"label": "Oil change"}]})

        item = response.json()["items"][0]
        assert item["source"] == "catalog:user_quotes"
        assert (item["avg_price"], item["range_min"], item["range_max"]) == (110, 100, 120)

    def test_empty_items(self, client):
        response = client.post(f"{API}/rates/lookup", json={"items": []})

        assert response.status_code == 422


class TestCompare:
    """Tests for POST /quotes/compare."""

    def test_unconfigured_provider(self, offline_client):
        """Test the distinct unavailable signal instead of fabricated verdicts."""
        response = offline_client.post(f"{API}/quotes/compare", json={
            **VEHICLE,
            "items": [{"label": "Oil change", "price": 50}],
        })

        assert response.status_code == 503
        assert response.json()["success"] is False
        assert response.json()["code"] == "ai_not_configured"

    def test_compare_items(self, client, provider):
        response = client.post(f"{API}/quotes/compare", json={
            **VEHICLE,
            "items": [
                {"label": "Front brake pads", "qty": 2, "price": 45},
                {"label": "Shop supplies", "price": 12},
            ],
        })

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["currency"] == "USD"
        first, second = body["results"]
        assert first["key"] == "brake_pads"
        assert first["verdict"] == "fair"
        assert first["total"] == 90
        assert first["delta_pct"] == -10.0
        assert second["verdict"] == "unknown"
        assert second["scored"] is False
        assert provider.calls == 1

    def test_compare_text(self, client):
        response = client.post(f"{API}/quotes/compare", json={
            **VEHICLE,
            "text": "Front brake pads x2 @ 45\nOil change - $59.99\nThank you",
        })

        assert response.status_code == 200
        results = response.json()["results"]
        assert [r["key"] for r in results] == ["brake_pads", "oil_change"]
        assert results[0]["quantity"] == 2

    def test_no_items(self, client):
        response = client.post(f"{API}/quotes/compare", json={**VEHICLE, "text": "nothing priced here"})

        assert response.status_code == 422
        assert response.json()["field"] == "items"

    def test_missing_vehicle_year(self, client):
        body = {k: v for k, v in VEHICLE.items() if k != "vehicle_year"}
        response = client.post(f"{API}/quotes/compare", json={**body, "items": [{"label": "Oil", "price": 5}]})

        assert response.status_code == 422

    def test_blank_vehicle_make(self, client):
        response = client.post(f"{API}/quotes/compare", json={
            **VEHICLE,
            "vehicle_make": "   ",
            "items": [{"label": "Oil change", "price": 50}],
        })

        assert response.status_code == 422
        assert response.json()["field"] == "vehicle_make"

    def test_non_positive_price(self, client):
        response = client.post(f"{API}/quotes/compare", json={
            **VEHICLE,
            "items": [{"label": "Oil change", "price": 0}],
        })

        assert response.status_code == 422

    def test_compare_learns(self, client):
        client.post(
            f"{API}/quotes/compare",
            json={**VEHICLE, "region": "us", "items": [{"label": "Front brake pads", "qty": 2, "price": 45}]},
            headers={"X-User-Id": "user-42"},
        )

        response = client.get(f"{API}/catalog/brake_pads", params={"region": "US"})

        body = response.json()
        assert body["rollups"]["quotes_count"] == 1
        assert body["rollups"]["fair_count"] == 1
        quote = body["recent_quotes"][0]
        assert quote["price"] == 45
        assert quote["user_id"] == "user-42"
        assert quote["assessment"]["decision"] == "fair"


class TestAnalyze:
    """Tests for POST /quotes/analyze."""

    def test_fallback_when_unconfigured(self, offline_client):
        response = offline_client.post(f"{API}/quotes/analyze", json={
            **VEHICLE,
            "items": [{"label": "Oil change", "price": 100}, {"label": "Tax", "price": 8}],
        })

        assert response.status_code == 200
        body = response.json()
        assert body["fallback"] is True
        assert body["report"]["verdicts"] == ["overpriced", "questionable"]
        assert [r["verdict"] for r in body["results"]] == ["overpriced", "unknown"]

    def test_ai_rows(self, client):
        response = client.post(f"{API}/quotes/analyze", json={
            **VEHICLE,
            "items": [{"label": "Oil change", "price": 100}],
        })

        body = response.json()
        assert body["fallback"] is False
        assert body["report"] is None
        assert body["results"][0]["verdict"] == "fair"


class TestAssessSingle:
    """Tests for POST /quotes/assess-single."""

    def test_assessment(self, client):
        response = client.post(f"{API}/quotes/assess-single", json={
            **VEHICLE,
            "service_name": "Front brake pads",
            "quoted_amount": 180,
        })

        assert response.status_code == 200
        body = response.json()
        assert body["assessment"]["decision"] == "fair"
        assert body["assessment"]["fair_range"]["currency"] == "USD"
        assert body["persisted"] is False

    def test_persist_assessment(self, client):
        response = client.post(
            f"{API}/quotes/assess-single",
            json={
                **VEHICLE,
                "service_name": "Front brake pads",
                "quoted_amount": 180,
                "persist_assessment": True,
                "location_city": "Austin",
            },
            headers={"X-User-Id": "user-7"},
        )

        assert response.json()["persisted"] is True
        quote = client.get(f"{API}/catalog/brake_pads").json()["recent_quotes"][0]
        assert quote["price"] == 180
        assert quote["city"] == "Austin"
        assert quote["user_id"] == "user-7"

    def test_unconfigured_provider(self, offline_client):
        response = offline_client.post(f"{API}/quotes/assess-single", json={
            **VEHICLE,
            "service_name": "Oil change",
            "quoted_amount": 60,
        })

        assert response.status_code == 503
        assert response.json()["code"] == "ai_not_configured"

    def test_invalid_provider_response(self):
        with build_client(provider=FakeProvider("not json")) as test_client:
            response = test_client.post(f"{API}/quotes/assess-single", json={
                **VEHICLE,
                "service_name": "Oil change",
                "quoted_amount": 60,
            })

        assert response.status_code == 502
        assert response.json()["code"] == "ai_response_invalid"


class TestLearn:
    """Tests for POST /quotes/learn."""

    def test_acknowledges_and_skips_invalid(self, client):
        response = client.post(f"{API}/quotes/learn", json={
            "region": "PK",
            "city": "Lahore",
            "items": [
                {"label": "Oil change", "qty": 1, "price": 60},
                {"label": "Oil change", "price": -5},
                {"label": "Oil change", "price": 0},
                {"label": "Battery"},
                {"label": "Tax", "price": 3},
            ],
        })

        assert response.status_code == 200
        assert response.json() == {"success": True, "recorded": 1, "skipped": 4}

        entry = client.get(f"{API}/catalog/oil_change", params={"region": "pk"}).json()
        assert entry["rollups"]["quotes_count"] == 1
        assert entry["recent_quotes"][0]["city"] == "Lahore"


class TestCatalog:
    """Tests for the catalog endpoints."""

    def test_unknown_key(self, client):
        response = client.get(f"{API}/catalog/Wheel Alignment")

        assert response.status_code == 200
        body = response.json()
        assert body["key"] == "wheel_alignment"
        assert body["region"] == "GLOBAL"
        assert body["source"] == "heuristic"
        assert body["entry"]["avg_price"] == 180
        assert body["rollups"] is None
        assert body["recent_quotes"] == []

    def test_recent_quotes_newest_first(self, client):
        client.post(f"{API}/quotes/learn", json={
            "items": [{"label": "Oil change", "price": p} for p in (50, 60, 70)],
        })

        body = client.get(f"{API}/catalog/oil_change", params={"quotes": 2}).json()

        assert [q["price"] for q in body["recent_quotes"]] == [70, 60]
        assert body["rollups"]["quotes_count"] == 3
        assert body["rollups"]["avg_user_price"] == 60
        assert body["source"] == "heuristic"

    def test_set_base_range(self, client):
        response = client.put(
            f"{API}/catalog/rotors/base-range",
            json={"min": 400, "max": 650, "source": "survey"},
            headers={"X-User-Id": "admin-1"},
        )

        assert response.status_code == 200
        assert response.json()["base_range"]["source"] == "survey"

        body = client.get(f"{API}/catalog/rotors").json()
        assert body["source"] == "catalog:base_range"
        assert body["entry"]["avg_price"] == 525

    @pytest.mark.parametrize("payload", [
        {"min": 700, "max": 650},
        {"min": 0, "max": 650},
        {"min": -10, "max": 650},
    ])
    def test_rejects_bad_base_range(self, client, payload):
        response = client.put(f"{API}/catalog/rotors/base-range", json=payload)

        assert response.status_code == 422


class TestSqlBackend:
    """Tests for the HTTP surface over the SQL catalog."""

    def test_learn_then_lookup(self, tmp_path):
        db_url = f"sqlite+aiosqlite:///{tmp_path}/catalog.db"
        with build_client(backend="sql", db_url=db_url) as test_client:
            test_client.post(f"{API}/quotes/learn", json={
                "items": [{"label": "Oil change", "price": p} for p in (100, 120, 110, 90, 130)],
            })

            body = test_client.get(f"{API}/catalog/oil_change").json()

        assert body["source"] == "catalog:user_quotes"
        assert body["entry"]["avg_price"] == 110
        assert body["rollups"]["quotes_count"] == 5

    def test_unreachable_database(self, tmp_path, monkeypatch):
        """Test a driver connection error degrades lookups and loses only learning."""
        async def refuse(self, *args, **kwargs):
            raise ConnectionRefusedError(111, "Connect call failed")

        db_url = f"sqlite+aiosqlite:///{tmp_path}/catalog.db"
        with build_client(backend="sql", db_url=db_url) as test_client:
            monkeypatch.setattr(AsyncSession, "execute", refuse)

            lookup = test_client.get(f"{API}/catalog/oil_change")
            compare = test_client.post(f"{API}/quotes/compare", json={
                **VEHICLE,
                "items": [{"label": "Oil change", "price": 90}],
            })
            monkeypatch.undo()

        assert lookup.status_code == 200
        assert lookup.json()["source"] == "heuristic"
        assert compare.status_code == 200
        assert [r["verdict"] for r in compare.json()["results"]] == ["fair"]

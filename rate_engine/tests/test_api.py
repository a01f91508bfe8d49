"""
Tests: HTTP routes over a mock-mode service.

Run with:
    pytest rate_engine/tests/test_api.py -v
"""

import pytest
from fastapi.testclient import TestClient

from rate_engine.api import app
from rate_engine.api.routes import get_rate_card_service


@pytest.fixture
def client(service):
    app.dependency_overrides[get_rate_card_service] = lambda: service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _metro_payload(**overrides) -> dict:
    payload = {
        "name": "Metro express",
        "pincode_tier": "tier_1",
        "completion_slab": "within_24h",
        "base_rate": 500,
        "travel_allowance": 50,
        "bonus": 0,
    }
    payload.update(overrides)
    return payload


class TestHealth:
    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        data = r.json()
        assert data["status"] == "ok"
        assert data["config_source"] == "defaults"


class TestPricingRoutes:
    def test_calculate(self, client, metro_card):
        r = client.post("/api/rates/calculate", json={
            "pincode": "400001",
            "completion_slab": "within_24h",
            "quality_score": 0.95,
        })
        assert r.status_code == 200, r.text
        data = r.json()
        assert data["base_rate"] == 624.0
        assert data["total_rate"] == 674.0
        assert data["breakdown"]["pincode_tier"] == "tier_1"
        assert data["breakdown"]["adjustments"][-1] == "Quality bonus: +4.0%"

    def test_calculate_without_policy_is_404(self, client):
        r = client.post("/api/rates/calculate", json={"pincode": "123456", "completion_slab": "within_1w"})
        assert r.status_code == 404
        assert "tier_3 / within_1w" in r.json()["detail"]

    def test_calculate_rejects_unknown_slab(self, client):
        r = client.post("/api/rates/calculate", json={"pincode": "400001", "completion_slab": "within_2h"})
        assert r.status_code == 422

    def test_tier_lookup(self, client):
        assert client.get("/api/rates/tier/110002").json()["pincode_tier"] == "tier_2"
        assert client.get("/api/rates/tier/999999").json()["pincode_tier"] == "tier_2"
        assert client.get("/api/rates/tier/400003").json()["pincode_tier"] == "tier_1"

    def test_suggestions(self, client, metro_card):
        r = client.get("/api/rates/suggestions", params={"pincode": "400001"})
        assert r.status_code == 200
        assert [c["id"] for c in r.json()] == [metro_card.id]


class TestRateCardRoutes:
    def test_create_and_list(self, client):
        r = client.post("/api/rate-cards", json=_metro_payload(), headers={"X-Actor": "admin-1"})
        assert r.status_code == 201, r.text
        created = r.json()
        assert created["created_by"] == "admin-1"

        listed = client.get("/api/rate-cards").json()
        assert [c["id"] for c in listed] == [created["id"]]

    def test_duplicate_is_409(self, client, metro_card):
        r = client.post("/api/rate-cards", json=_metro_payload())
        assert r.status_code == 409

    def test_invalid_base_rate_is_422(self, client):
        r = client.post("/api/rate-cards", json=_metro_payload(base_rate=-10))
        assert r.status_code == 422

    def test_bulk_create(self, client):
        r = client.post("/api/rate-cards/bulk", json=[
            _metro_payload(),
            _metro_payload(completion_slab="within_48h"),
        ])
        assert r.status_code == 201
        assert len(r.json()) == 2

    def test_update(self, client, metro_card):
        r = client.patch(f"/api/rate-cards/{metro_card.id}", json={"base_rate": 550})
        assert r.status_code == 200
        assert r.json()["base_rate"] == 550

    def test_update_unknown_is_404(self, client):
        r = client.patch("/api/rate-cards/RC-MISSING", json={"base_rate": 550})
        assert r.status_code == 404

    def test_delete_deactivates(self, client, metro_card):
        r = client.delete(f"/api/rate-cards/{metro_card.id}")
        assert r.status_code == 200
        assert r.json()["is_active"] is False
        assert client.get("/api/rate-cards").json() == []


class TestConfigRoutes:
    def test_get_and_put_config(self, client, metro_card):
        config = client.get("/api/rate-config").json()
        assert config["dynamic_pricing"]["factors"]["quality"] == {"weight": 0.4, "threshold": 0.85}

        config["dynamic_pricing"]["enabled"] = False
        r = client.put("/api/rate-config", json=config, headers={"X-Actor": "admin-1"})
        assert r.status_code == 200
        assert r.json()["dynamic_pricing"]["enabled"] is False

        calc = client.post("/api/rates/calculate", json={
            "pincode": "400001",
            "completion_slab": "within_24h",
            "quality_score": 0.95,
        }).json()
        assert calc["base_rate"] == 600.0

    def test_put_rejects_bad_weight(self, client):
        config = client.get("/api/rate-config").json()
        config["dynamic_pricing"]["factors"]["demand"]["weight"] = 3
        assert client.put("/api/rate-config", json=config).status_code == 422

    def test_assign_pincodes(self, client):
        r = client.post("/api/rate-config/pincodes", json={"tier": "tier_3", "pincodes": ["560001"]})
        assert r.status_code == 200
        assert "560001" in r.json()["pincode_tiers"]["tier_3"]["pincodes"]
        assert client.get("/api/rates/tier/560001").json()["pincode_tier"] == "tier_3"

    def test_reload(self, client):
        r = client.post("/api/rate-config/reload")
        assert r.status_code == 200
        assert r.json()["default_tier"] == "tier_2"

"""Tests for the FastAPI gateway, routes, auth and rate limiting."""

import pytest
from fastapi.testclient import TestClient

from workload_arbiter.api.gateway import create_app
from workload_arbiter.api.middleware.rate_limit import SlidingWindowLimiter
from workload_arbiter.recipes.defaults import PRIORITY_SEPARATION


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "WORKLOAD_ARBITER_API_KEY",
        "WORKLOAD_ARBITER_ENV",
        "WORKLOAD_ARBITER_AUTH_DISABLED",
        "WORKLOAD_ARBITER_RATE_LIMIT_PER_MINUTE",
        "WORKLOAD_ARBITER_CORS_ORIGINS",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def client(engine):
    with TestClient(create_app(engine)) as c:
        yield c


@pytest.fixture
def secured(monkeypatch, engine):
    monkeypatch.setenv("WORKLOAD_ARBITER_API_KEY", "test-key")
    with TestClient(create_app(engine)) as c:
        yield c


class TestHealth:
    def test_health(self, client):
        data = client.get("/health").json()
        assert data["status"] == "healthy"
        assert data["agents_registered"] == 6
        assert data["agents_available"] == 6
        assert data["recipes"] == 12
        assert data["active_recipe"] is None


class TestRecipes:
    def test_list_in_registration_order(self, client):
        data = client.get("/api/v1/recipes").json()
        assert data["total"] == 12
        assert data["recipes"][0]["name"] == "VALORANT"
        assert data["recipes"][-1]["name"] == "Universal"

    def test_list_filtered_by_category(self, client):
        data = client.get("/api/v1/recipes", params={"category": "Compound"}).json()
        assert [r["name"] for r in data["recipes"]] == [
            "Gaming + Streaming", "Development + Streaming",
        ]
        assert data["total"] == 2
        assert data["recipes"][0]["required_agents"] == ["gaming", "streaming"]

    def test_unknown_category_is_empty(self, client):
        data = client.get("/api/v1/recipes", params={"category": "Farming"}).json()
        assert data == {"recipes": [], "total": 0}

    def test_match(self, client):
        response = client.post(
            "/api/v1/recipes/match",
            json={"processes": ["VALORANT-Win64-Shipping.exe", "obs64.exe"]},
        )
        data = response.json()
        assert data["best"] == "Gaming + Streaming"
        assert set(data["matches"]) >= {"VALORANT", "Streaming", "Universal"}

    def test_match_nothing(self, client):
        assert client.post("/api/v1/recipes/match", json={"processes": []}).json() == {
            "matches": [], "best": None,
        }

    def test_match_rejects_bad_process_name(self, client):
        response = client.post("/api/v1/recipes/match", json={"processes": ["../../etc"]})
        assert response.status_code == 400

    def test_apply_and_revert(self, client, actuator):
        response = client.post("/api/v1/recipes/CS2/apply")
        assert response.status_code == 200
        data = response.json()
        assert data["success"]
        assert data["recipe_name"] == "CS2"
        assert actuator.config["registry"][PRIORITY_SEPARATION] == 0x26

        data = client.post("/api/v1/recipes/CS2/revert").json()
        assert data["success"]
        assert all(c["status"] == "reverted" for c in data["changes"])
        assert PRIORITY_SEPARATION not in actuator.config["registry"]

    def test_apply_unknown_recipe_is_404(self, client):
        assert client.post("/api/v1/recipes/Nope/apply").status_code == 404

    def test_revert_unknown_name_is_empty_success(self, client):
        data = client.post("/api/v1/recipes/Nope/revert").json()
        assert data["success"]
        assert data["changes"] == []


class TestControl:
    def test_push_snapshot_runs_a_cycle(self, client):
        response = client.post(
            "/api/v1/snapshots",
            json={"running_processes": ["cs2.exe"], "gpu_percent": 90},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["scenario"] == "cs2"
        assert data["recipe_switched"]
        assert data["recipe_result"]["success"]
        assert client.get("/health").json()["active_recipe"] == "CS2"

    def test_out_of_range_snapshot_is_422(self, client):
        response = client.post("/api/v1/snapshots", json={"cpu_percent": 150})
        assert response.status_code == 422

    def test_invalid_activity_is_400(self, client):
        response = client.post("/api/v1/snapshots", json={"keyboard_activity": 500})
        assert response.status_code == 400

    def test_focus(self, client):
        assert client.post("/api/v1/focus", json={"focused": False}).json() == {"focused": False}

    def test_results(self, client):
        client.post("/api/v1/recipes/CS2/apply")
        client.post("/api/v1/recipes/CS2/revert")
        data = client.get("/api/v1/results", params={"limit": 1}).json()
        assert data["total"] == 1
        assert data["results"][0]["message"].startswith("Reverted")


class TestAgents:
    def test_list_agents(self, client):
        data = client.get("/api/v1/agents").json()
        assert [a["agent_type"] for a in data["agents"]] == [
            "gaming", "streaming", "development", "media", "productivity", "content_creation",
        ]
        assert {a["state"] for a in data["agents"]} == {"ready"}

    def test_recommendations_after_cycle(self, client):
        client.post("/api/v1/snapshots", json={"running_processes": ["cs2.exe"]})
        data = client.get("/api/v1/recommendations").json()
        assert [r["agent_type"] for r in data["recommendations"]] == ["gaming"]
        everything = client.get("/api/v1/recommendations", params={"include_empty": True}).json()
        assert everything["total"] == 6
        agents = {a["agent_type"]: a for a in client.get("/api/v1/agents").json()["agents"]}
        assert agents["gaming"]["state"] == "active"
        assert agents["gaming"]["allocation"] == {"gpu": 70.0, "cpu": 40.0}


class TestFeedback:
    def test_feedback_is_consumed_once(self, client):
        body = {
            "agent_type": "gaming",
            "action": f"registry:{PRIORITY_SEPARATION}",
            "kind": "success",
            "id": "fb-1",
        }
        first = client.post("/api/v1/feedback", json=body).json()
        assert first["consumed"]
        assert first["success_rate"] == pytest.approx(0.575)
        second = client.post("/api/v1/feedback", json=body).json()
        assert not second["consumed"]
        assert second["success_rate"] is None

    def test_unknown_agent_is_404(self, client):
        body = {"agent_type": "nobody", "action": "x", "kind": "failure"}
        assert client.post("/api/v1/feedback", json=body).status_code == 404

    def test_bad_agent_type_is_400(self, client):
        body = {"agent_type": "1; drop", "action": "x", "kind": "failure"}
        assert client.post("/api/v1/feedback", json=body).status_code == 400

    def test_unknown_kind_is_422(self, client):
        body = {"agent_type": "gaming", "action": "x", "kind": "meh"}
        assert client.post("/api/v1/feedback", json=body).status_code == 422


class TestAuth:
    def test_reads_stay_open(self, secured):
        assert secured.get("/api/v1/recipes").status_code == 200

    def test_missing_key_is_401(self, secured):
        assert secured.post("/api/v1/recipes/CS2/apply").status_code == 401

    def test_wrong_key_is_403(self, secured):
        response = secured.post(
            "/api/v1/recipes/CS2/apply", headers={"Authorization": "Bearer wrong"}
        )
        assert response.status_code == 403

    def test_right_key(self, secured):
        response = secured.post(
            "/api/v1/recipes/CS2/apply", headers={"Authorization": "Bearer test-key"}
        )
        assert response.status_code == 200

    def test_production_requires_key(self, monkeypatch, engine):
        monkeypatch.setenv("WORKLOAD_ARBITER_ENV", "production")
        with pytest.raises(RuntimeError):
            create_app(engine)
        monkeypatch.setenv("WORKLOAD_ARBITER_AUTH_DISABLED", "true")
        create_app(engine)


class TestRateLimit:
    def test_limiter_window(self):
        limiter = SlidingWindowLimiter(limit=2, window=60)
        assert limiter.allow("a", now=0.0)
        assert limiter.allow("a", now=1.0)
        assert not limiter.allow("a", now=2.0)
        assert limiter.allow("b", now=2.0)
        assert limiter.allow("a", now=61.0)

    def test_over_limit_is_429(self, monkeypatch, engine):
        monkeypatch.setenv("WORKLOAD_ARBITER_RATE_LIMIT_PER_MINUTE", "2")
        with TestClient(create_app(engine)) as c:
            codes = [c.post("/api/v1/recipes/Nope/revert").status_code for _ in range(3)]
        assert codes == [200, 200, 429]

"""Tests for the HTTP run service."""

import asyncio
import threading

import pytest
from fastapi.testclient import TestClient

from empire_sim.enums import Phase
from viewer.app import main
from viewer.app.main import RunStore, app


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("EMPIRE_SIM_RUN_STORE_DIR", str(tmp_path))
    with TestClient(app) as c:
        yield c


@pytest.fixture
def run_id(client):
    resp = client.post("/api/runs", json={"seed": 5, "player_name": "Tester"})
    assert resp.status_code == 200
    return resp.json()["run"]["id"]


def _version(client, run_id):
    return client.get(f"/api/runs/{run_id}").json()["run"]["version"]


# ─────────────────────────────────────────────────────
# Runs
# ─────────────────────────────────────────────────────

class TestRuns:
    def test_create_and_fetch(self, client, run_id, tmp_path):
        assert (tmp_path / f"{run_id}.json").exists()
        body = client.get(f"/api/runs/{run_id}").json()
        assert body["run"]["seed"] == 5
        assert body["summary"]["phase"] == "player"
        assert body["summary"]["turns_remaining"] == 50

    def test_same_seed_same_bots(self, client):
        a = client.post("/api/runs", json={"seed": 9}).json()["run"]["bots"]
        b = client.post("/api/runs", json={"seed": 9}).json()["run"]["bots"]
        assert a == b

    def test_unknown_race(self, client):
        assert client.post("/api/runs", json={"seed": 1, "race": "dragon"}).status_code == 400

    @pytest.mark.parametrize("bad_id", ["missing", "bad.id"])
    def test_unknown_run(self, client, bad_id):
        assert client.get(f"/api/runs/{bad_id}").status_code == 404

    def test_summary(self, client, run_id):
        summary = client.get(f"/api/runs/{run_id}/summary").json()
        assert summary["round"] == 1
        assert summary["is_complete"] is False

    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"


# ─────────────────────────────────────────────────────
# Player actions
# ─────────────────────────────────────────────────────

class TestTurns:
    def test_turn_bumps_version(self, client, run_id):
        resp = client.post(f"/api/runs/{run_id}/turn", json={"action": "cash", "turns": 5, "version": 0})
        assert resp.status_code == 200
        body = resp.json()
        assert body["result"]["success"] is True
        assert body["run"]["version"] == 1
        assert body["summary"]["turns_remaining"] == 45

    def test_stale_version_conflicts(self, client, run_id):
        client.post(f"/api/runs/{run_id}/turn", json={"action": "cash", "turns": 1, "version": 0})
        resp = client.post(f"/api/runs/{run_id}/turn", json={"action": "cash", "turns": 1, "version": 0})
        assert resp.status_code == 409
        assert _version(client, run_id) == 1

    def test_unknown_action(self, client, run_id):
        resp = client.post(f"/api/runs/{run_id}/turn", json={"action": "dance"})
        assert resp.status_code == 400

    def test_too_many_turns_leaves_run_untouched(self, client, run_id):
        resp = client.post(f"/api/runs/{run_id}/turn", json={"action": "cash", "turns": 100})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Not enough turns"
        assert _version(client, run_id) == 0

    def test_turn_on_unknown_run(self, client):
        assert client.post("/api/runs/missing/turn", json={"action": "cash"}).status_code == 404

    def test_attack_preview(self, client, run_id):
        bots = client.get(f"/api/runs/{run_id}").json()["run"]["bots"]
        preview = client.get(f"/api/runs/{run_id}/attack-preview/{bots[0]['id']}")
        assert preview.status_code == 200
        assert "win_chance" in preview.json()
        assert client.get(f"/api/runs/{run_id}/attack-preview/nobody").status_code == 404

    def test_settings(self, client, run_id):
        resp = client.post(f"/api/runs/{run_id}/settings", json={"tax_rate": 40})
        assert resp.status_code == 200
        assert resp.json()["run"]["player"]["tax_rate"] == 40
        bad = client.post(f"/api/runs/{run_id}/settings", json={"industry": {"trparm": 100}})
        assert bad.status_code == 400

    def test_bank(self, client, run_id):
        resp = client.post(f"/api/runs/{run_id}/bank", json={"operation": "deposit", "amount": 1000})
        assert resp.status_code == 200
        assert client.get(f"/api/runs/{run_id}/bank").json()["savings"] == 1000
        broke = client.post(f"/api/runs/{run_id}/bank", json={"operation": "withdraw", "amount": 10 ** 9})
        assert broke.status_code == 400


# ─────────────────────────────────────────────────────
# Round cycle
# ─────────────────────────────────────────────────────

class TestRoundCycle:
    def test_full_round(self, client, run_id):
        base = f"/api/runs/{run_id}"
        shop = client.post(f"{base}/end-player-phase", json={})
        assert shop.status_code == 200
        assert shop.json()["summary"]["phase"] == "shop"
        assert client.get(f"{base}/draft/reroll").json()["rerolls_used"] == 0

        assert client.post(f"{base}/draft/select", json={"option_index": 0}).status_code == 200
        assert client.post(f"{base}/draft/select", json={"option_index": 0}).status_code == 400

        assert client.post(f"{base}/end-shop-phase", json={}).json()["summary"]["phase"] == "bot"
        assert client.post(f"{base}/market", json={"side": "buy", "resource": "food",
                                                   "amount": 1}).status_code == 400

        resp = client.post(f"{base}/bot-phase", json={})
        assert resp.status_code == 200
        body = resp.json()
        assert body["summary"]["round"] == 2
        assert body["summary"]["phase"] == "player"
        assert len(body["result"]["standings"]) == 5

    def test_bot_phase_in_wrong_phase(self, client, run_id):
        assert client.post(f"/api/runs/{run_id}/bot-phase", json={}).status_code == 400

    def test_advisors(self, client, run_id):
        body = client.get(f"/api/runs/{run_id}/advisors").json()
        assert body["current"] == 0
        assert body["advisors"] == []


# ─────────────────────────────────────────────────────
# Run store and request handling
# ─────────────────────────────────────────────────────

class TestRunStore:
    def test_lock_dropped_after_use(self, tmp_path):
        runs = RunStore(tmp_path)

        async def use():
            async with runs.locked("abc"):
                assert "abc" in runs._locks

        asyncio.run(use())
        assert runs._locks == {}

    def test_lock_serializes_same_run(self, tmp_path):
        runs = RunStore(tmp_path)
        order = []

        async def worker(name):
            async with runs.locked("abc"):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        async def both():
            await asyncio.gather(worker("a"), worker("b"))

        asyncio.run(both())
        assert order == ["a-in", "a-out", "b-in", "b-out"]
        assert runs._locks == {}

    def test_no_locks_left_after_requests(self, client, run_id):
        client.post(f"/api/runs/{run_id}/turn", json={"action": "cash", "turns": 2})
        client.post(f"/api/runs/{run_id}/turn", json={"action": "cash", "turns": 500})
        assert main.get_store()._locks == {}


class TestMutate:
    def test_engine_call_runs_off_the_event_loop(self, tmp_path, monkeypatch):
        runs = RunStore(tmp_path)
        monkeypatch.setattr(main, "store", runs)
        state = main.get_engine().create_run(seed=3, run_id="threaded")
        seen = {}

        def op(run_state):
            seen["op"] = threading.get_ident()
            return main.get_engine().end_player_phase(run_state)

        async def call():
            await runs.save(state)
            seen["loop"] = threading.get_ident()
            return await main._mutate(state.id, None, op)

        body = asyncio.run(call())
        assert seen["op"] != seen["loop"]
        assert body["summary"]["phase"] == Phase.SHOP.value
        assert body["run"]["version"] == 1

"""Tests for run state serialization and validation."""

import json

import pytest

from empire_sim.enums import Phase
from empire_sim.state import RunState, RunStats


def _json_round_trip(state):
    return RunState.from_dict(json.loads(json.dumps(state.to_dict())))


# ─────────────────────────────────────────────────────
# Round trips
# ─────────────────────────────────────────────────────

class TestRoundTrip:
    def test_fresh_run(self, run):
        restored = _json_round_trip(run)
        assert restored.to_dict() == run.to_dict()
        assert restored.rng == run.rng

    def test_after_a_full_round(self, engine, run):
        engine.end_player_phase(run)
        engine.select_draft(run, 0)
        engine.end_shop_phase(run)
        engine.execute_bot_phase(run)
        restored = _json_round_trip(run)
        assert restored.to_dict() == run.to_dict()
        assert [type(b) for b in restored.bots] == [type(b) for b in run.bots]

    def test_shop_state_survives(self, engine, run):
        engine.end_player_phase(run)
        restored = _json_round_trip(run)
        assert restored.phase is Phase.SHOP
        assert restored.shop_stock == run.shop_stock
        assert restored.draft_options == run.draft_options

    def test_copy_is_independent(self, run):
        clone = run.copy()
        clone.player.resources.gold = 0
        clone.rng.advance()
        assert run.player.resources.gold == 50000
        assert clone.rng != run.rng


# ─────────────────────────────────────────────────────
# Validation
# ─────────────────────────────────────────────────────

class TestFromDictErrors:
    def test_not_a_dict(self):
        with pytest.raises(ValueError):
            RunState.from_dict(["nope"])

    def test_unknown_format(self, run):
        data = run.to_dict()
        data["format"] = 99
        with pytest.raises(ValueError, match="format"):
            RunState.from_dict(data)

    def test_missing_key(self, run):
        data = run.to_dict()
        del data["player"]
        with pytest.raises(ValueError):
            RunState.from_dict(data)

    def test_bad_phase(self, run):
        data = run.to_dict()
        data["phase"] = "lunch"
        with pytest.raises(ValueError):
            RunState.from_dict(data)


class TestRunStats:
    def test_unknown_keys_ignored(self):
        stats = RunStats.from_dict({"attacks": 3, "mystery": 1})
        assert stats.attacks == 3
        assert "mystery" not in stats.to_dict()


class TestQueries:
    def test_find_and_living_bots(self, run):
        first = run.bots[0]
        assert run.find_bot(first.id) is first
        assert run.find_bot("missing") is None
        first.resources.land = 0
        assert first not in run.living_bots()
        assert len(run.all_empires()) == len(run.bots) + 1

"""Tests for the run engine state machine."""

import pytest

from empire_sim.actions import TurnRequest, attack, build, cast
from empire_sim.config import SimConfig
from empire_sim.engine import RunEngine, defeat_reason
from empire_sim.enums import Outcome, Phase, Spell, TurnAction
from empire_sim.bank import emergency_loan_limit


def _finish_player_phase(engine, state):
    engine.execute_turn(state, TurnRequest(TurnAction.CASH, state.turns_remaining))
    if state.phase is Phase.PLAYER:
        engine.end_player_phase(state)


def _play_round(engine, state):
    _finish_player_phase(engine, state)
    engine.select_draft(state, 0)
    engine.end_shop_phase(state)
    return engine.execute_bot_phase(state)


# ─────────────────────────────────────────────────────
# Creation
# ─────────────────────────────────────────────────────

class TestCreateRun:
    def test_initial_state(self, run):
        assert run.id == "testrun"
        assert run.player.id == "player_testrun"
        assert run.player.name == "Tester"
        assert len(run.bots) == 4
        assert run.round == 1
        assert run.phase is Phase.PLAYER
        assert run.turns_remaining == 50
        assert run.outcome is Outcome.IN_PROGRESS
        assert run.market_prices is not None

    def test_same_seed_same_bots(self, engine):
        a = engine.create_run(seed=5, run_id="a")
        b = engine.create_run(seed=5, run_id="b")
        assert [x.to_dict() for x in a.bots] == [x.to_dict() for x in b.bots]

    def test_random_seed_when_missing(self, engine):
        state = engine.create_run()
        assert 0 <= state.seed < 2 ** 31

    def test_unknown_race(self, engine):
        with pytest.raises(ValueError):
            engine.create_run(seed=1, race="dragon")


# ─────────────────────────────────────────────────────
# Player phase
# ─────────────────────────────────────────────────────

class TestPlayerPhase:
    def test_turns_are_charged(self, engine, run):
        result = engine.execute_turn(run, TurnRequest(TurnAction.CASH, 10))
        assert result.success
        assert run.turns_remaining == 40
        assert result.turns_remaining == 40
        assert run.stats.turns_used == 10

    def test_accepts_plain_dicts(self, engine, run):
        result = engine.execute_turn(run, {"action": "farm", "turns": 3})
        assert result.success
        assert run.turns_remaining == 47

    def test_too_many_turns(self, engine, run):
        result = engine.execute_turn(run, TurnRequest(TurnAction.CASH, 51))
        assert not result.success
        assert result.error == "Not enough turns"
        assert run.turns_remaining == 50

    def test_zero_turns(self, engine, run):
        assert engine.execute_turn(run, TurnRequest(TurnAction.CASH, 0)).error == "Turns must be at least 1"

    def test_bad_action_name_raises(self, engine, run):
        with pytest.raises(ValueError):
            engine.execute_turn(run, {"action": "dance"})

    def test_exhausting_turns_opens_shop(self, engine, run):
        _finish_player_phase(engine, run)
        assert run.phase is Phase.SHOP
        assert run.turns_remaining == 0
        assert run.shop_stock is not None
        assert len(run.draft_options) >= 2

    def test_end_player_phase_early(self, engine, run):
        assert engine.end_player_phase(run).success
        assert run.phase is Phase.SHOP
        assert not engine.end_player_phase(run).success

    def test_build(self, engine, run):
        result = engine.execute_turn(run, build({"bldcash": 10}))
        assert result.success
        assert run.player.buildings.bldcash == 60
        assert run.turns_remaining == 50 - result.turns_spent

    def test_self_spell_casts(self, engine, run):
        run.player.resources.runes = 1_000_000
        result = engine.execute_turn(run, cast(Spell.FOOD, casts=3))
        assert result.success
        assert result.turns_spent == 6
        assert result.spell.casts == 3
        assert run.stats.spells_cast == 3
        assert run.turns_remaining == 44

    def test_self_spell_without_runes(self, engine, run):
        run.player.resources.runes = 0
        result = engine.execute_turn(run, cast(Spell.FOOD))
        assert not result.success
        assert run.turns_remaining == 50

    def test_attack_unknown_target(self, engine, run):
        result = engine.execute_turn(run, attack("nobody"))
        assert result.error == "Target not found"

    def test_attack_counts_stats(self, engine, run):
        target = run.bots[0]
        target.era = run.player.era
        target.innate = {}
        run.player.troops.trparm = 5_000
        result = engine.execute_turn(run, attack(target.id))
        assert result.success
        assert result.combat.won
        assert run.stats.attacks == 1
        assert run.stats.attacks_won == 1
        assert run.stats.land_conquered == result.combat.land_gained
        assert target.memory.attacks_received == {run.player.id: 1}
        assert run.turns_remaining == 48

    def test_enemy_spell_needs_target(self, engine, run):
        result = engine.execute_turn(run, cast(Spell.BLAST))
        assert result.error == "Spell target required"

    def test_debt_defeats_player(self, engine, run):
        run.player.loan = emergency_loan_limit(run.player) * 10
        engine.execute_turn(run, TurnRequest(TurnAction.CASH, 5))
        assert run.phase is Phase.COMPLETE
        assert run.outcome is Outcome.DEFEAT
        assert run.defeat_reason == "Crushed by debt"
        assert not engine.execute_turn(run, TurnRequest(TurnAction.CASH, 1)).success


class TestDefeatReason:
    def test_healthy_empire(self, run):
        assert defeat_reason(run.player) is None

    def test_no_land(self, run):
        run.player.resources.land = 0
        assert defeat_reason(run.player) == "All land lost"

    def test_no_people(self, run):
        run.player.peasants = 0
        for kind in ("trparm", "trplnd", "trpfly", "trpsea", "trpwiz"):
            run.player.troops.set(kind, 0)
        assert defeat_reason(run.player) == "Population collapsed"


# ─────────────────────────────────────────────────────
# Settings
# ─────────────────────────────────────────────────────

class TestSettings:
    def test_update_tax_and_industry(self, engine, run):
        industry = {"trparm": 25, "trplnd": 25, "trpfly": 25, "trpsea": 25}
        result = engine.update_settings(run, tax_rate=50, industry=industry)
        assert result.success
        assert run.player.tax_rate == 50
        assert run.player.industry.to_dict() == industry

    @pytest.mark.parametrize("tax,industry", [
        (101, None),
        (-1, None),
        (None, {"trparm": 100}),
        (None, {"trparm": 50, "trplnd": 50, "trpfly": 10, "trpsea": 0}),
        (None, {"trparm": 110, "trplnd": -10, "trpfly": 0, "trpsea": 0}),
    ])
    def test_invalid_settings_change_nothing(self, engine, run, tax, industry):
        before = run.player.to_dict()
        result = engine.update_settings(run, tax_rate=tax, industry=industry)
        assert not result.success
        assert run.player.to_dict() == before


# ─────────────────────────────────────────────────────
# Shop phase
# ─────────────────────────────────────────────────────

class TestShopPhase:
    @pytest.fixture
    def shop(self, engine, run):
        engine.end_player_phase(run)
        return run

    def test_draft_once_per_round(self, engine, shop):
        assert not engine.select_draft(shop, 99).success
        assert engine.select_draft(shop, 0).success
        assert shop.draft_options is None
        assert shop.stats.drafts_taken == 1
        assert engine.select_draft(shop, 0).error == "No draft options available"

    def test_draft_outside_shop(self, engine, run):
        assert engine.select_draft(run, 0).error == "Not in shop phase"

    def test_reroll_costs_gold_and_is_limited(self, engine, shop):
        gold = shop.player.resources.gold
        first = engine.reroll_draft(shop)
        assert first.success
        assert first.cost == gold // 5
        assert shop.player.resources.gold == gold - first.cost
        assert engine.reroll_draft(shop).success
        third = engine.reroll_draft(shop)
        assert not third.success
        assert third.error == "No rerolls left"
        assert engine.get_reroll_info(shop)["can_reroll"] is False

    def test_reroll_is_deterministic(self, engine, shop):
        clone = shop.copy()
        assert engine.reroll_draft(shop).options == engine.reroll_draft(clone).options

    def test_shop_market_uses_stock(self, engine, shop):
        available = shop.shop_stock.food
        result = engine.market_transaction(shop, "buy", "food", available + 1)
        assert not result.success
        assert engine.market_transaction(shop, "buy", "food", 10).success
        assert shop.shop_stock.food == available - 10
        assert shop.stats.trades == 1

    def test_bank_open_in_shop(self, engine, shop):
        assert engine.bank_transaction(shop, "deposit", 1000).success

    def test_dismiss_advisor(self, engine, shop):
        shop.player.advisors = ["pioneer"]
        assert engine.dismiss_advisor(shop, "pioneer").success
        assert engine.get_advisor_capacity(shop) == {"current": 0, "max": 3}

    def test_end_shop_phase(self, engine, shop):
        assert engine.end_shop_phase(shop).success
        assert shop.phase is Phase.BOT
        assert shop.draft_options is None and shop.shop_stock is None
        assert engine.market_transaction(shop, "buy", "food", 1).error == "Market is closed"
        assert not engine.bank_transaction(shop, "deposit", 1).success


# ─────────────────────────────────────────────────────
# Bot phase and run completion
# ─────────────────────────────────────────────────────

class TestBotPhase:
    def test_advances_round(self, engine, run):
        result = _play_round(engine, run)
        assert result.success
        assert run.round == 2
        assert run.phase is Phase.PLAYER
        assert run.turns_remaining == 50
        assert len(run.last_standings) == 5

    def test_wrong_phase(self, engine, run):
        assert not engine.execute_bot_phase(run).success

    def test_savings_interest_at_round_end(self, engine, run):
        _finish_player_phase(engine, run)
        engine.end_shop_phase(run)
        run.player.bank = 100_000
        engine.execute_bot_phase(run)
        assert run.player.bank == 104_000

    def test_last_round_completes(self, engine, run):
        run.round = 10
        _finish_player_phase(engine, run)
        engine.end_shop_phase(run)
        engine.execute_bot_phase(run)
        assert run.phase is Phase.COMPLETE
        assert run.round == 10
        assert engine.get_summary(run)["final_score"] == run.player.networth

    def test_full_run_stops_at_round_ten(self, engine, run):
        rounds = []
        for _ in range(run.total_rounds):
            if run.is_complete:
                break
            _play_round(engine, run)
            rounds.append(run.round)
        assert max(rounds) <= 10
        assert run.outcome in (Outcome.COMPLETED, Outcome.DEFEAT)
        if run.outcome is Outcome.COMPLETED:
            assert run.round == 10

    def test_short_config(self):
        engine = RunEngine(SimConfig(total_rounds=2, turns_per_round=10))
        state = engine.create_run(seed=3, run_id="short")
        assert state.turns_remaining == 10
        _play_round(engine, state)
        _play_round(engine, state)
        assert state.is_complete


# ─────────────────────────────────────────────────────
# Determinism
# ─────────────────────────────────────────────────────

class TestDeterminism:
    def test_resumed_run_matches_original(self, engine, run):
        _play_round(engine, run)
        resumed = run.copy()
        for state in (run, resumed):
            engine.execute_turn(state, TurnRequest(TurnAction.EXPLORE, 5))
            _finish_player_phase(engine, state)
            engine.select_draft(state, 0)
            engine.end_shop_phase(state)
            engine.execute_bot_phase(state)
        assert resumed.to_dict() == run.to_dict()

    def test_preview(self, engine, run):
        preview = engine.preview_attack(run, run.bots[0].id)
        assert preview is not None
        assert engine.preview_attack(run, "nobody") is None

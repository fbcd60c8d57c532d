"""Tests for economy formulas, the per-turn loop and the turn actions."""

import math

import pytest

from empire_sim.bank import emergency_loan_limit
from empire_sim.economy import (
    EconomyTurn, apply_economy, build_rate, build_turns_needed, calc_finances,
    calc_land_gain, calc_provisions, calc_troop_production, execute_turn_action,
    process_build, process_demolish, process_economy, process_explore, size_bonus,
)
from empire_sim.enums import Era, Race, TurnAction

from conftest import make_empire


def _turn(**values):
    base = dict(income=0, expenses=0, loan_payment=0, food_production=0, food_consumption=0,
                rune_production=0, troops_produced={}, wizards_produced=0, starvation=False)
    base.update(values)
    return EconomyTurn(**base)


# ─────────────────────────────────────────────────────
# Formulas
# ─────────────────────────────────────────────────────

class TestFormulas:
    def test_size_bonus_never_shrinks(self):
        values = [size_bonus(n) for n in (0, 10 ** 5, 10 ** 6, 10 ** 7, 10 ** 9)]
        assert values == sorted(values)

    def test_starting_empire_is_fed(self, empire):
        provisions = calc_provisions(empire)
        assert provisions.net > 0

    def test_starting_finances_positive(self, empire):
        assert calc_finances(empire).net > 0

    def test_loan_payment_is_half_percent(self, empire):
        empire.loan = 20_000
        assert calc_finances(empire).loan_payment == 100

    def test_land_gain_shrinks_with_land(self, empire):
        small = calc_land_gain(empire)
        empire.resources.land = 20_000
        assert calc_land_gain(empire) < small

    def test_troop_production_follows_industry(self, empire):
        for kind, share in {"trparm": 100, "trplnd": 0, "trpfly": 0, "trpsea": 0}.items():
            empire.industry.set(kind, share)
        produced = calc_troop_production(empire)
        assert produced["trparm"] > 0
        assert produced["trplnd"] == produced["trpfly"] == produced["trpsea"] == 0

    def test_process_economy_does_not_mutate(self, empire):
        before = empire.to_dict()
        process_economy(empire, TurnAction.CASH)
        assert empire.to_dict() == before

    def test_cash_turn_beats_plain_turn(self, empire):
        assert process_economy(empire, TurnAction.CASH).income > process_economy(empire).income

    def test_farm_turn_beats_plain_turn(self, empire):
        assert (process_economy(empire, TurnAction.FARM).food_production
                > process_economy(empire).food_production)


# ─────────────────────────────────────────────────────
# Applying one turn
# ─────────────────────────────────────────────────────

class TestApplyEconomy:
    def test_overdraft_becomes_loan(self, empire):
        empire.resources.gold = 100
        apply_economy(empire, _turn(expenses=1100))
        assert empire.resources.gold == 0
        assert empire.loan >= 1000

    def test_starvation_clamps_food_and_deserts(self, empire):
        empire.resources.food = 10
        upkeep = apply_economy(empire, _turn(food_consumption=500, starvation=True))
        assert upkeep.food_emergency
        assert empire.resources.food == 0
        assert empire.troops.trparm == 97

    def test_production_is_added(self, empire):
        apply_economy(empire, _turn(troops_produced={"trparm": 5}, wizards_produced=2,
                                    rune_production=30))
        assert empire.troops.trparm == 105
        assert empire.troops.trpwiz == 12
        assert empire.resources.runes == 530

    def test_health_regenerates(self, empire):
        empire.health = 50
        apply_economy(empire, _turn())
        assert empire.health > 50


# ─────────────────────────────────────────────────────
# Multi-turn actions
# ─────────────────────────────────────────────────────

class TestTurnActions:
    @pytest.mark.parametrize("race,era,advisors,race_pct,era_pct,mult", [
        (Race.HUMAN, Era.PAST, [], 0, 0, 1),
        (Race.ELF, Era.PRESENT, [], 12, 20, 1),
        (Race.ORC, Era.FUTURE, ["frontier_scout"], 22, 40, 2),
        (Race.DWARF, Era.PAST, [], -18, 0, 1),
    ])
    def test_explore_gains_land_each_turn(self, race, era, advisors, race_pct, era_pct, mult):
        empire = make_empire(race=race, era=era)
        empire.advisors = advisors
        land = 2000
        for _ in range(3):
            land += int(math.ceil(1 / (land * 0.00022 + 0.25) * 20
                                  * (1.0 + race_pct / 100) * (1.0 + era_pct / 100)) * mult)
        result = process_explore(empire, 3)
        assert result.success
        assert result.turns_spent == 3
        assert empire.resources.land == land
        assert result.land_gained == land - 2000
        assert empire.land_is_conserved()

    def test_first_explore_turn_formula(self, empire):
        assert calc_land_gain(empire) == math.ceil(1 / (2000 * 0.00022 + 0.25) * 20)

    @pytest.mark.parametrize("action", [TurnAction.FARM, TurnAction.CASH,
                                        TurnAction.MEDITATE, TurnAction.INDUSTRY])
    def test_economic_actions_spend_turns(self, empire, action):
        result = execute_turn_action(empire, action, 4)
        assert result.success
        assert result.turns_spent == 4
        assert result.stopped_early is None

    def test_meditate_produces_runes(self, empire):
        result = execute_turn_action(empire, TurnAction.MEDITATE, 2)
        assert result.rune_change > 0
        assert empire.resources.runes == 500 + result.rune_change

    def test_starvation_stops_early(self, empire):
        empire.peasants = 10_000_000
        empire.resources.food = 0
        empire.buildings.bldtrp = 0
        empire.buildings.bldwiz = 0
        empire.resources.freeland += 75
        result = execute_turn_action(empire, TurnAction.FARM, 10)
        assert result.turns_spent == 1
        assert result.stopped_early == "food"
        assert empire.resources.food == 0
        assert empire.troops.trparm == 97
        assert empire.troops.trpwiz == 9

    def test_debt_stops_early(self, empire):
        empire.loan = emergency_loan_limit(empire) * 10
        result = execute_turn_action(empire, TurnAction.CASH, 10)
        assert result.turns_spent == 1
        assert result.stopped_early == "loan"

    def test_zero_turns_rejected(self, empire):
        result = execute_turn_action(empire, TurnAction.CASH, 0)
        assert not result.success


# ─────────────────────────────────────────────────────
# Build and demolish
# ─────────────────────────────────────────────────────

class TestConstruction:
    def test_build_rate_scales_with_land(self, empire):
        assert build_rate(empire) == 100
        assert build_turns_needed(empire, 250) == 3
        assert build_turns_needed(empire, 1) == 1

    def test_build_places_buildings_on_free_land(self, empire):
        empire.resources.gold = 1_000_000
        result = process_build(empire, {"bldcash": 40, "bldfood": 10})
        assert result.success
        assert result.turns_spent == 1
        assert empire.buildings.bldcash == 90
        assert empire.buildings.bldfood == 110
        assert empire.resources.freeland == 1700
        assert empire.land_is_conserved()

    def test_build_more_than_free_land(self, empire):
        result = process_build(empire, {"bldcash": 5000})
        assert not result.success
        assert result.error == "Not enough free land"
        assert empire.buildings.bldcash == 50

    def test_build_without_gold(self, empire):
        empire.resources.gold = 0
        result = process_build(empire, {"bldcash": 10})
        assert not result.success
        assert result.error == "Not enough gold"

    @pytest.mark.parametrize("allocation", [{"bldpop": 5}, {"blddef": 1}, {"castle": 3},
                                            {"bldcash": -2}, {}])
    def test_invalid_allocations(self, empire, allocation):
        result = process_build(empire, allocation)
        assert not result.success
        assert result.turns_spent == 0

    def test_demolish_frees_land_and_refunds(self, empire):
        gold_before = empire.resources.gold
        result = process_demolish(empire, {"bldwiz": 5})
        assert result.success
        assert empire.buildings.bldwiz == 20
        assert empire.resources.freeland == 1755
        assert result.income > 0
        assert empire.land_is_conserved()
        assert gold_before > 0

    def test_demolish_more_than_owned(self, empire):
        result = process_demolish(empire, {"bldwiz": 26})
        assert not result.success

    def test_build_requires_allocation(self, empire):
        result = execute_turn_action(empire, TurnAction.BUILD, 1)
        assert not result.success

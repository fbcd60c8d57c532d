"""Tests for combat power, resolution, capture and the attack action."""

import math

import pytest

from empire_sim.bank import emergency_loan_limit
from empire_sim.combat import (
    apply_combat_result, defense_power, is_win, offense_power, preview_attack,
    process_attack, resolve_combat,
)
from empire_sim.enums import AttackType, Era
from empire_sim.rng import Rng

from conftest import make_empire, set_troops


@pytest.fixture
def strong():
    return set_troops(make_empire("att"), trparm=500)


@pytest.fixture
def weak():
    return set_troops(make_empire("def"), trparm=200)


# ─────────────────────────────────────────────────────
# Power
# ─────────────────────────────────────────────────────

class TestPower:
    def test_starting_power_includes_wizards(self, empire):
        # 100*1 + 20*3 + 10*7 + 5*7 + 10 wizards*3
        assert offense_power(empire) == 295
        # 100*2 + 20*2 + 10*5 + 5*6 + 10 wizards*3
        assert defense_power(empire) == 350

    def test_health_scales_power(self, strong):
        strong.health = 50
        assert offense_power(strong) == 250

    def test_era_changes_unit_stats(self):
        future = set_troops(make_empire("f", era=Era.FUTURE), trplnd=10)
        assert offense_power(future) == 50

    @pytest.mark.parametrize("off,dfn,won", [
        (500, 400, True), (420, 400, False), (421, 400, True), (0, 0, False),
    ])
    def test_win_threshold(self, off, dfn, won):
        assert is_win(off, dfn) is won


# ─────────────────────────────────────────────────────
# Resolution
# ─────────────────────────────────────────────────────

class TestResolveCombat:
    def test_does_not_mutate(self, strong, weak, rng):
        a, d = strong.to_dict(), weak.to_dict()
        resolve_combat(strong, weak, rng)
        assert strong.to_dict() == a
        assert weak.to_dict() == d

    def test_same_seed_same_outcome(self, strong, weak):
        first = resolve_combat(strong, weak, Rng(9))
        second = resolve_combat(strong, weak, Rng(9))
        assert first.to_dict() == second.to_dict()

    def test_standard_win_captures_buildings_and_free_land(self, strong, weak, rng):
        result = resolve_combat(strong, weak, rng)
        assert result.won
        assert result.offense_power == 500
        assert result.defense_power == 400
        captured = sum(result.buildings_gained.values())
        assert 0 < captured <= sum(result.buildings_destroyed.values())
        free_capture = math.ceil(weak.resources.freeland * 0.10)
        assert result.land_gained == captured + free_capture

    def test_losses_bounded_by_troops(self, strong, weak, rng):
        result = resolve_combat(strong, weak, rng)
        for kind, loss in result.attacker_losses.items():
            assert 0 <= loss <= strong.troops.get(kind)
        for kind, loss in result.defender_losses.items():
            assert 0 <= loss <= weak.troops.get(kind)

    def test_loss_captures_nothing(self, strong, weak, rng):
        result = resolve_combat(weak, strong, rng)
        assert not result.won
        assert result.land_gained == 0
        assert result.buildings_gained == {}

    def test_single_unit_razes_instead_of_capturing(self, strong, weak, rng):
        result = resolve_combat(strong, weak, rng, AttackType("trparm"))
        assert result.won
        assert result.buildings_gained == {}
        assert set(result.attacker_losses) == {"trparm"}
        destroyed = sum(result.buildings_destroyed.values())
        assert result.land_gained == destroyed + math.ceil(weak.resources.freeland * 0.10)


# ─────────────────────────────────────────────────────
# Applying results
# ─────────────────────────────────────────────────────

class TestApplyCombat:
    @pytest.mark.parametrize("attack_type", ["standard", "trparm"])
    def test_land_is_conserved_on_both_sides(self, strong, weak, rng, attack_type):
        total_land = strong.resources.land + weak.resources.land
        result = resolve_combat(strong, weak, rng, attack_type)
        apply_combat_result(strong, weak, result)
        assert strong.land_is_conserved()
        assert weak.land_is_conserved()
        assert strong.resources.land + weak.resources.land == total_land
        assert strong.resources.land == 2000 + result.land_gained

    def test_records_win_and_loss(self, strong, weak, rng):
        apply_combat_result(strong, weak, resolve_combat(strong, weak, rng))
        assert strong.off_total == 1 and strong.off_succ == 1
        assert weak.def_total == 1 and weak.def_succ == 0

    def test_failed_attack_credits_defender(self, strong, weak, rng):
        apply_combat_result(weak, strong, resolve_combat(weak, strong, rng))
        assert strong.def_succ == 1
        assert weak.resources.land == 2000


# ─────────────────────────────────────────────────────
# Attack action
# ─────────────────────────────────────────────────────

class TestProcessAttack:
    def test_attack_spends_two_turns_and_costs_health(self, rng):
        attacker = set_troops(make_empire("att"), trparm=100_000)
        defender = make_empire("def")
        result = process_attack(attacker, defender, 10, rng)
        assert result.success
        assert result.turns_spent == 2
        assert result.combat.won
        assert result.land_gained == result.combat.land_gained
        assert attacker.health < 100
        assert attacker.attacks_this_round == 1

    def test_not_enough_turns(self, strong, weak, rng):
        result = process_attack(strong, weak, 1, rng)
        assert not result.success
        assert result.error == "Not enough turns"
        assert result.turns_spent == 0

    def test_wrong_era(self, strong, rng):
        future = make_empire("f", era=Era.FUTURE)
        result = process_attack(strong, future, 10, rng)
        assert result.error == "Target is in a different era"

    def test_low_health(self, strong, weak, rng):
        strong.health = 10
        assert process_attack(strong, weak, 10, rng).error == "Health too low"

    def test_unknown_attack_type(self, strong, weak, rng):
        result = process_attack(strong, weak, 10, rng, "catapult")
        assert not result.success

    def test_debt_aborts_before_combat(self, strong, weak, rng):
        strong.loan = emergency_loan_limit(strong) * 10
        result = process_attack(strong, weak, 10, rng)
        assert not result.success
        assert result.error == "Attack aborted: loan emergency"
        assert result.combat is None
        assert result.turns_spent < 2
        assert strong.health == 100
        assert strong.attacks_this_round == 0
        assert weak.resources.land == 2000
        assert weak.troops.trparm == 200


class TestPreview:
    def test_preview_favours_stronger_side(self, strong, weak):
        preview = preview_attack(strong, weak)
        assert preview.win_chance > 0.5
        assert preview.can_attack
        assert preview.estimated_land == math.floor(2000 * 0.07)

    def test_preview_reports_block_reason(self, strong, weak):
        preview = preview_attack(strong, weak, turns_remaining=0)
        assert not preview.can_attack
        assert preview.reason == "Not enough turns"

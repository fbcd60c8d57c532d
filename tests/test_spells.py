"""Tests for spell costs, self spells and the wizard contest."""

import pytest

from empire_sim.bank import emergency_loan_limit
from empire_sim.bot.generation import create_bot_empire
from empire_sim.enums import BotArchetype, Era, Race, Spell
from empire_sim.rng import Rng
from empire_sim.spells import (
    cast_block_reason, cast_enemy_spell, cast_self_spell, enemy_power_ratio,
    resolve_enemy_spell, spell_cost,
)

from conftest import make_empire


@pytest.fixture
def mage():
    e = make_empire("mage")
    e.resources.runes = 1_000_000
    e.troops.trpwiz = 1000
    return e


@pytest.fixture
def target():
    return make_empire("target")


# ─────────────────────────────────────────────────────
# Costs and gating
# ─────────────────────────────────────────────────────

class TestCosts:
    def test_cost_is_positive_integer(self, empire):
        for spell in Spell:
            cost = spell_cost(empire, spell)
            assert isinstance(cost, int) and cost >= 1

    def test_advance_costs_more_than_shield(self, empire):
        assert spell_cost(empire, Spell.ADVANCE) > spell_cost(empire, Spell.SHIELD)

    def test_spell_cost_innate_discount(self, empire):
        full = spell_cost(empire, Spell.STORM)
        empire.innate["spell_cost"] = -0.2
        assert spell_cost(empire, Spell.STORM) < full

    def test_block_reasons_in_order(self, mage):
        assert cast_block_reason(mage, Spell.SHIELD, 1) == "Not enough turns"
        mage.health = 10
        assert cast_block_reason(mage, Spell.SHIELD, 10) == "Health too low"
        mage.health = 100
        mage.troops.trpwiz = 0
        assert cast_block_reason(mage, Spell.SHIELD, 10) == "No wizards available"

    def test_not_enough_runes(self, empire):
        empire.resources.runes = 0
        assert cast_block_reason(empire, Spell.FOOD, 10) == "Not enough runes"

    def test_era_limits(self, mage):
        assert cast_block_reason(mage, Spell.REGRESS, 10, 1) == "Already in past era"
        mage.era = Era.FUTURE
        assert cast_block_reason(mage, Spell.ADVANCE, 10, 1) == "Already in future era"


# ─────────────────────────────────────────────────────
# Self spells
# ─────────────────────────────────────────────────────

class TestSelfSpells:
    def test_shield_lasts_the_round(self, mage):
        result = cast_self_spell(mage, Spell.SHIELD, 10, 4)
        assert result.success
        assert result.turns_spent == 2
        assert mage.shield_expires_round == 4
        assert result.spell.shield_active

    def test_food_scales_with_wizards(self, mage):
        result = cast_self_spell(mage, Spell.FOOD, 10, 1)
        assert result.spell.food_gained == mage.troops.trpwiz * 50

    def test_cash_scales_with_wizards(self, mage):
        result = cast_self_spell(mage, Spell.CASH, 10, 1)
        assert result.spell.gold_gained == mage.troops.trpwiz * 100

    def test_runes_are_paid(self, mage):
        cost = spell_cost(mage, Spell.GATE)
        result = cast_self_spell(mage, Spell.GATE, 10, 1)
        assert result.spell.runes_spent == cost
        assert mage.gate_expires_round == 1

    def test_advance_then_cooldown(self, mage):
        result = cast_self_spell(mage, Spell.ADVANCE, 10, 2)
        assert result.success
        assert mage.era is Era.PRESENT
        assert mage.era_changed_round == 2
        again = cast_self_spell(mage, Spell.ADVANCE, 10, 2)
        assert again.error == "Era change on cooldown"
        assert mage.era is Era.PRESENT

    def test_enemy_spell_is_not_a_self_spell(self, mage):
        assert not cast_self_spell(mage, Spell.BLAST, 10, 1).success


# ─────────────────────────────────────────────────────
# Enemy spells
# ─────────────────────────────────────────────────────

class TestEnemySpells:
    def test_power_ratio_favours_more_wizards(self, mage, target):
        assert enemy_power_ratio(mage, target) > enemy_power_ratio(target, mage)

    def test_blast_kills_three_percent(self, mage, target, rng):
        outcome = resolve_enemy_spell(mage, target, Spell.BLAST, rng, 1)
        assert outcome.success
        assert outcome.troops_destroyed["trparm"] == 3
        assert target.troops.trparm == 97

    def test_shield_softens_blast(self, mage, target, rng):
        target.shield_expires_round = 1
        outcome = resolve_enemy_spell(mage, target, Spell.BLAST, rng, 1)
        assert outcome.troops_destroyed["trparm"] == 1

    def test_storm_destroys_food_and_gold(self, mage, target, rng):
        outcome = resolve_enemy_spell(mage, target, Spell.STORM, rng, 1)
        assert outcome.food_destroyed > 0
        assert target.resources.gold == 50000 - outcome.gold_destroyed

    def test_steal_moves_gold(self, mage, target, rng):
        before = mage.resources.gold
        outcome = resolve_enemy_spell(mage, target, Spell.STEAL, rng, 1)
        assert outcome.gold_gained > 0
        assert mage.resources.gold == before + outcome.gold_gained
        assert target.resources.gold == 50000 - outcome.gold_gained

    def test_fight_transfers_land(self, mage, target, rng):
        outcome = resolve_enemy_spell(mage, target, Spell.FIGHT, rng, 1)
        assert outcome.success
        assert mage.resources.land == 2000 + outcome.land_gained
        assert target.resources.land == 2000 - outcome.land_gained
        assert mage.land_is_conserved()
        assert target.land_is_conserved()

    def test_spy_on_bot_caster_stores_intel(self, target, rng):
        spy = create_bot_empire("bot_0_archon_nyx", BotArchetype.ARCHON_NYX, Race.ELF)
        spy.era = Era.PAST
        spy.troops.trpwiz = 1000
        outcome = resolve_enemy_spell(spy, target, Spell.SPY, rng, 3)
        assert outcome.intel["land"] == 2000
        stored = spy.memory.get_spy_intel(target.id, 3)
        assert stored is not None and stored.expires_round == 5

    def test_debt_aborts_before_runes_are_paid(self, mage, target, rng):
        mage.loan = emergency_loan_limit(mage) * 10
        result = cast_enemy_spell(mage, target, Spell.BLAST, 10, rng, 1)
        assert not result.success
        assert result.error == "Spell aborted: loan emergency"
        assert result.spell is None
        assert mage.health == 100
        assert mage.resources.runes == 1_000_000 + result.rune_change
        assert target.troops.trparm == 100
        assert target.def_total == 0

    def test_failed_blast_goes_unnoticed(self, target, rng):
        weak = make_empire("weak")
        target.troops.trpwiz = 1000
        outcome = resolve_enemy_spell(weak, target, Spell.BLAST, rng, 1)
        assert not outcome.success
        assert target.def_total == 0

    def test_failed_steal_is_defended(self, target, rng):
        weak = make_empire("weak")
        target.troops.trpwiz = 1000
        outcome = resolve_enemy_spell(weak, target, Spell.STEAL, rng, 1)
        assert not outcome.success
        assert target.def_succ == 1
        assert weak.off_total == 1

    def test_cast_records_grudge_on_bot_target(self, mage):
        victim = create_bot_empire("bot_1_iron_baron", BotArchetype.IRON_BARON, Race.DWARF)
        victim.era = Era.PAST
        result = cast_enemy_spell(mage, victim, Spell.STORM, 10, Rng(4), 2)
        assert result.turns_spent == 2
        assert result.spell.success
        assert victim.memory.spells_received == {mage.id: 1}
        assert mage.health == 95

    def test_self_spell_rejected_as_enemy_spell(self, mage, target, rng):
        assert not cast_enemy_spell(mage, target, Spell.SHIELD, 10, rng, 1).success

"""Spell engine — rune costs, self spells and wizard-power contests.

Every cast spends two economy turns first, then the runes. Enemy spells pit
caster wizards per acre against the target's; at or below the per-spell
threshold the spell fails and the caster loses a few wizards.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict
from typing import Optional

from .bonuses import EffectKind, effect_total
from .bot.memory import SPY_INTEL_MAX_AGE, SpyIntel
from .constants import (
    BLAST_DAMAGE, FIGHT_BUILDING_LOSS, FIGHT_DIVISOR, FIGHT_FAIL_LOSSES, FIGHT_FREELAND_LOSS,
    FIGHT_WIN_LOSSES, MIN_HEALTH_TO_ACT, OFFENSIVE_SPELL_HEALTH_COST, SPELL_BASE_COST,
    SPELL_BASE_LAND_MULT, SPELL_BASE_WIZ_MULT, SPELL_COSTS, SPELL_FAILURE_LOSS, SPELL_THRESHOLDS,
    STEAL_RANGE, STORM_DAMAGE, STRUCT_DAMAGE, STRUCT_MIN_BUILDING_RATIO, TURNS_PER_SPELL,
)
from .economy import TurnTotals, run_turns, size_bonus
from .empire import Empire, can_change_era, get_modifier, has_active_shield, innate, refresh_networth
from .enums import BUILDING_KINDS, TROOP_KINDS, Era, Spell
from .results import SpellResult, TurnResult, failed_turn
from .rng import Rng, round_half_up

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Cost and eligibility
# ---------------------------------------------------------------------------

def base_cost(empire: Empire) -> float:
    magic = get_modifier(empire, "magic")
    wiz = empire.buildings.bldwiz * SPELL_BASE_WIZ_MULT * magic * size_bonus(empire.networth)
    return empire.resources.land * SPELL_BASE_LAND_MULT + SPELL_BASE_COST + wiz


def spell_cost(empire: Empire, spell: Spell) -> int:
    """Rune cost of one cast, never below 1."""
    spell = Spell(spell)
    reduction = effect_total(empire, EffectKind.SPELL_COST) + innate(empire, "spell_cost")
    cost = base_cost(empire) * SPELL_COSTS[spell.value] * (1 + reduction)
    return math.ceil(max(1, cost))


def cast_block_reason(empire: Empire, spell: Spell, turns_remaining: int,
                      current_round: Optional[int] = None) -> Optional[str]:
    spell = Spell(spell)
    if turns_remaining < TURNS_PER_SPELL:
        return "Not enough turns"
    if empire.resources.runes < spell_cost(empire, spell):
        return "Not enough runes"
    if empire.health < MIN_HEALTH_TO_ACT:
        return "Health too low"
    if empire.troops.trpwiz < 1:
        return "No wizards available"
    if spell in (Spell.ADVANCE, Spell.REGRESS):
        if current_round is not None and not can_change_era(empire, current_round):
            return "Era change on cooldown"
        if spell is Spell.ADVANCE and empire.era is Era.FUTURE:
            return "Already in future era"
        if spell is Spell.REGRESS and empire.era is Era.PAST:
            return "Already in past era"
    return None


def can_cast(empire: Empire, spell: Spell, turns_remaining: int,
             current_round: Optional[int] = None) -> bool:
    return cast_block_reason(empire, spell, turns_remaining, current_round) is None


def magic_power(empire: Empire) -> float:
    return get_modifier(empire, "magic") + innate(empire, "magic_power")


def enemy_power_ratio(caster: Empire, target: Empire) -> float:
    """Caster wizards per average acre against target wizards per acre, both magic-scaled."""
    avg_land = (caster.resources.land + target.resources.land) / 2
    ours = caster.troops.trpwiz / avg_land * get_modifier(caster, "magic")
    theirs = max(target.troops.trpwiz, 1) / target.resources.land * 1.05 * get_modifier(target, "magic")
    return ours / theirs


def _failure_loss(empire: Empire, rng: Rng) -> int:
    wiz = empire.troops.trpwiz
    low = math.ceil(wiz * SPELL_FAILURE_LOSS[0])
    high = math.ceil(wiz * SPELL_FAILURE_LOSS[1] + 1)
    return min(low + rng.rand_int(high - low + 1), wiz)


def _lose_wizards(empire: Empire, count: int) -> int:
    count = min(count, empire.troops.trpwiz)
    empire.troops.trpwiz -= count
    return count


# ---------------------------------------------------------------------------
# Self spells
# ---------------------------------------------------------------------------

def _apply_self_spell(empire: Empire, spell: Spell, current_round: int) -> SpellResult:
    result = SpellResult(success=True, spell=spell.value)
    power = empire.troops.trpwiz * magic_power(empire)
    if spell is Spell.SHIELD:
        empire.shield_expires_round = current_round
        result.shield_active = True
    elif spell is Spell.GATE:
        empire.gate_expires_round = current_round
        result.gate_active = True
    elif spell is Spell.FOOD:
        gained = math.floor(math.floor(power * 50) * (1 + effect_total(empire, EffectKind.FOOD_SPELL)))
        empire.resources.food += gained
        result.food_gained = gained
    elif spell is Spell.CASH:
        gained = math.floor(math.floor(power * 100) * (1 + effect_total(empire, EffectKind.CASH_SPELL)))
        empire.resources.gold += gained
        result.gold_gained = gained
    elif spell is Spell.RUNES:
        gained = math.floor((20 + empire.buildings.bldwiz * 0.5) * magic_power(empire))
        empire.resources.runes += gained
        result.runes_gained = gained
    elif spell in (Spell.ADVANCE, Spell.REGRESS):
        new_era = empire.era.next if spell is Spell.ADVANCE else empire.era.previous
        if new_era is None:
            return SpellResult(success=False, spell=spell.value, error="No era in that direction")
        empire.era = new_era
        empire.era_changed_round = current_round
        result.new_era = new_era.value
    else:
        return SpellResult(success=False, spell=spell.value, error="Not a self spell")
    return result


def _spend_turns(empire: Empire, spell: Spell) -> tuple[TurnTotals, int]:
    # Cost is fixed before the economy turns change land or networth
    cost = spell_cost(empire, spell)
    totals = run_turns(empire, TURNS_PER_SPELL)
    return totals, cost


def cast_self_spell(empire: Empire, spell: Spell, turns_remaining: int,
                    current_round: int) -> TurnResult:
    """Cast one self spell: two economy turns, then pay runes and apply the effect."""
    spell = Spell(spell)
    if not spell.is_self:
        return failed_turn(f"{spell.value} is not a self spell")
    reason = cast_block_reason(empire, spell, turns_remaining, current_round)
    if reason:
        return failed_turn(reason)

    totals, cost = _spend_turns(empire, spell)
    empire.resources.runes = max(0, empire.resources.runes - cost)
    outcome = _apply_self_spell(empire, spell, current_round)
    outcome.runes_spent = cost
    refresh_networth(empire)
    result = totals.to_result(spell=outcome, rune_change=totals.runes - cost,
                              turns_remaining=turns_remaining - totals.turns_spent)
    result.success = outcome.success
    result.error = outcome.error
    return result


# ---------------------------------------------------------------------------
# Enemy spells
# ---------------------------------------------------------------------------

def _shield_key(target: Empire, current_round: Optional[int]) -> str:
    return "shielded" if has_active_shield(target, current_round) else "normal"


def _contest_lost(caster: Empire, target: Empire) -> None:
    caster.off_total += 1
    target.def_succ += 1
    target.def_total += 1


def _contest_won(caster: Empire, target: Empire) -> None:
    caster.off_succ += 1
    caster.off_total += 1
    target.def_total += 1


def _blast(caster, target, rng, current_round, outcome):
    rate = BLAST_DAMAGE[_shield_key(target, current_round)]
    for kind in TROOP_KINDS:
        killed = math.ceil(target.troops.get(kind) * rate)
        target.troops.add(kind, -killed)
        outcome.troops_destroyed[kind] = killed


def _steal(caster, target, rng, current_round, outcome):
    low, high = STEAL_RANGE[_shield_key(target, current_round)]
    rate = rng.uniform(low, high)
    taken = round_half_up(target.resources.gold / 100000 * rate)
    target.resources.gold -= taken
    gained = math.floor(taken * (1 + effect_total(caster, EffectKind.STEAL_SPELL)))
    caster.resources.gold += gained
    outcome.gold_gained = gained


def _storm(caster, target, rng, current_round, outcome):
    food_rate, gold_rate = STORM_DAMAGE[_shield_key(target, current_round)]
    food = math.ceil(target.resources.food * food_rate)
    gold = math.ceil(target.resources.gold * gold_rate)
    target.resources.food -= food
    target.resources.gold -= gold
    outcome.food_destroyed = food
    outcome.gold_destroyed = gold


def _struct(caster, target, rng, current_round, outcome):
    rate = STRUCT_DAMAGE[_shield_key(target, current_round)]
    land = target.resources.land
    for kind in BUILDING_KINDS:
        count = target.buildings.get(kind)
        # Sparse building types are spared
        if count < land / STRUCT_MIN_BUILDING_RATIO:
            continue
        razed = math.ceil(count * rate)
        target.buildings.add(kind, -razed)
        target.resources.freeland += razed
        outcome.buildings_destroyed[kind] = razed


def _fight(caster, target, rng, current_round, outcome):
    destroyed = 0
    for kind, loss in FIGHT_BUILDING_LOSS.items():
        razed = math.ceil(target.buildings.get(kind) * loss / FIGHT_DIVISOR)
        target.buildings.add(kind, -razed)
        outcome.buildings_destroyed[kind] = razed
        destroyed += razed
    freeland_lost = math.ceil(target.resources.freeland * FIGHT_FREELAND_LOSS / FIGHT_DIVISOR)
    target.resources.freeland -= freeland_lost
    target.resources.land -= destroyed + freeland_lost
    caster.resources.land += destroyed + freeland_lost
    caster.resources.freeland += destroyed + freeland_lost
    outcome.land_gained = destroyed + freeland_lost

    caster_loss, target_loss = FIGHT_WIN_LOSSES
    outcome.wizards_lost = _lose_wizards(caster, math.ceil(caster.troops.trpwiz * caster_loss))
    outcome.target_wizards_lost = _lose_wizards(target, math.ceil(target.troops.trpwiz * target_loss))


def _spy(caster, target, rng, current_round, outcome):
    intel = SpyIntel(
        target_id=target.id,
        target_name=target.name,
        round=current_round,
        expires_round=current_round + SPY_INTEL_MAX_AGE,
        era=target.era.value,
        race=target.race.value,
        land=target.resources.land,
        networth=target.networth,
        peasants=target.peasants,
        health=target.health,
        tax_rate=target.tax_rate,
        gold=target.resources.gold,
        food=target.resources.food,
        runes=target.resources.runes,
        troops=target.troops.to_dict(),
    )
    outcome.intel = asdict(intel)
    if caster.is_bot:
        caster.memory.record_spy_intel(intel)


_ENEMY_EFFECTS = {
    Spell.BLAST: _blast,
    Spell.STEAL: _steal,
    Spell.STORM: _storm,
    Spell.STRUCT: _struct,
    Spell.FIGHT: _fight,
    Spell.SPY: _spy,
}


def resolve_enemy_spell(caster: Empire, target: Empire, spell: Spell, rng: Rng,
                        current_round: Optional[int] = None) -> SpellResult:
    """Roll the wizard contest and apply the outcome. Runes and turns are not touched."""
    spell = Spell(spell)
    outcome = SpellResult(success=False, spell=spell.value)
    if enemy_power_ratio(caster, target) <= SPELL_THRESHOLDS[spell.value]:
        outcome.error = "The spell failed"
        if spell is Spell.FIGHT:
            caster_loss, target_loss = FIGHT_FAIL_LOSSES
            outcome.wizards_lost = _lose_wizards(caster, math.ceil(caster.troops.trpwiz * caster_loss))
            outcome.target_wizards_lost = _lose_wizards(target, math.ceil(target.troops.trpwiz * target_loss))
        else:
            outcome.wizards_lost = _lose_wizards(caster, _failure_loss(caster, rng))
        # Failed blasts and spies go unnoticed
        if spell not in (Spell.BLAST, Spell.SPY):
            _contest_lost(caster, target)
        return outcome

    _ENEMY_EFFECTS[spell](caster, target, rng, current_round, outcome)
    outcome.success = True
    if spell is not Spell.SPY:
        _contest_won(caster, target)
    return outcome


def cast_enemy_spell(caster: Empire, target: Empire, spell: Spell, turns_remaining: int,
                     rng: Rng, current_round: int) -> TurnResult:
    """Two economy turns, pay runes, then contest the target's wizards.

    A failed contest still costs the turns, the runes and the health penalty;
    the returned result has ``success=False`` and carries the spell outcome.
    """
    spell = Spell(spell)
    if spell.is_self:
        return failed_turn(f"{spell.value} is not an enemy spell")
    reason = cast_block_reason(caster, spell, turns_remaining, current_round)
    if reason:
        return failed_turn(reason)
    if target.is_eliminated:
        return failed_turn("Target is already eliminated")

    totals, cost = _spend_turns(caster, spell)
    if totals.stopped_early is not None:
        result = totals.to_result(turns_remaining=turns_remaining - totals.turns_spent)
        result.success = False
        result.error = f"Spell aborted: {totals.stopped_early.value} emergency"
        return result

    caster.resources.runes = max(0, caster.resources.runes - cost)
    outcome = resolve_enemy_spell(caster, target, spell, rng, current_round)
    outcome.runes_spent = cost
    caster.health = max(0, caster.health - OFFENSIVE_SPELL_HEALTH_COST)
    caster.spells_this_round += 1
    if target.is_bot and outcome.success and spell is not Spell.SPY:
        target.memory.record_spell_received(caster.id, current_round)
    refresh_networth(caster)
    refresh_networth(target)
    logger.debug("%s cast %s on %s: success=%s", caster.id, spell.value, target.id, outcome.success)

    result = totals.to_result(spell=outcome, rune_change=totals.runes - cost,
                              land_gained=outcome.land_gained,
                              turns_remaining=turns_remaining - totals.turns_spent)
    result.success = outcome.success
    result.error = outcome.error
    return result

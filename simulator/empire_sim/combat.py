"""Combat engine — offense/defense power, loss rolls, land and building capture.

Winning is decided by a fixed threshold (offense > defense * 1.05); only the
size of unit losses is random, drawn from the run's RNG cursor.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

from .bonuses import EffectKind, effect_total, effects_of, has_effect
from .constants import (
    ATTACK_HEALTH_COST, BUILDING_CAPTURE, FREELAND_CAPTURE, MIN_HEALTH_TO_ACT,
    SINGLE_UNIT_LOSS_RATES, STANDARD_ATTACK_HEALTH_BONUS, STANDARD_LOSS_RATES,
    TURNS_PER_ATTACK, UNIT_STATS, WIN_THRESHOLD, WIZARD_POWER,
)
from .economy import run_turns
from .empire import Empire, can_attack_era, get_modifier, innate, refresh_networth
from .enums import MILITARY_UNITS, AttackType
from .results import AttackPreview, CombatResult, TurnResult, failed_turn
from .rng import Rng, round_half_up

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Power
# ---------------------------------------------------------------------------

def _second_wind(empire: Empire) -> float:
    per_step = effect_total(empire, EffectKind.SECOND_WIND)
    if per_step <= 0:
        return 0.0
    return per_step * math.floor((100 - empire.health) / 10)


def _building_bonus(empire: Empire, kind: EffectKind) -> float:
    return sum(e.modifier * empire.buildings.get(e.condition)
               for e in effects_of(empire, kind) if e.condition)


def offense_modifier(empire: Empire) -> float:
    mod = get_modifier(empire, "offense") + innate(empire, "offense")
    mod += effect_total(empire, EffectKind.DYNAMIC_OFFENSE) * empire.attacks_this_round
    mod += _building_bonus(empire, EffectKind.BUILDING_OFFENSE)
    return mod + _second_wind(empire)


def defense_modifier(empire: Empire) -> float:
    mod = get_modifier(empire, "defense") + innate(empire, "defense")
    mod += _building_bonus(empire, EffectKind.BUILDING_DEFENSE)
    return mod + _second_wind(empire)


def _raw_power(empire: Empire, index: int, units=MILITARY_UNITS) -> float:
    stats = UNIT_STATS[empire.era]
    power = sum(empire.troops.get(kind) * stats[kind][index] for kind in units)
    return power + empire.troops.trpwiz * WIZARD_POWER


def offense_power(empire: Empire) -> int:
    return round_half_up(_raw_power(empire, 0) * offense_modifier(empire) * empire.health / 100)


def defense_power(empire: Empire) -> int:
    # blddef is inert: defense towers add nothing
    return round_half_up(_raw_power(empire, 1) * defense_modifier(empire) * empire.health / 100)


def is_win(offense: int, defense: int) -> bool:
    return offense > defense * WIN_THRESHOLD


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

def _unit_loss(rng: Rng, attack_units: int, defend_units: int, attack_rate: float,
               defend_rate: float, omod: float, dmod: float) -> tuple[int, int]:
    attack_loss = min(rng.rand_int(math.ceil(attack_units * attack_rate * omod) + 1), attack_units)
    # Defender losses are capped by roughly the size of the attacking force
    max_kill = round_half_up(0.9 * attack_units) + rng.rand_int(round_half_up(0.2 * attack_units) + 1)
    defend_loss = min(rng.rand_int(math.ceil(defend_units * defend_rate * dmod) + 1),
                      defend_units, max_kill)
    return attack_loss, defend_loss


def _reduce_casualties(empire: Empire, losses: dict[str, int]) -> dict[str, int]:
    reduction = min(0.9, effect_total(empire, EffectKind.CASUALTY_REDUCTION))
    if reduction <= 0:
        return losses
    return {k: math.floor(v * (1 - reduction)) for k, v in losses.items()}


def resolve_combat(attacker: Empire, defender: Empire, rng: Rng,
                   attack_type: AttackType = AttackType.STANDARD) -> CombatResult:
    """Roll losses and compute captures. Does not mutate either empire."""
    attack_type = AttackType(attack_type)
    off = offense_power(attacker)
    dfn = defense_power(defender)
    omod = math.sqrt(dfn / (off + 1))
    dmod = math.sqrt(off / (dfn + 1))

    if attack_type.is_single_unit:
        units = (attack_type.value,)
        rates = SINGLE_UNIT_LOSS_RATES
    else:
        units = MILITARY_UNITS
        rates = STANDARD_LOSS_RATES

    attacker_losses, defender_losses = {}, {}
    for kind in units:
        a_rate, d_rate = rates[kind]
        a_loss, d_loss = _unit_loss(rng, attacker.troops.get(kind), defender.troops.get(kind),
                                    a_rate, d_rate, omod, dmod)
        attacker_losses[kind] = a_loss
        defender_losses[kind] = d_loss
    attacker_losses = _reduce_casualties(attacker, attacker_losses)
    defender_losses = _reduce_casualties(defender, defender_losses)

    result = CombatResult(
        won=is_win(off, dfn),
        attack_type=attack_type.value,
        offense_power=off,
        defense_power=dfn,
        attacker_losses=attacker_losses,
        defender_losses=defender_losses,
    )
    if result.won:
        for kind, (loss_rate, gain_rate) in BUILDING_CAPTURE.items():
            loss = math.ceil(defender.buildings.get(kind) * loss_rate)
            result.buildings_destroyed[kind] = loss
            if attack_type.is_single_unit:
                # Razed, not captured: the land itself changes hands
                result.land_gained += loss
            else:
                gain = math.floor(loss * gain_rate)
                result.buildings_gained[kind] = gain
                result.land_gained += gain
        result.land_gained += math.ceil(defender.resources.freeland * FREELAND_CAPTURE)
    return result


def _salvage(empire: Empire, losses: dict[str, int]) -> dict[str, int]:
    rate = effect_total(empire, EffectKind.SALVAGE)
    if rate <= 0:
        return {}
    recovered = {k: math.floor(v * rate) for k, v in losses.items() if v > 0}
    for kind, amount in recovered.items():
        empire.troops.add(kind, amount)
    return recovered


def apply_combat_result(attacker: Empire, defender: Empire, result: CombatResult) -> None:
    for kind, loss in result.attacker_losses.items():
        attacker.troops.set(kind, max(0, attacker.troops.get(kind) - loss))
    for kind, loss in result.defender_losses.items():
        defender.troops.set(kind, max(0, defender.troops.get(kind) - loss))
    result.troops_salvaged = _salvage(attacker, result.attacker_losses)
    _salvage(defender, result.defender_losses)

    attacker.off_total += 1
    defender.def_total += 1

    toll = effect_total(defender, EffectKind.TOLL_KEEPER)
    if toll > 0:
        paid = math.floor(attacker.resources.gold * toll)
        attacker.resources.gold -= paid
        defender.resources.gold += paid
        result.toll_paid = paid

    if result.won:
        attacker.off_succ += 1
        gained = result.land_gained
        destroyed = sum(result.buildings_destroyed.values())
        captured = sum(result.buildings_gained.values())

        attacker.resources.land += gained
        attacker.resources.freeland += gained - captured
        for kind, gain in result.buildings_gained.items():
            attacker.buildings.add(kind, gain)

        defender.resources.land -= gained
        for kind, loss in result.buildings_destroyed.items():
            defender.buildings.add(kind, -loss)
        # Razed building land not taken stays with the defender as free land
        defender.resources.freeland += destroyed - gained

        if defender.resources.land <= 0:
            attacker.kills += 1
            result.defender_eliminated = True
    else:
        defender.def_succ += 1

    refresh_networth(attacker)
    refresh_networth(defender)


def attack_health_cost(attacker: Empire, attack_type: AttackType) -> float:
    cost = ATTACK_HEALTH_COST
    if attack_type is AttackType.STANDARD:
        cost += STANDARD_ATTACK_HEALTH_BONUS
    return cost * (1 - effect_total(attacker, EffectKind.ATTACK_HEALTH_REDUCTION))


def attack_block_reason(attacker: Empire, defender: Empire, turns_remaining: int,
                        current_round: Optional[int] = None) -> Optional[str]:
    if turns_remaining < TURNS_PER_ATTACK:
        return "Not enough turns"
    if has_effect(attacker, EffectKind.PACIFIST):
        return "Pacifist empires cannot attack"
    if not can_attack_era(attacker, defender, current_round):
        return "Target is in a different era"
    if attacker.health < MIN_HEALTH_TO_ACT:
        return "Health too low"
    if defender.is_eliminated:
        return "Target is already eliminated"
    return None


def process_attack(attacker: Empire, defender: Empire, turns_remaining: int, rng: Rng,
                   attack_type: AttackType = AttackType.STANDARD,
                   current_round: Optional[int] = None) -> TurnResult:
    """Spend two turns of economy, then fight.

    An emergency during the economy turns aborts the attack: no combat and no
    health cost, but the turns already processed stay spent.
    """
    try:
        attack_type = AttackType(attack_type)
    except ValueError:
        return failed_turn(f"Unknown attack type: {attack_type}")
    reason = attack_block_reason(attacker, defender, turns_remaining, current_round)
    if reason:
        return failed_turn(reason)

    totals = run_turns(attacker, TURNS_PER_ATTACK)
    if totals.stopped_early is not None:
        result = totals.to_result()
        result.success = False
        result.error = f"Attack aborted: {totals.stopped_early.value} emergency"
        return result

    combat = resolve_combat(attacker, defender, rng, attack_type)
    apply_combat_result(attacker, defender, combat)
    attacker.health = max(0, attacker.health - attack_health_cost(attacker, attack_type))
    attacker.attacks_this_round += 1
    logger.debug("%s attacked %s (%s): won=%s land=%d", attacker.id, defender.id,
                 attack_type.value, combat.won, combat.land_gained)
    return totals.to_result(combat=combat, land_gained=combat.land_gained if combat.won else 0)


def preview_attack(attacker: Empire, defender: Empire, turns_remaining: int = TURNS_PER_ATTACK,
                   current_round: Optional[int] = None) -> AttackPreview:
    off = offense_power(attacker)
    dfn = defense_power(defender)
    ratio = off / (dfn * WIN_THRESHOLD) if dfn > 0 else float("inf")
    if ratio >= 1:
        win_chance = min(0.95, 0.5 + (ratio - 1) * 0.5)
    else:
        win_chance = max(0.05, ratio * 0.5)
    reason = attack_block_reason(attacker, defender, turns_remaining, current_round)
    return AttackPreview(
        offense_power=off,
        defense_power=dfn,
        win_chance=round(win_chance, 4),
        estimated_land=math.floor(defender.resources.land * 0.07),
        can_attack=reason is None,
        reason=reason,
    )

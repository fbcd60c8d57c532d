"""Economic engine — per-turn income, food, production and the turn actions.

Every multi-turn action runs the same loop: compute one turn of economy,
apply it, accumulate it, and stop early on a food or loan emergency. Actions
that run out of turns simply end.

Provides:
- calc_* formulas (finances, provisions, troops, runes, wizards, land gain)
- process_economy() / apply_economy(): one turn
- process_explore/farm/cash/meditate/industry/build/demolish
- execute_turn_action(): dispatch on TurnAction
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Optional

from .bank import apply_bank_interest, apply_loan_interest, is_loan_emergency
from .bonuses import EffectKind, effect_max, effect_total, effects_of, has_effect
from .constants import (
    ACTION_BONUS, BUILD_RATE_LAND_DIVISOR, CASH_BUILDING_INCOME, DEMOLISH_REFUND,
    FARM_FALLOFF, FOOD_CONSUMPTION, FOOD_PER_FARM, FOOD_PER_FREELAND,
    HEALTH_REGEN_PER_TURN, INDUSTRY_MULT, LAND_UPKEEP, LOAN_PAYMENT_DIVISOR,
    MAX_BUILD_TURNS, MAX_EXPENSE_REDUCTION, PCI_BASE, RUNES_PER_TOWER,
    SIZE_BONUS_MAX, SIZE_BONUS_TIERS, STARVATION_DESERTION, TROOP_PRODUCTION_RATES,
    TURNS_PER_ROUND, UNIT_UPKEEP, WIZARDS_PER_TOWER,
)
from .empire import (
    Empire, apply_desertion, building_unit_cost, get_era_modifier, get_modifier,
    innate, refresh_networth,
)
from .enums import BUILDING_KINDS, INERT_BUILDING_KINDS, MILITARY_UNITS, StopReason, TurnAction
from .results import TurnResult, failed_turn
from .rng import round_half_up

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Formulas
# ---------------------------------------------------------------------------

def size_bonus(networth: int) -> float:
    """Income divisor that grows with empire size."""
    for ceiling, bonus in SIZE_BONUS_TIERS:
        if networth <= ceiling:
            return bonus
    return SIZE_BONUS_MAX


def calc_pci(empire: Empire) -> int:
    """Per-capita income."""
    land = max(empire.resources.land, 1)
    cash_ratio = empire.buildings.bldcash / land
    return round_half_up(PCI_BASE * (1 + cash_ratio) * get_modifier(empire, "income")
                         * get_era_modifier(empire, "economy"))


@dataclass
class Finances:
    income: int
    expenses: int
    loan_payment: int

    @property
    def net(self) -> int:
        return self.income - self.expenses - self.loan_payment


def calc_finances(empire: Empire) -> Finances:
    peasant_income = (calc_pci(empire) * empire.tax_rate / 100 * empire.health / 100
                      * empire.peasants)
    market_boost = effect_total(empire, EffectKind.MARKET_BOOST)
    building_income = empire.buildings.bldcash * CASH_BUILDING_INCOME * (1 + market_boost)
    income = round_half_up((peasant_income + building_income) / size_bonus(empire.networth))
    income_boost = effect_total(empire, EffectKind.INCOME_BOOST) + innate(empire, "income")
    income = round_half_up(income * (1 + income_boost))

    loan_payment = round_half_up(empire.loan / LOAN_PAYMENT_DIVISOR)

    base = sum(empire.troops.get(kind) * upkeep for kind, upkeep in UNIT_UPKEEP.items())
    base = round_half_up(base + empire.resources.land * LAND_UPKEEP)
    land = max(empire.resources.land, 1)
    exchange = empire.buildings.bldcost / land * (1 + effect_total(empire, EffectKind.EXCHANGE_BOOST))
    reduction = min(MAX_EXPENSE_REDUCTION, (get_modifier(empire, "expenses") - 1) + exchange)
    expenses = base - round_half_up(base * reduction)
    return Finances(income, expenses, loan_payment)


@dataclass
class Provisions:
    production: int
    consumption: int

    @property
    def net(self) -> int:
        return self.production - self.consumption


def calc_provisions(empire: Empire) -> Provisions:
    land = max(empire.resources.land, 1)
    freeland_food = FOOD_PER_FREELAND * empire.resources.freeland
    # Farms lose efficiency as they approach 75% of land
    efficiency = math.sqrt(max(0.0, 1 - FARM_FALLOFF * empire.buildings.bldfood / land))
    farm_food = empire.buildings.bldfood * FOOD_PER_FARM * efficiency
    production = round_half_up((freeland_food + farm_food) * get_modifier(empire, "foodpro")
                               * get_era_modifier(empire, "food")
                               * (1 + innate(empire, "food_production")))

    eaters = empire.peasants * FOOD_CONSUMPTION["peasant"]
    for kind in ("trparm", "trplnd", "trpfly", "trpsea", "trpwiz"):
        eaters += empire.troops.get(kind) * FOOD_CONSUMPTION[kind]
    consumption = round_half_up(eaters * (2 - get_modifier(empire, "foodcon")))
    return Provisions(production, consumption)


def calc_troop_production(empire: Empire) -> dict[str, int]:
    total = (empire.buildings.bldtrp * INDUSTRY_MULT * get_modifier(empire, "industry")
             * get_era_modifier(empire, "industry"))
    shared = effect_total(empire, EffectKind.TROOP_PRODUCTION) + innate(empire, "troop_production")
    out = {}
    for kind in MILITARY_UNITS:
        unit_bonus = effect_total(empire, EffectKind.UNIT_PRODUCTION, condition=kind)
        out[kind] = math.floor(total * empire.industry.get(kind) / 100 * TROOP_PRODUCTION_RATES[kind]
                               * (1 + shared + unit_bonus))
    return out


def calc_rune_production(empire: Empire) -> int:
    return math.floor(empire.buildings.bldwiz * RUNES_PER_TOWER * get_modifier(empire, "runepro")
                      * get_era_modifier(empire, "energy"))


def calc_wizard_training(empire: Empire) -> int:
    return math.floor(empire.buildings.bldwiz * WIZARDS_PER_TOWER * get_modifier(empire, "magic"))


def calc_land_gain(empire: Empire) -> int:
    """Land from one explore turn; shrinks reciprocally as land grows."""
    land_factor = empire.resources.land * 0.00022 + 0.25
    return math.ceil(1 / land_factor * 20 * get_modifier(empire, "explore")
                     * get_era_modifier(empire, "explore"))


def explore_multiplier(empire: Empire) -> float:
    mult = 2.0 if has_effect(empire, EffectKind.DOUBLE_EXPLORE) else 1.0
    mult = max(mult, effect_max(empire, EffectKind.EXPANSIONIST))
    return max(mult, innate(empire, "explore_multiplier", 1.0))


def build_rate(empire: Empire) -> int:
    bonus = sum(e.modifier for e in effects_of(empire, EffectKind.BUILD_RATE))
    return max(1, int(empire.resources.land // BUILD_RATE_LAND_DIVISOR + bonus))


def build_cost_multiplier(empire: Empire) -> float:
    mult = 1.0
    for effect in effects_of(empire, EffectKind.BUILD_RATE):
        if effect.condition == "per_turn_with_discount":
            mult *= 0.80
        elif effect.condition == "per_turn":
            mult *= 0.75
    return mult


def build_cost(empire: Empire, count: int) -> int:
    return round_half_up(building_unit_cost(empire) * count * build_cost_multiplier(empire)
                         / get_modifier(empire, "building"))


# ---------------------------------------------------------------------------
# One turn
# ---------------------------------------------------------------------------

@dataclass
class EconomyTurn:
    income: int
    expenses: int
    loan_payment: int
    food_production: int
    food_consumption: int
    rune_production: int
    troops_produced: dict[str, int]
    wizards_produced: int
    starvation: bool

    @property
    def net_gold(self) -> int:
        return self.income - self.expenses - self.loan_payment

    @property
    def net_food(self) -> int:
        return self.food_production - self.food_consumption


@dataclass
class TurnUpkeep:
    bank_interest: int = 0
    loan_interest: int = 0
    food_emergency: bool = False
    loan_emergency: bool = False


def _boost_troops(troops: dict[str, int], factor: float) -> dict[str, int]:
    return {k: round_half_up(v * factor) for k, v in troops.items()}


def process_economy(empire: Empire, action: Optional[TurnAction] = None) -> EconomyTurn:
    """Compute one turn of economy without mutating the empire."""
    finances = calc_finances(empire)
    provisions = calc_provisions(empire)
    income = finances.income
    food = provisions.production
    runes = calc_rune_production(empire)
    troops = calc_troop_production(empire)

    if action is TurnAction.CASH:
        income = round_half_up(income * ACTION_BONUS)
        boost = effect_total(empire, EffectKind.CASH_INDUSTRY_BOOST)
        if boost > 0:
            troops = _boost_troops(troops, 1 + boost)
    elif action is TurnAction.FARM:
        food = round_half_up(food * ACTION_BONUS)
        boost = effect_total(empire, EffectKind.FARM_INDUSTRY_BOOST)
        if boost > 0:
            troops = _boost_troops(troops, 1 + boost)
    elif action is TurnAction.MEDITATE:
        runes = round_half_up(runes * ACTION_BONUS)
    elif action is TurnAction.INDUSTRY:
        troops = _boost_troops(troops, ACTION_BONUS)

    net_food = food - provisions.consumption
    return EconomyTurn(
        income=income,
        expenses=finances.expenses,
        loan_payment=finances.loan_payment,
        food_production=food,
        food_consumption=provisions.consumption,
        rune_production=runes,
        troops_produced=troops,
        wizards_produced=calc_wizard_training(empire),
        starvation=empire.resources.food + net_food < 0,
    )


def _grow_peasants(empire: Empire) -> None:
    lenient = has_effect(empire, EffectKind.LENIENT_TAXES)
    density = effect_max(empire, EffectKind.PEASANT_DENSITY) or 1.0
    divisor = 0.95 if lenient else 0.95 + empire.tax_rate / 100
    res = empire.resources
    popbase = round_half_up((res.land * 2 * density + res.freeland * 5
                             + empire.buildings.bldpop * 60) / divisor)
    if empire.peasants == popbase:
        return
    # Move 1/20th of the way to capacity; taxes slow growth and speed decline
    change = (popbase - empire.peasants) / 20
    if not lenient:
        tax_factor = 4 / ((empire.tax_rate + 15) / 20) - 7 / 9
        mult = tax_factor if change > 0 else 1 / tax_factor
        change = change * mult * mult
    change = round_half_up(change)
    if empire.peasants + change < 1:
        change = 1 - empire.peasants
    empire.peasants += change


def _regen_health(empire: Empire) -> None:
    if empire.health >= 100:
        return
    tax_penalty = (empire.tax_rate - 50) / 100 if empire.tax_rate > 50 else 0
    regen = max(0.0, HEALTH_REGEN_PER_TURN * (1 - tax_penalty))
    regen += effect_total(empire, EffectKind.HEALTH_REGEN)
    empire.health = min(100, empire.health + regen)


def apply_economy(empire: Empire, turn: EconomyTurn) -> TurnUpkeep:
    """Apply one computed turn and report interest and emergencies."""
    upkeep = TurnUpkeep()
    res = empire.resources

    res.gold += turn.net_gold
    # Running dry adds to the loan instead of halting
    if res.gold < 0:
        empire.loan -= res.gold
        res.gold = 0

    upkeep.bank_interest = apply_bank_interest(empire, TURNS_PER_ROUND)
    upkeep.loan_interest = apply_loan_interest(empire, TURNS_PER_ROUND)
    if is_loan_emergency(empire):
        upkeep.loan_emergency = True

    res.food += turn.net_food
    if turn.starvation or res.food < 0:
        res.food = max(0, res.food)
        upkeep.food_emergency = True
        apply_desertion(empire, STARVATION_DESERTION)

    _grow_peasants(empire)

    res.runes += turn.rune_production
    for kind, amount in turn.troops_produced.items():
        empire.troops.add(kind, amount)
    empire.troops.trpwiz += turn.wizards_produced

    _regen_health(empire)
    refresh_networth(empire)
    return upkeep


# ---------------------------------------------------------------------------
# Multi-turn loop
# ---------------------------------------------------------------------------

@dataclass
class TurnTotals:
    income: int = 0
    expenses: int = 0
    food_production: int = 0
    food_consumption: int = 0
    runes: int = 0
    troops: dict[str, int] = field(default_factory=lambda: dict.fromkeys(
        ("trparm", "trplnd", "trpfly", "trpsea", "trpwiz"), 0))
    land: int = 0
    loan_payment: int = 0
    bank_interest: int = 0
    loan_interest: int = 0
    turns_spent: int = 0
    stopped_early: Optional[StopReason] = None

    def accumulate(self, turn: EconomyTurn, upkeep: TurnUpkeep) -> None:
        self.income += turn.income
        self.expenses += turn.expenses
        self.food_production += turn.food_production
        self.food_consumption += turn.food_consumption
        self.runes += turn.rune_production
        self.loan_payment += turn.loan_payment
        self.bank_interest += upkeep.bank_interest
        self.loan_interest += upkeep.loan_interest
        for kind, amount in turn.troops_produced.items():
            self.troops[kind] += amount
        self.troops["trpwiz"] += turn.wizards_produced
        self.turns_spent += 1

    def check_emergency(self, upkeep: TurnUpkeep) -> bool:
        if upkeep.food_emergency:
            self.stopped_early = StopReason.FOOD
        elif upkeep.loan_emergency:
            self.stopped_early = StopReason.LOAN
        return self.stopped_early is not None

    def to_result(self, **extra) -> TurnResult:
        values = dict(
            success=True,
            turns_spent=self.turns_spent,
            income=self.income,
            expenses=self.expenses,
            food_production=self.food_production,
            food_consumption=self.food_consumption,
            rune_change=self.runes,
            troops_produced=dict(self.troops),
            loan_payment=self.loan_payment,
            bank_interest=self.bank_interest,
            loan_interest=self.loan_interest,
            land_gained=self.land,
            stopped_early=self.stopped_early.value if self.stopped_early else None,
        )
        values.update(extra)
        return TurnResult(**values)


def run_turns(empire: Empire, turns: int, action: Optional[TurnAction] = None,
              after_turn: Optional[Callable[[Empire, TurnTotals], None]] = None) -> TurnTotals:
    """Run up to ``turns`` economy turns, stopping at the first emergency.

    ``after_turn`` runs only for turns that completed without an emergency.
    """
    totals = TurnTotals()
    for _ in range(turns):
        turn = process_economy(empire, action)
        upkeep = apply_economy(empire, turn)
        totals.accumulate(turn, upkeep)
        if totals.check_emergency(upkeep):
            logger.debug("%s stopped after %d turns: %s", empire.id, totals.turns_spent,
                         totals.stopped_early.value)
            break
        if after_turn is not None:
            after_turn(empire, totals)
    return totals


# ---------------------------------------------------------------------------
# Turn actions
# ---------------------------------------------------------------------------

def process_explore(empire: Empire, turns: int) -> TurnResult:
    mult = explore_multiplier(empire)
    pioneer = effect_total(empire, EffectKind.PIONEER)

    def gain_land(emp: Empire, totals: TurnTotals) -> None:
        gained = int(calc_land_gain(emp) * mult)
        emp.resources.land += gained
        emp.resources.freeland += gained
        totals.land += gained
        if pioneer > 0:
            emp.peasants += math.floor(gained * pioneer)

    totals = run_turns(empire, turns, after_turn=gain_land)
    refresh_networth(empire)
    return totals.to_result()


def process_farm(empire: Empire, turns: int) -> TurnResult:
    return run_turns(empire, turns, TurnAction.FARM).to_result()


def process_cash(empire: Empire, turns: int) -> TurnResult:
    return run_turns(empire, turns, TurnAction.CASH).to_result()


def process_meditate(empire: Empire, turns: int) -> TurnResult:
    return run_turns(empire, turns, TurnAction.MEDITATE).to_result()


def process_industry(empire: Empire, turns: int) -> TurnResult:
    return run_turns(empire, turns, TurnAction.INDUSTRY).to_result()


def _clean_allocation(allocation: dict) -> tuple[Optional[dict[str, int]], Optional[str]]:
    clean = {}
    for kind, count in (allocation or {}).items():
        if kind in INERT_BUILDING_KINDS:
            if count:
                return None, f"{kind} can no longer be built"
            continue
        if kind not in BUILDING_KINDS:
            return None, f"Unknown building type: {kind}"
        if not isinstance(count, int) or isinstance(count, bool) or count < 0:
            return None, f"Invalid building count for {kind}"
        if count:
            clean[kind] = count
    return clean, None


def build_turns_needed(empire: Empire, count: int) -> int:
    return min(MAX_BUILD_TURNS, max(1, math.ceil(count / build_rate(empire))))


def process_build(empire: Empire, allocation: dict) -> TurnResult:
    clean, error = _clean_allocation(allocation)
    if error:
        return failed_turn(error)
    total = sum(clean.values())
    if total <= 0:
        return failed_turn("Nothing to build")
    if total > empire.resources.freeland:
        return failed_turn("Not enough free land")
    cost = build_cost(empire, total)
    if cost > empire.resources.gold:
        return failed_turn("Not enough gold")

    totals = run_turns(empire, build_turns_needed(empire, total))
    res = empire.resources
    res.gold -= cost
    if res.gold < 0:
        empire.loan -= res.gold
        res.gold = 0
    for kind, count in clean.items():
        empire.buildings.add(kind, count)
    res.freeland -= total
    refresh_networth(empire)
    totals.income -= cost
    return totals.to_result(buildings_constructed=clean)


def process_demolish(empire: Empire, allocation: dict) -> TurnResult:
    clean, error = _clean_allocation(allocation)
    if error:
        return failed_turn(error)
    total = sum(clean.values())
    if total <= 0:
        return failed_turn("Nothing to demolish")
    for kind, count in clean.items():
        if count > empire.buildings.get(kind):
            return failed_turn(f"Not enough {kind} to demolish")

    refund = round_half_up(building_unit_cost(empire) * total * DEMOLISH_REFUND)
    totals = run_turns(empire, build_turns_needed(empire, total))
    for kind, count in clean.items():
        empire.buildings.add(kind, -count)
    empire.resources.freeland += total
    empire.resources.gold += refund
    refresh_networth(empire)
    totals.income += refund
    return totals.to_result(buildings_constructed={k: -v for k, v in clean.items()})


_SIMPLE_ACTIONS = {
    TurnAction.EXPLORE: process_explore,
    TurnAction.FARM: process_farm,
    TurnAction.CASH: process_cash,
    TurnAction.MEDITATE: process_meditate,
    TurnAction.INDUSTRY: process_industry,
}


def execute_turn_action(empire: Empire, action: TurnAction, turns: int,
                        allocation: Optional[dict] = None) -> TurnResult:
    """Run a non-combat turn action. Attack and spell go through their engines."""
    action = TurnAction(action)
    if action in _SIMPLE_ACTIONS:
        if turns < 1:
            return failed_turn("Turns must be at least 1")
        return _SIMPLE_ACTIONS[action](empire, turns)
    if action is TurnAction.BUILD:
        if not allocation:
            return failed_turn("Building allocation required")
        return process_build(empire, allocation)
    if action is TurnAction.DEMOLISH:
        if not allocation:
            return failed_turn("Demolish allocation required")
        return process_demolish(empire, allocation)
    return failed_turn(f"Unsupported turn action: {action.value}")

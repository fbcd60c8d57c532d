"""Bot strategies — one immutable profile per archetype.

A strategy is a pure lookup: every bot of an archetype plays the same
committed plan for the whole run. The phase pipeline reads these fields and
never branches on the archetype itself.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from ..enums import BUILDING_KINDS, BotArchetype, Era, Race, Spell, TurnAction


@dataclass(frozen=True)
class Strategy:
    # Identity
    archetype: BotArchetype
    name: str
    description: str
    preferred_races: tuple[Race, ...]
    preferred_era: Era

    # Economy
    building_ratio: dict[str, int]
    turn_priority: tuple[TurnAction, ...]
    explore_turns: tuple[int, int]
    explore_before_attack: bool

    # Attack behavior
    attack_health_threshold: int
    min_power_ratio: float
    attack_start_round: int
    max_attacks_per_round: int

    # Troop purchase mix and the seed for generated industry allocations
    industry: dict[str, int]
    industry_preference: dict[str, int]

    # Magic
    maintain_shield: bool
    use_offensive_spells: bool
    offensive_spells: tuple[Spell, ...]

    # Personality, used for mood
    aggression_threshold: float
    defense_focus: float

    innate: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "archetype": self.archetype.value,
            "name": self.name,
            "description": self.description,
            "preferred_era": self.preferred_era.value,
        }


def _ratio(food, cash, trp, wiz, cost) -> dict[str, int]:
    return {"bldfood": food, "bldcash": cash, "bldtrp": trp, "bldwiz": wiz, "bldcost": cost}


def _mix(arm, lnd, fly, sea) -> dict[str, int]:
    return {"trparm": arm, "trplnd": lnd, "trpfly": fly, "trpsea": sea}


_A = TurnAction
_R = Race

STRATEGIES: dict[BotArchetype, Strategy] = {s.archetype: s for s in [
    Strategy(
        archetype=BotArchetype.GENERAL_VASK,
        name="General Vask",
        description="Aggressive military leader who attacks early and often",
        preferred_races=(_R.ORC, _R.TROLL, _R.DWARF),
        preferred_era=Era.FUTURE,
        building_ratio=_ratio(25, 0, 65, 10, 0),
        turn_priority=(_A.INDUSTRY, _A.FARM, _A.CASH),
        explore_turns=(5, 8),
        explore_before_attack=False,
        attack_health_threshold=60,
        min_power_ratio=0.8,
        attack_start_round=2,
        max_attacks_per_round=10,
        industry=_mix(45, 45, 10, 0),
        industry_preference=_mix(55, 40, 5, 0),
        maintain_shield=True,
        use_offensive_spells=False,
        offensive_spells=(Spell.FIGHT, Spell.BLAST),
        aggression_threshold=0.8,
        defense_focus=0.2,
        innate={"offense": 0.15, "troop_production": 0.25, "cross_era": 1},
    ),
    Strategy(
        archetype=BotArchetype.GRAIN_MOTHER,
        name="The Grain Mother",
        description="Peaceful empire focused on food production and survival",
        preferred_races=(_R.GREMLIN, _R.ELF, _R.HUMAN),
        preferred_era=Era.PRESENT,
        building_ratio=_ratio(85, 0, 5, 10, 0),
        turn_priority=(_A.FARM, _A.CASH, _A.MEDITATE),
        explore_turns=(10, 12),
        explore_before_attack=True,
        attack_health_threshold=90,
        min_power_ratio=1.5,
        attack_start_round=4,
        max_attacks_per_round=3,
        industry=_mix(90, 10, 0, 0),
        industry_preference=_mix(90, 10, 0, 0),
        maintain_shield=True,
        use_offensive_spells=False,
        offensive_spells=(),
        aggression_threshold=1.5,
        defense_focus=0.7,
        innate={"food_production": 0.50, "defense": 0.25, "cross_era": 1},
    ),
    Strategy(
        archetype=BotArchetype.ARCHON_NYX,
        name="Archon Nyx",
        description="Archmage who dominates through magical warfare",
        preferred_races=(_R.ELF, _R.DROW, _R.HUMAN),
        preferred_era=Era.PAST,
        building_ratio=_ratio(20, 0, 5, 75, 0),
        turn_priority=(_A.MEDITATE, _A.FARM, _A.INDUSTRY),
        explore_turns=(4, 6),
        explore_before_attack=True,
        attack_health_threshold=70,
        min_power_ratio=1.0,
        attack_start_round=2,
        max_attacks_per_round=5,
        industry=_mix(30, 10, 60, 0),
        industry_preference=_mix(15, 5, 70, 10),
        maintain_shield=True,
        use_offensive_spells=True,
        offensive_spells=(Spell.FIGHT, Spell.BLAST, Spell.STORM, Spell.STEAL),
        aggression_threshold=1.2,
        defense_focus=0.3,
        innate={"magic_power": 0.30, "spell_cost": -0.20, "cross_era": 1},
    ),
    Strategy(
        archetype=BotArchetype.IRON_BARON,
        name="Iron Baron",
        description="Industrial powerhouse who builds an unstoppable late-game army",
        preferred_races=(_R.DWARF, _R.GOBLIN, _R.ORC),
        preferred_era=Era.FUTURE,
        building_ratio=_ratio(15, 0, 80, 0, 5),
        turn_priority=(_A.INDUSTRY, _A.CASH, _A.FARM),
        explore_turns=(8, 10),
        explore_before_attack=True,
        attack_health_threshold=70,
        min_power_ratio=1.2,
        attack_start_round=5,
        max_attacks_per_round=10,
        industry=_mix(25, 70, 5, 0),
        industry_preference=_mix(5, 85, 10, 0),
        maintain_shield=False,
        use_offensive_spells=False,
        offensive_spells=(Spell.STRUCT,),
        aggression_threshold=1.3,
        defense_focus=0.4,
        innate={"troop_production": 0.50, "defense": 0.15, "cross_era": 1},
    ),
    Strategy(
        archetype=BotArchetype.THE_LOCUST,
        name="The Locust",
        description="Land-hungry empire that explores aggressively and raids",
        preferred_races=(_R.ORC, _R.TROLL, _R.ELF),
        preferred_era=Era.FUTURE,
        building_ratio=_ratio(35, 0, 55, 10, 0),
        turn_priority=(_A.INDUSTRY, _A.FARM, _A.CASH),
        explore_turns=(15, 20),
        explore_before_attack=True,
        attack_health_threshold=65,
        min_power_ratio=0.9,
        attack_start_round=2,
        max_attacks_per_round=6,
        industry=_mix(50, 20, 30, 0),
        industry_preference=_mix(10, 15, 60, 15),
        maintain_shield=True,
        use_offensive_spells=False,
        offensive_spells=(Spell.STEAL, Spell.STORM),
        aggression_threshold=1.1,
        defense_focus=0.2,
        innate={"explore_multiplier": 2.0, "offense": 0.15, "cross_era": 1},
    ),
    Strategy(
        archetype=BotArchetype.SHADOW_MERCHANT,
        name="Shadow Merchant",
        description="Wealthy empire focused on economic dominance",
        preferred_races=(_R.GNOME, _R.HUMAN, _R.ELF),
        preferred_era=Era.PRESENT,
        building_ratio=_ratio(30, 55, 10, 0, 5),
        turn_priority=(_A.CASH, _A.FARM, _A.INDUSTRY),
        explore_turns=(10, 12),
        explore_before_attack=True,
        attack_health_threshold=85,
        min_power_ratio=2.0,
        attack_start_round=6,
        max_attacks_per_round=2,
        industry=_mix(60, 40, 0, 0),
        industry_preference=_mix(20, 10, 15, 55),
        maintain_shield=True,
        use_offensive_spells=False,
        offensive_spells=(Spell.STEAL,),
        aggression_threshold=1.8,
        defense_focus=0.5,
        innate={"income": 0.25, "market_bonus": 0.50, "cross_era": 1},
    ),
    Strategy(
        archetype=BotArchetype.THE_FORTRESS,
        name="The Fortress",
        description="Impenetrable defensive empire that outlasts opponents",
        preferred_races=(_R.DWARF, _R.HUMAN, _R.GOBLIN),
        preferred_era=Era.PRESENT,
        building_ratio=_ratio(35, 5, 45, 10, 5),
        turn_priority=(_A.INDUSTRY, _A.FARM, _A.CASH, _A.MEDITATE),
        explore_turns=(8, 10),
        explore_before_attack=True,
        attack_health_threshold=95,
        min_power_ratio=2.5,
        attack_start_round=8,
        max_attacks_per_round=2,
        industry=_mix(40, 40, 0, 20),
        industry_preference=_mix(70, 25, 5, 0),
        maintain_shield=True,
        use_offensive_spells=False,
        offensive_spells=(Spell.STRUCT,),
        aggression_threshold=2.0,
        defense_focus=0.9,
        innate={"defense": 0.25, "permanent_shield": 1, "cross_era": 1},
    ),
]}

# Archetype order used by seeded selection
ARCHETYPE_ORDER = tuple(STRATEGIES)


def get_strategy(archetype: BotArchetype) -> Strategy:
    return STRATEGIES[BotArchetype(archetype)]


# ---------------------------------------------------------------------------
# Decisions that depend only on the strategy
# ---------------------------------------------------------------------------

def explore_turns(strategy: Strategy, state: int) -> int:
    low, high = strategy.explore_turns
    return low + state % (high - low + 1)


def should_attack(strategy: Strategy, current_round: int, health: float,
                  power_ratio: float, attacks_used: int) -> bool:
    return (current_round >= strategy.attack_start_round
            and health >= strategy.attack_health_threshold
            and power_ratio >= strategy.min_power_ratio
            and attacks_used < strategy.max_attacks_per_round)


def target_buildings(strategy: Strategy, land: int) -> dict[str, int]:
    """Target count per building kind, leaving 5% of land unbuilt."""
    buildable = math.floor(land * 0.95)
    return {kind: math.floor(buildable * strategy.building_ratio[kind] / 100) for kind in BUILDING_KINDS}


def buildings_to_build(strategy: Strategy, land: int, freeland: int,
                       current: dict[str, int]) -> dict[str, int]:
    """Fill ratio deficits first, weighted by deficit and importance, then spread the rest by ratio."""
    if freeland <= 0:
        return {}
    targets = target_buildings(strategy, land)
    deficits = {kind: max(0, targets[kind] - current.get(kind, 0)) for kind in BUILDING_KINDS}
    total_deficit = sum(deficits.values())
    by_ratio = sorted(BUILDING_KINDS, key=lambda k: -strategy.building_ratio[k])

    allocation: dict[str, int] = {}
    remaining = freeland
    if total_deficit == 0:
        for kind in by_ratio:
            ratio = strategy.building_ratio[kind]
            amount = math.floor(freeland * ratio / 100)
            if ratio > 0 and amount > 0:
                allocation[kind] = min(amount, remaining)
                remaining -= allocation[kind]
        return allocation

    ranked = sorted((k for k in by_ratio if deficits[k] > 0),
                    key=lambda k: -deficits[k] * (1 + strategy.building_ratio[k] / 100))
    for kind in ranked:
        if remaining <= 0:
            break
        allocation[kind] = min(deficits[kind], remaining)
        remaining -= allocation[kind]

    if remaining > 0 and total_deficit < freeland:
        for kind in by_ratio:
            extra = math.floor(remaining * strategy.building_ratio[kind] / 100)
            if extra > 0:
                allocation[kind] = allocation.get(kind, 0) + extra
                remaining -= extra
    return allocation


def next_turn_action(strategy: Strategy, gold: int, food: int, runes: int,
                     peasants: int, wizards: int) -> TurnAction:
    """Strategy priority with overrides for critical shortages."""
    if food < peasants * 10 * 5:
        return TurnAction.FARM
    if gold < 5000:
        return TurnAction.CASH
    if strategy.use_offensive_spells and runes < 500 and wizards > 20:
        return TurnAction.MEDITATE
    return strategy.turn_priority[0] if strategy.turn_priority else TurnAction.CASH


_BASE_AGGRESSION = {
    BotArchetype.GENERAL_VASK: 0.85,
    BotArchetype.THE_LOCUST: 0.75,
    BotArchetype.IRON_BARON: 0.65,
    BotArchetype.ARCHON_NYX: 0.55,
    BotArchetype.THE_FORTRESS: 0.6,
}


def spending_aggression(archetype: BotArchetype, current_round: int) -> float:
    """Share of surplus gold a bot is willing to turn into troops (0-1)."""
    if archetype is BotArchetype.SHADOW_MERCHANT:
        aggression = 0.4 if current_round <= 3 else 0.7 if current_round <= 7 else 0.9
    elif archetype is BotArchetype.GRAIN_MOTHER:
        aggression = 0.5 if current_round <= 5 else 0.7
    else:
        aggression = _BASE_AGGRESSION.get(archetype, 0.65)

    if current_round >= 8:
        aggression = min(0.95, aggression + 0.15)
    elif current_round >= 6:
        aggression = min(0.9, aggression + 0.05)
    return aggression

"""Empire model — one faction's resources, buildings, troops and derived values.

Provides:
- Resource/building/troop bundles and the Empire dataclass
- BotEmpire, the opponent extension with archetype, mood and memory
- create_empire(): a fresh empire with the starting constants
- get_modifier()/get_era_modifier(): race + bonus + tech stat multipliers
- calculate_networth()
- timed-effect checks (shield, gate, protection) and era compatibility
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field, fields
from typing import Optional

from .bonuses import EffectKind, has_effect, stat_bonus, tech_bonus
from .bot.memory import BotMemory
from .constants import (
    BUILDING_BASE_COST, BUILDING_LAND_MULTIPLIER, ERA_MODIFIERS,
    NETWORTH_CASH_DIVISOR, NETWORTH_FOOD_MULT, NETWORTH_FREELAND, NETWORTH_LAND,
    NETWORTH_PEASANT, NETWORTH_TROOP_VALUES, RACE_MODIFIERS, STARTING_BUILDINGS,
    STARTING_FOOD, STARTING_GOLD, STARTING_HEALTH, STARTING_INDUSTRY, STARTING_LAND,
    STARTING_PEASANTS, STARTING_RUNES, STARTING_TAX_RATE, STARTING_TROOPS,
)
from .enums import (
    TROOP_KINDS, BotArchetype, BotMood, Era, Race,
)


# ---------------------------------------------------------------------------
# Bundles
# ---------------------------------------------------------------------------

class _Bundle:
    """Named integer counters addressable by kind string."""

    def get(self, kind: str) -> int:
        return getattr(self, kind)

    def set(self, kind: str, value: int) -> None:
        setattr(self, kind, value)

    def add(self, kind: str, delta: int) -> None:
        setattr(self, kind, getattr(self, kind) + delta)

    def items(self):
        return [(f.name, getattr(self, f.name)) for f in fields(self)]

    def total(self) -> int:
        return sum(v for _, v in self.items())

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Resources(_Bundle):
    gold: int = 0
    food: int = 0
    runes: int = 0
    land: int = 0
    freeland: int = 0


@dataclass
class Buildings(_Bundle):
    bldpop: int = 0   # inert
    bldcash: int = 0
    bldtrp: int = 0
    bldcost: int = 0
    bldfood: int = 0
    bldwiz: int = 0
    blddef: int = 0   # inert


@dataclass
class Troops(_Bundle):
    trparm: int = 0
    trplnd: int = 0
    trpfly: int = 0
    trpsea: int = 0
    trpwiz: int = 0


@dataclass
class IndustryAllocation(_Bundle):
    trparm: int = 0
    trplnd: int = 0
    trpfly: int = 0
    trpsea: int = 0

    def is_valid(self) -> bool:
        values = [v for _, v in self.items()]
        return sum(values) == 100 and all(0 <= v <= 100 for v in values)


# ---------------------------------------------------------------------------
# Empire
# ---------------------------------------------------------------------------

@dataclass
class Empire:
    """Complete state of one faction."""

    # Identity
    id: str
    name: str
    race: Race = Race.HUMAN
    era: Era = Era.PAST
    era_changed_round: int = 0

    # Holdings
    resources: Resources = field(default_factory=Resources)
    buildings: Buildings = field(default_factory=Buildings)
    troops: Troops = field(default_factory=Troops)
    industry: IndustryAllocation = field(default_factory=IndustryAllocation)

    # Scalars
    peasants: int = 0
    health: int = 100
    tax_rate: int = 35
    bank: int = 0
    loan: int = 0
    networth: int = 0

    # Combat record
    off_total: int = 0
    off_succ: int = 0
    def_total: int = 0
    def_succ: int = 0
    kills: int = 0
    attacks_this_round: int = 0
    spells_this_round: int = 0

    # Timed effects ("active while round <= N")
    shield_expires_round: Optional[int] = None
    gate_expires_round: Optional[int] = None
    protection_expires_round: Optional[int] = None

    # Bonuses
    advisors: list[str] = field(default_factory=list)
    techs: dict[str, int] = field(default_factory=dict)
    policies: list[str] = field(default_factory=list)
    # Archetype bonuses (bots only): offense, defense, income, food_production,
    # troop_production, magic_power, spell_cost, explore_multiplier,
    # market_bonus, permanent_shield, cross_era
    innate: dict[str, float] = field(default_factory=dict)

    is_bot = False

    @property
    def is_eliminated(self) -> bool:
        return self.resources.land <= 0

    def land_is_conserved(self) -> bool:
        return self.resources.land == self.buildings.total() + self.resources.freeland

    def copy(self) -> Empire:
        return type(self).from_dict(self.to_dict())

    # --- Serialization ---

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "race": self.race.value,
            "era": self.era.value,
            "era_changed_round": self.era_changed_round,
            "resources": self.resources.to_dict(),
            "buildings": self.buildings.to_dict(),
            "troops": self.troops.to_dict(),
            "industry": self.industry.to_dict(),
            "peasants": self.peasants,
            "health": self.health,
            "tax_rate": self.tax_rate,
            "bank": self.bank,
            "loan": self.loan,
            "networth": self.networth,
            "off_total": self.off_total,
            "off_succ": self.off_succ,
            "def_total": self.def_total,
            "def_succ": self.def_succ,
            "kills": self.kills,
            "attacks_this_round": self.attacks_this_round,
            "spells_this_round": self.spells_this_round,
            "shield_expires_round": self.shield_expires_round,
            "gate_expires_round": self.gate_expires_round,
            "protection_expires_round": self.protection_expires_round,
            "advisors": list(self.advisors),
            "techs": dict(self.techs),
            "policies": list(self.policies),
            "innate": dict(self.innate),
        }

    @classmethod
    def _kwargs_from_dict(cls, d: dict) -> dict:
        return dict(
            id=d["id"],
            name=d["name"],
            race=Race(d["race"]),
            era=Era(d["era"]),
            era_changed_round=d.get("era_changed_round", 0),
            resources=Resources(**d["resources"]),
            buildings=Buildings(**d["buildings"]),
            troops=Troops(**d["troops"]),
            industry=IndustryAllocation(**d["industry"]),
            peasants=d["peasants"],
            health=d["health"],
            tax_rate=d["tax_rate"],
            bank=d.get("bank", 0),
            loan=d.get("loan", 0),
            networth=d.get("networth", 0),
            off_total=d.get("off_total", 0),
            off_succ=d.get("off_succ", 0),
            def_total=d.get("def_total", 0),
            def_succ=d.get("def_succ", 0),
            kills=d.get("kills", 0),
            attacks_this_round=d.get("attacks_this_round", 0),
            spells_this_round=d.get("spells_this_round", 0),
            shield_expires_round=d.get("shield_expires_round"),
            gate_expires_round=d.get("gate_expires_round"),
            protection_expires_round=d.get("protection_expires_round"),
            advisors=list(d.get("advisors", [])),
            techs=dict(d.get("techs", {})),
            policies=list(d.get("policies", [])),
            innate=dict(d.get("innate", {})),
        )

    @classmethod
    def from_dict(cls, d: dict) -> Empire:
        return cls(**cls._kwargs_from_dict(d))


@dataclass
class BotEmpire(Empire):
    """Computer-controlled empire with a committed archetype and memory."""

    archetype: BotArchetype = BotArchetype.GENERAL_VASK
    memory: BotMemory = field(default_factory=BotMemory)
    mood: BotMood = BotMood.DEVELOPING
    last_target_id: Optional[str] = None

    is_bot = True

    def to_dict(self) -> dict:
        d = super().to_dict()
        d.update({
            "is_bot": True,
            "archetype": self.archetype.value,
            "memory": self.memory.to_dict(),
            "mood": self.mood.value,
            "last_target_id": self.last_target_id,
        })
        return d

    @classmethod
    def from_dict(cls, d: dict) -> BotEmpire:
        kwargs = cls._kwargs_from_dict(d)
        return cls(
            **kwargs,
            archetype=BotArchetype(d["archetype"]),
            memory=BotMemory.from_dict(d.get("memory", {})),
            mood=BotMood(d.get("mood", BotMood.DEVELOPING.value)),
            last_target_id=d.get("last_target_id"),
        )


def empire_from_dict(d: dict) -> Empire:
    if d.get("is_bot"):
        return BotEmpire.from_dict(d)
    return Empire.from_dict(d)


def create_empire(empire_id: str, name: str, race: Race = Race.HUMAN, era: Era = Era.PAST,
                  cls=Empire, **extra) -> Empire:
    """A fresh empire with the starting resources, buildings and troops."""
    buildings = Buildings(**STARTING_BUILDINGS)
    empire = cls(
        id=empire_id,
        name=name,
        race=Race(race),
        era=Era(era),
        resources=Resources(
            gold=STARTING_GOLD,
            food=STARTING_FOOD,
            runes=STARTING_RUNES,
            land=STARTING_LAND,
            freeland=STARTING_LAND - buildings.total(),
        ),
        buildings=buildings,
        troops=Troops(**STARTING_TROOPS),
        industry=IndustryAllocation(**STARTING_INDUSTRY),
        peasants=STARTING_PEASANTS,
        health=STARTING_HEALTH,
        tax_rate=STARTING_TAX_RATE,
        **extra,
    )
    empire.networth = calculate_networth(empire)
    return empire


# ---------------------------------------------------------------------------
# Modifiers
# ---------------------------------------------------------------------------

def get_modifier(empire: Empire, stat: str) -> float:
    """1.0 + race percent + advisor/policy bonus + tech bonus for a race stat."""
    race_mod = RACE_MODIFIERS[empire.race][stat]
    return 1.0 + race_mod / 100 + stat_bonus(empire, stat) + tech_bonus(empire, stat)


def get_era_modifier(empire: Empire, key: str) -> float:
    return 1.0 + ERA_MODIFIERS[empire.era][key] / 100


def innate(empire: Empire, key: str, default: float = 0.0) -> float:
    return empire.innate.get(key, default)


# ---------------------------------------------------------------------------
# Networth
# ---------------------------------------------------------------------------

def calculate_networth(empire: Empire) -> int:
    res = empire.resources
    net = 0.0
    for kind in TROOP_KINDS:
        net += empire.troops.get(kind) * NETWORTH_TROOP_VALUES[kind]
    net += empire.peasants * NETWORTH_PEASANT
    net += (res.gold + empire.bank / 2 - empire.loan * 2) / NETWORTH_CASH_DIVISOR
    net += res.land * NETWORTH_LAND
    net += res.freeland * NETWORTH_FREELAND
    # Logarithmic so hoarded food does not dominate
    if res.food > 10:
        net += res.food / math.log10(res.food) * NETWORTH_FOOD_MULT
    return max(0, math.floor(net))


def refresh_networth(empire: Empire) -> int:
    empire.networth = calculate_networth(empire)
    return empire.networth


# ---------------------------------------------------------------------------
# Timed effects and era rules
# ---------------------------------------------------------------------------

def has_active_shield(empire: Empire, current_round: Optional[int] = None) -> bool:
    if has_effect(empire, EffectKind.PERMANENT_SHIELD) or innate(empire, "permanent_shield"):
        return True
    if empire.shield_expires_round is None:
        return False
    if current_round is None:
        return True
    return empire.shield_expires_round >= current_round


def has_active_gate(empire: Empire, current_round: Optional[int] = None) -> bool:
    if has_effect(empire, EffectKind.PERMANENT_GATE):
        return True
    if empire.gate_expires_round is None:
        return False
    if current_round is None:
        return True
    return empire.gate_expires_round >= current_round


def is_protected(empire: Empire, current_round: int) -> bool:
    return (empire.protection_expires_round is not None
            and empire.protection_expires_round >= current_round)


def can_attack_era(attacker: Empire, defender: Empire, current_round: Optional[int] = None) -> bool:
    if attacker.era is defender.era:
        return True
    if innate(attacker, "cross_era"):
        return True
    return has_active_gate(attacker, current_round)


def can_change_era(empire: Empire, current_round: int) -> bool:
    return current_round > empire.era_changed_round


# ---------------------------------------------------------------------------
# Costs and mutation helpers
# ---------------------------------------------------------------------------

def building_unit_cost(empire: Empire) -> float:
    return BUILDING_BASE_COST + empire.resources.land * BUILDING_LAND_MULTIPLIER


def apply_desertion(empire: Empire, rate: float) -> None:
    """Lose ``rate`` of peasants and of every troop kind (floored)."""
    keep = 1 - rate
    empire.peasants = math.floor(empire.peasants * keep)
    for kind in TROOP_KINDS:
        empire.troops.set(kind, math.floor(empire.troops.get(kind) * keep))


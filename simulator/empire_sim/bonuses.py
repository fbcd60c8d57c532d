"""Draftable bonuses: advisors, techs, edicts and policies.

Every bonus exposes a typed :class:`Effect`. Formulas never name individual
bonuses; they ask for the summed modifier of an effect kind, optionally gated
by a condition (unit kind, building kind, build mode). Stat-bearing kinds fold
into the race stat modifiers through ``_STAT_TARGETS``, which covers every
kind explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional

from .enums import Rarity, TurnAction

# ---------------------------------------------------------------------------
# Effects
# ---------------------------------------------------------------------------


class EffectKind(str, Enum):
    # Stat modifiers
    INCOME = "income"
    FOOD_PRODUCTION = "food_production"
    INDUSTRY = "industry"
    EXPLORE = "explore"
    OFFENSE = "offense"
    DEFENSE = "defense"
    MILITARY = "military"
    MAGIC = "magic"
    BUILD_COST = "build_cost"
    RUNE_PRODUCTION = "rune_production"
    # Economy
    INCOME_BOOST = "income_boost"
    MARKET_BOOST = "market_boost"
    EXCHANGE_BOOST = "exchange_boost"
    TROOP_PRODUCTION = "troop_production"
    UNIT_PRODUCTION = "unit_production"
    FARM_INDUSTRY_BOOST = "farm_industry_boost"
    CASH_INDUSTRY_BOOST = "cash_industry_boost"
    PEASANT_DENSITY = "peasant_density"
    LENIENT_TAXES = "lenient_taxes"
    HEALTH_REGEN = "health_regen"
    PIONEER = "pioneer"
    DOUBLE_EXPLORE = "double_explore"
    EXPANSIONIST = "expansionist"
    BUILD_RATE = "build_rate"
    EXTRA_TURNS = "extra_turns"
    # Bank
    BANK_INTEREST = "bank_interest"
    DOUBLE_BANK_INTEREST = "double_bank_interest"
    ZERO_INTEREST = "zero_interest"
    # Market
    FOOD_SELL = "food_sell"
    # Combat
    DYNAMIC_OFFENSE = "dynamic_offense"
    BUILDING_OFFENSE = "building_offense"
    BUILDING_DEFENSE = "building_defense"
    SECOND_WIND = "second_wind"
    CASUALTY_REDUCTION = "casualty_reduction"
    SALVAGE = "salvage"
    TOLL_KEEPER = "toll_keeper"
    ATTACK_HEALTH_REDUCTION = "attack_health_reduction"
    EXTRA_ATTACKS = "extra_attacks"
    PACIFIST = "pacifist"
    PERMANENT_GATE = "permanent_gate"
    # Magic
    SPELL_COST = "spell_cost"
    PERMANENT_SHIELD = "permanent_shield"
    CASH_SPELL = "cash_spell"
    FOOD_SPELL = "food_spell"
    STEAL_SPELL = "steal_spell"


# Race stat(s) each kind feeds, with sign. Kinds with no stat are read
# directly by the formula that owns them.
_STAT_TARGETS: dict[EffectKind, tuple[tuple[str, int], ...]] = {
    EffectKind.INCOME: (("income", 1),),
    EffectKind.FOOD_PRODUCTION: (("foodpro", 1),),
    EffectKind.INDUSTRY: (("industry", 1),),
    EffectKind.EXPLORE: (("explore", 1),),
    EffectKind.OFFENSE: (("offense", 1),),
    EffectKind.DEFENSE: (("defense", 1),),
    EffectKind.MILITARY: (("offense", 1), ("defense", 1)),
    EffectKind.MAGIC: (("magic", 1),),
    # Negative cost modifier means a larger building modifier (cheaper builds)
    EffectKind.BUILD_COST: (("building", -1),),
    EffectKind.RUNE_PRODUCTION: (("runepro", 1),),
    EffectKind.INCOME_BOOST: (),
    EffectKind.MARKET_BOOST: (),
    EffectKind.EXCHANGE_BOOST: (),
    EffectKind.TROOP_PRODUCTION: (),
    EffectKind.UNIT_PRODUCTION: (),
    EffectKind.FARM_INDUSTRY_BOOST: (),
    EffectKind.CASH_INDUSTRY_BOOST: (),
    EffectKind.PEASANT_DENSITY: (),
    EffectKind.LENIENT_TAXES: (),
    EffectKind.HEALTH_REGEN: (),
    EffectKind.PIONEER: (),
    EffectKind.DOUBLE_EXPLORE: (),
    EffectKind.EXPANSIONIST: (),
    EffectKind.BUILD_RATE: (),
    EffectKind.EXTRA_TURNS: (),
    EffectKind.BANK_INTEREST: (),
    EffectKind.DOUBLE_BANK_INTEREST: (),
    EffectKind.ZERO_INTEREST: (),
    EffectKind.FOOD_SELL: (),
    EffectKind.DYNAMIC_OFFENSE: (),
    EffectKind.BUILDING_OFFENSE: (),
    EffectKind.BUILDING_DEFENSE: (),
    EffectKind.SECOND_WIND: (),
    EffectKind.CASUALTY_REDUCTION: (),
    EffectKind.SALVAGE: (),
    EffectKind.TOLL_KEEPER: (),
    EffectKind.ATTACK_HEALTH_REDUCTION: (),
    EffectKind.EXTRA_ATTACKS: (),
    EffectKind.PACIFIST: (),
    EffectKind.PERMANENT_GATE: (),
    EffectKind.SPELL_COST: (),
    EffectKind.PERMANENT_SHIELD: (),
    EffectKind.CASH_SPELL: (),
    EffectKind.FOOD_SPELL: (),
    EffectKind.STEAL_SPELL: (),
}

if set(_STAT_TARGETS) != set(EffectKind):
    raise RuntimeError("every EffectKind needs a stat mapping")


def stat_targets(kind: EffectKind) -> tuple[tuple[str, int], ...]:
    return _STAT_TARGETS[kind]


@dataclass(frozen=True)
class Effect:
    kind: EffectKind
    modifier: float
    condition: Optional[str] = None


# ---------------------------------------------------------------------------
# Catalog items
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Advisor:
    id: str
    name: str
    description: str
    rarity: Rarity
    effect: Effect

    def to_dict(self) -> dict:
        return {
            "type": "advisor",
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "rarity": self.rarity.value,
            "effect": {
                "kind": self.effect.kind.value,
                "modifier": self.effect.modifier,
                "condition": self.effect.condition,
            },
        }


@dataclass(frozen=True)
class Tech:
    id: str
    name: str
    action: TurnAction
    level: int
    bonus: int
    rarity: Rarity = Rarity.COMMON

    def to_dict(self) -> dict:
        return {
            "type": "tech",
            "id": self.id,
            "name": self.name,
            "action": self.action.value,
            "level": self.level,
            "bonus": self.bonus,
        }


class EdictKind(str, Enum):
    GOLD = "gold"
    FOOD = "food"
    RUNES = "runes"
    CONSCRIPT = "conscript"
    LAND = "land"
    HEALTH = "health"
    STEAL_GOLD = "steal_gold"
    TROOPS = "troops"
    ADVANCE_ERA = "advance_era"


@dataclass(frozen=True)
class Edict:
    id: str
    name: str
    description: str
    rarity: Rarity
    kind: EdictKind
    value: float

    def to_dict(self) -> dict:
        return {
            "type": "edict",
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "rarity": self.rarity.value,
            "effect": {"kind": self.kind.value, "value": self.value},
        }


@dataclass(frozen=True)
class Policy:
    id: str
    name: str
    description: str
    rarity: Rarity
    effect: Effect


def _advisor(id, name, description, rarity, kind, modifier, condition=None) -> Advisor:
    return Advisor(id, name, description, Rarity(rarity), Effect(EffectKind(kind), modifier, condition))


_ADVISOR_LIST = [
    # Economy
    _advisor("surplus_trader", "Surplus Trader", "Sell food at 1.25x market rate", "common", "food_sell", 1.25),
    _advisor("grain_speculator", "Grain Speculator", "Sell food at 2x market rate", "rare", "food_sell", 2.0),
    _advisor("pioneer", "Pioneer", "Exploring grants +1 peasant per acre gained", "common", "pioneer", 1),
    _advisor("war_bonds", "War Bonds", "+2% bank interest rate", "common", "bank_interest", 0.02),
    _advisor("tax_collector", "Tax Collector", "+25% income", "uncommon", "income_boost", 0.25),
    _advisor("treasury_master", "Treasury Master", "+50% income", "rare", "income_boost", 0.50),
    _advisor("market_master", "Market Master", "+50% market building income", "uncommon", "market_boost", 0.50),
    _advisor("trade_network", "Trade Network", "+50% exchange effectiveness", "uncommon", "exchange_boost", 0.50),
    _advisor("lenient_collector", "Lenient Collector", "Peasants ignore tax rate effects", "common", "lenient_taxes", 1),
    _advisor("stone_mason", "Stone Mason", "-15% building costs", "uncommon", "build_cost", -0.15),
    _advisor("royal_architect", "Royal Architect", "+1 building per turn, -25% cost", "rare",
             "build_rate", 1, "per_turn"),
    _advisor("master_builder", "Master Builder", "+2 buildings per turn, -20% cost", "rare",
             "build_rate", 2, "per_turn_with_discount"),
    _advisor("empire_builder", "Empire Builder", "+5 actions per round", "legendary", "extra_turns", 5),
    _advisor("debt_eraser", "Debt Eraser", "Loan interest reduced to 0.01%", "legendary", "zero_interest", 0.0001),
    _advisor("royal_banker", "Royal Banker", "2x bank interest earned", "uncommon", "double_bank_interest", 1.0),
    _advisor("frontier_scout", "Frontier Scout", "2x land gained from exploring", "uncommon", "double_explore", 1.0),
    _advisor("expansionist", "Expansionist", "3x explore land, but bots target you more", "uncommon",
             "expansionist", 3.0),
    _advisor("farm_profiteer", "Farm Profiteer", "+25% troop production during farm turns", "uncommon",
             "farm_industry_boost", 0.25),
    _advisor("trade_profiteer", "Trade Profiteer", "+25% troop production during cash turns", "uncommon",
             "cash_industry_boost", 0.25),
    _advisor("grumm", "Grumm the Farmer", "+50% food production", "rare", "food_production", 0.50),
    _advisor("methuselah", "Methuselah the Wise", "+50% rune production", "rare", "rune_production", 0.50),
    _advisor("bella", "Bella of Doublehomes", "3x more peasants per acre of land", "uncommon",
             "peasant_density", 3.0),
    _advisor("brome", "Brome the Healer", "+2 health restored per turn", "rare", "health_regen", 2),
    # Production
    _advisor("drill_sergeant", "Drill Sergeant", "+50% troop production", "rare", "troop_production", 0.50),
    _advisor("quartermaster", "Quartermaster", "+25% troop production", "uncommon", "troop_production", 0.25),
    _advisor("infantry_recruiter", "Infantry Recruiter", "+40% infantry production", "common",
             "unit_production", 0.40, "trparm"),
    _advisor("cavalry_master", "Cavalry Master", "+40% land unit production", "common",
             "unit_production", 0.40, "trplnd"),
    _advisor("flight_school", "Flight School", "+40% aircraft production", "common",
             "unit_production", 0.40, "trpfly"),
    _advisor("naval_academy", "Naval Academy", "+40% naval production", "common",
             "unit_production", 0.40, "trpsea"),
    # Military
    _advisor("war_council", "War Council", "+15% attack power", "uncommon", "offense", 0.15),
    _advisor("matthias", "Matthias the Warrior", "+25% attack power", "rare", "offense", 0.25),
    _advisor("cregga", "Cregga Rose Eyes", "+25% defense power", "rare", "defense", 0.25),
    _advisor("grand_general", "Grand General", "+25% attack and defense", "rare", "military", 0.25),
    _advisor("martin", "Martin the Warrior", "Offense scales with attacks this round (+5% per attack)",
             "legendary", "dynamic_offense", 0.05),
    _advisor("perigord", "Perigord the Protector", "-50% troop losses in combat", "rare",
             "casualty_reduction", 0.50),
    _advisor("salvage_expert", "Salvage Expert", "Recover 10% of troops lost in combat", "common", "salvage", 0.10),
    _advisor("toll_keeper", "Toll Keeper", "Gain 5% of attacker's gold when attacked", "common",
             "toll_keeper", 0.05),
    _advisor("second_wind", "Second Wind", "+1% all stats per 10 health missing", "common", "second_wind", 0.01),
    _advisor("battle_surgeon", "Battle Surgeon", "-50% health cost from attacks", "uncommon",
             "attack_health_reduction", 0.50),
    _advisor("warmaster", "Warmaster", "Can attack twice per round", "rare", "extra_attacks", 1),
    _advisor("warmonger", "Warmonger", "+2 additional attacks per round", "rare", "extra_attacks", 2),
    _advisor("pacifist", "Pacifist Council", "+10 turns per round, but cannot attack", "legendary", "pacifist", 10),
    _advisor("time_weaver", "Time Weaver", "Permanent Gate effect (attack any era)", "legendary",
             "permanent_gate", 1),
    # Magic
    _advisor("archmage", "Archmage", "+30% wizard power", "rare", "magic", 0.30),
    _advisor("wizard_conclave", "Wizard Conclave", "-20% spell rune costs", "uncommon", "spell_cost", -0.20),
    _advisor("arcane_ward", "Arcane Ward", "Permanent magic shield", "legendary", "permanent_shield", 1),
    _advisor("gold_alchemist", "Gold Alchemist", "+40% gold from cash spell", "uncommon", "cash_spell", 0.40),
    _advisor("harvest_mage", "Harvest Mage", "+40% food from food spell", "uncommon", "food_spell", 0.40),
    _advisor("shadow_siphon", "Shadow Siphon", "+40% gold stolen from steal spell", "uncommon",
             "steal_spell", 0.40),
]

_BUILDING_NAMES = {"bldcash": "market", "bldtrp": "barracks", "bldfood": "farm", "bldwiz": "tower", "bldcost": "exchange"}
_BUILDING_DEFENDERS = {
    "bldcash": ("market_guards", "Market Guards"),
    "bldtrp": ("barracks_sentries", "Barracks Sentries"),
    "bldfood": ("farm_militia", "Farm Militia"),
    "bldwiz": ("tower_wardens", "Tower Wardens"),
    "bldcost": ("exchange_protectors", "Exchange Protectors"),
}
_BUILDING_ATTACKERS = {
    "bldcash": ("market_raiders", "Market Raiders"),
    "bldtrp": ("barracks_veterans", "Barracks Veterans"),
    "bldfood": ("farm_levies", "Farm Levies"),
    "bldwiz": ("tower_battlemages", "Tower Battlemages"),
    "bldcost": ("exchange_mercenaries", "Exchange Mercenaries"),
}
for _bld, (_id, _name) in _BUILDING_DEFENDERS.items():
    _ADVISOR_LIST.append(_advisor(_id, _name, f"+0.1% defense per {_BUILDING_NAMES[_bld]}", "common",
                                  "building_defense", 0.001, _bld))
for _bld, (_id, _name) in _BUILDING_ATTACKERS.items():
    _ADVISOR_LIST.append(_advisor(_id, _name, f"+0.1% offense per {_BUILDING_NAMES[_bld]}", "common",
                                  "building_offense", 0.001, _bld))

ADVISORS: dict[str, Advisor] = {a.id: a for a in _ADVISOR_LIST}

# Techs: five mastery lines, levels 1-5
_TECH_LINES = (
    (TurnAction.FARM, "farming", "Farming Mastery"),
    (TurnAction.CASH, "commerce", "Commerce Mastery"),
    (TurnAction.EXPLORE, "exploration", "Exploration Mastery"),
    (TurnAction.INDUSTRY, "industry", "Industry Mastery"),
    (TurnAction.MEDITATE, "mysticism", "Mysticism Mastery"),
)
_ROMAN = ("I", "II", "III", "IV", "V")
_TECH_LEVEL_BONUS = (10, 10, 10, 15, 15)
TECH_LEVEL_STEP = 15  # percent per owned level in the stat modifier
MAX_TECH_LEVEL = 5

TECHS: dict[str, Tech] = {}
for _action, _prefix, _title in _TECH_LINES:
    for _lvl in range(1, MAX_TECH_LEVEL + 1):
        _tech = Tech(f"{_prefix}_{_lvl}", f"{_title} {_ROMAN[_lvl - 1]}", _action, _lvl,
                     _TECH_LEVEL_BONUS[_lvl - 1])
        TECHS[_tech.id] = _tech

TECH_ACTION_TO_STAT = {
    TurnAction.FARM: "foodpro",
    TurnAction.CASH: "income",
    TurnAction.EXPLORE: "explore",
    TurnAction.INDUSTRY: "industry",
    TurnAction.MEDITATE: "runepro",
}

EDICTS: dict[str, Edict] = {e.id: e for e in [
    Edict("gold_cache", "Gold Cache", "Gain 50,000 gold", Rarity.COMMON, EdictKind.GOLD, 50000),
    Edict("food_stores", "Food Stores", "Gain 10,000 food", Rarity.COMMON, EdictKind.FOOD, 10000),
    Edict("rune_cache", "Rune Cache", "Gain 500 runes", Rarity.COMMON, EdictKind.RUNES, 500),
    Edict("conscription", "Conscription", "Convert 10% peasants to infantry", Rarity.UNCOMMON,
          EdictKind.CONSCRIPT, 0.10),
    Edict("fertile_soil", "Fertile Soil", "Gain 200 free land", Rarity.UNCOMMON, EdictKind.LAND, 200),
    Edict("healing_wave", "Healing Wave", "Restore health to 100%", Rarity.UNCOMMON, EdictKind.HEALTH, 100),
    Edict("plunder", "Plunder", "Steal 10% gold from richest bot", Rarity.RARE, EdictKind.STEAL_GOLD, 0.10),
    Edict("mass_teleport", "Mass Teleport", "Gain 500 of each troop type", Rarity.RARE, EdictKind.TROOPS, 500),
    Edict("era_skip", "Era Skip", "Advance to next era (bypasses cooldown)", Rarity.LEGENDARY,
          EdictKind.ADVANCE_ERA, 1),
]}

# Policies are no longer drafted; saved empires may still hold them.
POLICIES: dict[str, Policy] = {p.id: p for p in [
    Policy("open_borders", "Open Borders", "Explore gains 2x land", Rarity.UNCOMMON,
           Effect(EffectKind.DOUBLE_EXPLORE, 1.0)),
    Policy("bank_charter", "Bank Charter", "Bank interest doubles", Rarity.UNCOMMON,
           Effect(EffectKind.DOUBLE_BANK_INTEREST, 1.0)),
    Policy("forced_march", "Forced March", "Can attack twice per round", Rarity.RARE,
           Effect(EffectKind.EXTRA_ATTACKS, 1)),
    Policy("war_economy", "War Economy", "Troop production during farm action", Rarity.RARE,
           Effect(EffectKind.FARM_INDUSTRY_BOOST, 0.5)),
    Policy("magical_immunity", "Magical Immunity", "Permanent shield effect", Rarity.LEGENDARY,
           Effect(EffectKind.PERMANENT_SHIELD, 1)),
]}


def advisors_by_rarity(rarity: Rarity) -> list[Advisor]:
    return [a for a in ADVISORS.values() if a.rarity is rarity]


def edicts_by_rarity(rarity: Rarity) -> list[Edict]:
    return [e for e in EDICTS.values() if e.rarity is rarity]


# ---------------------------------------------------------------------------
# Lookups over an empire's held bonuses
# ---------------------------------------------------------------------------


def iter_effects(empire) -> Iterator[Effect]:
    """All effects currently held by an empire (advisors, then policies)."""
    for advisor_id in empire.advisors:
        yield ADVISORS[advisor_id].effect
    for policy_id in empire.policies:
        policy = POLICIES.get(policy_id)
        if policy is not None:
            yield policy.effect


def effect_total(empire, kind: EffectKind, condition: Optional[str] = None) -> float:
    """Sum of modifiers of one kind. With a condition, only matching effects count."""
    total = 0.0
    for effect in iter_effects(empire):
        if effect.kind is not kind:
            continue
        if condition is not None and effect.condition != condition:
            continue
        total += effect.modifier
    return total


def effect_max(empire, kind: EffectKind) -> float:
    return max((e.modifier for e in iter_effects(empire) if e.kind is kind), default=0.0)


def has_effect(empire, kind: EffectKind) -> bool:
    return any(e.kind is kind for e in iter_effects(empire))


def effects_of(empire, kind: EffectKind) -> list[Effect]:
    return [e for e in iter_effects(empire) if e.kind is kind]


def stat_bonus(empire, stat: str) -> float:
    """Summed bonus for one race stat from every stat-bearing effect."""
    bonus = 0.0
    for effect in iter_effects(empire):
        for target, sign in stat_targets(effect.kind):
            if target == stat:
                bonus += sign * effect.modifier
    return bonus


def tech_bonus(empire, stat: str) -> float:
    for action, mapped in TECH_ACTION_TO_STAT.items():
        if mapped == stat:
            level = empire.techs.get(action.value, 0)
            return level * TECH_LEVEL_STEP / 100
    return 0.0

"""Game constants: starting empire, race/era tables, economy, combat, spells, shop."""

from __future__ import annotations

from .enums import Era, Race

# ---------------------------------------------------------------------------
# Starting empire
# ---------------------------------------------------------------------------

STARTING_LAND = 2000
STARTING_PEASANTS = 500
STARTING_HEALTH = 100
STARTING_TAX_RATE = 35
STARTING_GOLD = 50000
STARTING_FOOD = 10000
STARTING_RUNES = 500

STARTING_BUILDINGS = {
    "bldpop": 0,    # inert, kept for save compatibility
    "bldcash": 50,
    "bldtrp": 50,
    "bldcost": 25,
    "bldfood": 100,
    "bldwiz": 25,
    "blddef": 0,    # inert, kept for save compatibility
}

STARTING_TROOPS = {
    "trparm": 100,
    "trplnd": 20,
    "trpfly": 10,
    "trpsea": 5,
    "trpwiz": 10,
}

STARTING_INDUSTRY = {"trparm": 50, "trplnd": 30, "trpfly": 15, "trpsea": 5}

TOTAL_ROUNDS = 10
TURNS_PER_ROUND = 50
BOTS_PER_GAME = 4

# ---------------------------------------------------------------------------
# Race and era modifiers (percent)
# ---------------------------------------------------------------------------

RACE_STATS = (
    "offense", "defense", "building", "expenses", "magic", "industry",
    "income", "explore", "market", "foodpro", "foodcon", "runepro",
)

_RACE_TABLE = {
    #                 off  def  bld  exp  mag  ind  inc  expl mkt  fpro fcon rpro
    Race.HUMAN:      (0,   0,   0,   0,   0,   0,   0,   0,   0,   0,   0,   0),
    Race.ELF:        (-14, -2,  -10, 0,   18,  -12, 2,   12,  0,   -6,  0,   12),
    Race.DWARF:      (6,   16,  16,  -8,  -16, 12,  0,   -18, -8,  0,   0,   0),
    Race.TROLL:      (24,  -10, 8,   0,   -12, 0,   4,   14,  -12, -8,  0,   -8),
    Race.GNOME:      (-16, 10,  0,   6,   0,   -10, 10,  -12, 24,  0,   0,   -12),
    Race.GREMLIN:    (10,  -6,  0,   0,   -10, -14, -20, 0,   8,   18,  14,  0),
    Race.ORC:        (16,  0,   4,   -14, -4,  8,   0,   22,  0,   -8,  -10, -14),
    Race.DROW:       (14,  6,   -12, -10, 18,  0,   0,   -16, 0,   -6,  0,   6),
    Race.GOBLIN:     (-18, -16, 0,   18,  0,   14,  0,   0,   -6,  0,   8,   0),
}

RACE_MODIFIERS: dict[Race, dict[str, int]] = {
    race: dict(zip(RACE_STATS, values)) for race, values in _RACE_TABLE.items()
}

ERA_MODIFIERS: dict[Era, dict[str, int]] = {
    Era.PAST: {"economy": -5, "food": -5, "industry": -10, "energy": 20, "explore": 0},
    Era.PRESENT: {"economy": 0, "food": 15, "industry": 5, "energy": 0, "explore": 20},
    Era.FUTURE: {"economy": 15, "food": -5, "industry": 15, "energy": -20, "explore": 40},
}

# (offense, defense) per unit, per era
UNIT_STATS: dict[Era, dict[str, tuple[int, int]]] = {
    Era.PAST: {"trparm": (1, 2), "trplnd": (3, 2), "trpfly": (7, 5), "trpsea": (7, 6)},
    Era.PRESENT: {"trparm": (2, 1), "trplnd": (2, 6), "trpfly": (5, 3), "trpsea": (6, 8)},
    Era.FUTURE: {"trparm": (1, 2), "trplnd": (5, 2), "trpfly": (6, 3), "trpsea": (7, 7)},
}
WIZARD_POWER = 3

# ---------------------------------------------------------------------------
# Units
# ---------------------------------------------------------------------------

UNIT_PRICES = {"trparm": 500, "trplnd": 1000, "trpfly": 2000, "trpsea": 3000}
FOOD_PRICE = 30
UNIT_UPKEEP = {"trparm": 1, "trplnd": 2.5, "trpfly": 4, "trpsea": 7, "trpwiz": 0.5}

# Per-turn troop output multipliers applied to the industry allocation
TROOP_PRODUCTION_RATES = {"trparm": 1.2, "trplnd": 0.6, "trpfly": 0.3, "trpsea": 0.2}

# ---------------------------------------------------------------------------
# Economy
# ---------------------------------------------------------------------------

PCI_BASE = 25
LAND_UPKEEP = 8
CASH_BUILDING_INCOME = 500
FOOD_PER_FREELAND = 10
FOOD_PER_FARM = 85
FARM_FALLOFF = 0.75
FOOD_CONSUMPTION = {
    "peasant": 0.01,
    "trparm": 0.05,
    "trplnd": 0.03,
    "trpfly": 0.02,
    "trpsea": 0.01,
    "trpwiz": 0.25,
}
STARVATION_DESERTION = 0.03
SAVINGS_RATE = 0.04      # per round
LOAN_RATE = 0.075        # per round
LOAN_PAYMENT_DIVISOR = 200
HEALTH_REGEN_PER_TURN = 1
MIN_HEALTH_TO_ACT = 20
MAX_EXPENSE_REDUCTION = 0.5
ACTION_BONUS = 1.25

BUILDING_BASE_COST = 1500
BUILDING_LAND_MULTIPLIER = 0.05
INDUSTRY_MULT = 2.5
DEMOLISH_REFUND = 0.30
MAX_BUILD_TURNS = 50
BUILD_RATE_LAND_DIVISOR = 20

RUNES_PER_TOWER = 3
WIZARDS_PER_TOWER = 0.1

# Networth thresholds -> income divisor
SIZE_BONUS_TIERS = (
    (10_000, 1.0),
    (100_000, 1.05),
    (1_000_000, 1.10),
    (10_000_000, 1.15),
    (100_000_000, 1.25),
)
SIZE_BONUS_MAX = 1.35

# ---------------------------------------------------------------------------
# Combat
# ---------------------------------------------------------------------------

WIN_THRESHOLD = 1.05
TURNS_PER_ATTACK = 2
ATTACK_HEALTH_COST = 5
STANDARD_ATTACK_HEALTH_BONUS = 1
OFFENSIVE_SPELL_HEALTH_COST = 5

# (attacker rate, defender rate)
STANDARD_LOSS_RATES = {
    "trparm": (0.1455, 0.0805),
    "trplnd": (0.1285, 0.0730),
    "trpfly": (0.0788, 0.0675),
    "trpsea": (0.0650, 0.0555),
}
SINGLE_UNIT_LOSS_RATES = {
    "trparm": (0.1155, 0.0705),
    "trplnd": (0.0985, 0.0530),
    "trpfly": (0.0688, 0.0445),
    "trpsea": (0.0450, 0.0355),
}

# (fraction destroyed, fraction of destroyed captured)
BUILDING_CAPTURE = {
    "bldcash": (0.07, 0.70),
    "bldtrp": (0.07, 0.50),
    "bldcost": (0.07, 0.70),
    "bldfood": (0.07, 0.30),
    "bldwiz": (0.07, 0.60),
}
FREELAND_CAPTURE = 0.10

# ---------------------------------------------------------------------------
# Spells
# ---------------------------------------------------------------------------

TURNS_PER_SPELL = 2
SPELL_BASE_LAND_MULT = 0.1
SPELL_BASE_COST = 100
SPELL_BASE_WIZ_MULT = 0.2

SPELL_COSTS = {
    "shield": 4.9,
    "food": 17,
    "cash": 15,
    "runes": 12,
    "blast": 2.5,
    "steal": 25.75,
    "storm": 7.25,
    "struct": 18.0,
    "advance": 47.5,
    "regress": 20,
    "gate": 20,
    "spy": 1.0,
    "fight": 22.5,
}
SPELL_THRESHOLDS = {
    "blast": 1.15,
    "steal": 1.75,
    "storm": 1.21,
    "struct": 1.70,
    "spy": 1.0,
    "fight": 2.2,
}
STORM_DAMAGE = {"normal": (0.0912, 0.1266), "shielded": (0.0304, 0.0422)}  # (food, gold)
STRUCT_DAMAGE = {"normal": 0.03, "shielded": 0.01}
STRUCT_MIN_BUILDING_RATIO = 100
BLAST_DAMAGE = {"normal": 0.03, "shielded": 0.01}
# Steal rate is drawn in units of 1/100000 of the target's gold
STEAL_RANGE = {"normal": (10_000, 15_000), "shielded": (3_000, 5_000)}
SPELL_FAILURE_LOSS = (0.01, 0.05)

FIGHT_BUILDING_LOSS = {
    "bldcash": 0.05,
    "bldtrp": 0.07,
    "bldcost": 0.07,
    "bldfood": 0.08,
    "bldwiz": 0.07,
}
FIGHT_FREELAND_LOSS = 0.10
FIGHT_DIVISOR = 3
FIGHT_WIN_LOSSES = (0.05, 0.07)    # (caster, target) wizards lost on success
FIGHT_FAIL_LOSSES = (0.08, 0.04)   # (caster, target) wizards lost on failure

# ---------------------------------------------------------------------------
# Shop
# ---------------------------------------------------------------------------

ADVISOR_OPTIONS = (1, 2)
OTHER_OPTIONS = (2, 3)
MAX_ADVISORS = 3
REROLL_COST_PERCENT = 0.20
MAX_REROLLS = 2
RARITY_WEIGHTS = {"common": 60, "uncommon": 25, "rare": 12, "legendary": 3}
TECH_CHANCE = 50

BASE_MARKET_PRICES = {
    "food_buy": 20,
    "food_sell": 15,
    "troop_buy_mult": 0.7,
    "troop_sell_mult": 0.5,
    "rune_buy": 150,
    "rune_sell": 120,
}
PRICE_FLUCTUATION = 0.2
STOCK_NETWORTH_FRACTION = 0.05
SHOP_TROOP_SELL_LIMIT = 0.5

# Phase seed offsets
SHOP_SEED_STRIDE = 1000
DRAFT_SEED_OFFSET = 500

# ---------------------------------------------------------------------------
# Networth
# ---------------------------------------------------------------------------

NETWORTH_TROOP_VALUES = {"trparm": 1, "trplnd": 2, "trpfly": 4, "trpsea": 6, "trpwiz": 2}
NETWORTH_PEASANT = 3
NETWORTH_LAND = 500
NETWORTH_FREELAND = 100
NETWORTH_CASH_DIVISOR = 5 * UNIT_PRICES["trparm"]
NETWORTH_FOOD_MULT = FOOD_PRICE / UNIT_PRICES["trparm"]

# ---------------------------------------------------------------------------
# Bank
# ---------------------------------------------------------------------------

MAX_LOAN_NETWORTH_MULT = 50
MAX_SAVINGS_NETWORTH_MULT = 100
LOAN_EMERGENCY_MULT = 2

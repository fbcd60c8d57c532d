"""Enumerations for the empire simulator."""

from __future__ import annotations
from enum import Enum


class Race(str, Enum):
    HUMAN = "human"
    ELF = "elf"
    DWARF = "dwarf"
    TROLL = "troll"
    GNOME = "gnome"
    GREMLIN = "gremlin"
    ORC = "orc"
    DROW = "drow"
    GOBLIN = "goblin"


class Era(str, Enum):
    PAST = "past"
    PRESENT = "present"
    FUTURE = "future"

    @property
    def next(self) -> Era | None:
        order = list(Era)
        idx = order.index(self)
        return order[idx + 1] if idx + 1 < len(order) else None

    @property
    def previous(self) -> Era | None:
        order = list(Era)
        idx = order.index(self)
        return order[idx - 1] if idx > 0 else None


class Phase(str, Enum):
    PLAYER = "player"
    SHOP = "shop"
    BOT = "bot"
    COMPLETE = "complete"


class TurnAction(str, Enum):
    EXPLORE = "explore"
    FARM = "farm"
    CASH = "cash"
    MEDITATE = "meditate"
    INDUSTRY = "industry"
    BUILD = "build"
    DEMOLISH = "demolish"
    ATTACK = "attack"
    SPELL = "spell"


class Spell(str, Enum):
    SHIELD = "shield"
    FOOD = "food"
    CASH = "cash"
    RUNES = "runes"
    BLAST = "blast"
    STEAL = "steal"
    STORM = "storm"
    STRUCT = "struct"
    ADVANCE = "advance"
    REGRESS = "regress"
    GATE = "gate"
    SPY = "spy"
    FIGHT = "fight"

    @property
    def is_self(self) -> bool:
        return self in SELF_SPELLS


SELF_SPELLS = frozenset({
    Spell.SHIELD, Spell.FOOD, Spell.CASH, Spell.RUNES,
    Spell.ADVANCE, Spell.REGRESS, Spell.GATE,
})


class AttackType(str, Enum):
    STANDARD = "standard"
    TRPARM = "trparm"
    TRPLND = "trplnd"
    TRPFLY = "trpfly"
    TRPSEA = "trpsea"

    @property
    def is_single_unit(self) -> bool:
        return self is not AttackType.STANDARD


class Rarity(str, Enum):
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    LEGENDARY = "legendary"


class BonusType(str, Enum):
    ADVISOR = "advisor"
    TECH = "tech"
    EDICT = "edict"
    POLICY = "policy"


class BankOperation(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    TAKE_LOAN = "take_loan"
    PAY_LOAN = "pay_loan"


class TradeSide(str, Enum):
    BUY = "buy"
    SELL = "sell"


class MarketResource(str, Enum):
    FOOD = "food"
    TROOPS = "troops"
    RUNES = "runes"


class StopReason(str, Enum):
    FOOD = "food"
    LOAN = "loan"


class BotArchetype(str, Enum):
    GENERAL_VASK = "general_vask"
    GRAIN_MOTHER = "grain_mother"
    ARCHON_NYX = "archon_nyx"
    IRON_BARON = "iron_baron"
    THE_LOCUST = "the_locust"
    SHADOW_MERCHANT = "shadow_merchant"
    THE_FORTRESS = "the_fortress"


class BotMood(str, Enum):
    """Coarse behavioral state of an opponent, re-evaluated every round."""
    DEVELOPING = "developing"
    MILITARIZING = "militarizing"
    AGGRESSIVE = "aggressive"
    DEFENSIVE = "defensive"
    RETALIATING = "retaliating"


class Outcome(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    DEFEAT = "defeat"


# Building and troop kinds are plain field names on the empire bundles.
BUILDING_KINDS = ("bldcash", "bldtrp", "bldcost", "bldfood", "bldwiz")
INERT_BUILDING_KINDS = ("bldpop", "blddef")
ALL_BUILDING_KINDS = ("bldpop",) + BUILDING_KINDS + ("blddef",)
MILITARY_UNITS = ("trparm", "trplnd", "trpfly", "trpsea")
TROOP_KINDS = MILITARY_UNITS + ("trpwiz",)

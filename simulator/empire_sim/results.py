"""Structured results returned by every game operation.

Operations never raise on gameplay failures; they return one of these with
``success=False`` and a human-readable ``error``.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Optional


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


class _Result:
    def to_dict(self) -> dict:
        return _plain(asdict(self))


@dataclass
class CombatResult(_Result):
    won: bool
    attack_type: str
    offense_power: int
    defense_power: int
    attacker_losses: dict[str, int] = field(default_factory=dict)
    defender_losses: dict[str, int] = field(default_factory=dict)
    land_gained: int = 0
    buildings_destroyed: dict[str, int] = field(default_factory=dict)
    buildings_gained: dict[str, int] = field(default_factory=dict)
    troops_salvaged: dict[str, int] = field(default_factory=dict)
    toll_paid: int = 0
    defender_eliminated: bool = False


@dataclass
class SpellResult(_Result):
    success: bool
    spell: str
    error: Optional[str] = None
    runes_spent: int = 0
    wizards_lost: int = 0
    target_wizards_lost: int = 0
    gold_gained: int = 0
    food_gained: int = 0
    runes_gained: int = 0
    troops_destroyed: dict[str, int] = field(default_factory=dict)
    buildings_destroyed: dict[str, int] = field(default_factory=dict)
    gold_destroyed: int = 0
    food_destroyed: int = 0
    land_gained: int = 0
    shield_active: bool = False
    gate_active: bool = False
    new_era: Optional[str] = None
    intel: Optional[dict] = None
    casts: int = 1


@dataclass
class TurnResult(_Result):
    success: bool
    turns_spent: int = 0
    turns_remaining: int = 0
    error: Optional[str] = None
    income: int = 0
    expenses: int = 0
    food_production: int = 0
    food_consumption: int = 0
    rune_change: int = 0
    troops_produced: dict[str, int] = field(default_factory=dict)
    loan_payment: int = 0
    bank_interest: int = 0
    loan_interest: int = 0
    land_gained: int = 0
    buildings_constructed: dict[str, int] = field(default_factory=dict)
    stopped_early: Optional[str] = None
    combat: Optional[CombatResult] = None
    spell: Optional[SpellResult] = None


def failed_turn(error: str) -> TurnResult:
    return TurnResult(success=False, error=error)


@dataclass
class AttackPreview(_Result):
    offense_power: int
    defense_power: int
    win_chance: float
    estimated_land: int
    can_attack: bool
    reason: Optional[str] = None


@dataclass
class BankResult(_Result):
    success: bool
    operation: str
    amount: int
    new_bank_balance: int
    new_loan_balance: int
    new_gold_balance: int
    error: Optional[str] = None


@dataclass
class MarketResult(_Result):
    success: bool
    side: str
    resource: str
    amount: int
    cost: int = 0
    troop_type: Optional[str] = None
    error: Optional[str] = None


@dataclass
class DraftResult(_Result):
    success: bool
    option: Optional[dict] = None
    error: Optional[str] = None
    details: Optional[str] = None


@dataclass
class NewsItem(_Result):
    round: int
    actor: str
    actor_id: str
    target: str
    target_id: str
    action: dict


@dataclass
class StandingEntry(_Result):
    id: str
    name: str
    networth: int
    networth_change: int
    is_bot: bool
    is_eliminated: bool


@dataclass
class BotPhaseResult(_Result):
    news: list[NewsItem] = field(default_factory=list)
    standings: list[StandingEntry] = field(default_factory=list)
    failed_bots: list[str] = field(default_factory=list)
    success: bool = True
    error: Optional[str] = None


@dataclass
class PhaseResult(_Result):
    success: bool
    phase: str
    round: int
    error: Optional[str] = None


@dataclass
class RerollResult(_Result):
    success: bool
    cost: int = 0
    rerolls_used: int = 0
    options: list[dict] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class SettingsResult(_Result):
    success: bool
    tax_rate: int = 0
    industry: dict[str, int] = field(default_factory=dict)
    error: Optional[str] = None

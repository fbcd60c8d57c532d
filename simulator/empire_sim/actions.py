"""Player turn requests for the empire simulator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .enums import AttackType, Spell, TurnAction


@dataclass(frozen=True)
class TurnRequest:
    """One player-phase action.

    ``turns`` is the turn count for economic actions and the number of casts
    for self spells. Attacks and enemy spells always take their fixed cost.
    """
    action: TurnAction
    turns: int = 1
    target_id: Optional[str] = None
    spell: Optional[Spell] = None
    attack_type: AttackType = AttackType.STANDARD
    allocation: Optional[dict] = None

    def __post_init__(self):
        # Normalize strings coming from JSON; unknown names raise ValueError
        object.__setattr__(self, "action", TurnAction(self.action))
        object.__setattr__(self, "attack_type", AttackType(self.attack_type))
        if self.spell is not None:
            object.__setattr__(self, "spell", Spell(self.spell))
        if isinstance(self.turns, bool) or not isinstance(self.turns, int):
            raise ValueError(f"turns must be an integer, got {self.turns!r}")

    @classmethod
    def from_dict(cls, d: dict) -> TurnRequest:
        return cls(
            action=d["action"],
            turns=d.get("turns", 1),
            target_id=d.get("target_id"),
            spell=d.get("spell"),
            attack_type=d.get("attack_type") or AttackType.STANDARD,
            allocation=d.get("allocation"),
        )


def explore(turns: int) -> TurnRequest:
    return TurnRequest(TurnAction.EXPLORE, turns)


def build(allocation: dict[str, int]) -> TurnRequest:
    return TurnRequest(TurnAction.BUILD, allocation=dict(allocation))


def attack(target_id: str, attack_type: AttackType = AttackType.STANDARD) -> TurnRequest:
    return TurnRequest(TurnAction.ATTACK, target_id=target_id, attack_type=attack_type)


def cast(spell: Spell, target_id: Optional[str] = None, casts: int = 1) -> TurnRequest:
    return TurnRequest(TurnAction.SPELL, casts, target_id=target_id, spell=spell)

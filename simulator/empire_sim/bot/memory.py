"""Bot memory — grudges, combat intelligence and reconnaissance snapshots.

Memory persists for the whole run. Grudge counters drive retaliation in target
scoring; combat intel and spy intel drive the choice of attack sub-type.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Optional

SPY_INTEL_MAX_AGE = 2


@dataclass
class CombatIntel:
    """What an attacker learned from its last fight with one target."""
    last_defender_losses: dict[str, int] = field(default_factory=dict)
    last_attack_won: bool = False
    last_attack_type: str = "standard"
    round: int = 0
    failed_attacks: int = 0
    successful_attacks: int = 0


@dataclass
class SpyIntel:
    """Snapshot of a target's visible state captured by a spy spell."""
    target_id: str
    target_name: str
    round: int
    expires_round: int
    era: str
    race: str
    land: int
    networth: int
    peasants: int
    health: int
    tax_rate: int
    gold: int
    food: int
    runes: int
    troops: dict[str, int] = field(default_factory=dict)

    def is_fresh(self, current_round: int) -> bool:
        return current_round <= self.expires_round


@dataclass
class BotMemory:
    attacks_received: dict[str, int] = field(default_factory=dict)
    spells_received: dict[str, int] = field(default_factory=dict)
    land_lost_to: dict[str, int] = field(default_factory=dict)
    last_attacked_by: Optional[str] = None
    last_attacked_round: Optional[int] = None
    combat_intel: dict[str, CombatIntel] = field(default_factory=dict)
    spy_intel: dict[str, SpyIntel] = field(default_factory=dict)

    # --- Updates ---

    def record_attack_received(self, attacker_id: str, land_lost: int, current_round: int) -> None:
        self.attacks_received[attacker_id] = self.attacks_received.get(attacker_id, 0) + 1
        self.land_lost_to[attacker_id] = self.land_lost_to.get(attacker_id, 0) + land_lost
        self.last_attacked_by = attacker_id
        self.last_attacked_round = current_round

    def record_spell_received(self, caster_id: str, current_round: int) -> None:
        self.spells_received[caster_id] = self.spells_received.get(caster_id, 0) + 1
        self.last_attacked_by = caster_id
        self.last_attacked_round = current_round

    def record_combat_intel(self, target_id: str, won: bool, defender_losses: dict[str, int],
                            attack_type: str, current_round: int) -> CombatIntel:
        existing = self.combat_intel.get(target_id)
        intel = CombatIntel(
            last_defender_losses=dict(defender_losses),
            last_attack_won=won,
            last_attack_type=attack_type,
            round=current_round,
            failed_attacks=(existing.failed_attacks if existing else 0) + (0 if won else 1),
            successful_attacks=(existing.successful_attacks if existing else 0) + (1 if won else 0),
        )
        self.combat_intel[target_id] = intel
        return intel

    def record_spy_intel(self, intel: SpyIntel) -> None:
        self.spy_intel[intel.target_id] = intel

    # --- Queries ---

    def get_spy_intel(self, target_id: str, current_round: int) -> Optional[SpyIntel]:
        intel = self.spy_intel.get(target_id)
        if intel is None or not intel.is_fresh(current_round):
            return None
        return intel

    def get_combat_intel(self, target_id: str) -> Optional[CombatIntel]:
        return self.combat_intel.get(target_id)

    def grudge(self, target_id: str) -> int:
        attacks = self.attacks_received.get(target_id, 0)
        spells = self.spells_received.get(target_id, 0)
        land = self.land_lost_to.get(target_id, 0)
        return attacks * 10 + spells * 5 + land // 100

    def top_grudge(self) -> Optional[tuple[str, int]]:
        top = None
        for target_id in list(self.attacks_received) + list(self.spells_received):
            level = self.grudge(target_id)
            if top is None or level > top[1]:
                top = (target_id, level)
        return top

    # --- Serialization ---

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> BotMemory:
        return cls(
            attacks_received=dict(d.get("attacks_received", {})),
            spells_received=dict(d.get("spells_received", {})),
            land_lost_to=dict(d.get("land_lost_to", {})),
            last_attacked_by=d.get("last_attacked_by"),
            last_attacked_round=d.get("last_attacked_round"),
            combat_intel={k: CombatIntel(**v) for k, v in d.get("combat_intel", {}).items()},
            spy_intel={k: SpyIntel(**v) for k, v in d.get("spy_intel", {}).items()},
        )

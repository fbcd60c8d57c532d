"""Attack sub-type selection from the best intelligence a bot holds.

Intel tiers, best first:
- perfect: a spy report captured this round
- recon: an older spy report that has not expired
- combat: defender losses remembered from the last fight with the target
- own: nothing about the target, so the bot leans on its own strongest line

Better intel means a higher chance of exploiting it with a single-unit attack.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from ..constants import UNIT_STATS
from ..empire import BotEmpire, Empire
from ..enums import MILITARY_UNITS, AttackType
from ..rng import Rng


class IntelTier(str, Enum):
    PERFECT = "perfect"
    RECON = "recon"
    COMBAT = "combat"
    OWN = "own"


EXPLOIT_CHANCE = {
    IntelTier.PERFECT: 0.9,
    IntelTier.RECON: 0.75,
    IntelTier.COMBAT: 0.5,
    IntelTier.OWN: 0.3,
}


def gather_intel(bot: BotEmpire, target: Empire, current_round: int) -> tuple[IntelTier, Optional[dict]]:
    """Best available view of the target's troop lines, and how good it is."""
    spy = bot.memory.get_spy_intel(target.id, current_round)
    if spy is not None:
        tier = IntelTier.PERFECT if spy.round == current_round else IntelTier.RECON
        return tier, dict(spy.troops)
    combat = bot.memory.get_combat_intel(target.id)
    if combat is not None and combat.last_defender_losses:
        # Losses scale with line size, so they stand in for composition
        return IntelTier.COMBAT, dict(combat.last_defender_losses)
    return IntelTier.OWN, None


def best_single_unit(bot: BotEmpire, target: Empire, target_troops: Optional[dict]) -> Optional[str]:
    """Unit line with the best own-offense to target-defense ratio."""
    ours = UNIT_STATS[bot.era]
    theirs = UNIT_STATS[target.era]
    best, best_score = None, 0.0
    for kind in MILITARY_UNITS:
        offense = bot.troops.get(kind) * ours[kind][0]
        if offense <= 0:
            continue
        if target_troops is None:
            score = offense
        else:
            score = offense / max(target_troops.get(kind, 0) * theirs[kind][1], 1)
        if score > best_score:
            best, best_score = kind, score
    return best


def choose_attack_type(bot: BotEmpire, target: Empire, current_round: int, rng: Rng) -> AttackType:
    """Draws exactly one roll from the cursor whatever the outcome."""
    tier, troops = gather_intel(bot, target, current_round)
    roll = rng.random()
    unit = best_single_unit(bot, target, troops)
    if unit is None or roll >= EXPLOIT_CHANCE[tier]:
        return AttackType.STANDARD
    return AttackType(unit)

"""Target scoring for bot attacks and spells.

Scores combine era compatibility, grudges, relative weakness, wealth, a
fixed bias towards the player and retaliation against the last attacker.
A score of zero means "not a valid target".
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional, Sequence

from ..bonuses import EffectKind, has_effect
from ..combat import defense_power, offense_power
from ..empire import BotEmpire, Empire, can_attack_era
from ..enums import BotArchetype
from ..rng import Rng

PLAYER_BIAS = 15
GRUDGE_PER_ATTACK = 20
GRUDGE_PER_SPELL = 15
SAME_ERA_BIAS = 10
WEAK_TARGET_BONUS = 30
WEAK_TARGET_RATIO = 1.5
WEALTH_FACTOR = 5
MIN_POWER_RATIO = 0.8
RETALIATION_BONUS = 25
EXPANSIONIST_BONUS = 15
BEST_TARGET_CHANCE = 70

_WEALTH_HUNTERS = (BotArchetype.SHADOW_MERCHANT, BotArchetype.THE_LOCUST)


@dataclass
class TargetScore:
    target: Empire
    score: float
    reasons: list[str] = field(default_factory=list)


def candidates(bot: BotEmpire, player: Empire, bots: Sequence[BotEmpire]) -> list[Empire]:
    """The player and every other living bot."""
    found: list[Empire] = [player] if not player.is_eliminated else []
    found.extend(b for b in bots if b.id != bot.id and not b.is_eliminated)
    return found


def score_target(bot: BotEmpire, target: Empire, bot_offense: int, current_round: int) -> TargetScore:
    ratio = bot_offense / (defense_power(target) + 1)
    if ratio < MIN_POWER_RATIO:
        return TargetScore(target, 0, ["too strong"])
    if not can_attack_era(bot, target, current_round):
        return TargetScore(target, 0, ["wrong era"])

    result = TargetScore(target, 0)
    if bot.era is target.era:
        result.score += SAME_ERA_BIAS
        result.reasons.append("same era")
    attacks = bot.memory.attacks_received.get(target.id, 0)
    if attacks:
        result.score += attacks * GRUDGE_PER_ATTACK
        result.reasons.append(f"grudge ({attacks} attacks)")
    spells = bot.memory.spells_received.get(target.id, 0)
    if spells:
        result.score += spells * GRUDGE_PER_SPELL
        result.reasons.append(f"spell grudge ({spells})")
    if ratio > WEAK_TARGET_RATIO:
        result.score += WEAK_TARGET_BONUS
        result.reasons.append("weak")
    if bot.archetype in _WEALTH_HUNTERS:
        result.score += math.log10(max(target.resources.gold, 1)) * WEALTH_FACTOR
        result.reasons.append("wealthy")
    if not target.is_bot:
        result.score += PLAYER_BIAS
        result.reasons.append("player")
    if has_effect(target, EffectKind.EXPANSIONIST):
        result.score += EXPANSIONIST_BONUS
        result.reasons.append("expansionist")
    if bot.memory.last_attacked_by == target.id:
        result.score += RETALIATION_BONUS
        result.reasons.append("retaliation")
    return result


def score_targets(bot: BotEmpire, player: Empire, bots: Sequence[BotEmpire],
                  current_round: int) -> list[TargetScore]:
    """Every candidate, best first. Ties keep candidate order."""
    offense = offense_power(bot)
    scores = [score_target(bot, t, offense, current_round) for t in candidates(bot, player, bots)]
    return sorted(scores, key=lambda s: -s.score)


def select_attack_target(bot: BotEmpire, player: Empire, bots: Sequence[BotEmpire],
                         current_round: int, rng: Rng) -> Optional[Empire]:
    """Usually the best-scored target, otherwise one of the top three."""
    valid = [s for s in score_targets(bot, player, bots, current_round) if s.score > 0]
    if not valid:
        return None
    roll = rng.advance()
    if roll % 100 < BEST_TARGET_CHANCE or len(valid) == 1:
        return valid[0].target
    top = valid[:3]
    return top[roll % len(top)].target


def select_spell_target(bot: BotEmpire, player: Empire, bots: Sequence[BotEmpire],
                        rng: Rng) -> Optional[Empire]:
    pool = candidates(bot, player, bots)
    if not pool:
        return None
    scored = []
    for target in pool:
        score = 10
        score += (bot.memory.attacks_received.get(target.id, 0)
                  + bot.memory.spells_received.get(target.id, 0)) * 10
        if not target.is_bot:
            score += PLAYER_BIAS
        if bot.memory.last_attacked_by == target.id:
            score += 20
        scored.append((score, target))
    scored.sort(key=lambda pair: -pair[0])
    top = scored[:2]
    return top[rng.advance() % len(top)][1]

"""Seeded bot generation: archetype pick, race, industry allocation."""

from __future__ import annotations

import logging

from ..constants import BOTS_PER_GAME
from ..empire import BotEmpire, create_empire
from ..enums import MILITARY_UNITS, BotArchetype, Race
from ..rng import advance, round_half_up
from .strategies import ARCHETYPE_ORDER, get_strategy

logger = logging.getLogger(__name__)

INDUSTRY_VARIATION = 15
RACE_SEED_OFFSET = 1000
INDUSTRY_SEED_OFFSET = 2000
INDUSTRY_SEED_STRIDE = 100


def select_archetypes(count: int, seed: int) -> list[BotArchetype]:
    """Fisher-Yates shuffle of every archetype, take the first ``count``."""
    pool = list(ARCHETYPE_ORDER)
    state = seed
    for i in range(len(pool) - 1, 0, -1):
        state = advance(state)
        j = state % (i + 1)
        pool[i], pool[j] = pool[j], pool[i]
    return pool[:count]


def generate_industry_allocation(archetype: BotArchetype, seed: int) -> dict[str, int]:
    """Archetype preference with +/-15 points of seeded noise, renormalized to 100."""
    base = get_strategy(archetype).industry_preference
    state = seed
    varied = {}
    for kind in MILITARY_UNITS:
        state = advance(state)
        variation = state % (INDUSTRY_VARIATION * 2 + 1) - INDUSTRY_VARIATION
        varied[kind] = max(0, min(100, base[kind] + variation))

    total = sum(varied.values())
    if total == 0:
        return {"trparm": 100, "trplnd": 0, "trpfly": 0, "trpsea": 0}
    normalized = {kind: round_half_up(value * 100 / total) for kind, value in varied.items()}
    diff = 100 - sum(normalized.values())
    if diff:
        largest = max(MILITARY_UNITS, key=lambda k: normalized[k])
        normalized[largest] += diff
    return normalized


def create_bot_empire(bot_id: str, archetype: BotArchetype, race: Race,
                      industry: dict[str, int] | None = None) -> BotEmpire:
    strategy = get_strategy(archetype)
    bot = create_empire(bot_id, strategy.name, race, strategy.preferred_era, cls=BotEmpire,
                        archetype=strategy.archetype)
    bot.innate = dict(strategy.innate)
    if industry is not None:
        for kind, share in industry.items():
            bot.industry.set(kind, share)
    return bot


def generate_bots(seed: int, count: int = BOTS_PER_GAME) -> list[BotEmpire]:
    bots = []
    state = seed + RACE_SEED_OFFSET
    for i, archetype in enumerate(select_archetypes(count, seed)):
        state = advance(state)
        races = get_strategy(archetype).preferred_races
        race = races[state % len(races)]
        industry = generate_industry_allocation(archetype, seed + INDUSTRY_SEED_OFFSET + i * INDUSTRY_SEED_STRIDE)
        bots.append(create_bot_empire(f"bot_{i}_{archetype.value}", archetype, race, industry))
    logger.debug("Generated bots for seed %d: %s", seed, [b.id for b in bots])
    return bots

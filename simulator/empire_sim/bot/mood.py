"""Bot mood, re-evaluated at the start of each bot's turn."""

from __future__ import annotations

from typing import Sequence

from ..combat import defense_power, offense_power
from ..empire import BotEmpire, Empire
from ..enums import BotMood
from .strategies import get_strategy

DEVELOPING_ROUNDS = 3
AGGRESSIVE_POWER_RATIO = 1.2
DEFENSIVE_POWER_RATIO = 0.7


def recently_attacked(bot: BotEmpire, current_round: int) -> bool:
    last = bot.memory.last_attacked_round
    return last is not None and current_round - last <= 1


def determine_mood(bot: BotEmpire, rivals: Sequence[Empire], current_round: int) -> BotMood:
    strategy = get_strategy(bot.archetype)
    if recently_attacked(bot, current_round) and strategy.aggression_threshold < 1.3:
        return BotMood.RETALIATING

    powers = [offense_power(e) for e in rivals]
    if powers and defense_power(bot) < max(powers) * DEFENSIVE_POWER_RATIO and strategy.defense_focus > 0.4:
        return BotMood.DEFENSIVE
    average = sum(powers) / len(powers) if powers else 0
    if offense_power(bot) > average * AGGRESSIVE_POWER_RATIO and strategy.aggression_threshold < 1.5:
        return BotMood.AGGRESSIVE
    if current_round <= DEVELOPING_ROUNDS:
        return BotMood.DEVELOPING
    return BotMood.MILITARIZING

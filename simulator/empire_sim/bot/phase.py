"""Bot phase — every living bot plays one full round through a shared pipeline.

Pipeline per bot, in order:
    1. mood        re-evaluate the bot's coarse behavioral state
    2. era         no-op; bots stay in their preferred era and reach others via cross-era
    3. land        recon spy, then explore and attack in strategy order, then offensive spells
    4. build       fill building-ratio deficits, capped by treasury
    5. production  spend the remaining turns in chunks on the strategy's priority action
    6. triage      market trades for food, upkeep and surplus gold
    7. defense     recast the shield when the strategy or mood calls for it

Bots run in a seeded shuffled order. Each bot draws from its own child cursor
split off the phase cursor, so a fault in one bot never shifts another bot's
random draws.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from ..combat import defense_power, offense_power, process_attack
from ..constants import TURNS_PER_ATTACK, TURNS_PER_ROUND, TURNS_PER_SPELL
from ..economy import build_rate, build_turns_needed, execute_turn_action, process_build
from ..empire import BotEmpire, Empire, has_active_shield, is_protected, refresh_networth
from ..enums import BUILDING_KINDS, BotMood, Spell, TurnAction
from ..results import BotPhaseResult, NewsItem, StandingEntry, TurnResult
from ..rng import Rng
from ..shop import MarketPrices
from ..spells import cast_enemy_spell, cast_self_spell, can_cast, spell_cost
from .mood import determine_mood
from .strategies import (
    Strategy, buildings_to_build, explore_turns, get_strategy, next_turn_action, should_attack,
)
from .tactics import choose_attack_type
from .targeting import score_targets, select_attack_target, select_spell_target
from .triage import run_triage

logger = logging.getLogger(__name__)

MIN_WIZARDS_FOR_SPELLS = 10
MIN_RUNES_FOR_SPELLS = 200
MAX_OFFENSIVE_SPELLS = 3
MIN_WIZARDS_FOR_SHIELD = 3
PRODUCTION_CHUNK = 10
AGGRESSIVE_SPENDING_BONUS = 0.05


@dataclass
class RoundCounters:
    """Counters shared by every bot during one bot phase."""
    max_attacks_on_player: int
    attacks_on_player: int = 0

    def player_cap_reached(self) -> bool:
        return self.attacks_on_player >= self.max_attacks_on_player


@dataclass
class BotTurn:
    bot: BotEmpire
    player: Empire
    bots: Sequence[BotEmpire]
    strategy: Strategy
    current_round: int
    rng: Rng
    prices: MarketPrices
    counters: RoundCounters
    news: list[NewsItem] = field(default_factory=list)
    turns_remaining: int = TURNS_PER_ROUND

    def spend(self, result: TurnResult) -> TurnResult:
        self.turns_remaining = max(0, self.turns_remaining - result.turns_spent)
        return result

    def rivals(self) -> list[Empire]:
        found = [self.player] if not self.player.is_eliminated else []
        return found + [b for b in self.bots if b.id != self.bot.id and not b.is_eliminated]

    def off_limits(self, target: Empire) -> bool:
        """The player is untouchable while protected."""
        return not target.is_bot and is_protected(target, self.current_round)

    def report(self, target: Empire, action: dict) -> None:
        self.news.append(NewsItem(self.current_round, self.bot.name, self.bot.id,
                                  target.name, target.id, action))


# ---------------------------------------------------------------------------
# Phases
# ---------------------------------------------------------------------------

def mood_phase(turn: BotTurn) -> None:
    turn.bot.mood = determine_mood(turn.bot, turn.rivals(), turn.current_round)


def era_phase(turn: BotTurn) -> None:
    return None


def recon_phase(turn: BotTurn) -> None:
    """Spy on the most attractive target when no fresh report exists."""
    bot, current_round = turn.bot, turn.current_round
    if current_round == 1 or current_round < turn.strategy.attack_start_round:
        return
    if bot.troops.trpwiz < MIN_WIZARDS_FOR_SPELLS or turn.turns_remaining < TURNS_PER_SPELL:
        return
    valid = [s for s in score_targets(bot, turn.player, turn.bots, current_round) if s.score > 0]
    if not valid:
        return
    target = valid[0].target
    if turn.off_limits(target) or bot.memory.get_spy_intel(target.id, current_round) is not None:
        return
    if not can_cast(bot, Spell.SPY, turn.turns_remaining, current_round):
        return
    turn.spend(cast_enemy_spell(bot, target, Spell.SPY, turn.turns_remaining, turn.rng, current_round))


def explore_phase(turn: BotTurn) -> None:
    turns = min(explore_turns(turn.strategy, turn.rng.state), turn.turns_remaining)
    if turns <= 0:
        return
    turn.spend(execute_turn_action(turn.bot, TurnAction.EXPLORE, turns))
    turn.rng.advance()


def attack_phase(turn: BotTurn) -> None:
    bot, current_round = turn.bot, turn.current_round
    if current_round == 1:
        return
    while turn.turns_remaining >= TURNS_PER_ATTACK:
        target = select_attack_target(bot, turn.player, turn.bots, current_round, turn.rng)
        if target is None:
            break
        ratio = offense_power(bot) / (defense_power(target) + 1)
        if not should_attack(turn.strategy, current_round, bot.health, ratio, bot.attacks_this_round):
            break
        if not target.is_bot and (turn.counters.player_cap_reached() or turn.off_limits(target)):
            break

        attack_type = choose_attack_type(bot, target, current_round, turn.rng)
        result = turn.spend(process_attack(bot, target, turn.turns_remaining, turn.rng,
                                           attack_type, current_round))
        if not result.success or result.combat is None:
            break
        combat = result.combat
        bot.memory.record_combat_intel(target.id, combat.won, combat.defender_losses,
                                       attack_type.value, current_round)
        bot.last_target_id = target.id
        if target.is_bot:
            target.memory.record_attack_received(bot.id, combat.land_gained if combat.won else 0,
                                                 current_round)
        else:
            turn.counters.attacks_on_player += 1
        turn.report(target, {
            "type": "attack",
            "attack_type": attack_type.value,
            "success": combat.won,
            "land_taken": combat.land_gained if combat.won else 0,
        })
        if combat.defender_eliminated:
            turn.report(target, {"type": "eliminated", "eliminated_by": bot.name})
            break


def _pick_offensive_spell(turn: BotTurn) -> Optional[Spell]:
    bot = turn.bot
    affordable = [s for s in turn.strategy.offensive_spells if bot.resources.runes >= spell_cost(bot, s)]
    roll = turn.rng.advance()
    if not affordable:
        return None
    if Spell.FIGHT in affordable and roll % 2 == 0:
        return Spell.FIGHT
    return affordable[roll % len(affordable)]


def offensive_spell_phase(turn: BotTurn) -> None:
    bot, strategy, current_round = turn.bot, turn.strategy, turn.current_round
    if current_round == 1 or not strategy.use_offensive_spells or not strategy.offensive_spells:
        return
    if bot.troops.trpwiz < MIN_WIZARDS_FOR_SPELLS or bot.resources.runes < MIN_RUNES_FOR_SPELLS:
        return
    while (bot.spells_this_round < MAX_OFFENSIVE_SPELLS
           and turn.turns_remaining >= TURNS_PER_SPELL
           and bot.health >= strategy.attack_health_threshold
           and bot.troops.trpwiz >= MIN_WIZARDS_FOR_SPELLS):
        spell = _pick_offensive_spell(turn)
        if spell is None:
            break
        target = select_spell_target(bot, turn.player, turn.bots, turn.rng)
        if target is None or turn.off_limits(target):
            break
        result = turn.spend(cast_enemy_spell(bot, target, spell, turn.turns_remaining, turn.rng,
                                             current_round))
        if not result.success:
            break
        turn.report(target, {"type": "spell", "spell": spell.value, "success": True})
        if target.is_eliminated:
            turn.report(target, {"type": "eliminated", "eliminated_by": bot.name})
            break


def land_phase(turn: BotTurn) -> None:
    recon_phase(turn)
    if turn.strategy.explore_before_attack:
        explore_phase(turn)
        attack_phase(turn)
    else:
        attack_phase(turn)
        explore_phase(turn)
    offensive_spell_phase(turn)


def build_phase(turn: BotTurn) -> None:
    bot = turn.bot
    if bot.resources.freeland <= 0 or turn.turns_remaining <= 0:
        return
    current = {kind: bot.buildings.get(kind) for kind in BUILDING_KINDS}
    plan = buildings_to_build(turn.strategy, bot.resources.land, bot.resources.freeland, current)
    total = sum(plan.values())
    if total <= 0:
        return
    estimate = total * 500
    if bot.resources.gold < estimate:
        scale = max(0, bot.resources.gold) / estimate
        plan = {kind: int(count * scale) for kind, count in plan.items()}
    # Never plan more than the remaining turns can build
    capacity = build_rate(bot) * turn.turns_remaining
    total = sum(plan.values())
    if total > capacity:
        plan = {kind: count * capacity // total for kind, count in plan.items()}
    plan = {kind: count for kind, count in plan.items() if count > 0}
    if not plan or build_turns_needed(bot, sum(plan.values())) > turn.turns_remaining:
        return
    result = turn.spend(process_build(bot, plan))
    if not result.success:
        logger.debug("%s build skipped: %s", bot.id, result.error)
    turn.rng.advance()


def production_phase(turn: BotTurn) -> None:
    bot, strategy = turn.bot, turn.strategy
    while turn.turns_remaining > 0:
        action = next_turn_action(strategy, bot.resources.gold, bot.resources.food, bot.resources.runes,
                                  bot.peasants, bot.troops.trpwiz)
        chunk = min(PRODUCTION_CHUNK, turn.turns_remaining)
        if action is TurnAction.MEDITATE and chunk < 2:
            action = next((a for a in strategy.turn_priority if a is not TurnAction.MEDITATE),
                          TurnAction.CASH)
        result = execute_turn_action(bot, action, chunk)
        turn.turns_remaining -= chunk
        turn.rng.advance()
        if result.stopped_early is not None:
            logger.debug("%s production halted: %s emergency", bot.id, result.stopped_early)
            break


def triage_phase(turn: BotTurn) -> None:
    bonus = AGGRESSIVE_SPENDING_BONUS if turn.bot.mood is BotMood.AGGRESSIVE else 0.0
    run_triage(turn.bot, turn.strategy, turn.prices, turn.current_round, bonus)


def defense_phase(turn: BotTurn) -> None:
    bot = turn.bot
    wants_shield = turn.strategy.maintain_shield or bot.mood is BotMood.DEFENSIVE
    if not wants_shield or has_active_shield(bot, turn.current_round):
        return
    if bot.resources.runes < spell_cost(bot, Spell.SHIELD) or bot.troops.trpwiz < MIN_WIZARDS_FOR_SHIELD:
        return
    # The shield is always affordable in turns, even after production used them all
    result = cast_self_spell(bot, Spell.SHIELD, max(TURNS_PER_SPELL, turn.turns_remaining),
                             turn.current_round)
    turn.spend(result)
    turn.rng.advance()


PIPELINE = (
    mood_phase,
    era_phase,
    land_phase,
    build_phase,
    production_phase,
    triage_phase,
    defense_phase,
)


# ---------------------------------------------------------------------------
# Phase driver
# ---------------------------------------------------------------------------

def play_bot_turn(turn: BotTurn) -> None:
    for step in PIPELINE:
        step(turn)
    refresh_networth(turn.bot)


def generate_standings(player: Empire, bots: Sequence[BotEmpire],
                       start_networth: dict[str, int]) -> list[StandingEntry]:
    entries = [
        StandingEntry(
            id=e.id,
            name=e.name,
            networth=e.networth,
            networth_change=e.networth - start_networth.get(e.id, e.networth),
            is_bot=e.is_bot,
            is_eliminated=e.is_eliminated,
        )
        for e in [player, *bots]
    ]
    return sorted(entries, key=lambda s: -s.networth)


def process_bot_phase(bots: Sequence[BotEmpire], player: Empire, current_round: int, rng: Rng,
                      prices: MarketPrices, max_attacks_on_player: int = 3) -> BotPhaseResult:
    """Play one round for every living bot. Advances ``rng`` in place."""
    start_networth = {e.id: e.networth for e in [player, *bots]}
    counters = RoundCounters(max_attacks_on_player)
    result = BotPhaseResult()

    order = rng.shuffle([b for b in bots if not b.is_eliminated])
    for bot in order:
        bot.attacks_this_round = 0
        bot.spells_this_round = 0
        turn = BotTurn(bot, player, bots, get_strategy(bot.archetype), current_round,
                       Rng(rng.advance()), prices, counters)
        try:
            play_bot_turn(turn)
        except Exception:
            logger.exception("Bot %s failed during round %d", bot.id, current_round)
            result.failed_bots.append(bot.id)
        result.news.extend(turn.news)
        if bot.is_eliminated:
            continue
        logger.debug("%s finished round %d: mood=%s networth=%d", bot.id, current_round,
                     bot.mood.value, bot.networth)

    refresh_networth(player)
    for bot in bots:
        refresh_networth(bot)
    result.standings = generate_standings(player, bots, start_networth)
    return result

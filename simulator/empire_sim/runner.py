"""Game runner — plays complete runs with pluggable player strategies.

Provides:
- run_game(): one full run with a strategy driving the player
- run_batch(): many runs, one per seed
- PassiveStrategy: economy only, takes the first draft option
- RandomStrategy: seeded random mix of economy, building and attacks
- GameResult: structured result with stats
"""

from __future__ import annotations

import logging
import random as _random
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from .actions import TurnRequest, attack, build
from .combat import preview_attack
from .config import SimConfig
from .engine import RunEngine
from .enums import BUILDING_KINDS, Outcome, Phase, Race, TurnAction
from .state import RunState

logger = logging.getLogger(__name__)


class Strategy(Protocol):
    """Protocol for player strategies."""

    def choose_action(self, state: RunState) -> Optional[TurnRequest]:
        """Next player-phase action, or None to end the phase."""
        ...

    def choose_draft(self, state: RunState) -> Optional[int]:
        """Index of the draft option to take, or None to skip."""
        ...


@dataclass
class GameResult:
    """Result of a completed run."""
    seed: int
    outcome: str
    rounds_played: int
    final_networth: int
    final_land: int
    rank: int
    total_steps: int
    attacks: int
    attacks_won: int
    failed_bots: int = 0

    @property
    def won(self) -> bool:
        """Finished the run at the top of the standings."""
        return self.outcome == Outcome.COMPLETED.value and self.rank == 1


class PassiveStrategy:
    """Cashes every turn and takes the first draft option."""

    def __init__(self, action: TurnAction = TurnAction.CASH):
        self.action = action

    def choose_action(self, state: RunState) -> Optional[TurnRequest]:
        if state.turns_remaining <= 0:
            return None
        return TurnRequest(self.action, state.turns_remaining)

    def choose_draft(self, state: RunState) -> Optional[int]:
        return 0 if state.draft_options else None


class RandomStrategy:
    """Seeded random play: economic chunks, builds on free land, attacks when favoured."""

    ECONOMY = (TurnAction.EXPLORE, TurnAction.FARM, TurnAction.CASH, TurnAction.INDUSTRY)

    def __init__(self, seed: int = 42):
        self._rng = _random.Random(seed)

    def choose_action(self, state: RunState) -> Optional[TurnRequest]:
        if state.turns_remaining <= 0:
            return None
        player = state.player
        roll = self._rng.random()

        if roll < 0.2 and state.round > 1:
            targets = [b for b in state.living_bots()
                       if preview_attack(player, b, state.turns_remaining, state.round).win_chance >= 0.5]
            if targets:
                return attack(self._rng.choice(targets).id)

        if roll < 0.45 and player.resources.freeland > 0 and player.resources.gold > 20_000:
            count = min(player.resources.freeland, player.resources.gold // 4_000, 200)
            if count > 0:
                kind = self._rng.choice(BUILDING_KINDS)
                return build({kind: count})

        turns = self._rng.randint(1, min(10, state.turns_remaining))
        return TurnRequest(self._rng.choice(self.ECONOMY), turns)

    def choose_draft(self, state: RunState) -> Optional[int]:
        if not state.draft_options:
            return None
        return self._rng.randrange(len(state.draft_options))


def _play_player_phase(engine: RunEngine, state: RunState, strategy: Strategy,
                       max_steps: int) -> int:
    steps = 0
    while state.phase is Phase.PLAYER and steps < max_steps:
        request = strategy.choose_action(state)
        if request is None:
            engine.end_player_phase(state)
            break
        result = engine.execute_turn(state, request)
        steps += 1
        if not result.success and result.turns_spent == 0:
            # Refused without progress; fall back to cash so the phase ends
            engine.execute_turn(state, TurnRequest(TurnAction.CASH, max(1, state.turns_remaining)))
            steps += 1
    if state.phase is Phase.PLAYER:
        engine.end_player_phase(state)
    return steps


def run_game(
    seed: int,
    strategy: Strategy,
    race: Race = Race.HUMAN,
    config: Optional[SimConfig] = None,
    max_steps: int = 500,
    on_round: Optional[Callable[[RunState], None]] = None,
) -> GameResult:
    """Run a complete game with the given strategy.

    Args:
        seed: Run seed for deterministic bots, prices and combat.
        strategy: Strategy that drives the player.
        race: Player race.
        config: Settings (defaults to the loaded config).
        max_steps: Safety limit on actions per player phase.
        on_round: Optional callback(state) after each bot phase.

    Returns:
        GameResult with final stats.
    """
    engine = RunEngine(config)
    state = engine.create_run(seed, "Player", race, run_id=f"sim{seed}")

    steps = 0
    failed_bots = 0
    while not state.is_complete:
        if state.phase is Phase.PLAYER:
            steps += _play_player_phase(engine, state, strategy, max_steps)
        elif state.phase is Phase.SHOP:
            choice = strategy.choose_draft(state)
            if choice is not None:
                engine.select_draft(state, choice)
            engine.end_shop_phase(state)
        elif state.phase is Phase.BOT:
            failed_bots += len(engine.execute_bot_phase(state).failed_bots)
            if on_round:
                on_round(state)

    ranking = sorted(state.all_empires(), key=lambda e: -e.networth)
    rank = next(i for i, e in enumerate(ranking, 1) if e.id == state.player.id)
    return GameResult(
        seed=state.seed,
        outcome=state.outcome.value,
        rounds_played=state.round,
        final_networth=state.player.networth,
        final_land=state.player.resources.land,
        rank=rank,
        total_steps=steps,
        attacks=state.stats.attacks,
        attacks_won=state.stats.attacks_won,
        failed_bots=failed_bots,
    )


def run_batch(
    seeds: list[int],
    strategy: Strategy,
    race: Race = Race.HUMAN,
    config: Optional[SimConfig] = None,
    max_steps: int = 500,
) -> list[GameResult]:
    """Run multiple games and return results."""
    return [
        run_game(seed, strategy, race, config, max_steps)
        for seed in seeds
    ]

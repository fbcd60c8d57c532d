"""Run engine — the phase state machine that drives a game.

    player --(turns exhausted / end_player_phase)--> shop
    shop   --(end_shop_phase)-------------------------> bot
    bot    --(execute_bot_phase)----------------------> player (next round) | complete

Every public method takes a ``RunState``, mutates it in place and returns a
result object. Gameplay failures (wrong phase, missing resources, unknown
target) come back as ``success=False`` with an ``error``; only malformed
requests raise ``ValueError``.
"""

from __future__ import annotations

import logging
import random
import uuid
from typing import Optional

from .actions import TurnRequest
from .bank import apply_bank_interest, apply_loan_interest, get_bank_info, is_loan_emergency, process_bank_transaction
from .bonuses import EffectKind, effect_total
from .bot.generation import generate_bots
from .bot.phase import process_bot_phase
from .combat import preview_attack, process_attack
from .config import SimConfig, get_config
from .constants import DRAFT_SEED_OFFSET, MAX_REROLLS, SHOP_SEED_STRIDE, TURNS_PER_ATTACK
from .economy import build_turns_needed, execute_turn_action
from .empire import Empire, create_empire, refresh_networth
from .enums import INERT_BUILDING_KINDS, MILITARY_UNITS, Outcome, Phase, Race, TurnAction
from .results import (
    AttackPreview, BankResult, BotPhaseResult, DraftResult, MarketResult, PhaseResult,
    RerollResult, SettingsResult, TurnResult, failed_turn,
)
from .rng import Rng, normalize_seed
from .shop import (
    apply_draft_selection, dismiss_advisor, execute_market_transaction, generate_draft_options,
    generate_market_prices, generate_shop_stock, get_advisor_capacity, get_reroll_info, reroll_cost,
)
from .spells import cast_enemy_spell, cast_self_spell
from .state import RunState

logger = logging.getLogger(__name__)

PLAYER_ID_PREFIX = "player_"


def defeat_reason(empire: Empire) -> Optional[str]:
    """Why the player has lost, or None while the empire still stands."""
    if empire.resources.land <= 0:
        return "All land lost"
    if empire.peasants <= 0 and empire.troops.total() <= 0:
        return "Population collapsed"
    if is_loan_emergency(empire):
        return "Crushed by debt"
    return None


def round_turns(empire: Empire, config: SimConfig) -> int:
    """Turns granted at the start of a player phase."""
    return config.turns_per_round + int(effect_total(empire, EffectKind.EXTRA_TURNS))


class RunEngine:
    """Drives the run state machine."""

    def __init__(self, config: Optional[SimConfig] = None):
        self.config = config or get_config()

    # --- Run Creation ---

    def create_run(self, seed: Optional[int] = None, player_name: str = "Player",
                   race: Race | str = Race.HUMAN, run_id: Optional[str] = None) -> RunState:
        """Create a new run. Without a seed one is drawn from the system RNG."""
        if seed is None:
            seed = random.randrange(2 ** 31 - 1)
        seed = normalize_seed(seed)
        run_id = run_id or uuid.uuid4().hex[:12]
        player = create_empire(f"{PLAYER_ID_PREFIX}{run_id}", player_name, Race(race))
        state = RunState(
            id=run_id,
            seed=seed,
            player=player,
            bots=generate_bots(seed, self.config.bots_per_game),
            rng=Rng(seed),
            total_rounds=self.config.total_rounds,
            turns_remaining=round_turns(player, self.config),
            market_prices=generate_market_prices(seed),
        )
        state.stats.peak_networth = player.networth
        logger.info("Created run %s (seed=%d, race=%s, bots=%s)", run_id, seed, player.race.value,
                    [b.archetype.value for b in state.bots])
        return state

    # --- Player Phase ---

    def execute_turn(self, state: RunState, request: TurnRequest | dict) -> TurnResult:
        """Run one player action and charge its turns against the round budget."""
        if isinstance(request, dict):
            request = TurnRequest.from_dict(request)
        if state.phase is not Phase.PLAYER:
            return self._reject(state, "Not in player phase")
        if request.turns < 1:
            return self._reject(state, "Turns must be at least 1")

        action = request.action
        if action is TurnAction.ATTACK:
            result = self._attack(state, request)
        elif action is TurnAction.SPELL:
            result = self._spell(state, request)
        elif action in (TurnAction.BUILD, TurnAction.DEMOLISH):
            result = self._construct(state, request)
        else:
            if request.turns > state.turns_remaining:
                return self._reject(state, "Not enough turns")
            result = execute_turn_action(state.player, action, request.turns)

        state.turns_remaining = max(0, state.turns_remaining - result.turns_spent)
        result.turns_remaining = state.turns_remaining
        self._record_turn(state, result)

        reason = defeat_reason(state.player)
        if reason:
            self._defeat(state, reason)
        elif state.turns_remaining == 0:
            self.end_player_phase(state)
        return result

    def _reject(self, state: RunState, error: str) -> TurnResult:
        result = failed_turn(error)
        result.turns_remaining = state.turns_remaining
        return result

    def _attack(self, state: RunState, request: TurnRequest) -> TurnResult:
        if not request.target_id:
            return failed_turn("Target required")
        target = state.find_bot(request.target_id)
        if target is None:
            return failed_turn("Target not found")
        if state.turns_remaining < TURNS_PER_ATTACK:
            return failed_turn("Not enough turns")
        result = process_attack(state.player, target, state.turns_remaining, state.rng,
                                request.attack_type, state.round)
        if result.combat is not None:
            combat = result.combat
            target.memory.record_attack_received(state.player.id, combat.land_gained if combat.won else 0,
                                                 state.round)
            state.stats.attacks += 1
            if combat.won:
                state.stats.attacks_won += 1
                state.stats.land_conquered += combat.land_gained
        return result

    def _spell(self, state: RunState, request: TurnRequest) -> TurnResult:
        if request.spell is None:
            return failed_turn("Spell required")
        if request.spell.is_self:
            return self._cast_self(state, request)
        if not request.target_id:
            return failed_turn("Spell target required")
        target = state.find_bot(request.target_id)
        if target is None:
            return failed_turn("Target not found")
        result = cast_enemy_spell(state.player, target, request.spell, state.turns_remaining,
                                  state.rng, state.round)
        if result.spell is not None:
            state.stats.spells_cast += 1
        return result

    def _cast_self(self, state: RunState, request: TurnRequest) -> TurnResult:
        """Cast a self spell up to ``request.turns`` times, stopping at the first refusal."""
        total: Optional[TurnResult] = None
        casts = 0
        for _ in range(request.turns):
            remaining = state.turns_remaining - (total.turns_spent if total else 0)
            single = cast_self_spell(state.player, request.spell, remaining, state.round)
            if not single.success and single.turns_spent == 0:
                if total is None:
                    return single
                break
            casts += 1
            total = single if total is None else _merge_turns(total, single)
            if single.stopped_early is not None:
                break
        state.stats.spells_cast += casts
        total.spell.casts = casts
        return total

    def _construct(self, state: RunState, request: TurnRequest) -> TurnResult:
        allocation = request.allocation or {}
        count = sum(v for k, v in allocation.items()
                    if k not in INERT_BUILDING_KINDS and isinstance(v, int) and v > 0)
        if count and build_turns_needed(state.player, count) > state.turns_remaining:
            return failed_turn("Not enough turns")
        return execute_turn_action(state.player, request.action, state.turns_remaining, allocation)

    def _record_turn(self, state: RunState, result: TurnResult) -> None:
        stats = state.stats
        stats.turns_used += result.turns_spent
        if result.stopped_early is not None:
            stats.emergencies += 1
            logger.info("Run %s: player action stopped early (%s emergency)", state.id, result.stopped_early)
        stats.peak_networth = max(stats.peak_networth, state.player.networth)

    def end_player_phase(self, state: RunState) -> PhaseResult:
        """Close the player phase and open the shop for this round."""
        if state.phase is not Phase.PLAYER:
            return PhaseResult(False, state.phase.value, state.round, error="Not in player phase")
        phase_seed = state.seed + state.round * SHOP_SEED_STRIDE
        state.phase = Phase.SHOP
        state.turns_remaining = 0
        state.market_prices = generate_market_prices(phase_seed)
        state.shop_stock = generate_shop_stock(state.player, state.market_prices)
        state.draft_options = generate_draft_options(phase_seed + DRAFT_SEED_OFFSET, state.player)
        state.rerolls_used = 0
        logger.info("Run %s round %d: shop opened with %d draft options", state.id, state.round,
                    len(state.draft_options))
        return PhaseResult(True, state.phase.value, state.round)

    # --- Shop Phase ---

    def select_draft(self, state: RunState, option_index: int) -> DraftResult:
        if state.phase is not Phase.SHOP:
            return DraftResult(False, error="Not in shop phase")
        if not state.draft_options:
            return DraftResult(False, error="No draft options available")
        if not 0 <= option_index < len(state.draft_options):
            return DraftResult(False, error="Invalid option index")
        option = state.draft_options[option_index]
        result = apply_draft_selection(state.player, option, state.living_bots())
        if result.success:
            state.draft_options = None
            state.stats.drafts_taken += 1
            state.stats.peak_networth = max(state.stats.peak_networth, state.player.networth)
        return result

    def reroll_draft(self, state: RunState) -> RerollResult:
        """Pay a share of gold for a fresh set of draft options."""
        if state.phase is not Phase.SHOP:
            return RerollResult(False, error="Not in shop phase")
        if state.draft_options is None:
            return RerollResult(False, rerolls_used=state.rerolls_used, error="Draft already taken")
        if state.rerolls_used >= MAX_REROLLS:
            return RerollResult(False, rerolls_used=state.rerolls_used, error="No rerolls left")
        cost = reroll_cost(state.player)
        state.player.resources.gold -= cost
        refresh_networth(state.player)
        state.rerolls_used += 1
        state.stats.rerolls += 1
        state.draft_options = generate_draft_options(state.rng.advance(), state.player)
        return RerollResult(True, cost=cost, rerolls_used=state.rerolls_used,
                            options=list(state.draft_options))

    def dismiss_advisor(self, state: RunState, advisor_id: str) -> DraftResult:
        if state.phase not in (Phase.PLAYER, Phase.SHOP):
            return DraftResult(False, error=f"Cannot dismiss advisors during {state.phase.value} phase")
        return dismiss_advisor(state.player, advisor_id)

    def market_transaction(self, state: RunState, side: str, resource: str, amount: int,
                           troop_type: Optional[str] = None) -> MarketResult:
        """Trade at this round's prices. The shop phase is limited by stock."""
        if state.phase not in (Phase.PLAYER, Phase.SHOP):
            return MarketResult(False, str(side), str(resource), amount, troop_type=troop_type,
                                error="Market is closed")
        stock = state.shop_stock if state.phase is Phase.SHOP else None
        result = execute_market_transaction(state.player, side, resource, amount, state.market_prices,
                                            troop_type=troop_type, stock=stock)
        if result.success:
            state.stats.trades += 1
        return result

    def bank_transaction(self, state: RunState, operation: str, amount: int) -> BankResult:
        if state.phase not in (Phase.PLAYER, Phase.SHOP):
            return BankResult(False, str(operation), 0, state.player.bank, state.player.loan,
                              state.player.resources.gold, error="Bank is closed")
        return process_bank_transaction(state.player, operation, amount)

    def update_settings(self, state: RunState, tax_rate: Optional[int] = None,
                        industry: Optional[dict[str, int]] = None) -> SettingsResult:
        """Change the tax rate and/or the troop industry split. Nothing changes on error."""
        player = state.player

        def fail(error: str) -> SettingsResult:
            return SettingsResult(False, player.tax_rate, player.industry.to_dict(), error=error)

        if state.is_complete:
            return fail("Run is complete")
        if tax_rate is not None:
            if isinstance(tax_rate, bool) or not isinstance(tax_rate, int) or not 0 <= tax_rate <= 100:
                return fail("Tax rate must be between 0 and 100")
        if industry is not None:
            if set(industry) != set(MILITARY_UNITS):
                return fail(f"Industry allocation needs exactly {', '.join(MILITARY_UNITS)}")
            if any(isinstance(v, bool) or not isinstance(v, int) or not 0 <= v <= 100
                   for v in industry.values()):
                return fail("Each industry share must be between 0 and 100")
            if sum(industry.values()) != 100:
                return fail("Industry allocation must sum to 100")

        if tax_rate is not None:
            player.tax_rate = tax_rate
        if industry is not None:
            for kind, share in industry.items():
                player.industry.set(kind, share)
        return SettingsResult(True, player.tax_rate, player.industry.to_dict())

    def end_shop_phase(self, state: RunState) -> PhaseResult:
        if state.phase is not Phase.SHOP:
            return PhaseResult(False, state.phase.value, state.round, error="Not in shop phase")
        state.draft_options = None
        state.shop_stock = None
        state.phase = Phase.BOT
        return PhaseResult(True, state.phase.value, state.round)

    # --- Bot Phase ---

    def execute_bot_phase(self, state: RunState) -> BotPhaseResult:
        """Play every bot, settle the round's interest, then advance or finish."""
        if state.phase is not Phase.BOT:
            return BotPhaseResult(success=False, error="Not in bot phase")

        result = process_bot_phase(state.bots, state.player, state.round, state.rng,
                                   state.market_prices, self.config.max_bot_attacks_on_player)
        if result.failed_bots:
            logger.warning("Run %s round %d: bots failed: %s", state.id, state.round, result.failed_bots)

        player = state.player
        apply_bank_interest(player, 1)
        apply_loan_interest(player, 1)
        refresh_networth(player)
        state.stats.peak_networth = max(state.stats.peak_networth, player.networth)
        state.last_news = [n.to_dict() for n in result.news]
        state.last_standings = [s.to_dict() for s in result.standings]

        reason = defeat_reason(player)
        if reason:
            self._defeat(state, reason)
        elif state.round >= state.total_rounds:
            state.phase = Phase.COMPLETE
            state.outcome = Outcome.COMPLETED
            logger.info("Run %s complete: final networth %d", state.id, player.networth)
        else:
            state.round += 1
            state.turns_remaining = round_turns(player, self.config)
            state.phase = Phase.PLAYER
            logger.info("Run %s: round %d begins with %d turns", state.id, state.round,
                        state.turns_remaining)
        return result

    def _defeat(self, state: RunState, reason: str) -> None:
        state.phase = Phase.COMPLETE
        state.outcome = Outcome.DEFEAT
        state.defeat_reason = reason
        state.turns_remaining = 0
        state.draft_options = None
        state.shop_stock = None
        logger.info("Run %s: player defeated in round %d (%s)", state.id, state.round, reason)

    # --- Queries ---

    def preview_attack(self, state: RunState, target_id: str) -> Optional[AttackPreview]:
        """Attack estimate against a bot, or None for an unknown target."""
        target = state.find_bot(target_id)
        if target is None:
            return None
        turns = state.turns_remaining if state.phase is Phase.PLAYER else 0
        return preview_attack(state.player, target, turns, state.round)

    def get_summary(self, state: RunState) -> dict:
        return {
            "id": state.id,
            "seed": state.seed,
            "round": state.round,
            "total_rounds": state.total_rounds,
            "phase": state.phase.value,
            "turns_remaining": state.turns_remaining,
            "player_networth": state.player.networth,
            "is_complete": state.is_complete,
            "outcome": state.outcome.value,
            "defeat_reason": state.defeat_reason,
            "final_score": state.player.networth if state.is_complete else None,
            "stats": state.stats.to_dict(),
        }

    def get_bank_info(self, state: RunState) -> dict:
        return get_bank_info(state.player)

    def get_reroll_info(self, state: RunState) -> dict:
        return get_reroll_info(state.player, state.rerolls_used)

    def get_advisor_capacity(self, state: RunState) -> dict:
        return get_advisor_capacity(state.player)


def _merge_turns(total: TurnResult, single: TurnResult) -> TurnResult:
    """Fold one more cast into a running self-spell total."""
    total.turns_spent += single.turns_spent
    total.income += single.income
    total.expenses += single.expenses
    total.food_production += single.food_production
    total.food_consumption += single.food_consumption
    total.rune_change += single.rune_change
    total.loan_payment += single.loan_payment
    total.bank_interest += single.bank_interest
    total.loan_interest += single.loan_interest
    for kind, amount in single.troops_produced.items():
        total.troops_produced[kind] = total.troops_produced.get(kind, 0) + amount
    total.spell = single.spell
    total.stopped_early = single.stopped_early
    total.success = total.success or single.success
    return total

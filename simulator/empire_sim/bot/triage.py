"""Economic triage — the market step at the end of a bot's turn.

Keeps food inside a reserve band measured in turns of consumption, sells
troops when upkeep outruns income, and spends surplus gold on troops in the
strategy's mix.
"""

from __future__ import annotations

import logging
import math

from ..constants import TURNS_PER_ROUND, UNIT_PRICES
from ..economy import Provisions, calc_finances, calc_provisions
from ..empire import BotEmpire
from ..enums import MILITARY_UNITS, BotArchetype, MarketResource, TradeSide
from ..results import MarketResult
from ..shop import MarketPrices, effective_prices, execute_market_transaction
from .strategies import Strategy, spending_aggression

logger = logging.getLogger(__name__)

MIN_FOOD_RESERVE_TURNS = 20
MAX_FOOD_RESERVE_TURNS = 50
FOOD_EMERGENCY_TURNS = 5
FOOD_TARGET_TURNS = 30
BUILD_COST_ESTIMATE = 500

_INDUSTRIAL = (BotArchetype.IRON_BARON, BotArchetype.GENERAL_VASK, BotArchetype.THE_LOCUST)


def _trade(bot: BotEmpire, side: TradeSide, resource: MarketResource, amount: int,
           prices: MarketPrices, troop_type: str | None = None) -> MarketResult:
    result = execute_market_transaction(bot, side, resource, amount, prices, troop_type=troop_type)
    if result.success:
        logger.debug("%s %s %d %s", bot.id, side.value, amount, troop_type or resource.value)
    return result


def _unit_value(kind: str, mult: float) -> int:
    return max(1, math.floor(UNIT_PRICES[kind] * mult))


def reserve_turns(bot: BotEmpire, provisions: Provisions) -> int:
    if provisions.consumption <= 0:
        return 999
    return math.floor(bot.resources.food / provisions.consumption)


def sell_troops_for_gold(bot: BotEmpire, gold_needed: int, prices: MarketPrices) -> list[MarketResult]:
    """Emergency sale, most valuable units first, keeping a tenth of each line."""
    local = effective_prices(bot, prices)
    trades = []
    remaining = gold_needed
    for kind in reversed(MILITARY_UNITS):
        if remaining <= 0:
            break
        owned = bot.troops.get(kind)
        sellable = owned - math.floor(owned * 0.1)
        if sellable <= 0:
            continue
        amount = min(sellable, math.ceil(remaining / _unit_value(kind, local.troop_sell_mult)))
        result = _trade(bot, TradeSide.SELL, MarketResource.TROOPS, amount, prices, kind)
        trades.append(result)
        if result.success:
            remaining += result.cost
    return trades


def sell_excess_troops(bot: BotEmpire, strategy: Strategy, prices: MarketPrices) -> list[MarketResult]:
    """Sell from the least-favored lines when gold runway is short and income negative."""
    net = calc_finances(bot).net
    if net >= 0:
        return []
    threshold = 10 if strategy.archetype in _INDUSTRIAL else 20
    if bot.resources.gold / abs(net) > threshold:
        return []
    needed = abs(net) * threshold * 2 - bot.resources.gold
    if needed <= 0:
        return []

    local = effective_prices(bot, prices)
    trades = []
    for kind in sorted(MILITARY_UNITS, key=lambda k: strategy.industry[k]):
        if needed <= 0:
            break
        owned = bot.troops.get(kind)
        if owned <= 100:
            continue
        amount = min(math.floor(owned * 0.2), math.ceil(needed / _unit_value(kind, local.troop_sell_mult)))
        if amount > 50:
            result = _trade(bot, TradeSide.SELL, MarketResource.TROOPS, amount, prices, kind)
            trades.append(result)
            if result.success:
                needed += result.cost
    return trades


def buy_troops_with_surplus(bot: BotEmpire, strategy: Strategy, prices: MarketPrices,
                            provisions: Provisions, current_round: int,
                            aggression_bonus: float = 0.0) -> list[MarketResult]:
    """Spend gold beyond operating, food and building reserves on the strategy's troop mix."""
    local = effective_prices(bot, prices)
    finances = calc_finances(bot)
    aggression = min(0.95, spending_aggression(strategy.archetype, current_round) + aggression_bonus)
    reserve_turn_count = max(5, math.floor(20 * (1 - aggression)))
    operating = abs(finances.net) * TURNS_PER_ROUND * reserve_turn_count / 50 if finances.net < 0 else 0
    food_reserve = abs(provisions.net) * TURNS_PER_ROUND * local.food_buy * 2 if provisions.net < 0 else 0
    building_reserve = bot.resources.freeland * BUILD_COST_ESTIMATE * 0.5

    available = bot.resources.gold - (operating + food_reserve + building_reserve)
    if available <= 0:
        return []
    budget = math.floor(available * aggression)
    if budget < 1000:
        return []

    trades = []
    remaining = budget
    for kind in MILITARY_UNITS:
        share = strategy.industry[kind]
        if share <= 0:
            continue
        if remaining <= 0:
            break
        spend = min(math.floor(budget * share / 100), remaining)
        amount = math.floor(spend / _unit_value(kind, local.troop_buy_mult))
        if amount <= 0:
            continue
        result = _trade(bot, TradeSide.BUY, MarketResource.TROOPS, amount, prices, kind)
        trades.append(result)
        if result.success:
            remaining -= result.cost
    return trades


def run_triage(bot: BotEmpire, strategy: Strategy, prices: MarketPrices, current_round: int,
               aggression_bonus: float = 0.0) -> list[MarketResult]:
    """Food band first; an emergency or a band correction ends the step early."""
    local = effective_prices(bot, prices)
    provisions = calc_provisions(bot)
    turns = reserve_turns(bot, provisions)
    food = bot.resources.food
    trades: list[MarketResult] = []

    if turns < FOOD_EMERGENCY_TURNS and provisions.net < 0:
        target = provisions.consumption * FOOD_TARGET_TURNS
        cost = target * local.food_buy
        if bot.resources.gold < cost:
            trades += sell_troops_for_gold(bot, cost - bot.resources.gold, prices)
        amount = min(max(0, target - bot.resources.food), bot.resources.gold // local.food_buy)
        if amount > 0:
            trades.append(_trade(bot, TradeSide.BUY, MarketResource.FOOD, amount, prices))
        return trades

    if turns < MIN_FOOD_RESERVE_TURNS and bot.resources.gold > 50000:
        target = provisions.consumption * (MIN_FOOD_RESERVE_TURNS + 10)
        amount = min(max(0, target - food), math.floor(bot.resources.gold * 0.3) // local.food_buy)
        if amount > 1000:
            trades.append(_trade(bot, TradeSide.BUY, MarketResource.FOOD, amount, prices))
        return trades

    if turns > MAX_FOOD_RESERVE_TURNS and provisions.net > 0:
        excess = max(0, food - provisions.consumption * FOOD_TARGET_TURNS)
        if excess > 5000:
            trades.append(_trade(bot, TradeSide.SELL, MarketResource.FOOD, excess, prices))
        return trades

    build_cost = bot.resources.freeland * BUILD_COST_ESTIMATE
    if (bot.resources.freeland > 100 and bot.resources.gold < build_cost
            and turns > MIN_FOOD_RESERVE_TURNS + 15 and local.food_sell > 0):
        spare = max(0, food - provisions.consumption * MIN_FOOD_RESERVE_TURNS)
        amount = min(spare, math.ceil((build_cost - bot.resources.gold) / local.food_sell))
        if amount > 1000:
            trades.append(_trade(bot, TradeSide.SELL, MarketResource.FOOD, amount, prices))

    trades += sell_excess_troops(bot, strategy, prices)
    trades += buy_troops_with_surplus(bot, strategy, prices, provisions, current_round, aggression_bonus)
    return trades


"""Shop — seeded market prices, stock, trading and the bonus draft.

Provides:
- MarketPrices / ShopStock: per-round prices and the stock cap for the shop phase
- execute_market_transaction: buy or sell food, runes and troops
- generate_draft_options / apply_draft_selection: the advisor/tech/edict draft
- reroll and advisor-capacity helpers

Prices and drafts are pure functions of an integer seed: the same seed always
yields the same prices and the same options.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from typing import Optional, Sequence

from .bonuses import (
    ADVISORS, EDICTS, MAX_TECH_LEVEL, TECHS, Advisor, Edict, EdictKind, EffectKind, Tech,
    advisors_by_rarity, edicts_by_rarity, effect_max,
)
from .constants import (
    ADVISOR_OPTIONS, BASE_MARKET_PRICES, MAX_ADVISORS, MAX_REROLLS, OTHER_OPTIONS,
    PRICE_FLUCTUATION, RARITY_WEIGHTS, REROLL_COST_PERCENT, SHOP_TROOP_SELL_LIMIT,
    STOCK_NETWORTH_FRACTION, TECH_CHANCE, UNIT_PRICES,
)
from .empire import Empire, innate, refresh_networth
from .enums import MILITARY_UNITS, BonusType, MarketResource, Rarity, TradeSide
from .results import DraftResult, MarketResult
from .rng import advance

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Prices and stock
# ---------------------------------------------------------------------------

@dataclass
class MarketPrices:
    food_buy: int
    food_sell: int
    troop_buy_mult: float
    troop_sell_mult: float
    rune_buy: int
    rune_sell: int

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> MarketPrices:
        return cls(**d)


@dataclass
class ShopStock:
    food: int = 0
    trparm: int = 0
    trplnd: int = 0
    trpfly: int = 0
    trpsea: int = 0
    runes: int = 0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> ShopStock:
        return cls(**d)


def generate_market_prices(seed: int) -> MarketPrices:
    """Base prices with up to +/-20% fluctuation (troop multipliers swing half as far)."""
    state = seed

    def next_random() -> float:
        nonlocal state
        state = advance(state)
        return (state % 1000) / 1000

    def fluctuate(base: float) -> int:
        return math.floor(base * (1 + (next_random() - 0.5) * 2 * PRICE_FLUCTUATION))

    base = BASE_MARKET_PRICES
    # Draw order matters for reproducibility
    food_buy = fluctuate(base["food_buy"])
    food_sell = fluctuate(base["food_sell"])
    troop_buy = base["troop_buy_mult"] * (1 + (next_random() - 0.5) * PRICE_FLUCTUATION)
    troop_sell = base["troop_sell_mult"] * (1 + (next_random() - 0.5) * PRICE_FLUCTUATION)
    rune_buy = fluctuate(base["rune_buy"])
    rune_sell = fluctuate(base["rune_sell"])
    return MarketPrices(food_buy, food_sell, troop_buy, troop_sell, rune_buy, rune_sell)


def generate_shop_stock(empire: Empire, prices: MarketPrices) -> ShopStock:
    budget = empire.networth * STOCK_NETWORTH_FRACTION
    troops = {kind: math.floor(budget / (UNIT_PRICES[kind] * prices.troop_buy_mult))
              for kind in MILITARY_UNITS}
    return ShopStock(
        food=math.floor(budget / prices.food_buy),
        runes=math.floor(budget / prices.rune_buy),
        **troops,
    )


def effective_prices(empire: Empire, prices: MarketPrices) -> MarketPrices:
    """Prices as seen by one empire after food-sell advisors and market innates."""
    bonus = innate(empire, "market_bonus")
    food_sell = prices.food_sell
    sell_mult = effect_max(empire, EffectKind.FOOD_SELL)
    if sell_mult > 0:
        food_sell = math.floor(food_sell * sell_mult)
    if bonus <= 0:
        return MarketPrices(prices.food_buy, food_sell, prices.troop_buy_mult,
                            prices.troop_sell_mult, prices.rune_buy, prices.rune_sell)
    return MarketPrices(
        food_buy=max(1, math.floor(prices.food_buy / (1 + bonus))),
        food_sell=math.floor(food_sell * (1 + bonus)),
        troop_buy_mult=prices.troop_buy_mult / (1 + bonus),
        troop_sell_mult=prices.troop_sell_mult * (1 + bonus),
        rune_buy=max(1, math.floor(prices.rune_buy / (1 + bonus))),
        rune_sell=math.floor(prices.rune_sell * (1 + bonus)),
    )


# ---------------------------------------------------------------------------
# Trading
# ---------------------------------------------------------------------------

def _stock_key(resource: MarketResource, troop_type: Optional[str]) -> str:
    return troop_type if resource is MarketResource.TROOPS else resource.value


def execute_market_transaction(empire: Empire, side: TradeSide | str, resource: MarketResource | str,
                               amount: int, prices: MarketPrices, troop_type: Optional[str] = None,
                               stock: Optional[ShopStock] = None) -> MarketResult:
    """Buy or sell at the given prices.

    With ``stock`` (shop phase) purchases are limited by and deducted from the
    stock, and troop sales are capped at half of the units owned. Without it
    (player phase) only gold and holdings limit the trade.
    """
    try:
        side = TradeSide(side)
        resource = MarketResource(resource)
    except ValueError:
        return MarketResult(False, str(side), str(resource), 0, error="Invalid transaction")

    def fail(error: str) -> MarketResult:
        return MarketResult(False, side.value, resource.value, amount, troop_type=troop_type, error=error)

    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        return fail("Invalid amount")
    if resource is MarketResource.TROOPS and troop_type not in MILITARY_UNITS:
        return fail("Invalid troop type")

    prices = effective_prices(empire, prices)
    key = _stock_key(resource, troop_type)

    if side is TradeSide.BUY:
        if stock is not None and amount > getattr(stock, key):
            return fail(f"Only {getattr(stock, key)} {key} in stock")
        if resource is MarketResource.FOOD:
            cost = amount * prices.food_buy
        elif resource is MarketResource.RUNES:
            cost = amount * prices.rune_buy
        else:
            cost = math.floor(amount * UNIT_PRICES[troop_type] * prices.troop_buy_mult)
        if cost > empire.resources.gold:
            return fail("Not enough gold")
        empire.resources.gold -= cost
        if resource is MarketResource.TROOPS:
            empire.troops.add(troop_type, amount)
        else:
            setattr(empire.resources, key, getattr(empire.resources, key) + amount)
        if stock is not None:
            setattr(stock, key, getattr(stock, key) - amount)
        refresh_networth(empire)
        return MarketResult(True, side.value, resource.value, amount, cost=cost, troop_type=troop_type)

    if resource is MarketResource.TROOPS:
        owned = empire.troops.get(troop_type)
        if stock is not None:
            limit = math.floor(owned * SHOP_TROOP_SELL_LIMIT)
            if amount > limit:
                return fail(f"Can only sell {limit} (50% of owned)")
        if amount > owned:
            return fail("Not enough troops")
        revenue = math.floor(amount * UNIT_PRICES[troop_type] * prices.troop_sell_mult)
        empire.troops.add(troop_type, -amount)
    else:
        held = getattr(empire.resources, key)
        if amount > held:
            return fail(f"Not enough {key}")
        unit = prices.food_sell if resource is MarketResource.FOOD else prices.rune_sell
        revenue = amount * unit
        setattr(empire.resources, key, held - amount)
    empire.resources.gold += revenue
    refresh_networth(empire)
    return MarketResult(True, side.value, resource.value, amount, cost=-revenue, troop_type=troop_type)


# ---------------------------------------------------------------------------
# Draft
# ---------------------------------------------------------------------------

def select_rarity(seed: int) -> Rarity:
    total = sum(RARITY_WEIGHTS.values())
    roll = advance(seed) % total
    cumulative = 0
    for name, weight in RARITY_WEIGHTS.items():
        cumulative += weight
        if roll < cumulative:
            return Rarity(name)
    return Rarity.LEGENDARY


def _pick(items: Sequence, seed: int):
    return items[advance(seed) % len(items)]


def option_dict(item: Advisor | Tech | Edict) -> dict:
    if isinstance(item, Advisor):
        kind = BonusType.ADVISOR
    elif isinstance(item, Tech):
        kind = BonusType.TECH
    else:
        kind = BonusType.EDICT
    return {"type": kind.value, "item": item.to_dict()}


def available_techs(empire: Empire) -> list[Tech]:
    """The next level of every tech track the empire has not maxed."""
    return [t for t in TECHS.values()
            if t.level == empire.techs.get(t.action.value, 0) + 1 and t.level <= MAX_TECH_LEVEL]


def _advisor_option(empire: Empire, state: int) -> tuple[Optional[Advisor], int]:
    state = advance(state)
    pool = advisors_by_rarity(select_rarity(state))
    if not pool:
        return None, state
    state = advance(state)
    advisor = _pick(pool, state)
    if advisor.id in empire.advisors:
        return None, state
    return advisor, state


def _other_option(empire: Empire, state: int) -> tuple[Tech | Edict, int]:
    state = advance(state)
    rarity = select_rarity(state)
    state = advance(state)
    if state % 100 < TECH_CHANCE:
        techs = available_techs(empire)
        state = advance(state)
        if techs:
            return _pick(techs, state), state
        return _pick(list(EDICTS.values()), state), state
    edicts = edicts_by_rarity(rarity) or list(EDICTS.values())
    state = advance(state)
    return _pick(edicts, state), state


def generate_draft_options(seed: int, empire: Empire) -> list[dict]:
    """1-2 advisor options followed by 2-3 tech or edict options."""
    state = advance(seed)
    advisor_slots = ADVISOR_OPTIONS[0] + state % (ADVISOR_OPTIONS[1] - ADVISOR_OPTIONS[0] + 1)
    state = advance(state)
    other_slots = OTHER_OPTIONS[0] + state % (OTHER_OPTIONS[1] - OTHER_OPTIONS[0] + 1)

    options = []
    seen = set(empire.advisors)
    for _ in range(advisor_slots):
        advisor, state = _advisor_option(empire, state)
        if advisor is not None and advisor.id not in seen:
            options.append(option_dict(advisor))
            seen.add(advisor.id)
    for _ in range(other_slots):
        item, state = _other_option(empire, state)
        options.append(option_dict(item))
    return options


def reroll_cost(empire: Empire) -> int:
    return math.floor(empire.resources.gold * REROLL_COST_PERCENT)


def get_reroll_info(empire: Empire, rerolls_used: int) -> dict:
    return {
        "cost": reroll_cost(empire),
        "rerolls_used": rerolls_used,
        "max_rerolls": MAX_REROLLS,
        "can_reroll": rerolls_used < MAX_REROLLS,
    }


def get_advisor_capacity(empire: Empire) -> dict:
    return {"current": len(empire.advisors), "max": MAX_ADVISORS}


def can_add_advisor(empire: Empire) -> bool:
    return len(empire.advisors) < MAX_ADVISORS


def dismiss_advisor(empire: Empire, advisor_id: str) -> DraftResult:
    if advisor_id not in empire.advisors:
        return DraftResult(False, error="Advisor not found")
    empire.advisors.remove(advisor_id)
    refresh_networth(empire)
    return DraftResult(True, option=option_dict(ADVISORS[advisor_id]),
                       details=f"Dismissed {ADVISORS[advisor_id].name}")


def _apply_edict(empire: Empire, edict: Edict, rivals: Sequence[Empire]) -> str:
    value = edict.value
    res = empire.resources
    if edict.kind is EdictKind.GOLD:
        res.gold += int(value)
    elif edict.kind is EdictKind.FOOD:
        res.food += int(value)
    elif edict.kind is EdictKind.RUNES:
        res.runes += int(value)
    elif edict.kind is EdictKind.LAND:
        res.land += int(value)
        res.freeland += int(value)
    elif edict.kind is EdictKind.HEALTH:
        empire.health = min(100, value)
    elif edict.kind is EdictKind.CONSCRIPT:
        drafted = math.floor(empire.peasants * value)
        empire.peasants -= drafted
        empire.troops.trparm += drafted
        return f"Conscripted {drafted:,} peasants"
    elif edict.kind is EdictKind.TROOPS:
        for kind in MILITARY_UNITS:
            empire.troops.add(kind, int(value))
    elif edict.kind is EdictKind.STEAL_GOLD:
        if not rivals:
            return "No one to plunder"
        richest = max(rivals, key=lambda e: e.resources.gold)
        stolen = math.floor(richest.resources.gold * value)
        richest.resources.gold -= stolen
        res.gold += stolen
        refresh_networth(richest)
        return f"Plundered {stolen:,} gold from {richest.name}"
    elif edict.kind is EdictKind.ADVANCE_ERA:
        if empire.era.next is not None:
            empire.era = empire.era.next
        return f"Now in the {empire.era.value} era"
    return edict.description


def apply_draft_selection(empire: Empire, option: dict, rivals: Sequence[Empire] = ()) -> DraftResult:
    """Apply one draft option. ``rivals`` are the plunder candidates for the steal edict."""
    kind = BonusType(option["type"])
    item_id = option["item"]["id"]
    details = None
    if kind is BonusType.ADVISOR:
        if not can_add_advisor(empire):
            return DraftResult(False, option=option,
                               error=f"Cannot have more than {MAX_ADVISORS} advisors. Dismiss one first.")
        if item_id in empire.advisors:
            return DraftResult(False, option=option, error="Advisor already hired")
        empire.advisors.append(item_id)
    elif kind is BonusType.TECH:
        tech = TECHS[item_id]
        current = empire.techs.get(tech.action.value, 0)
        if tech.level != current + 1:
            return DraftResult(False, option=option, error="Only the next tech level can be learned")
        empire.techs[tech.action.value] = tech.level
    elif kind is BonusType.EDICT:
        details = _apply_edict(empire, EDICTS[item_id], rivals)
    else:
        return DraftResult(False, option=option, error=f"Cannot draft a {kind.value}")
    refresh_networth(empire)
    logger.debug("%s drafted %s %s", empire.id, kind.value, item_id)
    return DraftResult(True, option=option, details=details)

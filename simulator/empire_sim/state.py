"""Run state — the complete, serializable state of one game.

Everything needed to resume a run from any point lives here: both phase
counters, every empire, the shop of the current round and the RNG cursor.
``to_dict`` / ``from_dict`` is the whole persistence contract.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Optional

from .constants import TOTAL_ROUNDS, TURNS_PER_ROUND
from .empire import BotEmpire, Empire
from .enums import Outcome, Phase
from .rng import Rng
from .shop import MarketPrices, ShopStock

STATE_FORMAT = 1


@dataclass
class RunStats:
    """Cumulative player statistics over the run."""
    turns_used: int = 0
    attacks: int = 0
    attacks_won: int = 0
    land_conquered: int = 0
    spells_cast: int = 0
    drafts_taken: int = 0
    rerolls: int = 0
    trades: int = 0
    emergencies: int = 0
    peak_networth: int = 0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> RunStats:
        known = {k: v for k, v in d.items() if k in cls.__dataclass_fields__}
        return cls(**known)


@dataclass
class RunState:
    """Root aggregate of a game. Mutated in place by the engine."""

    # Identity
    id: str
    seed: int
    player: Empire
    bots: list[BotEmpire] = field(default_factory=list)
    rng: Rng = field(default_factory=Rng)

    # Phase
    round: int = 1
    total_rounds: int = TOTAL_ROUNDS
    turns_remaining: int = TURNS_PER_ROUND
    phase: Phase = Phase.PLAYER
    outcome: Outcome = Outcome.IN_PROGRESS
    defeat_reason: Optional[str] = None

    # Shop
    market_prices: Optional[MarketPrices] = None
    shop_stock: Optional[ShopStock] = None
    draft_options: Optional[list[dict]] = None
    rerolls_used: int = 0

    # History
    stats: RunStats = field(default_factory=RunStats)
    last_news: list[dict] = field(default_factory=list)
    last_standings: list[dict] = field(default_factory=list)

    # Optimistic concurrency for stores
    version: int = 0

    @property
    def is_complete(self) -> bool:
        return self.phase is Phase.COMPLETE

    def all_empires(self) -> list[Empire]:
        return [self.player, *self.bots]

    def find_bot(self, bot_id: str) -> Optional[BotEmpire]:
        for bot in self.bots:
            if bot.id == bot_id:
                return bot
        return None

    def living_bots(self) -> list[BotEmpire]:
        return [b for b in self.bots if not b.is_eliminated]

    # --- Serialization ---

    def to_dict(self) -> dict:
        return {
            "format": STATE_FORMAT,
            "id": self.id,
            "seed": self.seed,
            "player": self.player.to_dict(),
            "bots": [b.to_dict() for b in self.bots],
            "rng": self.rng.get_state_dict(),
            "round": self.round,
            "total_rounds": self.total_rounds,
            "turns_remaining": self.turns_remaining,
            "phase": self.phase.value,
            "outcome": self.outcome.value,
            "defeat_reason": self.defeat_reason,
            "market_prices": self.market_prices.to_dict() if self.market_prices else None,
            "shop_stock": self.shop_stock.to_dict() if self.shop_stock else None,
            "draft_options": self.draft_options,
            "rerolls_used": self.rerolls_used,
            "stats": self.stats.to_dict(),
            "last_news": list(self.last_news),
            "last_standings": list(self.last_standings),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, d: dict) -> RunState:
        """Rebuild a run. Raises ValueError on a malformed payload."""
        if not isinstance(d, dict):
            raise ValueError("Run state must be a JSON object")
        if d.get("format", STATE_FORMAT) != STATE_FORMAT:
            raise ValueError(f"Unsupported run state format: {d.get('format')}")
        try:
            prices = d.get("market_prices")
            stock = d.get("shop_stock")
            return cls(
                id=d["id"],
                seed=int(d["seed"]),
                player=Empire.from_dict(d["player"]),
                bots=[BotEmpire.from_dict(b) for b in d.get("bots", [])],
                rng=Rng.from_state_dict(d["rng"]),
                round=int(d["round"]),
                total_rounds=int(d.get("total_rounds", TOTAL_ROUNDS)),
                turns_remaining=int(d["turns_remaining"]),
                phase=Phase(d["phase"]),
                outcome=Outcome(d.get("outcome", Outcome.IN_PROGRESS.value)),
                defeat_reason=d.get("defeat_reason"),
                market_prices=MarketPrices.from_dict(prices) if prices else None,
                shop_stock=ShopStock.from_dict(stock) if stock else None,
                draft_options=d.get("draft_options"),
                rerolls_used=int(d.get("rerolls_used", 0)),
                stats=RunStats.from_dict(d.get("stats", {})),
                last_news=list(d.get("last_news", [])),
                last_standings=list(d.get("last_standings", [])),
                version=int(d.get("version", 0)),
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed run state: {e!r}") from e

    def copy(self) -> RunState:
        return RunState.from_dict(self.to_dict())

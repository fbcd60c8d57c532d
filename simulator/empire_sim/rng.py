"""Deterministic RNG — seeded linear congruential generator.

Every random outcome in a run (market prices, drafts, bot choices, combat
losses, spell rolls) is drawn from one cursor so that the same seed and the
same ordered actions always reproduce the same game.
"""

from __future__ import annotations

import math

# ---------------------------------------------------------------------------
# Low-level LCG
# ---------------------------------------------------------------------------

_MULT = 1103515245
_INC = 12345
_MASK31 = 0x7FFFFFFF


def advance(state: int) -> int:
    """Return the next LCG state. Pure function, exact integer math."""
    return (state * _MULT + _INC) & _MASK31


def normalize_seed(seed: int) -> int:
    """Fold any integer seed into the 31-bit state space."""
    return int(seed) & _MASK31


def round_half_up(x: float) -> int:
    """Round .5 towards +infinity. Game formulas round this way, not banker's style."""
    return math.floor(x + 0.5)


# ---------------------------------------------------------------------------
# Cursor
# ---------------------------------------------------------------------------

class Rng:
    """Mutable RNG cursor threaded explicitly through randomness consumers.

    The run owns one cursor; combat, spells and the bot pipeline receive it as
    an argument and advance it in place. There is no module-level generator.
    """

    __slots__ = ("state",)

    def __init__(self, seed: int = 0):
        self.state = normalize_seed(seed)

    def advance(self) -> int:
        """Step the cursor and return the new raw state."""
        self.state = advance(self.state)
        return self.state

    def rand_int(self, n: int) -> int:
        """Uniform integer in [0, n). Returns 0 without advancing when n <= 0."""
        if n <= 0:
            return 0
        return self.advance() % n

    def random(self) -> float:
        """Float in [0, 1) with 1/1000 resolution."""
        return (self.advance() % 1000) / 1000

    def uniform(self, lo: float, hi: float) -> float:
        return lo + self.random() * (hi - lo)

    def choice(self, items):
        if not items:
            raise IndexError("choice from empty sequence")
        return items[self.rand_int(len(items))]

    def shuffle(self, items: list) -> list:
        """Fisher-Yates shuffle in place, highest index first."""
        for i in range(len(items) - 1, 0, -1):
            j = self.advance() % (i + 1)
            items[i], items[j] = items[j], items[i]
        return items

    def copy(self) -> Rng:
        clone = Rng.__new__(Rng)
        clone.state = self.state
        return clone

    def get_state_dict(self) -> dict:
        return {"state": self.state}

    @classmethod
    def from_state_dict(cls, d: dict) -> Rng:
        rng = cls.__new__(cls)
        rng.state = normalize_seed(d["state"])
        return rng

    def __eq__(self, other) -> bool:
        return isinstance(other, Rng) and other.state == self.state

    def __repr__(self) -> str:
        return f"Rng(state={self.state})"

"""Empire strategy simulator — deterministic core package."""

__version__ = "0.1.0"

from .engine import RunEngine
from .state import RunState
from .actions import TurnRequest
from .runner import run_game, run_batch, GameResult, PassiveStrategy, RandomStrategy

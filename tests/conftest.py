"""Shared fixtures for the empire simulator test suite."""

import pytest

from empire_sim.bot.generation import create_bot_empire
from empire_sim.config import SimConfig, reset_config
from empire_sim.empire import create_empire, refresh_networth
from empire_sim.engine import RunEngine
from empire_sim.enums import BotArchetype, Era, Race
from empire_sim.rng import Rng


def make_empire(empire_id="p1", race=Race.HUMAN, era=Era.PAST, **overrides):
    """A fresh starting empire with scalar fields overridden."""
    empire = create_empire(empire_id, empire_id.upper(), race, era)
    for key, value in overrides.items():
        setattr(empire, key, value)
    refresh_networth(empire)
    return empire


def set_troops(empire, **counts):
    for kind in ("trparm", "trplnd", "trpfly", "trpsea", "trpwiz"):
        empire.troops.set(kind, counts.get(kind, 0))
    refresh_networth(empire)
    return empire


@pytest.fixture
def empire():
    return make_empire()


@pytest.fixture
def rival():
    return make_empire("p2")


@pytest.fixture
def bot():
    return create_bot_empire("bot_0_general_vask", BotArchetype.GENERAL_VASK, Race.ORC)


@pytest.fixture
def rng():
    return Rng(12345)


@pytest.fixture
def engine():
    return RunEngine(SimConfig())


@pytest.fixture
def run(engine):
    return engine.create_run(seed=777, player_name="Tester", run_id="testrun")


@pytest.fixture(autouse=True)
def _fresh_config():
    reset_config()
    yield
    reset_config()

"""Tests for the bonus catalog and effect lookups."""

import pytest

from empire_sim.bonuses import (
    ADVISORS, EDICTS, POLICIES, TECHS, EffectKind, effect_max, effect_total, has_effect,
    stat_bonus, stat_targets, tech_bonus,
)
from empire_sim.empire import get_modifier


# ─────────────────────────────────────────────────────
# Catalog
# ─────────────────────────────────────────────────────

class TestCatalog:
    def test_every_kind_has_a_stat_mapping(self):
        for kind in EffectKind:
            assert isinstance(stat_targets(kind), tuple)

    def test_military_feeds_offense_and_defense(self):
        assert stat_targets(EffectKind.MILITARY) == (("offense", 1), ("defense", 1))

    def test_tech_tracks(self):
        assert len(TECHS) == 25
        assert TECHS["farming_1"].level == 1
        assert TECHS["farming_5"].level == 5

    def test_sizes(self):
        assert len(ADVISORS) >= 40
        assert "gold_cache" in EDICTS
        assert set(POLICIES) == {"open_borders", "bank_charter", "forced_march", "war_economy",
                                 "magical_immunity"}


# ─────────────────────────────────────────────────────
# Lookups
# ─────────────────────────────────────────────────────

class TestLookups:
    def test_modifiers_stack_by_summing(self, empire):
        empire.advisors = ["war_council", "grand_general"]
        assert stat_bonus(empire, "offense") == pytest.approx(0.40)
        assert stat_bonus(empire, "defense") == pytest.approx(0.25)

    def test_effect_total_and_max(self, empire):
        empire.advisors = ["war_council", "grand_general"]
        assert effect_total(empire, EffectKind.OFFENSE) == pytest.approx(0.15)
        assert effect_max(empire, EffectKind.MILITARY) == pytest.approx(0.25)
        assert not has_effect(empire, EffectKind.PACIFIST)

    def test_policies_count(self, empire):
        empire.policies = ["magical_immunity"]
        assert has_effect(empire, EffectKind.PERMANENT_SHIELD)

    def test_unknown_policy_ignored(self, empire):
        empire.policies = ["retired_policy"]
        assert not has_effect(empire, EffectKind.PERMANENT_SHIELD)

    def test_tech_levels(self, empire):
        assert tech_bonus(empire, "foodpro") == 0
        empire.techs["farm"] = 2
        assert tech_bonus(empire, "foodpro") == pytest.approx(0.30)
        assert tech_bonus(empire, "offense") == 0

    def test_modifier_includes_advisors(self, empire):
        base = get_modifier(empire, "offense")
        empire.advisors = ["war_council"]
        assert get_modifier(empire, "offense") == pytest.approx(base + 0.15)

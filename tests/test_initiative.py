"""Tests for initiative and hit point resolution."""

from dm_toolkit.game.initiative import (
    INITIATIVE_RULES,
    fallback_initiative,
    first_defined,
    numeric,
    resolve_hit_points,
    resolve_initiative,
)


class TestNumeric:
    """Test stat value coercion."""

    def test_integers(self):
        assert numeric(7) == 7
        assert numeric(-2) == -2

    def test_floats_truncate(self):
        """Floats truncate toward zero."""
        assert numeric(2.9) == 2
        assert numeric(-2.9) == -2

    def test_numeric_strings(self):
        assert numeric("3") == 3
        assert numeric(" 4.5 ") == 4

    def test_non_numeric(self):
        """Booleans, junk strings and containers are not numbers."""
        assert numeric(True) is None
        assert numeric("fast") is None
        assert numeric(None) is None
        assert numeric({"max": 3}) is None
        assert numeric(float("nan")) is None


class TestResolveInitiative:
    """Test initiative resolution order."""

    def test_explicit_initiative(self):
        assert resolve_initiative({"initiative": 17}, 0, 3) == 17

    def test_initiative_wins_over_bonus(self):
        """An explicit score beats bonus and dexterity fields."""
        stats = {"dex_mod": 4, "initiative_bonus": 2, "initiative": 9}
        assert resolve_initiative(stats, 0, 1) == 9

    def test_bonus_before_dex(self):
        stats = {"dexMod": 4, "initiativeBonus": 1}
        assert resolve_initiative(stats, 0, 1) == 1

    def test_dex_modifier(self):
        assert resolve_initiative({"dex_mod": 3}, 0, 1) == 3

    def test_fallback_favours_earlier_members(self):
        """Without stats, earlier roster positions get higher scores."""
        scores = [resolve_initiative(None, i, 3) for i in range(3)]
        assert scores == [30, 20, 10]

    def test_fallback_ignores_unrelated_stats(self):
        assert resolve_initiative({"ac": 15}, 1, 2) == 10

    def test_fallback_step(self):
        assert fallback_initiative(0, 2, step=5) == 10

    def test_non_numeric_skipped(self):
        """A non-numeric rule value falls through to the next rule."""
        stats = {"initiative": "soon", "dex_mod": 2}
        assert first_defined(INITIATIVE_RULES, stats) == 2


class TestResolveHitPoints:
    """Test hit point resolution."""

    def test_max_only(self):
        """Current defaults to max."""
        hp = resolve_hit_points({"max_hp": 12})
        assert (hp.max_hp, hp.current_hp) == (12, 12)

    def test_spellings(self):
        assert resolve_hit_points({"maxHp": 8}).max_hp == 8
        assert resolve_hit_points({"hp_max": 9}).max_hp == 9
        assert resolve_hit_points({"hit_points": 10}).max_hp == 10

    def test_nested_object(self):
        hp = resolve_hit_points({"hp": {"max": 20, "current": 11}})
        assert (hp.max_hp, hp.current_hp) == (20, 11)

    def test_bare_hp_number(self):
        hp = resolve_hit_points({"hp": 7})
        assert (hp.max_hp, hp.current_hp) == (7, 7)

    def test_explicit_current(self):
        hp = resolve_hit_points({"max_hp": 15, "current_hp": 4})
        assert hp.current_hp == 4

    def test_no_data(self):
        """Absent data gives zero HP."""
        hp = resolve_hit_points(None)
        assert (hp.max_hp, hp.current_hp) == (0, 0)
        hp = resolve_hit_points({})
        assert (hp.max_hp, hp.current_hp) == (0, 0)

    def test_current_clamped(self):
        """Current HP stays within 0..max."""
        assert resolve_hit_points({"max_hp": 10, "current_hp": 14}).current_hp == 10
        assert resolve_hit_points({"max_hp": 10, "current_hp": -3}).current_hp == 0

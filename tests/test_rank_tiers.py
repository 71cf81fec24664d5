"""Tests for rank tier lookup."""

import pytest

from domain.services.rank_tiers import (
    RANK_TIERS,
    format_rank,
    get_division,
    get_rank_tier,
    get_tier_by_name,
    tier_changed,
)


class TestGetRankTier:
    """Tests for mapping rep to a tier."""

    @pytest.mark.parametrize(
        "rep,expected",
        [
            (0, "Bronze"),
            (1499, "Bronze"),
            (1500, "Silver"),
            (2999, "Silver"),
            (3000, "Gold"),
            (4500, "Diamond"),
            (6000, "Mythic"),
            (7500, "Legendary"),
            (8999, "Legendary"),
            (9000, "Masters"),
            (250000, "Masters"),
        ],
    )
    def test_thresholds(self, rep, expected):
        """Each tier starts exactly at its threshold."""
        assert get_rank_tier(rep).name == expected

    def test_negative_rep_is_lowest_tier(self):
        """Rep below zero still maps to Bronze."""
        assert get_rank_tier(-50).name == "Bronze"

    def test_tiers_are_ordered(self):
        """Thresholds strictly increase and only the top tier is unbounded."""
        thresholds = [tier.threshold for tier in RANK_TIERS]
        assert thresholds == sorted(thresholds)
        assert [tier.upper is None for tier in RANK_TIERS] == [False] * 6 + [True]

    def test_get_tier_by_name(self):
        """Tiers can be looked up by name."""
        assert get_tier_by_name("Gold").threshold == 3000

    def test_get_tier_by_unknown_name(self):
        """Unknown tier names raise ValueError."""
        with pytest.raises(ValueError):
            get_tier_by_name("Platinum")


class TestDivisions:
    """Tests for display divisions."""

    def test_divisions_within_tier(self):
        """Every 500 rep inside a tier is one division."""
        assert get_division(0) == "I"
        assert get_division(500) == "II"
        assert get_division(1499) == "III"
        assert get_division(1500) == "I"

    def test_top_tier_has_no_division(self):
        """Masters is not split into divisions."""
        assert get_division(9500) is None
        assert format_rank(9500) == "Masters"

    def test_format_rank(self):
        """format_rank joins tier and division."""
        assert format_rank(3600) == "Gold II"


class TestTierChanged:
    """Tests for detecting tier boundary crossings."""

    def test_rank_up(self):
        """Crossing a threshold upward returns 1."""
        assert tier_changed(1450, 1550) == 1

    def test_rank_down(self):
        """Dropping below a threshold returns -1."""
        assert tier_changed(1510, 1440) == -1

    def test_same_tier(self):
        """Movement inside a tier returns 0."""
        assert tier_changed(1000, 1100) == 0

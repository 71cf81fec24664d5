"""
Rank tier lookup.

Rank tiers are derived from cumulative rep and never stored.
"""

from dataclasses import dataclass

DIVISION_NAMES = ("I", "II", "III")
DIVISION_SPAN = 500


@dataclass(frozen=True)
class RankTier:
    """A named rep band. ``upper`` is None for the top tier."""

    name: str
    threshold: int
    upper: int | None

    @property
    def points(self) -> int:
        """Tier points used by the matchmaking scorer."""
        return self.threshold


# Ordered by increasing threshold
RANK_TIERS: tuple[RankTier, ...] = (
    RankTier("Bronze", 0, 1500),
    RankTier("Silver", 1500, 3000),
    RankTier("Gold", 3000, 4500),
    RankTier("Diamond", 4500, 6000),
    RankTier("Mythic", 6000, 7500),
    RankTier("Legendary", 7500, 9000),
    RankTier("Masters", 9000, None),
)

_TIERS_BY_NAME = {tier.name: tier for tier in RANK_TIERS}


def get_rank_tier(rep: int) -> RankTier:
    """Return the highest tier whose threshold is <= rep. Negative rep maps to the lowest tier."""
    current = RANK_TIERS[0]
    for tier in RANK_TIERS:
        if rep >= tier.threshold:
            current = tier
        else:
            break
    return current


def get_tier_by_name(name: str) -> RankTier:
    tier = _TIERS_BY_NAME.get(name)
    if tier is None:
        raise ValueError(f"Unknown rank tier: {name}")
    return tier


def get_division(rep: int) -> str | None:
    """Display division (I/II/III) within a tier; the top tier has none."""
    tier = get_rank_tier(rep)
    if tier.upper is None:
        return None
    index = min((max(rep, 0) - tier.threshold) // DIVISION_SPAN, len(DIVISION_NAMES) - 1)
    return DIVISION_NAMES[index]


def format_rank(rep: int) -> str:
    tier = get_rank_tier(rep)
    division = get_division(rep)
    return f"{tier.name} {division}" if division else tier.name


def tier_changed(old_rep: int, new_rep: int) -> int:
    """
    Compare tiers before and after a rep change.

    Returns:
        1 if the player moved up a tier, -1 if down, 0 if unchanged
    """
    old_index = RANK_TIERS.index(get_rank_tier(old_rep))
    new_index = RANK_TIERS.index(get_rank_tier(new_rep))
    if new_index > old_index:
        return 1
    if new_index < old_index:
        return -1
    return 0

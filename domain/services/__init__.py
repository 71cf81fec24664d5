"""
Domain services containing pure ranked business logic.
"""

from domain.services.matchmaking_scorer import MatchmakingScorer, ProposedPair
from domain.services.rank_tiers import RANK_TIERS, RankTier, get_rank_tier
from domain.services.rep_calculator import RepCalculator, RepChange, apply_rep_delta

__all__ = [
    "MatchmakingScorer",
    "ProposedPair",
    "RANK_TIERS",
    "RankTier",
    "RepCalculator",
    "RepChange",
    "apply_rep_delta",
    "get_rank_tier",
]

"""
Matchmaking scorer domain service.

Scores candidate pairs from the ranked queue and picks pairs to promote.
"""

from dataclasses import dataclass

from domain.models.queue_entry import QueueEntry
from domain.services.rank_tiers import get_rank_tier


@dataclass(frozen=True)
class ProposedPair:
    """A pair selected by a scoring pass, not yet promoted to a match."""

    first: QueueEntry
    second: QueueEntry
    score: float
    cross_region: bool = False

    @property
    def player_ids(self) -> tuple[int, int]:
        return (self.first.player_id, self.second.player_id)


class MatchmakingScorer:
    """
    Pure domain service for pairwise compatibility scoring.

    Lower scores are better. A pair is acceptable when its score (plus the
    region penalty for cross-region pairs) is at or below ``max_match_score``.
    """

    REP_WEIGHT = 0.4
    RANK_WEIGHT = 0.3
    QUEUE_TIME_WEIGHT = 0.2
    WIN_RATE_WEIGHT = 0.1

    REP_NORMALIZER = 225.0
    RANK_NORMALIZER = 500.0
    QUEUE_TIME_NORMALIZER = 300.0  # seconds

    def __init__(self, max_match_score: float = 2.0, region_penalty: float = 0.5):
        """
        Initialize the scorer.

        Args:
            max_match_score: Acceptance threshold for a pair score
            region_penalty: Flat penalty added to cross-region pair scores
        """
        self.max_match_score = max_match_score
        self.region_penalty = region_penalty

    def score_pair(self, a: QueueEntry, b: QueueEntry) -> float:
        """
        Weighted compatibility score for two queue entries (region ignored).

        Args:
            a: First entry
            b: Second entry

        Returns:
            Weighted sum of normalized rep, tier, queue-time and win-rate differences
        """
        rep_diff = abs(a.rep - b.rep)
        rank_diff = abs(get_rank_tier(a.rep).points - get_rank_tier(b.rep).points)
        queue_time_diff = abs(a.joined_at - b.joined_at)
        win_rate_diff = abs(a.win_rate - b.win_rate)

        return (
            (rep_diff / self.REP_NORMALIZER) * self.REP_WEIGHT
            + (rank_diff / self.RANK_NORMALIZER) * self.RANK_WEIGHT
            + (queue_time_diff / self.QUEUE_TIME_NORMALIZER) * self.QUEUE_TIME_WEIGHT
            + win_rate_diff * self.WIN_RATE_WEIGHT
        )

    def score_with_region(self, a: QueueEntry, b: QueueEntry) -> float:
        score = self.score_pair(a, b)
        if a.region != b.region:
            score += self.region_penalty
        return score

    def is_acceptable(self, score: float) -> bool:
        return score <= self.max_match_score

    def find_pairs(self, entries: list[QueueEntry]) -> list[ProposedPair]:
        """
        Run one scoring pass over the queue.

        Players are visited in join order, grouped by region. Each unclaimed
        player takes their best same-region candidate; cross-region candidates
        are only considered when no same-region candidate is acceptable.
        A player claimed earlier in the pass is never claimed again.

        Args:
            entries: All active queue entries

        Returns:
            Non-overlapping pairs, in the order they were claimed
        """
        ordered = sorted(entries, key=lambda e: (e.joined_at, e.player_id))
        by_region: dict[str, list[QueueEntry]] = {}
        for entry in ordered:
            by_region.setdefault(entry.region, []).append(entry)

        claimed: set[int] = set()
        pairs: list[ProposedPair] = []

        for region, players in by_region.items():
            for player in players:
                if player.player_id in claimed:
                    continue

                best, best_score = self._best_candidate(
                    player,
                    (c for c in players if c.player_id != player.player_id),
                    claimed,
                    penalty=0.0,
                )
                cross_region = False

                if best is None or not self.is_acceptable(best_score):
                    for other_region, others in by_region.items():
                        if other_region == region:
                            continue
                        candidate, score = self._best_candidate(
                            player, others, claimed, penalty=self.region_penalty
                        )
                        if candidate is not None and score < best_score:
                            best, best_score = candidate, score
                            cross_region = True

                if best is not None and self.is_acceptable(best_score):
                    claimed.add(player.player_id)
                    claimed.add(best.player_id)
                    pairs.append(
                        ProposedPair(first=player, second=best, score=best_score, cross_region=cross_region)
                    )

        return pairs

    def _best_candidate(self, player, candidates, claimed, penalty):
        best = None
        best_score = float("inf")
        for candidate in candidates:
            if candidate.player_id in claimed:
                continue
            score = self.score_pair(player, candidate) + penalty
            if score < best_score:
                best, best_score = candidate, score
        return best, best_score

"""
MatchmakingService: periodic pairing pass over the ranked queue.
"""

import logging
import random
import time
from typing import Callable

from domain.models.match import Match, MatchPhase, ParticipantSlot
from domain.models.notification import MATCH_FOUND
from domain.models.queue_entry import QueueEntry
from domain.services.matchmaking_scorer import MatchmakingScorer, ProposedPair
from repositories.interfaces import IMatchRepository, IQueueRepository
from services.errors import RankedError
from services.interfaces import IMatchmakingService
from services.match_phase_service import MatchPhaseService
from services.notification_service import NotificationService

logger = logging.getLogger("ranked_engine.services.matchmaking")


class MatchmakingService(IMatchmakingService):
    """
    Runs one scoring pass and turns accepted pairs into matches.

    Promotion is atomic per pair: both queue entries are consumed and the
    match inserted in one transaction, or nothing happens for that pair.
    """

    def __init__(
        self,
        queue_repo: IQueueRepository,
        match_repo: IMatchRepository,
        phase_service: MatchPhaseService,
        notification_service: NotificationService,
        scorer: MatchmakingScorer | None = None,
        stages: list[str] | None = None,
        hypercharge_chance: float = 0.10,
        pregame_timeout_seconds: float = 600,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.queue_repo = queue_repo
        self.match_repo = match_repo
        self.phase_service = phase_service
        self.notifications = notification_service
        self.scorer = scorer or MatchmakingScorer()
        self.stages = list(stages or [])
        self.hypercharge_chance = hypercharge_chance
        self.pregame_timeout_seconds = pregame_timeout_seconds
        self.rng = rng or random.Random()
        self.clock = clock

    def run_matchmaking_pass(self) -> list[Match]:
        """
        Score the current queue and promote every accepted pair.

        Entries that were evaluated but not matched get one more matchmaking
        attempt counted against them.

        Returns:
            Matches created in this pass
        """
        entries = self.queue_repo.get_all()
        if not entries:
            return []

        pairs = self.scorer.find_pairs(entries)
        created: list[Match] = []
        matched_ids: set[int] = set()

        for pair in pairs:
            match = self._promote(pair)
            if match is None:
                continue
            created.append(match)
            matched_ids.update(match.player_ids)

        unmatched = [e.player_id for e in entries if e.player_id not in matched_ids]
        self.queue_repo.increment_attempts(unmatched)

        if created or pairs:
            logger.info(
                f"Matchmaking pass: {len(entries)} queued, {len(pairs)} pairs proposed, {len(created)} matches created"
            )
        return created

    def _promote(self, pair: ProposedPair) -> Match | None:
        now = self.clock()
        draft = Match(
            match_id=0,
            participants=[self._slot(pair.first), self._slot(pair.second)],
            phase=MatchPhase.PREGAME,
            phase_started_at=now,
            phase_deadline=now + self.pregame_timeout_seconds,
            created_at=now,
            stage_pool=list(self.stages),
            is_hypercharged=self.rng.random() < self.hypercharge_chance,
        )
        draft.add_history(
            "created", now, score=round(pair.score, 4), cross_region=pair.cross_region
        )

        match = self.match_repo.create_from_queue(draft)
        if match is None:
            return None

        logger.info(
            f"Match {match.match_id} created: {pair.player_ids} score={pair.score:.3f}"
            f"{' cross-region' if pair.cross_region else ''}{' HYPERCHARGED' if match.is_hypercharged else ''}"
        )

        try:
            match = self.phase_service.transition_to(
                match.match_id,
                MatchPhase.PREGAME,
                MatchPhase.STAGE_SELECT,
                {"current_turn": match.participants[0].player_id},
            )
        except RankedError as exc:
            # Left in PREGAME; the deadline sweep fails it on timeout
            logger.warning(f"Match {match.match_id}: could not start stage select: {exc}")

        for slot in match.participants:
            opponent = match.get_opponent(slot.player_id)
            self.notifications.notify(
                slot.player_id,
                MATCH_FOUND,
                match_id=match.match_id,
                opponent_id=opponent.player_id,
                opponent_rep=opponent.rep,
                opponent_rank=opponent.rank_tier,
                is_hypercharged=match.is_hypercharged,
                phase=match.phase.value,
                current_turn=match.current_turn,
                stages=match.remaining_stages,
            )
        return match

    @staticmethod
    def _slot(entry: QueueEntry) -> ParticipantSlot:
        return ParticipantSlot(
            player_id=entry.player_id,
            rep=entry.rep,
            rank_tier=entry.rank_tier,
            region=entry.region,
            win_streak=entry.win_streak,
            joined_at=entry.joined_at,
        )

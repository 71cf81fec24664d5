"""Tests for the read-through match cache."""

from domain.models.match import MatchPhase
from services.match_cache import MatchCache


class CountingRepository:
    """Wraps a match repository and counts reads."""

    def __init__(self, inner):
        self.inner = inner
        self.reads = 0

    def get(self, match_id):
        self.reads += 1
        return self.inner.get(match_id)

    def get_active_for_player(self, player_id):
        self.reads += 1
        return self.inner.get_active_for_player(player_id)


class TestMatchCache:
    def test_second_read_is_cached(self, make_match, match_repository):
        repo = CountingRepository(match_repository)
        cache = MatchCache(repo)
        match = make_match(phase=MatchPhase.ACTIVE)

        cache.get(match.match_id)
        cache.get(match.match_id)

        assert repo.reads == 1
        assert len(cache) == 1

    def test_player_lookup_uses_cache(self, make_match, match_repository):
        repo = CountingRepository(match_repository)
        cache = MatchCache(repo)
        match = make_match(phase=MatchPhase.ACTIVE)

        assert cache.get_for_player(1).match_id == match.match_id
        assert cache.get_for_player(2).match_id == match.match_id
        assert cache.get(match.match_id).match_id == match.match_id
        assert repo.reads == 1

    def test_invalidate_forces_reload(self, make_match, match_repository):
        repo = CountingRepository(match_repository)
        cache = MatchCache(repo)
        match = make_match(phase=MatchPhase.ACTIVE)

        cache.get(match.match_id)
        cache.invalidate(match.match_id)
        cache.get(match.match_id)

        assert repo.reads == 2

    def test_terminal_matches_not_cached(self, make_match, match_repository, match_cache):
        match = make_match(phase=MatchPhase.ACTIVE)
        match.phase = MatchPhase.CANCELLED
        match_repository.compare_and_set(match, MatchPhase.ACTIVE)

        assert match_cache.get(match.match_id).phase == MatchPhase.CANCELLED
        assert len(match_cache) == 0

    def test_unknown_match(self, match_cache):
        assert match_cache.get(999) is None
        assert match_cache.get_for_player(999) is None

    def test_clear(self, make_match, match_cache):
        match = make_match(phase=MatchPhase.ACTIVE)
        match_cache.get(match.match_id)
        match_cache.clear()
        assert len(match_cache) == 0

"""
Match cache.

Read-through, in-memory copy of recently read matches. The database is the
only authority: every write path re-reads the match from the repository and
invalidates the cached copy afterwards, so a stale entry can only ever serve
a display read.
"""

import threading

from domain.models.match import Match
from repositories.interfaces import IMatchRepository


class MatchCache:
    """
    Caches matches by id, plus a player -> match_id index for lookups.

    Responsibilities:
    - Serve repeated status reads without hitting SQLite
    - Drop entries whenever a write touches the match

    Structure: dict[match_id, Match], dict[player_id, match_id]
    """

    def __init__(self, match_repo: IMatchRepository):
        self.match_repo = match_repo
        self._matches: dict[int, Match] = {}
        self._by_player: dict[int, int] = {}
        # Scheduler passes run in worker threads
        self._lock = threading.Lock()

    def get(self, match_id: int) -> Match | None:
        """
        Get a match, loading it from the repository on a miss.

        Terminal matches are not kept; they no longer change and are rarely re-read.
        """
        with self._lock:
            cached = self._matches.get(match_id)
        if cached is not None:
            return cached

        match = self.match_repo.get(match_id)
        if match is not None and not match.is_terminal:
            self._store(match)
        return match

    def get_for_player(self, player_id: int) -> Match | None:
        """The player's non-terminal match, if any."""
        with self._lock:
            match_id = self._by_player.get(player_id)
            cached = self._matches.get(match_id) if match_id is not None else None
        if cached is not None:
            return cached

        match = self.match_repo.get_active_for_player(player_id)
        if match is not None:
            self._store(match)
        return match

    def invalidate(self, match_id: int) -> None:
        with self._lock:
            match = self._matches.pop(match_id, None)
            if match is not None:
                for player_id in match.player_ids:
                    if self._by_player.get(player_id) == match_id:
                        del self._by_player[player_id]

    def clear(self) -> None:
        with self._lock:
            self._matches.clear()
            self._by_player.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._matches)

    def _store(self, match: Match) -> None:
        with self._lock:
            self._matches[match.match_id] = match
            for player_id in match.player_ids:
                self._by_player[player_id] = match.match_id

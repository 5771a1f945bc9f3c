from __future__ import annotations

import threading
import uuid
from typing import Dict, Optional

from ...engine.game import Game


class InMemorySessionStore:
    """Thread-safe in-memory game session store.

    Responsibilities:
    - Create new sessions with unique `game_id`s
    - Retrieve existing sessions by `game_id`
    - Delete sessions
    - Hand out a per-session lock so concurrent requests on one game are
      serialized
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._games: Dict[str, Game] = {}
        self._game_locks: Dict[str, threading.Lock] = {}

    def create(self, game: Game) -> str:
        """Store `game` under a fresh `game_id` and return the id."""
        gid = str(uuid.uuid4())
        with self._lock:
            self._games[gid] = game
            self._game_locks[gid] = threading.Lock()
        return gid

    def get(self, game_id: str) -> Optional[Game]:
        with self._lock:
            return self._games.get(game_id)

    def lock_for(self, game_id: str) -> Optional[threading.Lock]:
        with self._lock:
            return self._game_locks.get(game_id)

    def delete(self, game_id: str) -> bool:
        with self._lock:
            self._game_locks.pop(game_id, None)
            return self._games.pop(game_id, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._games)

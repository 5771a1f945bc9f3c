from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field, replace
from typing import List, Optional

from .board import Board, IllegalMoveError
from .move import (
    COLOURS,
    PROMOTION_PIECES,
    CastleKingside,
    CastleQueenside,
    Colour,
    Move,
    PieceKind,
    Square,
    StandardMove,
)
from ..search.service import SearchResult, SearchService


logger = logging.getLogger(__name__)

DRAW_MSG = "Draw by stalemate."
WIN_MSG = "You won by checkmate!"
LOSE_MSG = "You lost by checkmate."


class GameStateError(ValueError):
    """Raised when an action is not allowed in the session's current state."""


@dataclass
class Game:
    """One user-versus-engine session over a history of board snapshots.

    Responsibility: own the append-only board history, the replay cursor,
    a pending promotion and the end-of-game status. White moves first, so
    the side to move follows from the history length.
    """

    user_colour: Colour
    boards: List[Board] = field(default_factory=lambda: [Board.start()])
    moves: List[Move] = field(default_factory=list)
    moves_back: int = 0
    awaiting_promotion: Optional[StandardMove] = None
    finished: bool = False
    status: str = ""
    auto_reply: bool = True
    movetime_ms: Optional[int] = None
    workers: int = 1
    search: SearchService = field(default_factory=SearchService, repr=False)

    @classmethod
    def new(
        cls,
        user_colour: Optional[Colour] = None,
        *,
        auto_reply: bool = True,
        movetime_ms: Optional[int] = None,
        workers: int = 1,
        rng: Optional[random.Random] = None,
        search: Optional[SearchService] = None,
    ) -> "Game":
        rng = rng or random.Random()
        game = cls(
            user_colour=user_colour or rng.choice(COLOURS),
            auto_reply=auto_reply,
            movetime_ms=movetime_ms,
            workers=workers,
            search=search or SearchService(),
        )
        if game.auto_reply and game.side_to_move is not game.user_colour:
            game.engine_turn()
        return game

    # --- State ---
    @property
    def board(self) -> Board:
        return self.boards[-1]

    @property
    def viewed_board(self) -> Board:
        return self.boards[len(self.boards) - 1 - self.moves_back]

    @property
    def engine_colour(self) -> Colour:
        return self.user_colour.opponent

    @property
    def side_to_move(self) -> Colour:
        return Colour.WHITE if len(self.boards) % 2 == 1 else Colour.BLACK

    def legal_moves(self) -> List[Move]:
        return self.board.legal_moves(self.side_to_move)

    def in_check(self) -> bool:
        return self.board.is_in_check(self.side_to_move)

    def checkmate(self) -> bool:
        return self.board.is_in_checkmate(self.side_to_move)

    def stalemate(self) -> bool:
        return self.board.is_in_stalemate(self.side_to_move)

    def can_castle(self, kingside: bool) -> bool:
        if self.side_to_move is not self.user_colour or self.finished:
            return False
        wanted = CastleKingside if kingside else CastleQueenside
        return any(isinstance(m, wanted) for m in self.legal_moves())

    # --- User actions ---
    def user_move(
        self, start: Square, end: Square, promotion: Optional[PieceKind] = None
    ) -> Optional[Move]:
        """Play the user's standard move from ``start`` to ``end``.

        A pawn reaching the back rank without ``promotion`` parks the move in
        :attr:`awaiting_promotion` until :meth:`promote` is called.

        Returns:
            Optional[Move]: The engine's reply, if one was played.

        Raises:
            GameStateError: If the user may not move right now.
            IllegalMoveError: If no legal move goes from ``start`` to ``end``.
        """
        self._require_user_turn()
        candidates = [
            m
            for m in self.legal_moves()
            if isinstance(m, StandardMove) and m.start == start and m.end == end
        ]
        if not candidates:
            raise IllegalMoveError("illegal move")
        if candidates[0].promotion is None:
            return self._play_user(candidates[0])
        if promotion is None:
            self.awaiting_promotion = replace(candidates[0], promotion=None)
            return None
        chosen = next((m for m in candidates if m.promotion is promotion), None)
        if chosen is None:
            raise IllegalMoveError(f"cannot promote to {promotion.value}")
        return self._play_user(chosen)

    def promote(self, piece: PieceKind) -> Optional[Move]:
        """Complete the pending promotion with ``piece`` (knight or queen)."""
        pending = self.awaiting_promotion
        if pending is None:
            raise GameStateError("no promotion pending")
        if piece not in PROMOTION_PIECES:
            raise IllegalMoveError(f"cannot promote to {piece.value}")
        self.awaiting_promotion = None
        move = StandardMove(
            pending.colour, pending.piece, pending.start, pending.end, pending.captured, piece
        )
        return self._play_user(move)

    def castle(self, kingside: bool) -> Optional[Move]:
        self._require_user_turn()
        move: Move = CastleKingside(self.user_colour) if kingside else CastleQueenside(self.user_colour)
        if move not in self.legal_moves():
            raise IllegalMoveError("illegal move")
        return self._play_user(move)

    def replay(self, action: str) -> None:
        """Move the replay cursor: ``back``, ``start``, ``forward`` or ``end``."""
        oldest = len(self.boards) - 1
        if action == "back":
            self.moves_back = min(self.moves_back + 1, oldest)
        elif action == "start":
            self.moves_back = oldest
        elif action == "forward":
            self.moves_back = max(self.moves_back - 1, 0)
        elif action == "end":
            self.moves_back = 0
        else:
            raise ValueError(f"unknown replay action: {action!r}")

    # --- Turns ---
    def engine_turn(self) -> Optional[Move]:
        """Let the engine move for the side to move; finish the game if it cannot."""
        if self.finished:
            raise GameStateError("game is over")
        if self.side_to_move is not self.engine_colour:
            raise GameStateError("not the engine's turn")
        res = self.analyse()
        if res.best_move is None:
            self._finish(self.side_to_move)
            return None
        self._push(res.best_move)
        self._check_user_can_move()
        return res.best_move

    def analyse(
        self, movetime_ms: Optional[int] = None, workers: Optional[int] = None
    ) -> SearchResult:
        return self.search.search(
            self.board,
            self.side_to_move,
            movetime_ms=movetime_ms if movetime_ms is not None else self.movetime_ms,
            workers=workers if workers is not None else self.workers,
        )

    def _play_user(self, move: Move) -> Optional[Move]:
        self._push(move)
        if self.board.has_legal_moves(self.side_to_move):
            if self.auto_reply:
                return self.engine_turn()
            return None
        self._finish(self.side_to_move)
        return None

    def _push(self, move: Move) -> None:
        self.boards.append(self.board.apply(move))
        self.moves.append(move)
        logger.info("move", extra={"move": str(move), "ply": len(self.moves)})

    def _check_user_can_move(self) -> None:
        side = self.side_to_move
        if not self.board.has_legal_moves(side):
            self._finish(side)

    def _finish(self, stuck: Colour) -> None:
        # ``stuck`` is the side to move that has no legal move
        if self.board.is_in_check(stuck):
            self.status = LOSE_MSG if stuck is self.user_colour else WIN_MSG
        else:
            self.status = DRAW_MSG
        self.finished = True
        logger.info("game over", extra={"status": self.status})

    def _require_user_turn(self) -> None:
        if self.finished:
            raise GameStateError("game is over")
        if self.moves_back != 0:
            raise GameStateError("replay in progress")
        if self.awaiting_promotion is not None:
            raise GameStateError("promotion pending")
        if self.side_to_move is not self.user_colour:
            raise GameStateError("not the user's turn")

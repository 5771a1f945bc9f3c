"""Chess rules and move-selection engine.

The call surface below is what a front end needs: start a game, list legal
moves, apply one, classify the position and ask the engine for its move.
"""

from __future__ import annotations

from typing import List, Optional

from .engine.board import Board, CastlingRights, IllegalMoveError
from .engine.move import (
    CastleKingside,
    CastleQueenside,
    Colour,
    Move,
    PieceKind,
    Square,
    StandardMove,
    opponent,
)
from .search.service import SearchResult, SearchService, choose_move


__all__ = [
    "Board",
    "CastleKingside",
    "CastleQueenside",
    "CastlingRights",
    "Colour",
    "IllegalMoveError",
    "Move",
    "PieceKind",
    "SearchResult",
    "SearchService",
    "Square",
    "StandardMove",
    "apply",
    "choose_move",
    "is_in_check",
    "is_in_checkmate",
    "is_in_stalemate",
    "legal_moves",
    "new_game",
    "opponent",
]


def new_game() -> Board:
    return Board.start()


def legal_moves(colour: Colour, board: Board) -> List[Move]:
    return board.legal_moves(colour)


def apply(board: Board, move: Move) -> Board:
    return board.apply(move)


def is_in_check(colour: Colour, board: Board, at: Optional[Square] = None) -> bool:
    return board.is_in_check(colour, at)


def is_in_checkmate(colour: Colour, board: Board) -> bool:
    return board.is_in_checkmate(colour)


def is_in_stalemate(colour: Colour, board: Board) -> bool:
    return board.is_in_stalemate(colour)

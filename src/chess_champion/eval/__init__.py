"""Move benefit heuristic.

Pure, deterministic, and side-effect free. The score rates a single move
transition for the side making it; it never looks at the opponent's replies.
"""

from __future__ import annotations

from typing import Final

from chess_champion.engine.board import Board
from chess_champion.engine.move import PIECE_VALUES, Colour, Move, PieceKind, StandardMove


# Dominates every other term
CHECKMATE_BENEFIT: Final = 5000
# Multiplier applied to captured and promoted piece values
MATERIAL_WEIGHT: Final = 100
CENTRE_BONUS: Final = 2
CENTRE_FILES: Final = range(2, 6)


def benefit(colour: Colour, move: Move, board: Board) -> int:
    """Score how desirable ``move`` is for ``colour``.

    Args:
        colour (Colour): Side making the move.
        move (Move): A move drawn from ``board``'s legal moves.
        board (Board): Position before the move.

    Returns:
        int: :data:`CHECKMATE_BENEFIT` when the move mates the opponent;
            otherwise captured and promoted material plus, for non-king
            pieces, a centre-file bonus and the signed rank advance.
    """
    if board.after(move).is_in_checkmate(colour.opponent):
        return CHECKMATE_BENEFIT
    if not isinstance(move, StandardMove):
        return 0

    total = 0
    if move.captured is not None:
        total += PIECE_VALUES[move.captured] * MATERIAL_WEIGHT
    if move.promotion is not None:
        total += PIECE_VALUES[move.promotion] * MATERIAL_WEIGHT
    if move.piece is not PieceKind.KING:
        if move.end.file in CENTRE_FILES:
            total += CENTRE_BONUS
        total += advance(colour, move)
    return total


def advance(colour: Colour, move: StandardMove) -> int:
    """Ranks gained toward the opponent's back rank (negative when retreating)."""
    gain = move.end.rank - move.start.rank
    return gain if colour is Colour.WHITE else -gain

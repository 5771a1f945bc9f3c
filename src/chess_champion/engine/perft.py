from __future__ import annotations

from .board import Board
from .move import Colour


def perft(board: Board, colour: Colour, depth: int) -> int:
    """Count leaf positions of the legal move tree.

    Definition:
    - depth == 0 returns 1 (the current node).
    - depth > 0 returns the sum over all legal child positions of
      perft(child, opponent, depth - 1), with ``colour`` moving first.
    """
    if depth < 0:
        raise ValueError("depth must be >= 0")
    if depth == 0:
        return 1
    moves = board.legal_moves(colour)
    if depth == 1:
        return len(moves)
    return sum(perft(board.after(m), colour.opponent, depth - 1) for m in moves)

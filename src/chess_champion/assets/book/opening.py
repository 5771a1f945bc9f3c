from __future__ import annotations

import random
from typing import Optional, Sequence

from ...engine.board import Board
from ...engine.move import PAWN_RANKS, Colour, PieceKind, Square, StandardMove


# 3 is the queen's pawn, 4 the king's pawn
OPENING_FILES = (3, 4)


class OpeningBook:
    """Depth-one opening book.

    Notes:
    - Only the exact starting placement is in the book; castling history is
      not consulted.
    - The book move is a pawn double step on one of :data:`OPENING_FILES`,
      picked uniformly at random. Pass a seeded ``random.Random`` for
      reproducible picks.
    """

    def __init__(
        self, rng: Optional[random.Random] = None, files: Sequence[int] = OPENING_FILES
    ) -> None:
        self._rng = rng or random.Random()
        self.files = tuple(files)

    def find_move(self, board: Board, colour: Colour) -> Optional[StandardMove]:
        if not board.is_start_layout():
            return None
        file = self._rng.choice(self.files)
        rank = PAWN_RANKS[colour]
        step = 2 if colour is Colour.WHITE else -2
        return StandardMove(colour, PieceKind.PAWN, Square(file, rank), Square(file, rank + step))

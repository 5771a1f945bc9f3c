from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, NamedTuple, Optional, Union


class Colour(Enum):
    WHITE = "white"
    BLACK = "black"

    @property
    def opponent(self) -> "Colour":
        return Colour.BLACK if self is Colour.WHITE else Colour.WHITE


class PieceKind(Enum):
    PAWN = "pawn"
    KNIGHT = "knight"
    BISHOP = "bishop"
    ROOK = "rook"
    QUEEN = "queen"
    KING = "king"


COLOURS = (Colour.WHITE, Colour.BLACK)
PIECE_KINDS = (
    PieceKind.PAWN,
    PieceKind.KNIGHT,
    PieceKind.BISHOP,
    PieceKind.ROOK,
    PieceKind.QUEEN,
    PieceKind.KING,
)

# Relative piece values; the king is never a legal capture target
PIECE_VALUES: Dict[PieceKind, int] = {
    PieceKind.PAWN: 1,
    PieceKind.KNIGHT: 3,
    PieceKind.BISHOP: 3,
    PieceKind.ROOK: 5,
    PieceKind.QUEEN: 9,
}

PROMOTION_PIECES = (PieceKind.KNIGHT, PieceKind.QUEEN)

# Rank holding the back-row pieces and the pawns of each colour
BACK_RANKS: Dict[Colour, int] = {Colour.WHITE: 0, Colour.BLACK: 7}
PAWN_RANKS: Dict[Colour, int] = {Colour.WHITE: 1, Colour.BLACK: 6}


def opponent(colour: Colour) -> Colour:
    """Return the other colour."""
    return colour.opponent


class Square(NamedTuple):
    """Board coordinate as ``(file, rank)``, both zero-based from white's a1."""

    file: int
    rank: int

    def is_valid(self) -> bool:
        return 0 <= self.file < 8 and 0 <= self.rank < 8

    @property
    def idx(self) -> int:
        """Bit index used by the board's bitboards (a1=0 .. h8=63)."""
        return self.rank * 8 + self.file

    @classmethod
    def from_index(cls, idx: int) -> "Square":
        return cls(idx % 8, idx // 8)

    @property
    def name(self) -> str:
        """Algebraic square name such as ``"e4"``.

        Raises:
            ValueError: If the square is off the board.
        """
        if not self.is_valid():
            raise ValueError(f"invalid square: {tuple(self)!r}")
        return chr(ord("a") + self.file) + str(self.rank + 1)

    @classmethod
    def from_name(cls, s: str) -> "Square":
        """Convert an algebraic name into a square.

        Args:
            s (str): Square name such as ``"e4"``.

        Returns:
            Square: The named square.

        Raises:
            ValueError: If ``s`` is not a valid square.
        """
        if len(s) != 2 or s[0] < "a" or s[0] > "h" or s[1] < "1" or s[1] > "8":
            raise ValueError(f"invalid square: {s!r}")
        return cls(ord(s[0]) - ord("a"), int(s[1]) - 1)


@dataclass(frozen=True)
class StandardMove:
    """Any move other than castling.

    Attributes:
        colour (Colour): Side making the move.
        piece (PieceKind): Kind of the moving piece.
        start (Square): Origin square.
        end (Square): Destination square.
        captured (Optional[PieceKind]): Opponent piece standing on ``end``.
        promotion (Optional[PieceKind]): Knight or queen when a pawn reaches
            the opponent's back rank.
    """

    colour: Colour
    piece: PieceKind
    start: Square
    end: Square
    captured: Optional[PieceKind] = None
    promotion: Optional[PieceKind] = None

    def __str__(self) -> str:
        sep = "x" if self.captured is not None else "-"
        promo = f"={self.promotion.value}" if self.promotion is not None else ""
        return f"{self.colour.value} {self.piece.value} {self.start.name}{sep}{self.end.name}{promo}"


@dataclass(frozen=True)
class CastleKingside:
    colour: Colour

    def __str__(self) -> str:
        return f"{self.colour.value} castles kingside"


@dataclass(frozen=True)
class CastleQueenside:
    colour: Colour

    def __str__(self) -> str:
        return f"{self.colour.value} castles queenside"


Move = Union[StandardMove, CastleKingside, CastleQueenside]

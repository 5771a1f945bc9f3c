from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Iterator, List, Mapping, Optional, Tuple, Union

from .move import (
    BACK_RANKS,
    PAWN_RANKS,
    PIECE_KINDS,
    PROMOTION_PIECES,
    CastleKingside,
    CastleQueenside,
    Colour,
    Move,
    PieceKind,
    Square,
    StandardMove,
)


# Piece indices for bitboards
WP, WN, WB, WR, WQ, WK, BP, BN, BB, BR, BQ, BK = range(12)
COLOUR_OFFSET: Dict[Colour, int] = {Colour.WHITE: 0, Colour.BLACK: 6}
KIND_OFFSET: Dict[PieceKind, int] = {kind: i for i, kind in enumerate(PIECE_KINDS)}

KNIGHT_OFFSETS = ((1, 2), (1, -2), (-1, 2), (-1, -2), (2, 1), (2, -1), (-2, 1), (-2, -1))
DIAGONALS = ((1, 1), (1, -1), (-1, 1), (-1, -1))
ORTHOGONALS = ((0, 1), (0, -1), (1, 0), (-1, 0))
LINE_DIRECTIONS: Dict[PieceKind, Tuple[Tuple[int, int], ...]] = {
    PieceKind.BISHOP: DIAGONALS,
    PieceKind.ROOK: ORTHOGONALS,
    PieceKind.QUEEN: DIAGONALS + ORTHOGONALS,
    PieceKind.KING: DIAGONALS + ORTHOGONALS,
}

BACK_ROW = (
    PieceKind.ROOK,
    PieceKind.KNIGHT,
    PieceKind.BISHOP,
    PieceKind.QUEEN,
    PieceKind.KING,
    PieceKind.BISHOP,
    PieceKind.KNIGHT,
    PieceKind.ROOK,
)

# (king destination file, rook origin file, rook destination file)
CASTLE_FILES = {True: (6, 7, 5), False: (2, 0, 3)}
# Files strictly between king and rook, and files the king stands on, crosses or lands on
CASTLE_EMPTY_FILES = {True: (5, 6), False: (1, 2, 3)}
CASTLE_KING_FILES = {True: (4, 5, 6), False: (4, 3, 2)}
KING_HOME_FILE = 4


class IllegalMoveError(ValueError):
    """Raised when a move is not legal on the board it is applied to."""


def bb_index(colour: Colour, kind: PieceKind) -> int:
    return COLOUR_OFFSET[colour] + KIND_OFFSET[kind]


def _bit(bb: int, idx: int) -> bool:
    return (bb >> idx) & 1 == 1


@dataclass(frozen=True)
class CastlingRights:
    """Castling-relevant history of one side."""

    king_moved: bool = False
    kingside_rook_moved: bool = False
    queenside_rook_moved: bool = False

    def rook_moved(self, kingside: bool) -> bool:
        return self.kingside_rook_moved if kingside else self.queenside_rook_moved


PlacementKey = Union[Square, str]


@dataclass(frozen=True)
class Board:
    """Immutable board snapshot.

    Notes:
    - Squares are ``(file, rank)`` pairs; bitboard bit ``rank * 8 + file``
      (a1=0 .. h8=63), rank-major from white's perspective.
    - Twelve bitboards indexed ``WP..BK``; a square is set in at most one.
    - Boards are never mutated; :meth:`apply` and :meth:`after` return new
      boards.
    """

    bb: Tuple[int, ...]
    white_rights: CastlingRights
    black_rights: CastlingRights
    white_king: Square
    black_king: Square
    # (white occupancy, black occupancy), derived from bb
    _occ: Tuple[int, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        bb = self.bb
        white = bb[WP] | bb[WN] | bb[WB] | bb[WR] | bb[WQ] | bb[WK]
        black = bb[BP] | bb[BN] | bb[BB] | bb[BR] | bb[BQ] | bb[BK]
        object.__setattr__(self, "_occ", (white, black))

    # --- Construction ---
    @classmethod
    def start(cls) -> "Board":
        """Create a board in the standard starting layout."""
        return cls.from_placement(start_placement())

    @classmethod
    def from_placement(
        cls,
        placement: Mapping[PlacementKey, Tuple[Colour, PieceKind]],
        white_rights: Optional[CastlingRights] = None,
        black_rights: Optional[CastlingRights] = None,
    ) -> "Board":
        """Create a board from a square -> (colour, piece) mapping.

        Args:
            placement: Pieces keyed by :class:`Square` or square name
                (``"e1"``).
            white_rights: Castling history for white. Derived from the
                placement when omitted: a king off its home square or a
                rook off its corner counts as moved.
            black_rights: Same for black.

        Returns:
            Board: The described position.

        Raises:
            ValueError: If a square is invalid or repeated, a pawn stands
                on a back rank, a side does not have exactly one king, or
                explicit castling rights claim an unmoved king or rook that
                is not on its home square.
        """
        bb = [0] * 12
        kings: Dict[Colour, List[Square]] = {Colour.WHITE: [], Colour.BLACK: []}
        seen: set[Square] = set()
        for key, (colour, kind) in placement.items():
            sq = Square.from_name(key) if isinstance(key, str) else Square(*key)
            if not sq.is_valid():
                raise ValueError(f"invalid square: {tuple(sq)!r}")
            if sq in seen:
                raise ValueError(f"square occupied twice: {sq.name}")
            seen.add(sq)
            if kind is PieceKind.PAWN and sq.rank in (0, 7):
                raise ValueError(f"pawn on back rank: {sq.name}")
            if kind is PieceKind.KING:
                kings[colour].append(sq)
            bb[bb_index(colour, kind)] |= 1 << sq.idx

        for colour, squares in kings.items():
            if len(squares) != 1:
                raise ValueError(f"{colour.value} must have exactly one king")

        rights: Dict[Colour, CastlingRights] = {}
        for colour, given in ((Colour.WHITE, white_rights), (Colour.BLACK, black_rights)):
            derived = _rights_from_bitboards(bb, colour)
            if given is None:
                rights[colour] = derived
                continue
            if (
                (not given.king_moved and derived.king_moved)
                or (not given.kingside_rook_moved and derived.kingside_rook_moved)
                or (not given.queenside_rook_moved and derived.queenside_rook_moved)
            ):
                raise ValueError(f"{colour.value} castling rights disagree with placement")
            rights[colour] = given

        return cls(
            bb=tuple(bb),
            white_rights=rights[Colour.WHITE],
            black_rights=rights[Colour.BLACK],
            white_king=kings[Colour.WHITE][0],
            black_king=kings[Colour.BLACK][0],
        )

    # --- Queries ---
    def occupancy(self, colour: Colour) -> int:
        return self._occ[0] if colour is Colour.WHITE else self._occ[1]

    def king_square(self, colour: Colour) -> Square:
        return self.white_king if colour is Colour.WHITE else self.black_king

    def castling_rights(self, colour: Colour) -> CastlingRights:
        return self.white_rights if colour is Colour.WHITE else self.black_rights

    def piece_at(self, square: Square) -> Optional[Tuple[Colour, PieceKind]]:
        """Return the ``(colour, piece)`` on ``square``, or ``None`` when empty."""
        assert square.is_valid(), f"square off the board: {tuple(square)!r}"
        idx = square.idx
        for colour in (Colour.WHITE, Colour.BLACK):
            kind = self._kind_at(idx, colour)
            if kind is not None:
                return colour, kind
        return None

    def pieces(self) -> Iterator[Tuple[Square, Colour, PieceKind]]:
        """Yield every piece as ``(square, colour, piece)`` in bit order."""
        for colour in (Colour.WHITE, Colour.BLACK):
            for kind in PIECE_KINDS:
                b = self.bb[bb_index(colour, kind)]
                while b:
                    lsb = b & -b
                    yield Square.from_index(lsb.bit_length() - 1), colour, kind
                    b ^= lsb

    def is_start_layout(self) -> bool:
        """Return True when the piece placement equals the starting layout."""
        return self.bb == START_BITBOARDS

    def _kind_at(self, idx: int, colour: Colour) -> Optional[PieceKind]:
        base = COLOUR_OFFSET[colour]
        for offset, kind in enumerate(PIECE_KINDS):
            if (self.bb[base + offset] >> idx) & 1:
                return kind
        return None

    # --- Move generation ---
    def pseudo_legal_moves(self, colour: Colour, include_castling: bool = True) -> List[Move]:
        """Return moves obeying piece movement rules for ``colour``.

        The moves may leave ``colour``'s own king in check. Squares are
        scanned file by file (a1, a2, .., a8, b1, ..) and castling moves come
        last, kingside first.
        """
        return list(self._iter_pseudo_legal(colour, include_castling))

    def _iter_pseudo_legal(self, colour: Colour, include_castling: bool) -> Iterator[Move]:
        own = self.occupancy(colour)
        opp = self.occupancy(colour.opponent)
        for file in range(8):
            for rank in range(8):
                idx = rank * 8 + file
                if not (own >> idx) & 1:
                    continue
                kind = self._kind_at(idx, colour)
                start = Square(file, rank)
                if kind is PieceKind.PAWN:
                    yield from self._pawn_moves(colour, start, opp)
                elif kind is PieceKind.KNIGHT:
                    yield from self._knight_moves(colour, start, own, opp)
                else:
                    yield from self._line_moves(colour, kind, start, own, opp)  # type: ignore[arg-type]
        if include_castling:
            yield from self._castling_moves(colour)

    def _pawn_moves(self, colour: Colour, start: Square, opp: int) -> Iterator[StandardMove]:
        file, rank = start
        occ = self._occ[0] | self._occ[1]
        direction = 1 if colour is Colour.WHITE else -1
        promote = rank == PAWN_RANKS[colour.opponent]
        end_rank = rank + direction

        # Forward steps; the double step needs both squares empty
        ranks = [end_rank]
        if rank == PAWN_RANKS[colour]:
            ranks.append(rank + 2 * direction)
        for r in ranks:
            if (occ >> (r * 8 + file)) & 1:
                break
            yield from _pawn_move_variants(colour, start, Square(file, r), None, promote)

        # Captures
        for df in (1, -1):
            end = Square(file + df, end_rank)
            if end.is_valid() and (opp >> end.idx) & 1:
                captured = self._kind_at(end.idx, colour.opponent)
                yield from _pawn_move_variants(colour, start, end, captured, promote)

    def _knight_moves(
        self, colour: Colour, start: Square, own: int, opp: int
    ) -> Iterator[StandardMove]:
        f, r = start
        for df, dr in KNIGHT_OFFSETS:
            tf, tr = f + df, r + dr
            if not (0 <= tf < 8 and 0 <= tr < 8):
                continue
            to = tr * 8 + tf
            if (own >> to) & 1:
                continue
            captured = self._kind_at(to, colour.opponent) if (opp >> to) & 1 else None
            yield StandardMove(colour, PieceKind.KNIGHT, start, Square(tf, tr), captured)

    def _line_moves(
        self, colour: Colour, kind: PieceKind, start: Square, own: int, opp: int
    ) -> Iterator[StandardMove]:
        f, r = start
        max_distance = 1 if kind is PieceKind.KING else 7
        for df, dr in LINE_DIRECTIONS[kind]:
            tf, tr = f, r
            for _ in range(max_distance):
                tf += df
                tr += dr
                if not (0 <= tf < 8 and 0 <= tr < 8):
                    break
                to = tr * 8 + tf
                if (own >> to) & 1:
                    break
                if (opp >> to) & 1:
                    captured = self._kind_at(to, colour.opponent)
                    yield StandardMove(colour, kind, start, Square(tf, tr), captured)
                    break
                yield StandardMove(colour, kind, start, Square(tf, tr))

    def _castling_moves(self, colour: Colour) -> Iterator[Move]:
        rights = self.castling_rights(colour)
        if rights.king_moved:
            return
        rank = BACK_RANKS[colour]
        occ = self._occ[0] | self._occ[1]
        for kingside in (True, False):
            if rights.rook_moved(kingside):
                continue
            if any((occ >> (rank * 8 + f)) & 1 for f in CASTLE_EMPTY_FILES[kingside]):
                continue
            if any(self.is_in_check(colour, at=Square(f, rank)) for f in CASTLE_KING_FILES[kingside]):
                continue
            yield CastleKingside(colour) if kingside else CastleQueenside(colour)

    # --- Check oracle ---
    def is_in_check(self, colour: Colour, at: Optional[Square] = None) -> bool:
        """Return True if ``colour``'s king is attacked.

        Args:
            colour (Colour): Side whose king is tested.
            at (Optional[Square]): Hypothetical king square. When given, the
                check treats a king of ``colour`` as standing there; the
                board itself is untouched.

        Returns:
            bool: Whether an opposing pawn, knight, slider or king attacks
                the king square.
        """
        king = self.king_square(colour) if at is None else at
        assert king.is_valid(), f"square off the board: {tuple(king)!r}"
        f, r = king
        bb = self.bb
        base = COLOUR_OFFSET[colour.opponent]
        occ = self._occ[0] | self._occ[1]

        # Pawns capture toward the king's side of the board
        pawns = bb[base + KIND_OFFSET[PieceKind.PAWN]]
        pr = r + (1 if colour is Colour.WHITE else -1)
        if 0 <= pr < 8:
            for pf in (f + 1, f - 1):
                if 0 <= pf < 8 and (pawns >> (pr * 8 + pf)) & 1:
                    return True

        knights = bb[base + KIND_OFFSET[PieceKind.KNIGHT]]
        for df, dr in KNIGHT_OFFSETS:
            tf, tr = f + df, r + dr
            if 0 <= tf < 8 and 0 <= tr < 8 and (knights >> (tr * 8 + tf)) & 1:
                return True

        queens = bb[base + KIND_OFFSET[PieceKind.QUEEN]]
        diagonal = bb[base + KIND_OFFSET[PieceKind.BISHOP]] | queens
        if _ray_hits(f, r, DIAGONALS, diagonal, occ):
            return True
        orthogonal = bb[base + KIND_OFFSET[PieceKind.ROOK]] | queens
        if _ray_hits(f, r, ORTHOGONALS, orthogonal, occ):
            return True

        kings = bb[base + KIND_OFFSET[PieceKind.KING]]
        for df, dr in DIAGONALS + ORTHOGONALS:
            tf, tr = f + df, r + dr
            if 0 <= tf < 8 and 0 <= tr < 8 and (kings >> (tr * 8 + tf)) & 1:
                return True

        return False

    # --- Legality and terminal states ---
    def legal_moves(self, colour: Colour) -> List[Move]:
        """Return pseudo-legal moves that do not leave ``colour`` in check."""
        return [
            m
            for m in self._iter_pseudo_legal(colour, True)
            if not self.after(m).is_in_check(colour)
        ]

    def has_legal_moves(self, colour: Colour) -> bool:
        """Return True if ``colour`` has at least one legal move."""
        return any(
            not self.after(m).is_in_check(colour) for m in self._iter_pseudo_legal(colour, True)
        )

    def is_in_checkmate(self, colour: Colour) -> bool:
        return self.is_in_check(colour) and not self.has_legal_moves(colour)

    def is_in_stalemate(self, colour: Colour) -> bool:
        return not self.is_in_check(colour) and not self.has_legal_moves(colour)

    # --- Transitions ---
    def apply(self, move: Move) -> "Board":
        """Return a new Board with ``move`` applied if legal.

        - Validates the move against the mover's legal moves.
        - Keeps the original board unchanged.

        Raises:
            IllegalMoveError: If a square is malformed or off the board, or
                ``move`` is not among ``legal_moves(move.colour)``.
        """
        if isinstance(move, StandardMove):
            move = replace(move, start=_as_square(move.start), end=_as_square(move.end))
        if move not in self.legal_moves(move.colour):
            raise IllegalMoveError(f"illegal move: {move}")
        return self.after(move)

    def after(self, move: Move) -> "Board":
        """Return the board after ``move`` without validating it.

        The move must come from this board's move generator; the search and
        the legality filter use this path.
        """
        colour = move.colour
        opp = colour.opponent
        base = COLOUR_OFFSET[colour]
        bb = list(self.bb)
        rights = {Colour.WHITE: self.white_rights, Colour.BLACK: self.black_rights}
        kings = {Colour.WHITE: self.white_king, Colour.BLACK: self.black_king}

        if isinstance(move, StandardMove):
            s = move.start.idx
            e = move.end.idx
            bb[base + KIND_OFFSET[move.piece]] &= ~(1 << s)
            if move.captured is not None:
                bb[COLOUR_OFFSET[opp] + KIND_OFFSET[move.captured]] &= ~(1 << e)
                # A rook taken on its corner can no longer castle
                if move.captured is PieceKind.ROOK and move.end.rank == BACK_RANKS[opp]:
                    if move.end.file == 7:
                        rights[opp] = replace(rights[opp], kingside_rook_moved=True)
                    elif move.end.file == 0:
                        rights[opp] = replace(rights[opp], queenside_rook_moved=True)
            placed = move.promotion if move.promotion is not None else move.piece
            bb[base + KIND_OFFSET[placed]] |= 1 << e

            if move.piece is PieceKind.KING:
                rights[colour] = replace(rights[colour], king_moved=True)
                kings[colour] = move.end
            elif move.piece is PieceKind.ROOK and move.start.rank == BACK_RANKS[colour]:
                if move.start.file == 7:
                    rights[colour] = replace(rights[colour], kingside_rook_moved=True)
                elif move.start.file == 0:
                    rights[colour] = replace(rights[colour], queenside_rook_moved=True)
        else:
            kingside = isinstance(move, CastleKingside)
            rank = BACK_RANKS[colour]
            king_to, rook_from, rook_to = CASTLE_FILES[kingside]
            k = base + KIND_OFFSET[PieceKind.KING]
            rk = base + KIND_OFFSET[PieceKind.ROOK]
            bb[k] = (bb[k] & ~(1 << (rank * 8 + KING_HOME_FILE))) | (1 << (rank * 8 + king_to))
            bb[rk] = (bb[rk] & ~(1 << (rank * 8 + rook_from))) | (1 << (rank * 8 + rook_to))
            rights[colour] = replace(rights[colour], king_moved=True)
            kings[colour] = Square(king_to, rank)

        return Board(
            bb=tuple(bb),
            white_rights=rights[Colour.WHITE],
            black_rights=rights[Colour.BLACK],
            white_king=kings[Colour.WHITE],
            black_king=kings[Colour.BLACK],
        )


def _as_square(value: object) -> Square:
    # Plain (file, rank) pairs are accepted; anything else is an illegal move
    try:
        file, rank = value  # type: ignore[misc]
    except (TypeError, ValueError) as e:
        raise IllegalMoveError(f"illegal move: not a square {value!r}") from e
    if not isinstance(file, int) or not isinstance(rank, int):
        raise IllegalMoveError(f"illegal move: not a square {value!r}")
    sq = Square(file, rank)
    if not sq.is_valid():
        raise IllegalMoveError(f"illegal move: square off the board {tuple(sq)!r}")
    return sq


def _pawn_move_variants(
    colour: Colour,
    start: Square,
    end: Square,
    captured: Optional[PieceKind],
    promote: bool,
) -> Iterator[StandardMove]:
    if promote:
        for piece in PROMOTION_PIECES:
            yield StandardMove(colour, PieceKind.PAWN, start, end, captured, piece)
    else:
        yield StandardMove(colour, PieceKind.PAWN, start, end, captured)


def _ray_hits(
    f: int, r: int, directions: Tuple[Tuple[int, int], ...], attackers: int, occ: int
) -> bool:
    # The first occupied square along each ray decides
    for df, dr in directions:
        tf, tr = f + df, r + dr
        while 0 <= tf < 8 and 0 <= tr < 8:
            o = tr * 8 + tf
            if (occ >> o) & 1:
                if (attackers >> o) & 1:
                    return True
                break
            tf += df
            tr += dr
    return False


def _rights_from_bitboards(bb: List[int], colour: Colour) -> CastlingRights:
    rank = BACK_RANKS[colour]
    king = bb[bb_index(colour, PieceKind.KING)]
    rooks = bb[bb_index(colour, PieceKind.ROOK)]
    return CastlingRights(
        king_moved=not _bit(king, rank * 8 + KING_HOME_FILE),
        kingside_rook_moved=not _bit(rooks, rank * 8 + 7),
        queenside_rook_moved=not _bit(rooks, rank * 8),
    )


def start_placement() -> Dict[Square, Tuple[Colour, PieceKind]]:
    """Return the standard starting layout as a placement mapping."""
    placement: Dict[Square, Tuple[Colour, PieceKind]] = {}
    for colour in (Colour.WHITE, Colour.BLACK):
        for file, kind in enumerate(BACK_ROW):
            placement[Square(file, BACK_RANKS[colour])] = (colour, kind)
            placement[Square(file, PAWN_RANKS[colour])] = (colour, PieceKind.PAWN)
    return placement


def _start_bitboards() -> Tuple[int, ...]:
    bb = [0] * 12
    for sq, (colour, kind) in start_placement().items():
        bb[bb_index(colour, kind)] |= 1 << sq.idx
    return tuple(bb)


START_BITBOARDS = _start_bitboards()

from __future__ import annotations

from chess_champion.engine.board import Board
from chess_champion.engine.move import Colour, PieceKind, Square, StandardMove


W, B = Colour.WHITE, Colour.BLACK


def sq(name: str) -> Square:
    return Square.from_name(name)


def ends_from(moves, start: str) -> set[str]:
    return {m.end.name for m in moves if isinstance(m, StandardMove) and m.start == sq(start)}


def test_twenty_moves_from_start_for_both_sides() -> None:
    b = Board.start()
    assert len(b.legal_moves(W)) == 20
    assert len(b.legal_moves(B)) == 20


def test_enumeration_is_file_major() -> None:
    moves = Board.start().legal_moves(W)
    assert moves[:4] == [
        StandardMove(W, PieceKind.PAWN, sq("a2"), sq("a3")),
        StandardMove(W, PieceKind.PAWN, sq("a2"), sq("a4")),
        StandardMove(W, PieceKind.KNIGHT, sq("b1"), sq("c3")),
        StandardMove(W, PieceKind.KNIGHT, sq("b1"), sq("a3")),
    ]
    assert Board.start().legal_moves(W) == moves


def test_knight_in_corner_and_centre() -> None:
    b = Board.from_placement(
        {"a1": (W, PieceKind.KNIGHT), "d4": (W, PieceKind.KNIGHT), "h1": (W, PieceKind.KING), "h8": (B, PieceKind.KING)}
    )
    moves = b.legal_moves(W)
    assert ends_from(moves, "a1") == {"b3", "c2"}
    assert ends_from(moves, "d4") == {"e6", "e2", "c6", "c2", "f5", "f3", "b5", "b3"}


def test_rook_stops_at_blockers_and_captures() -> None:
    b = Board.from_placement(
        {
            "d4": (W, PieceKind.ROOK),
            "d6": (B, PieceKind.KNIGHT),
            "f4": (W, PieceKind.PAWN),
            "h1": (W, PieceKind.KING),
            "h8": (B, PieceKind.KING),
        }
    )
    moves = b.legal_moves(W)
    assert ends_from(moves, "d4") == {"d5", "d6", "d3", "d2", "d1", "e4", "c4", "b4", "a4"}
    capture = next(m for m in moves if isinstance(m, StandardMove) and m.end == sq("d6"))
    assert capture.captured is PieceKind.KNIGHT
    quiet = next(m for m in moves if isinstance(m, StandardMove) and m.end == sq("d5"))
    assert quiet.captured is None


def test_bishop_and_queen_rays() -> None:
    b = Board.from_placement(
        {"a1": (W, PieceKind.BISHOP), "h1": (W, PieceKind.KING), "a8": (B, PieceKind.KING), "b1": (W, PieceKind.QUEEN)}
    )
    moves = b.legal_moves(W)
    assert ends_from(moves, "a1") == {"b2", "c3", "d4", "e5", "f6", "g7", "h8"}
    assert "h7" in ends_from(moves, "b1")
    assert "b8" in ends_from(moves, "b1")
    assert "g1" in ends_from(moves, "b1")
    assert "a1" not in ends_from(moves, "b1")


def test_pawn_double_step_needs_both_squares_empty() -> None:
    b = Board.from_placement(
        {
            "e2": (W, PieceKind.PAWN),
            "e4": (B, PieceKind.KNIGHT),
            "d2": (W, PieceKind.PAWN),
            "d3": (B, PieceKind.BISHOP),
            "h1": (W, PieceKind.KING),
            "h8": (B, PieceKind.KING),
        }
    )
    moves = b.legal_moves(W)
    assert ends_from(moves, "e2") == {"e3", "d3"}
    assert ends_from(moves, "d2") == set()


def test_pawn_moves_in_generation_order() -> None:
    b = Board.from_placement(
        {
            "e7": (B, PieceKind.PAWN),
            "d6": (W, PieceKind.ROOK),
            "f6": (W, PieceKind.KNIGHT),
            "a1": (W, PieceKind.KING),
            "h8": (B, PieceKind.KING),
        }
    )
    pawn = [m for m in b.legal_moves(B) if isinstance(m, StandardMove) and m.piece is PieceKind.PAWN]
    assert [m.end.name for m in pawn] == ["e6", "e5", "f6", "d6"]
    assert pawn[2].captured is PieceKind.KNIGHT
    assert pawn[3].captured is PieceKind.ROOK


def test_no_move_captures_own_piece() -> None:
    b = Board.start()
    for m in b.legal_moves(W):
        assert isinstance(m, StandardMove)
        assert b.piece_at(m.end) is None or b.piece_at(m.end)[0] is B


def test_pinned_piece_cannot_leave_the_line() -> None:
    b = Board.from_placement(
        {
            "e1": (W, PieceKind.KING),
            "e2": (W, PieceKind.KNIGHT),
            "e8": (B, PieceKind.ROOK),
            "a8": (B, PieceKind.KING),
        }
    )
    assert ends_from(b.pseudo_legal_moves(W), "e2")
    assert ends_from(b.legal_moves(W), "e2") == set()


def test_legal_moves_are_a_subset_of_pseudo_legal() -> None:
    b = Board.from_placement(
        {
            "e1": (W, PieceKind.KING),
            "e2": (W, PieceKind.BISHOP),
            "e8": (B, PieceKind.ROOK),
            "b4": (B, PieceKind.BISHOP),
            "a8": (B, PieceKind.KING),
        }
    )
    pseudo = b.pseudo_legal_moves(W)
    legal = b.legal_moves(W)
    assert set(legal) <= set(pseudo)
    for m in legal:
        assert not b.after(m).is_in_check(W)
    for m in set(pseudo) - set(legal):
        assert b.after(m).is_in_check(W)

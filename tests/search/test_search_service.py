from __future__ import annotations

import multiprocessing
import random
import time

import pytest

import chess_champion
from chess_champion.assets.book import OPENING_FILES, OpeningBook
from chess_champion.engine.board import Board
from chess_champion.engine.move import Colour, PieceKind, Square, StandardMove
from chess_champion.search.service import SearchService, choose_move


W, B = Colour.WHITE, Colour.BLACK


def sq(name: str) -> Square:
    return Square.from_name(name)


def knight_vs_pawn() -> Board:
    return Board.from_placement(
        {"a1": (W, PieceKind.KING), "c3": (W, PieceKind.KNIGHT), "h8": (B, PieceKind.KING), "d5": (B, PieceKind.PAWN)}
    )


@pytest.mark.parametrize("colour, start_rank, end_rank", [(W, 1, 3), (B, 6, 4)])
def test_opening_book_plays_centre_double_step(colour: Colour, start_rank: int, end_rank: int) -> None:
    files = set()
    for seed in range(32):
        res = SearchService().search(Board.start(), colour, rng=random.Random(seed))
        mv = res.best_move
        assert res.book
        assert res.depth == 0
        assert isinstance(mv, StandardMove)
        assert mv.piece is PieceKind.PAWN
        assert mv.start.file == mv.end.file
        assert (mv.start.rank, mv.end.rank) == (start_rank, end_rank)
        assert mv in Board.start().legal_moves(colour)
        files.add(mv.start.file)
    assert files == set(OPENING_FILES) == {3, 4}


def test_opening_book_is_reproducible_with_seed() -> None:
    a = OpeningBook(random.Random(99)).find_move(Board.start(), W)
    b = OpeningBook(random.Random(99)).find_move(Board.start(), W)
    assert a == b


def test_opening_book_only_applies_to_start_layout() -> None:
    moved = Board.start().apply(StandardMove(W, PieceKind.PAWN, sq("e2"), sq("e4")))
    assert OpeningBook().find_move(moved, B) is None
    assert OpeningBook().find_move(knight_vs_pawn(), W) is None


def test_no_move_when_checkmated_or_stalemated() -> None:
    mated = Board.from_placement(
        {"h8": (B, PieceKind.KING), "g6": (W, PieceKind.KING), "g7": (W, PieceKind.QUEEN)}
    )
    stalemated = Board.from_placement(
        {"a8": (B, PieceKind.KING), "b6": (W, PieceKind.KING), "c7": (W, PieceKind.QUEEN)}
    )
    assert choose_move(B, mated) is None
    assert choose_move(B, stalemated) is None
    res = SearchService().search(stalemated, B)
    assert res.best_move is None and res.score is None and res.scores == []


def test_choose_move_returns_a_legal_move() -> None:
    b = knight_vs_pawn()
    mv = choose_move(W, b)
    assert mv in b.legal_moves(W)
    assert chess_champion.choose_move(W, b) == mv


def test_parallel_search_matches_serial() -> None:
    b = knight_vs_pawn()
    serial = SearchService().search(b, W)
    with SearchService() as service:
        parallel = service.search(b, W, workers=2)
    assert parallel.complete
    assert parallel.scores == serial.scores
    assert parallel.best_move == serial.best_move
    assert parallel.nodes == serial.nodes


def test_time_budget_returns_legal_move_and_marks_incomplete() -> None:
    b = Board.start().apply(StandardMove(W, PieceKind.PAWN, sq("e2"), sq("e4")))
    res = SearchService().search(b, B, movetime_ms=1)
    assert not res.complete
    assert not res.book
    assert res.best_move in b.legal_moves(B)
    assert len(res.scores) < len(b.legal_moves(B))


def test_search_reports_nodes_and_depth() -> None:
    res = SearchService().search(knight_vs_pawn(), W)
    assert res.depth == 4
    assert res.nodes > len(res.scores)
    assert res.time_ms >= 0


def test_parallel_time_budget_stops_workers() -> None:
    b = Board.start().apply(StandardMove(W, PieceKind.PAWN, sq("e2"), sq("e4")))
    before = set(multiprocessing.active_children())
    service = SearchService()
    res = service.search(b, B, movetime_ms=200, workers=2)
    assert not res.complete
    assert res.best_move in b.legal_moves(B)

    # Unbounded workers would still be grinding through full subtrees here
    started = time.perf_counter()
    service.close()
    assert time.perf_counter() - started < 5.0
    assert set(multiprocessing.active_children()) <= before


def test_pool_is_reused_across_searches() -> None:
    b = knight_vs_pawn()
    with SearchService() as service:
        first = service.search(b, W, workers=2)
        pool = service._pool
        second = service.search(b, W, workers=2)
        assert service._pool is pool
        assert first.scores == second.scores
    assert service._pool is None

from __future__ import annotations

import logging
import multiprocessing
import random
import threading
import time
from concurrent.futures import ProcessPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from chess_champion.assets.book import OpeningBook
from chess_champion.engine.board import Board
from chess_champion.engine.move import Colour, Move
from chess_champion.eval import benefit


logger = logging.getLogger(__name__)

# Plies looked ahead from the root position
SEARCH_DEPTH = 4


@dataclass
class SearchResult:
    best_move: Optional[Move]
    score: Optional[int]
    # (root move, final score) for every root move that was fully scored, in order
    scores: List[Tuple[Move, int]] = field(default_factory=list)
    nodes: int = 0
    depth: int = SEARCH_DEPTH
    time_ms: int = 0
    complete: bool = True
    book: bool = False


class _TimeUp(Exception):
    pass


def score_root_move(
    colour: Colour, board: Board, move: Move, deadline: Optional[float] = None
) -> Tuple[int, int]:
    """Score one root move with the four-ply lookahead.

    Args:
        colour (Colour): Side to move at the root.
        board (Board): Root position.
        move (Move): Legal root move to score.
        deadline (Optional[float]): ``time.perf_counter()`` value after which
            the subtree is abandoned.

    Returns:
        Tuple[int, int]: Final score and number of benefit evaluations.

    Raises:
        _TimeUp: If ``deadline`` passes before the subtree is finished.

    Notes:
        Every opponent reply ``m2`` yields triples ``(c2, c3, w)``: the
        negated reply benefit, the benefit of our answer ``m3`` and the
        opponent's worst-for-us final reply. Triples are grouped by the
        value of ``c2``; each group keeps its best ``c3 + w`` (we answer
        well) and the root score adds the smallest group total (the
        opponent picks the reply that hurts most).
    """
    opp = colour.opponent
    nodes = 1
    b1 = benefit(colour, move, board)
    board1 = board.after(move)
    replies = board1.legal_moves(opp)
    if not replies:
        return b1, nodes

    best_by_c2: Dict[int, int] = {}
    for m2 in replies:
        if deadline is not None and time.perf_counter() >= deadline:
            raise _TimeUp()
        c2 = -benefit(opp, m2, board1)
        nodes += 1
        board2 = board1.after(m2)
        answers = board2.legal_moves(colour)
        if not answers:
            _keep_best(best_by_c2, c2, 0)
            continue
        for m3 in answers:
            c3 = benefit(colour, m3, board2)
            board3 = board2.after(m3)
            finals = board3.legal_moves(opp)
            nodes += 1 + len(finals)
            if not finals:
                _keep_best(best_by_c2, c2, c3)
                continue
            w = min(-benefit(opp, m4, board3) for m4 in finals)
            _keep_best(best_by_c2, c2, c3 + w)

    return b1 + min(c2 + rest for c2, rest in best_by_c2.items()), nodes


def _keep_best(best_by_c2: Dict[int, int], c2: int, value: int) -> None:
    current = best_by_c2.get(c2)
    if current is None or value > current:
        best_by_c2[c2] = value


class SearchService:
    """Four-ply move selection with a depth-one opening book.

    Notes:
    - Root moves are scored independently; ``workers > 1`` spreads them over
      a process pool and gathers the scores in enumeration order, so the
      choice matches the single-process search.
    - The first root move with the maximal score wins.
    - ``movetime_ms`` bounds wall-clock time; unfinished root moves are
      dropped and the result is marked incomplete. Workers stop at the
      same deadline.
    - The pool is started on first use, uses the ``spawn`` start method and
      lives until :meth:`close`.
    """

    def __init__(self, book: Optional[OpeningBook] = None) -> None:
        self.book = book or OpeningBook()
        self._pool: Optional[ProcessPoolExecutor] = None
        self._pool_workers = 0
        self._pool_lock = threading.Lock()

    def search(
        self,
        board: Board,
        colour: Colour,
        movetime_ms: Optional[int] = None,
        workers: int = 1,
        rng: Optional[random.Random] = None,
    ) -> SearchResult:
        start = time.perf_counter()
        book = self.book if rng is None else OpeningBook(rng, self.book.files)
        book_move = book.find_move(board, colour)
        if book_move is not None:
            logger.debug("book move", extra={"move": str(book_move)})
            return SearchResult(
                best_move=book_move,
                score=None,
                depth=0,
                time_ms=int((time.perf_counter() - start) * 1000),
                book=True,
            )

        root_moves = board.legal_moves(colour)
        if not root_moves:
            return SearchResult(
                best_move=None,
                score=None,
                time_ms=int((time.perf_counter() - start) * 1000),
            )

        deadline = start + movetime_ms / 1000 if movetime_ms is not None else None
        if workers > 1 and len(root_moves) > 1:
            scores, nodes, complete = self._score_parallel(colour, board, root_moves, workers, deadline)
        else:
            scores, nodes, complete = self._score_serial(colour, board, root_moves, deadline)

        best_move: Optional[Move] = None
        best_score: Optional[int] = None
        for mv, sc in scores:
            if best_score is None or sc > best_score:
                best_move, best_score = mv, sc
        if best_move is None:
            # Budget ran out before any root move was scored
            best_move = root_moves[0]

        res = SearchResult(
            best_move=best_move,
            score=best_score,
            scores=scores,
            nodes=nodes,
            time_ms=int((time.perf_counter() - start) * 1000),
            complete=complete,
        )
        if complete:
            logger.debug(
                "search finished",
                extra={"move": str(best_move), "score": best_score, "nodes": nodes, "time_ms": res.time_ms},
            )
        else:
            logger.info(
                "search stopped by time budget",
                extra={"scored": len(scores), "root_moves": len(root_moves), "time_ms": res.time_ms},
            )
        return res

    def _score_serial(
        self,
        colour: Colour,
        board: Board,
        root_moves: List[Move],
        deadline: Optional[float],
    ) -> Tuple[List[Tuple[Move, int]], int, bool]:
        scores: List[Tuple[Move, int]] = []
        nodes = 0
        for mv in root_moves:
            if deadline is not None and time.perf_counter() >= deadline:
                return scores, nodes, False
            try:
                sc, n = score_root_move(colour, board, mv, deadline)
            except _TimeUp:
                return scores, nodes, False
            scores.append((mv, sc))
            nodes += n
        return scores, nodes, True

    def _score_parallel(
        self,
        colour: Colour,
        board: Board,
        root_moves: List[Move],
        workers: int,
        deadline: Optional[float],
    ) -> Tuple[List[Tuple[Move, int]], int, bool]:
        scores: List[Tuple[Move, int]] = []
        nodes = 0
        complete = True
        pool = self._pool_for(workers)
        # perf_counter is system-wide, so workers share the deadline
        futures = [pool.submit(score_root_move, colour, board, mv, deadline) for mv in root_moves]
        try:
            for mv, fut in zip(root_moves, futures):
                timeout = None if deadline is None else max(0.0, deadline - time.perf_counter())
                try:
                    sc, n = fut.result(timeout=timeout)
                except (FutureTimeout, _TimeUp):
                    complete = False
                    break
                scores.append((mv, sc))
                nodes += n
        finally:
            # Started subtrees stop at the deadline on their own
            for fut in futures:
                fut.cancel()
        return scores, nodes, complete

    def _pool_for(self, workers: int) -> ProcessPoolExecutor:
        with self._pool_lock:
            if self._pool is not None and self._pool_workers != workers:
                self._pool.shutdown(wait=True, cancel_futures=True)
                self._pool = None
            if self._pool is None:
                self._pool = ProcessPoolExecutor(
                    max_workers=workers, mp_context=multiprocessing.get_context("spawn")
                )
                self._pool_workers = workers
                logger.info("search pool started", extra={"workers": workers})
            return self._pool

    def close(self) -> None:
        """Stop the worker pool, waiting for running subtrees to finish."""
        with self._pool_lock:
            if self._pool is not None:
                self._pool.shutdown(wait=True, cancel_futures=True)
                self._pool = None
                self._pool_workers = 0

    def __enter__(self) -> "SearchService":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def choose_move(colour: Colour, board: Board) -> Optional[Move]:
    """Pick ``colour``'s move on ``board``, or ``None`` when it has no legal move."""
    return SearchService().search(board, colour).best_move

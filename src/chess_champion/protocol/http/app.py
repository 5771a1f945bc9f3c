from __future__ import annotations

import logging
from contextlib import asynccontextmanager, contextmanager
from typing import AsyncIterator, Dict, Iterator, List, Literal, Optional

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, Field

from .error import (
    exception_handler,
    game_exception_handler,
    http_exception_handler,
    request_validation_exception_handler,
)
from .logging_middleware import RequestIDLogFilter, RequestIDLoggingMiddleware
from .session import InMemorySessionStore
from ...config import Config
from ...engine.board import Board, IllegalMoveError
from ...engine.game import Game, GameStateError
from ...engine.move import (
    CastleKingside,
    Colour,
    Move,
    PieceKind,
    Square,
    StandardMove,
)
from ...engine.perft import perft as perft_nodes
from ...search.service import SearchService


logger = logging.getLogger(__name__)

ColourName = Literal["white", "black"]
PieceName = Literal["pawn", "knight", "bishop", "rook", "queen", "king"]
PromotionName = Literal["knight", "queen"]


class SquareModel(BaseModel):
    file: int = Field(..., ge=0, le=7)
    rank: int = Field(..., ge=0, le=7)


class MoveModel(BaseModel):
    kind: Literal["standard", "castle_kingside", "castle_queenside"]
    colour: ColourName
    piece: Optional[PieceName] = None
    start: Optional[SquareModel] = None
    end: Optional[SquareModel] = None
    captured: Optional[PieceName] = None
    promotion: Optional[PromotionName] = None


class CellModel(BaseModel):
    colour: ColourName
    piece: PieceName


class CreateGameRequest(BaseModel):
    user_colour: Optional[ColourName] = Field(default=None, description="Random when omitted")
    movetime_ms: Optional[int] = Field(default=None, ge=1)
    workers: Optional[int] = Field(default=None, ge=1, le=32)
    auto_reply: bool = Field(default=True, description="Engine answers every user move")


class CreateGameResponse(BaseModel):
    game_id: str
    user_colour: ColourName


class MoveRequest(BaseModel):
    start: SquareModel
    end: SquareModel
    promotion: Optional[PromotionName] = None


class CastleRequest(BaseModel):
    side: Literal["kingside", "queenside"]


class PromoteRequest(BaseModel):
    piece: PromotionName


class ReplayRequest(BaseModel):
    action: Literal["back", "start", "forward", "end"]


class SearchRequest(BaseModel):
    movetime_ms: Optional[int] = Field(default=None, ge=1)
    workers: Optional[int] = Field(default=None, ge=1, le=32)


class PerftRequest(BaseModel):
    depth: int = Field(default=1, ge=0, le=4)


class ScoredMove(BaseModel):
    move: MoveModel
    score: int


class SearchResponse(BaseModel):
    best_move: Optional[MoveModel]
    score: Optional[int]
    scores: List[ScoredMove]
    nodes: int
    depth: int
    time_ms: int
    complete: bool
    book: bool


class GameState(BaseModel):
    game_id: str
    user_colour: ColourName
    side_to_move: ColourName
    board: List[List[Optional[CellModel]]] = Field(..., description="Viewed snapshot, [file][rank]")
    legal_moves: List[MoveModel]
    in_check: bool
    checkmate: bool
    stalemate: bool
    finished: bool
    status: str
    history_length: int
    moves_back: int
    awaiting_promotion: Optional[MoveModel]
    can_castle_kingside: bool
    can_castle_queenside: bool
    last_move: Optional[MoveModel]


def create_app(config: Optional[Config] = None) -> FastAPI:
    cfg = config or Config.from_env()
    # One worker pool for every session
    search_service = SearchService()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        search_service.close()

    app = FastAPI(title="Chess Champion API", version="0.1.0", lifespan=lifespan)

    # Basic logging setup; handlers tag records with the current request ID
    logging.basicConfig(level=cfg.log_level)
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RequestIDLogFilter) for f in handler.filters):
            handler.addFilter(RequestIDLogFilter())

    # Middleware & error handling
    app.add_middleware(RequestIDLoggingMiddleware)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(IllegalMoveError, game_exception_handler)
    app.add_exception_handler(GameStateError, game_exception_handler)
    app.add_exception_handler(Exception, exception_handler)

    store = InMemorySessionStore()
    app.state.store = store
    app.state.search = search_service

    @app.get("/healthz")
    async def healthz() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/games", response_model=CreateGameResponse)
    def create_game(req: Optional[CreateGameRequest] = None) -> CreateGameResponse:
        req = req or CreateGameRequest()
        game = Game.new(
            Colour(req.user_colour) if req.user_colour else None,
            auto_reply=req.auto_reply,
            movetime_ms=req.movetime_ms if req.movetime_ms is not None else cfg.search.movetime_ms,
            workers=req.workers if req.workers is not None else cfg.search.workers,
            search=search_service,
        )
        game_id = store.create(game)
        logger.info("game created", extra={"game_id": game_id, "user_colour": game.user_colour.value})
        return CreateGameResponse(game_id=game_id, user_colour=game.user_colour.value)

    @app.get("/api/games/{game_id}/state", response_model=GameState)
    def get_state(game_id: str) -> GameState:
        with _session(store, game_id) as game:
            return _game_state(game_id, game)

    @app.post("/api/games/{game_id}/move", response_model=GameState)
    def make_move(game_id: str, req: MoveRequest) -> GameState:
        with _session(store, game_id) as game:
            promotion = PieceKind(req.promotion) if req.promotion else None
            game.user_move(_square(req.start), _square(req.end), promotion)
            return _game_state(game_id, game)

    @app.post("/api/games/{game_id}/castle", response_model=GameState)
    def castle(game_id: str, req: CastleRequest) -> GameState:
        with _session(store, game_id) as game:
            game.castle(kingside=req.side == "kingside")
            return _game_state(game_id, game)

    @app.post("/api/games/{game_id}/promote", response_model=GameState)
    def promote(game_id: str, req: PromoteRequest) -> GameState:
        with _session(store, game_id) as game:
            game.promote(PieceKind(req.piece))
            return _game_state(game_id, game)

    @app.post("/api/games/{game_id}/engine-move", response_model=GameState)
    def engine_move(game_id: str) -> GameState:
        with _session(store, game_id) as game:
            game.engine_turn()
            return _game_state(game_id, game)

    @app.post("/api/games/{game_id}/replay", response_model=GameState)
    def replay(game_id: str, req: ReplayRequest) -> GameState:
        with _session(store, game_id) as game:
            game.replay(req.action)
            return _game_state(game_id, game)

    @app.post("/api/games/{game_id}/search", response_model=SearchResponse)
    def search(game_id: str, req: Optional[SearchRequest] = None) -> SearchResponse:
        req = req or SearchRequest()
        with _session(store, game_id) as game:
            res = game.analyse(movetime_ms=req.movetime_ms, workers=req.workers)
        return SearchResponse(
            best_move=_move_model(res.best_move) if res.best_move else None,
            score=res.score,
            scores=[ScoredMove(move=_move_model(m), score=s) for m, s in res.scores],
            nodes=res.nodes,
            depth=res.depth,
            time_ms=res.time_ms,
            complete=res.complete,
            book=res.book,
        )

    @app.post("/api/games/{game_id}/perft")
    def perft(game_id: str, req: PerftRequest) -> Dict[str, int]:
        with _session(store, game_id) as game:
            board, colour = game.board, game.side_to_move
        return {"nodes": perft_nodes(board, colour, req.depth)}

    @app.delete("/api/games/{game_id}")
    def delete_game(game_id: str) -> Dict[str, str]:
        if not store.delete(game_id):
            raise HTTPException(status_code=404, detail="game not found")
        return {"status": "deleted"}

    return app


@contextmanager
def _session(store: InMemorySessionStore, game_id: str) -> Iterator[Game]:
    game = store.get(game_id)
    lock = store.lock_for(game_id)
    if game is None or lock is None:
        raise HTTPException(status_code=404, detail="game not found")
    with lock:
        yield game


def _square(model: SquareModel) -> Square:
    return Square(model.file, model.rank)


def _move_model(move: Move) -> MoveModel:
    if isinstance(move, StandardMove):
        return MoveModel(
            kind="standard",
            colour=move.colour.value,
            piece=move.piece.value,
            start=SquareModel(file=move.start.file, rank=move.start.rank),
            end=SquareModel(file=move.end.file, rank=move.end.rank),
            captured=move.captured.value if move.captured else None,
            promotion=move.promotion.value if move.promotion else None,
        )
    kind = "castle_kingside" if isinstance(move, CastleKingside) else "castle_queenside"
    return MoveModel(kind=kind, colour=move.colour.value)


def _board_grid(board: Board) -> List[List[Optional[CellModel]]]:
    grid: List[List[Optional[CellModel]]] = [[None] * 8 for _ in range(8)]
    for sq, colour, kind in board.pieces():
        grid[sq.file][sq.rank] = CellModel(colour=colour.value, piece=kind.value)
    return grid


def _game_state(game_id: str, game: Game) -> GameState:
    return GameState(
        game_id=game_id,
        user_colour=game.user_colour.value,
        side_to_move=game.side_to_move.value,
        board=_board_grid(game.viewed_board),
        legal_moves=[] if game.finished else [_move_model(m) for m in game.legal_moves()],
        in_check=game.in_check(),
        checkmate=game.checkmate(),
        stalemate=game.stalemate(),
        finished=game.finished,
        status=game.status,
        history_length=len(game.boards),
        moves_back=game.moves_back,
        awaiting_promotion=(
            _move_model(game.awaiting_promotion) if game.awaiting_promotion else None
        ),
        can_castle_kingside=game.can_castle(kingside=True),
        can_castle_queenside=game.can_castle(kingside=False),
        last_move=_move_model(game.moves[-1]) if game.moves else None,
    )


# Default app for non-factory servers
app = create_app()

from __future__ import annotations

from typing import Any, Dict

from fastapi.testclient import TestClient

from chess_champion.protocol.http.app import create_app


def _client() -> TestClient:
    return TestClient(create_app())


def _new_game(client: TestClient, **body: Any) -> str:
    payload: Dict[str, Any] = {"user_colour": "white", "auto_reply": False}
    payload.update(body)
    r = client.post("/api/games", json=payload)
    assert r.status_code == 200
    return r.json()["game_id"]


def _sq(file: int, rank: int) -> Dict[str, int]:
    return {"file": file, "rank": rank}


E2, E4, E5, E7 = _sq(4, 1), _sq(4, 3), _sq(4, 4), _sq(4, 6)


def test_create_game_and_get_state() -> None:
    client = _client()
    r = client.post("/api/games", json={"user_colour": "white", "auto_reply": False})
    assert r.status_code == 200
    body = r.json()
    assert body["game_id"]
    assert body["user_colour"] == "white"

    r2 = client.get(f"/api/games/{body['game_id']}/state")
    assert r2.status_code == 200
    state = r2.json()
    assert state["game_id"] == body["game_id"]
    assert state["side_to_move"] == "white"
    assert len(state["legal_moves"]) == 20
    assert state["board"][4][0] == {"colour": "white", "piece": "king"}
    assert state["board"][3][7] == {"colour": "black", "piece": "queen"}
    assert state["board"][4][3] is None
    assert state["history_length"] == 1
    assert state["last_move"] is None
    assert not state["in_check"] and not state["checkmate"] and not state["stalemate"]
    assert not state["can_castle_kingside"] and not state["can_castle_queenside"]


def test_create_game_without_body_picks_a_colour() -> None:
    client = _client()
    r = client.post("/api/games")
    assert r.status_code == 200
    assert r.json()["user_colour"] in ("white", "black")


def test_engine_opens_when_user_plays_black() -> None:
    client = _client()
    gid = _new_game(client, user_colour="black", auto_reply=True)
    state = client.get(f"/api/games/{gid}/state").json()
    assert state["history_length"] == 2
    assert state["side_to_move"] == "black"
    last = state["last_move"]
    assert last["kind"] == "standard"
    assert last["colour"] == "white"
    assert last["piece"] == "pawn"
    assert last["start"]["file"] in (3, 4)
    assert (last["start"]["rank"], last["end"]["rank"]) == (1, 3)


def test_get_state_unknown_id_404() -> None:
    client = _client()
    r = client.get("/api/games/does-not-exist/state")
    assert r.status_code == 404
    err = r.json()["error"]
    assert err["code"] == "not_found"
    assert err["type"] == "client_error"


def test_move_then_illegal_move() -> None:
    client = _client()
    gid = _new_game(client)
    r = client.post(f"/api/games/{gid}/move", json={"start": E2, "end": E4})
    assert r.status_code == 200
    state = r.json()
    assert state["history_length"] == 2
    assert state["side_to_move"] == "black"
    assert state["board"][4][3] == {"colour": "white", "piece": "pawn"}
    assert state["last_move"]["end"] == E4

    # not the user's turn any more
    r_turn = client.post(f"/api/games/{gid}/move", json={"start": E7, "end": E5})
    assert r_turn.status_code == 409
    assert r_turn.json()["error"]["code"] == "conflict"


def test_illegal_move_is_bad_request() -> None:
    client = _client()
    gid = _new_game(client)
    r = client.post(f"/api/games/{gid}/move", json={"start": E2, "end": E5})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "bad_request"


def test_off_board_square_is_validation_error() -> None:
    client = _client()
    gid = _new_game(client)
    r = client.post(f"/api/games/{gid}/move", json={"start": E2, "end": _sq(4, 8)})
    assert r.status_code == 422
    err = r.json()["error"]
    assert err["code"] == "unprocessable_entity"
    assert err["field_errors"]


def test_engine_move_endpoint_and_replay_cursor() -> None:
    client = _client()
    gid = _new_game(client, movetime_ms=50)
    client.post(f"/api/games/{gid}/move", json={"start": E2, "end": E4})
    r = client.post(f"/api/games/{gid}/engine-move")
    assert r.status_code == 200
    state = r.json()
    assert state["history_length"] == 3
    assert state["side_to_move"] == "white"
    assert state["last_move"]["colour"] == "black"

    r_engine = client.post(f"/api/games/{gid}/engine-move")
    assert r_engine.status_code == 409

    back = client.post(f"/api/games/{gid}/replay", json={"action": "start"}).json()
    assert back["moves_back"] == 2
    assert back["board"][4][1] == {"colour": "white", "piece": "pawn"}
    assert back["board"][4][3] is None

    blocked = client.post(f"/api/games/{gid}/move", json={"start": _sq(3, 1), "end": _sq(3, 3)})
    assert blocked.status_code == 409

    fwd = client.post(f"/api/games/{gid}/replay", json={"action": "forward"}).json()
    assert fwd["moves_back"] == 1
    assert fwd["board"][4][3] == {"colour": "white", "piece": "pawn"}

    end = client.post(f"/api/games/{gid}/replay", json={"action": "end"}).json()
    assert end["moves_back"] == 0

    bad = client.post(f"/api/games/{gid}/replay", json={"action": "sideways"})
    assert bad.status_code == 422


def test_promote_without_pending_promotion_conflicts() -> None:
    client = _client()
    gid = _new_game(client)
    r = client.post(f"/api/games/{gid}/promote", json={"piece": "queen"})
    assert r.status_code == 409
    r_rook = client.post(f"/api/games/{gid}/promote", json={"piece": "rook"})
    assert r_rook.status_code == 422


def test_castle_when_not_allowed_is_bad_request() -> None:
    client = _client()
    gid = _new_game(client)
    r = client.post(f"/api/games/{gid}/castle", json={"side": "kingside"})
    assert r.status_code == 400


def test_search_endpoint_uses_book_at_start() -> None:
    client = _client()
    gid = _new_game(client)
    r = client.post(f"/api/games/{gid}/search", json={})
    assert r.status_code == 200
    data = r.json()
    assert {"best_move", "score", "scores", "nodes", "depth", "time_ms", "complete", "book"} <= set(data)
    assert data["book"] is True
    assert data["depth"] == 0
    assert data["best_move"]["piece"] == "pawn"
    # searching does not play the move
    assert client.get(f"/api/games/{gid}/state").json()["history_length"] == 1


def test_search_endpoint_with_time_budget() -> None:
    client = _client()
    gid = _new_game(client)
    client.post(f"/api/games/{gid}/move", json={"start": E2, "end": E4})
    r = client.post(f"/api/games/{gid}/search", json={"movetime_ms": 20})
    assert r.status_code == 200
    data = r.json()
    assert data["book"] is False
    assert data["complete"] is False
    assert data["best_move"]["colour"] == "black"


def test_perft_endpoint() -> None:
    client = _client()
    gid = _new_game(client)
    r = client.post(f"/api/games/{gid}/perft", json={"depth": 2})
    assert r.status_code == 200
    assert r.json() == {"nodes": 400}
    assert client.post(f"/api/games/{gid}/perft", json={"depth": 9}).status_code == 422


def test_delete_game() -> None:
    client = _client()
    gid = _new_game(client)
    assert client.delete(f"/api/games/{gid}").json() == {"status": "deleted"}
    assert client.get(f"/api/games/{gid}/state").status_code == 404
    assert client.delete(f"/api/games/{gid}").status_code == 404


def test_sessions_share_one_search_service() -> None:
    app = create_app()
    with TestClient(app) as client:
        first = _new_game(client)
        second = _new_game(client)
        store = app.state.store
        assert store.get(first).search is app.state.search
        assert store.get(second).search is app.state.search
    # lifespan shutdown closes the pool
    assert app.state.search._pool is None

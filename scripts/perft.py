#!/usr/bin/env python3
# ruff: noqa: E402
from __future__ import annotations

import argparse
import os
import sys
import time

# Allow running this script directly via `python scripts/perft.py`
# by adding the repo's src/ directory to sys.path.
SRC_PATH = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "src")
if SRC_PATH not in sys.path:
    sys.path.insert(0, SRC_PATH)

from chess_champion.engine.board import Board
from chess_champion.engine.move import Colour
from chess_champion.engine.perft import perft


def main() -> None:
    parser = argparse.ArgumentParser(description="Run perft from the starting position")
    parser.add_argument("--depth", type=int, default=3, help="Perft depth (default: 3)")
    parser.add_argument(
        "--colour",
        choices=[c.value for c in Colour],
        default=Colour.WHITE.value,
        help="Side moving first (default: white)",
    )
    args = parser.parse_args()

    board = Board.start()
    start = time.perf_counter()
    nodes = perft(board, Colour(args.colour), args.depth)
    dt = time.perf_counter() - start
    print(f"nodes={nodes} depth={args.depth} time_ms={int(dt*1000)} nps={int(nodes/max(dt,1e-9))}")


if __name__ == "__main__":
    main()

from __future__ import annotations

import argparse
import os
from typing import List, Optional

import uvicorn

from ..config import Config


def main(argv: Optional[List[str]] = None) -> None:
    cfg = Config.from_env()
    parser = argparse.ArgumentParser(description="Serve the chess engine HTTP API")
    parser.add_argument("--host", type=str, default=cfg.server.host, help="Bind address")
    parser.add_argument("--port", type=int, default=cfg.server.port, help="Bind port")
    parser.add_argument("--log-level", type=str, default=cfg.log_level, help="Logging level")
    args = parser.parse_args(argv)
    # The app factory reads its configuration from the environment
    os.environ["CHESS_CHAMPION_LOG_LEVEL"] = args.log_level

    uvicorn.run(
        "chess_champion.protocol.http.app:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
    )


if __name__ == "__main__":
    main()

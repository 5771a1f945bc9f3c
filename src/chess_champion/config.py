from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional


ENV_PREFIX = "CHESS_CHAMPION_"


@dataclass
class SearchConfig:
    movetime_ms: Optional[int] = None  # None means the full four-ply search
    workers: int = 1


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8000


@dataclass
class Config:
    search: SearchConfig = field(default_factory=SearchConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    log_level: str = "INFO"

    @staticmethod
    def from_env(environ: Optional[Mapping[str, str]] = None) -> "Config":
        """Build a config from ``CHESS_CHAMPION_*`` environment variables.

        Raises:
            ValueError: If a numeric variable does not hold a valid integer.
        """
        env = os.environ if environ is None else environ
        cfg = Config()
        movetime = _int_var(env, "MOVETIME_MS")
        if movetime is not None:
            cfg.search.movetime_ms = movetime if movetime > 0 else None
        workers = _int_var(env, "WORKERS")
        if workers is not None:
            cfg.search.workers = max(1, workers)
        port = _int_var(env, "PORT")
        if port is not None:
            cfg.server.port = port
        host = env.get(ENV_PREFIX + "HOST")
        if host:
            cfg.server.host = host
        level = env.get(ENV_PREFIX + "LOG_LEVEL")
        if level:
            cfg.log_level = level.upper()
        return cfg


def _int_var(env: Mapping[str, str], name: str) -> Optional[int]:
    raw = env.get(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from e

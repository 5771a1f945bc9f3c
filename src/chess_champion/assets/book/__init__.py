from __future__ import annotations

from .opening import OPENING_FILES, OpeningBook

__all__ = ["OPENING_FILES", "OpeningBook"]

"""Game records, clock annotations and side-line exploration."""

from chessreview.game.clock import parse_clock_data
from chessreview.game.record import GameRecord, canonical_pgn, game_key, parse_pgn
from chessreview.game.variation import (
    InVariation,
    MainLine,
    VariationExplorer,
    VariationResult,
    VariationState,
    replay_line,
)

__all__ = [
    "GameRecord",
    "InVariation",
    "MainLine",
    "VariationExplorer",
    "VariationResult",
    "VariationState",
    "canonical_pgn",
    "game_key",
    "parse_clock_data",
    "parse_pgn",
    "replay_line",
]

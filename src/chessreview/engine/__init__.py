"""Evaluation oracles, score normalization and incremental-depth analysis."""

from __future__ import annotations

from chessreview.config import EngineConfig, EngineMode
from chessreview.engine.depth import AnalyzerState, DepthAnalyzer, FocusRunner
from chessreview.engine.oracle import LineBatch, LineInfo, Oracle
from chessreview.engine.pov import normalize_batch, normalize_line, to_side_relative
from chessreview.engine.ranking import rank_lines
from chessreview.engine.server import ServerOracle
from chessreview.engine.uci import UciOracle


def create_oracle(config: EngineConfig) -> Oracle:
    """Build the backend selected by ``config.mode``."""
    if config.mode is EngineMode.SERVER:
        return ServerOracle(config)
    return UciOracle(config)


__all__ = [
    "AnalyzerState",
    "DepthAnalyzer",
    "FocusRunner",
    "LineBatch",
    "LineInfo",
    "Oracle",
    "ServerOracle",
    "UciOracle",
    "create_oracle",
    "normalize_batch",
    "normalize_line",
    "rank_lines",
    "to_side_relative",
]

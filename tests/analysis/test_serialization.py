"""Tests for report JSON encoding."""

from __future__ import annotations

import json

import chess
import pytest

from chessreview.analysis import serialization
from chessreview.analysis.models import (
    AccuracySummary,
    Acpl,
    ClockData,
    EstimatedElo,
    FullReport,
    GameHeader,
    LineEval,
    MoveClass,
    MoveReport,
    PositionEval,
    ReportSettings,
    SideAccuracy,
)

AFTER_E4 = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"


def _report() -> FullReport:
    return FullReport(
        header=GameHeader(
            white="Alice",
            black="Bob",
            white_elo=1810,
            result="1-0",
            pgn='[White "Alice"]\n\n1. e4 1-0',
        ),
        positions=(
            PositionEval(
                fen=chess.STARTING_FEN,
                ply=0,
                lines=(
                    LineEval(pv=("e2e4", "e7e5"), cp=31, depth=18),
                    LineEval(pv=("d2d4",), cp=24, depth=18, multipv=2),
                ),
            ),
            PositionEval(
                fen=AFTER_E4, ply=1, lines=(LineEval(pv=("c7c5",), mate=-9, depth=18),)
            ),
        ),
        moves=(
            MoveReport(
                ply=1,
                san="e4",
                uci="e2e4",
                fen_before=chess.STARTING_FEN,
                fen_after=AFTER_E4,
                win_before=52.84,
                win_after=100.0,
                accuracy=99.5,
                classification=MoveClass.BEST,
                best_move="e2e4",
                opening="King's Pawn Opening",
            ),
        ),
        accuracy=AccuracySummary(
            white=SideAccuracy(weighted=99.5, harmonic=99.25), black=SideAccuracy()
        ),
        acpl=Acpl(white=3, black=0),
        estimated_elo=EstimatedElo(white=2410, black=1500),
        clocks=ClockData(white=(30000,), black=()),
        settings=ReportSettings(engine="Stockfish 16", depth=18, multipv=2),
    )


def test_round_trip_is_lossless() -> None:
    report = _report()
    assert serialization.loads(serialization.dumps(report)) == report


def test_json_uses_plain_values() -> None:
    data = json.loads(serialization.dumps(_report(), indent=2))
    assert data["moves"][0]["classification"] == "BEST"
    assert data["positions"][1]["lines"][0]["mate"] == -9
    assert data["positions"][1]["lines"][0]["cp"] is None
    assert data["settings"] == {"engine": "Stockfish 16", "depth": 18, "multipv": 2}
    assert serialization.to_dict(_report())["clocks"] == {"white": [30000], "black": []}


def test_invalid_payload_is_rejected() -> None:
    data = json.loads(serialization.dumps(_report()))
    data["moves"][0]["classification"] = "GREAT"
    with pytest.raises(ValueError):
        serialization.loads(json.dumps(data))


def test_position_move_count_mismatch_is_rejected() -> None:
    data = json.loads(serialization.dumps(_report()))
    data["positions"] = data["positions"][:1]
    with pytest.raises(ValueError):
        serialization.loads(json.dumps(data))

"""Tests for score to win-probability mapping."""

from __future__ import annotations

import pytest

from chessreview.analysis.models import LineEval
from chessreview.analysis.win_percentage import (
    for_mover,
    line_centipawns,
    line_win_percentage,
    win_percentage_from_cp,
    win_percentage_from_mate,
)


def test_even_score_is_fifty_percent() -> None:
    assert win_percentage_from_cp(0) == pytest.approx(50.0)


def test_curve_is_symmetric_and_monotonic() -> None:
    assert win_percentage_from_cp(150) + win_percentage_from_cp(-150) == pytest.approx(100.0)
    assert win_percentage_from_cp(100) < win_percentage_from_cp(200) < 100.0
    assert win_percentage_from_cp(300) == pytest.approx(75.1, abs=0.1)


def test_scores_beyond_ceiling_are_clamped() -> None:
    assert win_percentage_from_cp(5000) == win_percentage_from_cp(1000)
    assert win_percentage_from_cp(-5000) == win_percentage_from_cp(-1000)


def test_mate_scores_are_certain() -> None:
    assert win_percentage_from_mate(4) == 100.0
    assert win_percentage_from_mate(-1) == 0.0
    assert line_win_percentage(LineEval(pv=(), mate=-3)) == 0.0


def test_missing_line_is_neutral() -> None:
    assert line_win_percentage(None) == 50.0
    assert line_centipawns(None) is None


def test_line_centipawns_pins_mates() -> None:
    assert line_centipawns(LineEval(pv=(), mate=2)) == 1000
    assert line_centipawns(LineEval(pv=(), mate=-7)) == -1000
    assert line_centipawns(LineEval(pv=(), cp=-2400)) == -1000
    assert line_centipawns(LineEval(pv=(), cp=35)) == 35


def test_for_mover_flips_for_black() -> None:
    assert for_mover(70.0, white_moved=True) == 70.0
    assert for_mover(70.0, white_moved=False) == pytest.approx(30.0)

"""Tests for candidate line ordering."""

from __future__ import annotations

from chessreview.analysis.models import LineEval
from chessreview.engine.ranking import rank_lines


def _cp(cp: int, move: str = "a2a3") -> LineEval:
    return LineEval(pv=(move,), cp=cp)


def _mate(mate: int, move: str = "a2a3") -> LineEval:
    return LineEval(pv=(move,), mate=mate)


def test_white_prefers_short_mates_then_high_scores_then_long_defences() -> None:
    lines = [_cp(10), _mate(3), _cp(50), _mate(-2), _mate(-5), _mate(1)]

    ranked = rank_lines(lines, white_to_move=True)

    assert [(line.cp, line.mate) for line in ranked] == [
        (None, 1),
        (None, 3),
        (50, None),
        (10, None),
        (None, -5),
        (None, -2),
    ]


def test_black_ranks_white_relative_scores_from_its_own_side() -> None:
    lines = [_cp(-30), _cp(20), _mate(-2), _mate(4), _mate(-6)]

    ranked = rank_lines(lines, white_to_move=False)

    assert [(line.cp, line.mate) for line in ranked] == [
        (None, -2),
        (None, -6),
        (-30, None),
        (20, None),
        (None, 4),
    ]


def test_equal_scores_keep_engine_order() -> None:
    lines = [_cp(15, "e2e4"), _cp(15, "d2d4"), _cp(15, "c2c4")]
    ranked = rank_lines(lines, white_to_move=True)
    assert [line.best_move for line in ranked] == ["e2e4", "d2d4", "c2c4"]


def test_ranking_is_idempotent() -> None:
    lines = [_cp(-5), _mate(7), _cp(80), _mate(-1), _cp(80, "h2h3")]
    for is_white in (True, False):
        once = rank_lines(lines, is_white)
        assert rank_lines(once, is_white) == once


def test_empty_input_gives_empty_tuple() -> None:
    assert rank_lines([], white_to_move=True) == ()

"""Strength ordering of candidate engine lines."""

from __future__ import annotations

from collections.abc import Iterable

from chessreview.analysis.models import LineEval

_MATE_BASE = 1_000_000


def line_strength(line: LineEval, white_to_move: bool) -> int:
    """Sort key: larger is better for the side to move.

    Winning mates beat every centipawn score and shorter mates beat longer
    ones. Losing mates rank below every centipawn score, and the longest
    defence ranks highest among them.
    """
    sign = 1 if white_to_move else -1
    if line.mate is not None:
        mate = line.mate * sign
        if mate > 0:
            return _MATE_BASE - mate
        return -_MATE_BASE - mate
    assert line.cp is not None
    return line.cp * sign


def rank_lines(
    lines: Iterable[LineEval], white_to_move: bool
) -> tuple[LineEval, ...]:
    """Order *lines* strongest-first for the side to move.

    The sort is stable, so equal lines keep the engine's order and ranking
    an already-ranked sequence returns it unchanged.
    """
    return tuple(
        sorted(
            lines,
            key=lambda line: line_strength(line, white_to_move),
            reverse=True,
        )
    )

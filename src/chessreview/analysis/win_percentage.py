"""Win-probability mapping for engine scores.

Win percentages are White-relative on a 0-100 scale and follow the
logistic curve lichess uses for its accuracy metric.
"""

from __future__ import annotations

import math

from chessreview.analysis.models import LineEval, PositionEval

_CP_CEILING = 1000
_MULTIPLIER = -0.00368208


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def win_percentage_from_cp(cp: int) -> float:
    capped = clamp(cp, -_CP_CEILING, _CP_CEILING)
    win_chances = 2 / (1 + math.exp(_MULTIPLIER * capped)) - 1
    return 50 + 50 * win_chances


def win_percentage_from_mate(mate: int) -> float:
    return 100.0 if mate > 0 else 0.0


def line_win_percentage(line: LineEval | None) -> float:
    """White's win chance for *line*; 50 when there is no line."""
    if line is None:
        return 50.0
    if line.cp is not None:
        return win_percentage_from_cp(line.cp)
    if line.mate is not None:
        return win_percentage_from_mate(line.mate)
    return 50.0


def position_win_percentage(position: PositionEval) -> float:
    return line_win_percentage(position.best_line)


def for_mover(win_percentage: float, white_moved: bool) -> float:
    """Convert a White-relative win percentage to the mover's view."""
    return win_percentage if white_moved else 100.0 - win_percentage


def line_centipawns(line: LineEval | None) -> int | None:
    """White-relative centipawns with mate scores pinned to the ceiling."""
    if line is None:
        return None
    if line.cp is not None:
        return int(clamp(line.cp, -_CP_CEILING, _CP_CEILING))
    if line.mate is not None:
        return _CP_CEILING if line.mate > 0 else -_CP_CEILING
    return None

"""Per-side accuracy, centipawn loss and rating estimates."""

from __future__ import annotations

import math
import statistics
from collections.abc import Sequence

from chessreview.analysis.models import (
    AccuracySummary,
    Acpl,
    EstimatedElo,
    PositionEval,
    SideAccuracy,
)
from chessreview.analysis.win_percentage import (
    clamp,
    line_centipawns,
    position_win_percentage,
)

NEUTRAL_RATING = 1500
_DECISIVE_OFFSET = 400
_CPL_CAP = 1000

# Piecewise-linear accuracy -> rating map: (accuracy floor, rating at floor, slope).
_ACCURACY_RATING_STEPS: tuple[tuple[float, float, float], ...] = (
    (95.0, 2700.0, 60.0),
    (90.0, 2300.0, 80.0),
    (80.0, 1800.0, 50.0),
    (70.0, 1400.0, 40.0),
    (60.0, 1000.0, 40.0),
)


def move_accuracy(win_before: float, win_after: float, white_moved: bool) -> float:
    """Accuracy (0-100) of one move from the mover's win-percentage loss."""
    loss = win_before - win_after if white_moved else win_after - win_before
    loss = max(0.0, loss)
    raw = 103.1668100711649 * math.exp(-0.04354415386753951 * loss) - 3.166924740191411
    return clamp(raw + 1, 0.0, 100.0)


def moves_accuracy(positions: Sequence[PositionEval]) -> list[float]:
    """Accuracy of every move between consecutive *positions*."""
    wins = [position_win_percentage(position) for position in positions]
    return [
        move_accuracy(wins[index], wins[index + 1], positions[index].white_to_move)
        for index in range(len(positions) - 1)
    ]


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def accuracy_weights(win_percentages: Sequence[float]) -> list[float]:
    """Volatility weights: std-dev of win % in a window around each move."""
    count = len(win_percentages)
    window_size = int(clamp(math.ceil(count / 10), 2, 8))
    half_window = _round_half_up(window_size / 2)

    weights: list[float] = []
    for index in range(1, count):
        start = index - half_window
        end = index + half_window
        if start < 0:
            window = win_percentages[:window_size]
        elif end > count:
            window = win_percentages[-window_size:]
        else:
            window = win_percentages[start:end]
        weights.append(clamp(statistics.pstdev(window), 0.5, 12.0))
    return weights


def _weighted_mean(values: Sequence[float], weights: Sequence[float]) -> float:
    total_weight = sum(weights)
    if total_weight <= 0:
        return statistics.fmean(values)
    return sum(v * w for v, w in zip(values, weights, strict=True)) / total_weight


def compute_accuracy(positions: Sequence[PositionEval]) -> AccuracySummary:
    """Weighted and harmonic accuracy for both sides."""
    if len(positions) < 2:
        return AccuracySummary()

    wins = [position_win_percentage(position) for position in positions]
    per_move = moves_accuracy(positions)
    weights = accuracy_weights(wins)

    sides: dict[bool, tuple[list[float], list[float]]] = {True: ([], []), False: ([], [])}
    for index, accuracy in enumerate(per_move):
        values, side_weights = sides[positions[index].white_to_move]
        values.append(accuracy)
        side_weights.append(weights[index])

    def _side(white: bool) -> SideAccuracy:
        values, side_weights = sides[white]
        if not values:
            return SideAccuracy()
        return SideAccuracy(
            weighted=_weighted_mean(values, side_weights),
            harmonic=statistics.harmonic_mean(values),
        )

    return AccuracySummary(white=_side(True), black=_side(False))


def compute_acpl(positions: Sequence[PositionEval]) -> Acpl:
    """Average centipawn loss per side, skipping unevaluated positions."""
    losses: dict[bool, list[int]] = {True: [], False: []}
    for before, after in zip(positions, positions[1:]):
        cp_before = line_centipawns(before.best_line)
        cp_after = line_centipawns(after.best_line)
        if cp_before is None or cp_after is None:
            continue
        white_moved = before.white_to_move
        loss = cp_before - cp_after if white_moved else cp_after - cp_before
        losses[white_moved].append(min(max(0, loss), _CPL_CAP))

    def _average(values: list[int]) -> int:
        return round(sum(values) / len(values)) if values else 0

    return Acpl(white=_average(losses[True]), black=_average(losses[False]))


def rating_from_accuracy(accuracy: float) -> float:
    """Map accuracy onto an Elo-like number (50% -> 800, 100% -> 3000)."""
    if accuracy >= 100.0:
        return 3000.0
    for floor, base, slope in _ACCURACY_RATING_STEPS:
        if accuracy >= floor:
            return base + (accuracy - floor) * slope
    return 800.0 + max(0.0, accuracy - 50.0) * 20.0


def performance_rating(result: str | None, white: bool, opponent_rating: int | None) -> float:
    """Opponent rating shifted by 400 for a win or loss."""
    base = opponent_rating if opponent_rating else NEUTRAL_RATING
    if result == "1-0":
        offset = _DECISIVE_OFFSET if white else -_DECISIVE_OFFSET
    elif result == "0-1":
        offset = -_DECISIVE_OFFSET if white else _DECISIVE_OFFSET
    else:
        offset = 0
    return float(base + offset)


def estimate_side_rating(
    accuracy: float,
    *,
    white: bool,
    result: str | None,
    own_rating: int | None,
    opponent_rating: int | None,
) -> int:
    """Blend performance, accuracy rating and the known rating (35/35/30)."""
    performance = performance_rating(result, white, opponent_rating)
    from_accuracy = rating_from_accuracy(accuracy)
    if own_rating:
        blended = performance * 0.35 + from_accuracy * 0.35 + own_rating * 0.30
    else:
        blended = performance * 0.5 + from_accuracy * 0.5
    return round(blended)


def estimate_elo(
    positions: Sequence[PositionEval],
    accuracy: AccuracySummary,
    *,
    result: str | None = None,
    white_elo: int | None = None,
    black_elo: int | None = None,
) -> EstimatedElo:
    """Estimated rating for both sides; neutral when a side made no move."""
    white_moves = sum(1 for position in positions[:-1] if position.white_to_move)
    black_moves = max(0, len(positions) - 1 - white_moves)

    white = NEUTRAL_RATING
    if white_moves:
        white = estimate_side_rating(
            accuracy.white.weighted,
            white=True,
            result=result,
            own_rating=white_elo,
            opponent_rating=black_elo,
        )
    black = NEUTRAL_RATING
    if black_moves:
        black = estimate_side_rating(
            accuracy.black.weighted,
            white=False,
            result=result,
            own_rating=black_elo,
            opponent_rating=white_elo,
        )
    return EstimatedElo(white=white, black=black)

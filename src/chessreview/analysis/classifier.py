"""Move quality classification from before/after engine evaluations."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import chess

from chessreview.analysis.models import MoveClass, PositionEval
from chessreview.analysis.win_percentage import (
    line_win_percentage,
    position_win_percentage,
)

# Mover-relative win-percentage drops, in percentage points.
_EXCELLENT_MIN_DELTA = -2.0
_OKAY_MIN_DELTA = -5.0
_INACCURACY_MIN_DELTA = -10.0
_MISTAKE_MIN_DELTA = -20.0

_ONLY_MOVE_MARGIN = 10.0
_OUTCOME_SWING = 10.0
_ALTERNATIVE_WINNING = 97.0

_PIECE_VALUES = {
    chess.PAWN: 1,
    chess.KNIGHT: 3,
    chess.BISHOP: 3,
    chess.ROOK: 5,
    chess.QUEEN: 9,
    chess.KING: 0,
}


@dataclass(slots=True, frozen=True)
class MoveContext:
    """Everything the classifier needs to judge one played move."""

    fen_before: str
    uci: str
    before: PositionEval
    after: PositionEval
    in_book: bool = False
    fen_two_back: str | None = None
    previous_uci: str | None = None

    @property
    def matches_top_line(self) -> bool:
        return self.before.best_move is not None and self.before.best_move == self.uci

    @property
    def white_moved(self) -> bool:
        parts = self.fen_before.split()
        return len(parts) < 2 or parts[1] != "b"


def classify_move(context: MoveContext) -> MoveClass:
    """Assign exactly one :class:`MoveClass` to the move in *context*."""
    if context.in_book:
        return MoveClass.OPENING

    if _legal_move_count(context.fen_before) == 1:
        return MoveClass.FORCED

    if not context.before.lines or not context.after.lines:
        return MoveClass.OKAY

    if context.matches_top_line:
        return MoveClass.BEST

    white_moved = context.white_moved
    win_before = position_win_percentage(context.before)
    win_after = position_win_percentage(context.after)
    delta = mover_delta(win_before, win_after, white_moved)
    alternative = _alternative_win_percentage(context.before, context.uci)

    if alternative is not None and delta >= _EXCELLENT_MIN_DELTA:
        hopeless = _is_losing_or_alternative_winning(win_after, alternative, white_moved)
        if not hopeless:
            after_best = context.after.best_line
            best_pv = after_best.pv if after_best is not None else ()
            if is_piece_sacrifice(context.fen_before, context.uci, best_pv):
                return MoveClass.SPLENDID
            if not _is_simple_recapture(
                context.fen_two_back, context.previous_uci, context.uci
            ) and (
                _changed_outcome(win_before, win_after, white_moved)
                or mover_delta(alternative, win_after, white_moved) > _ONLY_MOVE_MARGIN
            ):
                return MoveClass.PERFECT

    return classify_delta(delta)


def mover_delta(win_before: float, win_after: float, white_moved: bool) -> float:
    """Change in the mover's win percentage across the move."""
    diff = win_after - win_before
    return diff if white_moved else -diff


def classify_delta(delta: float) -> MoveClass:
    """Bucket a mover-relative win-percentage change."""
    if delta >= _EXCELLENT_MIN_DELTA:
        return MoveClass.EXCELLENT
    if delta >= _OKAY_MIN_DELTA:
        return MoveClass.OKAY
    if delta >= _INACCURACY_MIN_DELTA:
        return MoveClass.INACCURACY
    if delta >= _MISTAKE_MIN_DELTA:
        return MoveClass.MISTAKE
    return MoveClass.BLUNDER


def _legal_move_count(fen: str) -> int:
    try:
        return chess.Board(fen).legal_moves.count()
    except ValueError:
        return 0


def _alternative_win_percentage(before: PositionEval, uci: str) -> float | None:
    """Win percentage of the best engine line that is not the played move."""
    for line in before.lines:
        if line.best_move != uci:
            return line_win_percentage(line)
    return None


def _is_losing_or_alternative_winning(
    win_after: float, alternative: float, white_moved: bool
) -> bool:
    if white_moved:
        return win_after < 50 or alternative > _ALTERNATIVE_WINNING
    return win_after > 50 or alternative < 100 - _ALTERNATIVE_WINNING


def _changed_outcome(win_before: float, win_after: float, white_moved: bool) -> bool:
    crossed = (win_before < 50 < win_after) or (win_before > 50 > win_after)
    return mover_delta(win_before, win_after, white_moved) > _OUTCOME_SWING and crossed


def _is_simple_recapture(
    fen_two_back: str | None, previous_uci: str | None, uci: str
) -> bool:
    """Both moves land on the same occupied square: an exchange, not a find."""
    if fen_two_back is None or previous_uci is None:
        return False
    if previous_uci[2:4] != uci[2:4]:
        return False
    try:
        board = chess.Board(fen_two_back)
        square = chess.parse_square(previous_uci[2:4])
    except ValueError:
        return False
    return board.piece_at(square) is not None


def material_difference(board: chess.Board) -> int:
    """Material balance in pawns, positive when White is ahead."""
    total = 0
    for piece in board.piece_map().values():
        value = _PIECE_VALUES[piece.piece_type]
        total += value if piece.color == chess.WHITE else -value
    return total


def is_piece_sacrifice(fen: str, uci: str, best_pv: Sequence[str]) -> bool:
    """Whether playing *uci* then following *best_pv* leaves the mover down material.

    Mutual captures of the same piece type cancel out, and pure pawn
    trades never count as a sacrifice.
    """
    if not best_pv:
        return False
    try:
        board = chess.Board(fen)
    except ValueError:
        return False
    mover = board.turn
    starting = material_difference(board)

    moves = [uci, *best_pv]
    if len(moves) % 2 == 1:
        moves = moves[:-1]

    captured: dict[chess.Color, list[chess.PieceType]] = {
        chess.WHITE: [],
        chess.BLACK: [],
    }
    quiet_budget = 1
    for move_uci in moves:
        try:
            move = chess.Move.from_uci(move_uci)
        except ValueError:
            return False
        if move not in board.legal_moves:
            return False
        capturer = board.turn
        captured_type: chess.PieceType | None = None
        if board.is_en_passant(move):
            captured_type = chess.PAWN
        elif board.is_capture(move):
            captured_type = board.piece_type_at(move.to_square)
        board.push(move)
        if captured_type is not None:
            captured[capturer].append(captured_type)
            quiet_budget = 1
        else:
            quiet_budget -= 1
            if quiet_budget < 0:
                break

    for piece_type in list(captured[chess.WHITE]):
        if piece_type in captured[chess.BLACK]:
            captured[chess.BLACK].remove(piece_type)
            captured[chess.WHITE].remove(piece_type)

    remaining = captured[chess.WHITE] + captured[chess.BLACK]
    if abs(len(captured[chess.WHITE]) - len(captured[chess.BLACK])) <= 1 and all(
        piece_type == chess.PAWN for piece_type in remaining
    ):
        return False

    diff = material_difference(board) - starting
    return (diff if mover == chess.WHITE else -diff) < 0
